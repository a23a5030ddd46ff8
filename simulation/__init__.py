"""Tick loop, frame clock, Game-of-Life overlay and frame persistence."""
