"""Presenters and offscreen figures for rendered frames."""
