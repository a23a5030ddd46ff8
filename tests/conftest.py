"""Pytest configuration and shared fixtures for the ASCII raycaster tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import matplotlib
import numpy as np
import pytest


# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config: pytest.Config) -> None:
    """Configure logging and a headless matplotlib backend for tests."""
    matplotlib.use("Agg")
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s [%(levelname)s] %(message)s",
    )


@pytest.fixture
def origin() -> np.ndarray:
    """Ray origin at the world origin."""
    return np.zeros(3, dtype=np.float64)


@pytest.fixture
def forward() -> np.ndarray:
    """Unit ray direction along +Z."""
    return np.array([0.0, 0.0, 1.0], dtype=np.float64)
