"""
Pytest Configuration and Shared Fixtures

This module provides shared fixtures and configuration for all test modules.
"""

import pytest
import sys
import os

# Ensure src is in path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.config import GridConfig
from core.geometry import GridGeometry
from traffic_models.junction import Junction


def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture
def grid_config() -> GridConfig:
    """Default grid configuration"""
    return GridConfig()


@pytest.fixture
def make_grid():
    """
    Factory building a dict of junctions for a rows x cols grid

    Usage:
        junctions = make_grid(2, 2)                  # every cell
        junctions = make_grid(1, 3, cells=[(0, 0)])  # selected cells
    """
    def _make(rows, cols, config=None, cells=None):
        config = config or GridConfig()
        geometry = GridGeometry(config, rows, cols)
        if cells is None:
            cells = [(r, c) for r in range(rows) for c in range(cols)]
        return {(r, c): Junction(r, c, config, geometry) for r, c in cells}
    return _make


@pytest.fixture
def tolerance():
    """Standard numerical tolerance for floating point comparisons"""
    return {
        'rel': 0.01,  # 1% relative tolerance
        'abs': 1e-6   # Absolute tolerance for near-zero values
    }
