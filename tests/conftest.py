"""
Shared fixtures and options for mlcore tests.

Tests marked ``slow`` are skipped unless pytest runs with ``--run-slow``.
"""

import numpy as np
import pytest


def pytest_configure(config):
    """Register the slow marker."""
    config.addinivalue_line("markers", "slow: long-running test, needs --run-slow")


def pytest_addoption(parser):
    """Add the --run-slow option."""
    parser.addoption("--run-slow", action="store_true", default=False, help="Also run tests marked slow")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return
    skip = pytest.mark.skip(reason="slow; pass --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def two_blobs():
    """Two well-separated 2-D clusters of 20 points each, labels 0 and 1."""
    rng = np.random.default_rng(0)
    a = rng.normal(loc=[0.0, 0.0], scale=0.3, size=(20, 2))
    b = rng.normal(loc=[6.0, 6.0], scale=0.3, size=(20, 2))
    x = np.vstack([a, b])
    y = np.array([0] * 20 + [1] * 20)
    return x, y


@pytest.fixture
def xor_data():
    """The four XOR points as [4, 2] inputs and [4, 1] targets."""
    x = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([[0.0], [1.0], [1.0], [0.0]])
    return x, y
