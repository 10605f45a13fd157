"""Shared pytest fixtures for datamask tests."""

from __future__ import annotations

import logging

import pandas as pd
import pytest


def pytest_configure(config):
    """Register markers for pytest."""
    config.addinivalue_line("markers", "cli: mark test as exercising the command line entry point")


@pytest.fixture
def diamonds() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "carat": [0.3, 1.2, 0.9, 2.1, 1.0],
            "cut": ["Ideal", "Premium", "Good", "Ideal", "Premium"],
            "price": [400, 5200, 2800, 15000, 4100],
            "depth": [61.5, 59.8, 63.3, 62.0, 60.1],
        }
    )


@pytest.fixture
def shadowing_frame() -> pd.DataFrame:
    # A column literally named like the scope collection of UI inputs.
    return pd.DataFrame({"x": [1, 4, 7], "y": [2, 5, 8], "input": [3, 6, 9]})


@pytest.fixture
def inputs() -> dict:
    return {"input": {"var": "x", "min": 0}}


@pytest.fixture(autouse=True)
def _reset_datamask_logger():
    yield
    package_logger = logging.getLogger("datamask")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
