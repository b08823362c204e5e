"""
Shared fixtures: synthetic price frames and pivot builders.
"""

from __future__ import annotations

import logging

import pandas as pd
import pytest

from pattern_engine.logger import LOGGER_NAME

START = pd.Timestamp("2025-06-02 08:00:00")


def make_pivot(hours, price, pivot_type="high", volume=1000, volume_ratio=1.0):
    return {
        "date": START + pd.Timedelta(hours=hours),
        "price": float(price),
        "volume": volume,
        "volume_ratio": volume_ratio,
        "index": int(hours),
        "type": pivot_type,
    }


def make_flat_frame(n, high=100.0, low=90.0, close=95.0, volume=1000):
    """Hourly bars with identical highs and lows, so no bar is a pivot"""
    return pd.DataFrame({
        "Date": [START + pd.Timedelta(hours=i) for i in range(n)],
        "High": [high] * n,
        "Low": [low] * n,
        "Close": [close] * n,
        "Volume": [volume] * n,
    })


def make_wedge_frame(lower_end=84.5):
    """
    130 hourly bars with highs at bars 10/110 (110.0 -> 108.0) and lows at
    bars 10/110 (85.0 -> lower_end).
    """
    df = make_flat_frame(130)
    df.loc[10, ["High", "Low"]] = [110.0, 85.0]
    df.loc[110, ["High", "Low"]] = [108.0, lower_end]
    return df


@pytest.fixture
def wedge_frame():
    return make_wedge_frame()


@pytest.fixture
def rising_lows_frame():
    return make_wedge_frame(lower_end=86.0)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop console handlers attached by the CLI so they never outlive a captured stream"""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
