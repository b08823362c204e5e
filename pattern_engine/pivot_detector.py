"""
Pivot Point Detection Module
Finds significant highs and lows over a symmetric bar window and attaches
each pivot's trailing volume ratio
"""

import numpy as np
import pandas as pd
from scipy.signal import argrelextrema

from .logger import get_logger

log = get_logger(__name__)

DEFAULT_WINDOW = 5
DEFAULT_VOLUME_LOOKBACK = 20


def calculate_volume_ratio(data, index, lookback=DEFAULT_VOLUME_LOOKBACK):
    """Volume of bar `index` relative to the mean of the `lookback` bars before it"""
    if index < lookback:
        return 1.0

    volumes = data['Volume'].values
    avg_volume = float(np.mean(volumes[index - lookback:index]))
    if avg_volume == 0:
        return 1.0

    return float(volumes[index]) / avg_volume


def calculate_volume_ratios(data, lookback=DEFAULT_VOLUME_LOOKBACK):
    """Vectorized calculate_volume_ratio over every bar of the frame"""
    volume = data['Volume'].astype(float).reset_index(drop=True)
    trailing_avg = volume.shift(1).rolling(window=lookback, min_periods=lookback).mean()

    ratios = volume / trailing_avg
    neutral = trailing_avg.isna() | (trailing_avg == 0)
    ratios[neutral] = 1.0
    return ratios.to_numpy()


def _strict_extrema(values, comparator, window):
    """Indices strictly beyond every other value within +/- window, edges excluded"""
    n = len(values)
    if n < 2 * window + 1:
        return np.array([], dtype=int)

    candidates = argrelextrema(values, comparator, order=window)[0]
    return candidates[(candidates >= window) & (candidates < n - window)]


def _make_pivot(data, idx, price_col, pivot_type, volume_ratios):
    return {
        'date': pd.Timestamp(data['Date'].iloc[idx]),
        'price': float(data[price_col].iloc[idx]),
        'volume': int(data['Volume'].iloc[idx]),
        'volume_ratio': float(volume_ratios[idx]),
        'index': int(idx),
        'type': pivot_type,
    }


def find_significant_levels(data, window=DEFAULT_WINDOW, volume_lookback=DEFAULT_VOLUME_LOOKBACK):
    """
    Identify significant highs and lows.

    A bar is a high when its High is strictly greater than the High of every
    other bar within `window` bars on either side; lows use the Low column
    and strictly smaller. Bars closer than `window` to either end of the
    series are never pivots, and a bar may be both a high and a low.

    Args:
        data: Prepared price frame (see stock_data_loader.prepare_price_data)
        window: Bars on each side of the candidate
        volume_lookback: Bars in the trailing volume average

    Returns:
        (highs, lows) lists of pivot dicts sorted ascending by date
    """
    if window < 1:
        raise ValueError(f"window must be positive, got {window}")

    highs_values = data['High'].to_numpy(dtype=float)
    lows_values = data['Low'].to_numpy(dtype=float)

    high_indices = _strict_extrema(highs_values, np.greater, window)
    low_indices = _strict_extrema(lows_values, np.less, window)

    volume_ratios = calculate_volume_ratios(data, lookback=volume_lookback) if len(data) else []

    highs = [_make_pivot(data, idx, 'High', 'high', volume_ratios) for idx in high_indices]
    lows = [_make_pivot(data, idx, 'Low', 'low', volume_ratios) for idx in low_indices]

    highs.sort(key=lambda p: p['date'])
    lows.sort(key=lambda p: p['date'])

    log.debug("Found %d significant highs and %d significant lows over %d bars (window=%d)",
              len(highs), len(lows), len(data), window)
    return highs, lows


def safe_date_format(date_obj, fmt='%Y-%m-%d %H:%M'):
    """Safely format date object to string"""
    if hasattr(date_obj, 'strftime'):
        return date_obj.strftime(fmt)
    return pd.to_datetime(date_obj).strftime(fmt)
