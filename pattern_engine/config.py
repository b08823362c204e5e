"""
Falling Wedge Configuration
Default thresholds for pivot detection, line validation and breakout checks
"""

# =============================================================================
# FALLING WEDGE DETECTION THRESHOLDS
# =============================================================================
FALLING_WEDGE_CONFIG = {
    'min_pattern_duration_hours': 48.0,   # 2 days minimum
    'max_pattern_duration_hours': 480.0,  # 20 days maximum
    'min_convergence': 0.02,              # 2% minimum narrowing of the gap
    'max_convergence': 0.15,              # 15% maximum narrowing of the gap
    'min_wedge_height': 0.03,             # 3% minimum height
    'volume_decrease_ratio': 0.8,         # Late volume at 80% or less of early volume
    'breakout_volume_ratio': 1.5,         # Breakout bar at 1.5x trailing average

    # Pivot and search parameters
    'pivot_window': 5,                    # Bars on each side of a pivot
    'volume_lookback': 20,                # Bars in the trailing volume average
    'min_data_points': 30,                # Minimum bars before searching
    'max_debug_combinations': 10,         # Failed combinations kept for diagnostics
}

VOLUME_INCREASE_RATIO = 1.2
NEAR_BREAKOUT_THRESHOLD = 0.98
IDEAL_DURATION_HOURS = 240.0

_BOUNDS = [
    ('min_pattern_duration_hours', 'max_pattern_duration_hours'),
    ('min_convergence', 'max_convergence'),
]

_POSITIVE_INTS = ['pivot_window', 'volume_lookback', 'min_data_points', 'max_debug_combinations']


def make_wedge_config(config=None, **overrides):
    """
    Build a complete configuration dict from the defaults.

    Args:
        config: Optional dict of values to apply over the defaults
        **overrides: Individual values applied last

    Returns:
        New dict with every key of FALLING_WEDGE_CONFIG

    Raises:
        ValueError: on unknown keys, inverted bounds or non-positive counts
    """
    merged = dict(FALLING_WEDGE_CONFIG)
    for source in (config or {}, overrides):
        unknown = sorted(set(source) - set(FALLING_WEDGE_CONFIG))
        if unknown:
            raise ValueError(f"Unknown falling wedge config keys: {', '.join(unknown)}")
        merged.update(source)

    for low_key, high_key in _BOUNDS:
        if merged[low_key] > merged[high_key]:
            raise ValueError(f"{low_key} ({merged[low_key]}) must not exceed {high_key} ({merged[high_key]})")

    for key in _POSITIVE_INTS:
        if int(merged[key]) != merged[key] or merged[key] < 1:
            raise ValueError(f"{key} must be a positive integer, got {merged[key]!r}")
        merged[key] = int(merged[key])

    return merged
