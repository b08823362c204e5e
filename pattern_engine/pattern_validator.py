"""
Falling Wedge Validation Module
Checks one (upper, lower) trend line pair against the falling wedge constraints
"""

from typing import Dict, List, Optional

import pandas as pd

from .config import FALLING_WEDGE_CONFIG, VOLUME_INCREASE_RATIO
from .trendline_detector import calculate_line_slope, hours_between


def pattern_span(upper_line: List[Dict], lower_line: List[Dict]):
    """Earliest and latest timestamps across both lines"""
    start = min(upper_line[0]['date'], lower_line[0]['date'])
    end = max(upper_line[1]['date'], lower_line[1]['date'])
    return start, end


def calculate_convergence(upper_line: List[Dict], lower_line: List[Dict]) -> Optional[float]:
    """Fractional narrowing of the gap between the lines, None if the start gap is zero"""
    start_width = abs(upper_line[0]['price'] - lower_line[0]['price'])
    end_width = abs(upper_line[1]['price'] - lower_line[1]['price'])
    if start_width == 0:
        return None
    return (start_width - end_width) / start_width


def calculate_height(upper_line: List[Dict], lower_line: List[Dict]) -> float:
    max_high = max(upper_line[0]['price'], upper_line[1]['price'])
    min_low = min(lower_line[0]['price'], lower_line[1]['price'])
    return (max_high - min_low) / max_high


def calculate_volume_profile(data: pd.DataFrame, start, end,
                             decrease_ratio: float = FALLING_WEDGE_CONFIG['volume_decrease_ratio']) -> str:
    """
    Compare average volume in the first and second half of the pattern.

    Only bars strictly inside (start, end) count. Returns 'decreasing',
    'stable', 'increasing' or 'insufficient_data'.
    """
    if data is None or len(data) == 0:
        return 'insufficient_data'

    inside = data[(data['Date'] > start) & (data['Date'] < end)]
    midpoint = start + (end - start) / 2

    early = inside.loc[inside['Date'] < midpoint, 'Volume']
    late = inside.loc[inside['Date'] >= midpoint, 'Volume']

    if early.empty or late.empty:
        return 'insufficient_data'

    avg_early = float(early.mean())
    if avg_early == 0:
        return 'insufficient_data'

    ratio = float(late.mean()) / avg_early
    if ratio < decrease_ratio:
        return 'decreasing'
    elif ratio > VOLUME_INCREASE_RATIO:
        return 'increasing'
    return 'stable'


def validate_falling_wedge(upper_line: List[Dict], lower_line: List[Dict],
                           data: Optional[pd.DataFrame] = None,
                           config: Optional[Dict] = None) -> Dict:
    """
    Validate a candidate falling wedge.

    Every check runs and each failure appends its reason, so the result
    explains everything that is wrong with the pair. The only exception is a
    line without exactly two points, which returns straight away.

    Args:
        upper_line: Two high pivots
        lower_line: Two low pivots
        data: Full price frame, used for the volume profile
        config: Threshold dict (defaults to FALLING_WEDGE_CONFIG)

    Returns:
        Validation result dict with slopes, duration, convergence, height,
        volume profile, 'valid' and 'fail_reasons'
    """
    if config is None:
        config = FALLING_WEDGE_CONFIG

    result = {
        'upper_line': upper_line,
        'lower_line': lower_line,
        'upper_slope': None,
        'lower_slope': None,
        'duration_hours': None,
        'convergence': None,
        'height': None,
        'volume_profile': None,
        'valid': True,
        'fail_reasons': [],
    }
    reasons = result['fail_reasons']

    if len(upper_line) != 2 or len(lower_line) != 2:
        result['valid'] = False
        reasons.append('invalid line length')
        return result

    upper_slope = calculate_line_slope(upper_line)
    lower_slope = calculate_line_slope(lower_line)
    result['upper_slope'] = upper_slope
    result['lower_slope'] = lower_slope

    if upper_slope is None:
        reasons.append('upper line has zero duration')
    if lower_slope is None:
        reasons.append('lower line has zero duration')

    # Both lines must trend downward
    if upper_slope is not None and upper_slope >= 0:
        reasons.append('upper line not falling')
    if lower_slope is not None and lower_slope >= 0:
        reasons.append('lower line not falling')

    # Upper line must fall faster than the lower line
    if upper_slope is not None and lower_slope is not None and upper_slope >= lower_slope:
        reasons.append('lines not converging')

    start, end = pattern_span(upper_line, lower_line)
    duration = hours_between(start, end)
    result['duration_hours'] = duration

    min_duration = config['min_pattern_duration_hours']
    max_duration = config['max_pattern_duration_hours']
    if duration < min_duration:
        reasons.append(f"duration too short ({duration:.1f} hrs < {min_duration:.1f} hrs)")
    if duration > max_duration:
        reasons.append(f"duration too long ({duration:.1f} hrs > {max_duration:.1f} hrs)")

    convergence = calculate_convergence(upper_line, lower_line)
    result['convergence'] = convergence
    if convergence is None:
        reasons.append('zero starting gap')
    else:
        if convergence < config['min_convergence']:
            reasons.append(f"convergence too low ({convergence:.4f} < {config['min_convergence']:.4f})")
        if convergence > config['max_convergence']:
            reasons.append(f"convergence too high ({convergence:.4f} > {config['max_convergence']:.4f})")

    height = calculate_height(upper_line, lower_line)
    result['height'] = height
    if height < config['min_wedge_height']:
        reasons.append(f"height too small ({height:.4f} < {config['min_wedge_height']:.4f})")

    result['valid'] = not reasons

    # Profiling scans the frame, so it is only done for pairs that pass
    if result['valid']:
        result['volume_profile'] = calculate_volume_profile(
            data, start, end, config.get('volume_decrease_ratio', FALLING_WEDGE_CONFIG['volume_decrease_ratio'])
        )
    return result
