"""
Detection Report Module
Turns detection outcomes into JSON-ready summaries and console reports
"""

import json
import os
from datetime import datetime

import pandas as pd

from .pivot_detector import safe_date_format


def _timestamp(value):
    if value is None:
        return None
    return pd.Timestamp(value).isoformat()


def _round(value, digits=6):
    return None if value is None else round(float(value), digits)


def summarize_point(point):
    return {
        'timestamp': _timestamp(point['date']),
        'price': _round(point['price'], 4),
        'volume': int(point['volume']),
        'volume_ratio': _round(point['volume_ratio'], 4),
    }


def summarize_result(result):
    """Geometry and verdict of one validated (upper, lower) pair"""
    summary = {
        'upper_line': [summarize_point(p) for p in result['upper_line']],
        'lower_line': [summarize_point(p) for p in result['lower_line']],
        'upper_slope': _round(result['upper_slope']),
        'lower_slope': _round(result['lower_slope']),
        'duration_hours': _round(result['duration_hours'], 2),
        'convergence': _round(result['convergence']),
        'height': _round(result['height']),
        'valid': bool(result['valid']),
        'fail_reasons': list(result['fail_reasons']),
    }
    if 'combination' in result:
        summary['combination'] = result['combination']
    return summary


def summarize_pattern(pattern):
    return {
        'symbol': pattern['symbol'],
        'pattern_type': pattern['pattern_type'],
        'pattern_start': _timestamp(pattern['pattern_start']),
        'pattern_end': _timestamp(pattern['pattern_end']),
        'upper_slope': _round(pattern['upper_slope']),
        'lower_slope': _round(pattern['lower_slope']),
        'duration_hours': round(pattern['pattern_width_minutes'] / 60.0, 2),
        'convergence_pct': _round(pattern['convergence_pct'], 2),
        'height_pct': _round(pattern['height_pct'], 2),
        'pattern_height': _round(pattern['pattern_height'], 4),
        'breakout_level': _round(pattern['breakout_level'], 4),
        'target_price': _round(pattern['target_price'], 4),
        'volume_profile': pattern['volume_profile'],
        'quality_score': _round(pattern['quality_score'], 2),
        'current_phase': pattern['current_phase'],
        'is_complete': pattern['is_complete'],
        'detected_at': _timestamp(pattern['detected_at']),
    }


def summarize_detection(outcome):
    """
    Build a JSON-ready summary of a detection outcome.

    Found patterns report their geometry; failed searches report how many
    combinations were tried and why the first few failed.
    """
    summary = {
        'symbol': outcome['symbol'],
        'status': outcome['status'],
        'message': outcome['message'],
        'data_points': outcome['data_points'],
        'significant_highs': len(outcome['highs']),
        'significant_lows': len(outcome['lows']),
        'combinations_tested': outcome['combinations_tested'],
        'total_combinations': outcome['total_combinations'],
    }

    if outcome['result'] is not None:
        summary['result'] = summarize_result(outcome['result'])
    if outcome['pattern'] is not None:
        summary['pattern'] = summarize_pattern(outcome['pattern'])
    if outcome.get('breakout') is not None:
        breakout = dict(outcome['breakout'])
        breakout['as_of'] = _timestamp(breakout['as_of'])
        for key in ('line_level', 'close', 'volume_ratio'):
            breakout[key] = _round(breakout[key], 4)
        summary['breakout'] = breakout
    if outcome['status'] == 'not_found':
        summary['failed_combinations'] = [summarize_result(r) for r in outcome['failed_combinations']]

    return summary


def save_detection_summary(outcome, path=None):
    """Write the summary to a JSON file and return its path"""
    if path is None:
        symbol = (outcome['symbol'] or 'series').lower()
        path = f'data/falling_wedge_{symbol}.json'

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    summary = summarize_detection(outcome)
    summary['report_timestamp'] = datetime.now().isoformat()

    with open(path, 'w') as f:
        json.dump(summary, f, indent=2)
    return path


def _print_result_lines(result, indent='   '):
    upper, lower = result['upper_line'], result['lower_line']
    upper_slope = 'n/a' if result['upper_slope'] is None else f"{result['upper_slope']:.6f}"
    lower_slope = 'n/a' if result['lower_slope'] is None else f"{result['lower_slope']:.6f}"
    print(f"{indent}Upper: ${upper[0]['price']:.4f}->${upper[1]['price']:.4f} (slope: {upper_slope})")
    print(f"{indent}Lower: ${lower[0]['price']:.4f}->${lower[1]['price']:.4f} (slope: {lower_slope})")


def print_detection_report(outcome):
    """Print a console report of a detection outcome"""
    symbol = outcome['symbol'] or 'series'
    print(f"🔍 Falling wedge analysis for {symbol}")
    print(f"📊 Data points: {outcome['data_points']}")

    if outcome['status'] == 'insufficient_data':
        print(f"   ❌ {outcome['message']}")
        return

    print(f"🎯 Significant highs: {len(outcome['highs'])}, significant lows: {len(outcome['lows'])}")
    for high in outcome['highs']:
        print(f"   📈 {safe_date_format(high['date'])}: ${high['price']:.4f} (Vol: {high['volume']})")
    for low in outcome['lows']:
        print(f"   📉 {safe_date_format(low['date'])}: ${low['price']:.4f} (Vol: {low['volume']})")

    if outcome['status'] == 'found':
        pattern = outcome['pattern']
        print(f"\n✅ FOUND VALID FALLING WEDGE PATTERN")
        _print_result_lines(outcome['result'])
        print(f"   Duration: {pattern['pattern_width_minutes'] / 60.0:.1f} hours "
              f"({pattern['pattern_width_minutes'] / 1440.0:.1f} days)")
        print(f"   Convergence: {pattern['convergence_pct']:.2f}%")
        print(f"   Height: {pattern['height_pct']:.2f}%")
        print(f"   Volume profile: {pattern['volume_profile']}")
        print(f"   Breakout level: ${pattern['breakout_level']:.4f}, target: ${pattern['target_price']:.4f}")
        print(f"   Quality score: {pattern['quality_score']:.1f}/100")
        breakout = outcome.get('breakout')
        if breakout:
            print(f"   Phase: {breakout['current_phase']} "
                  f"(close ${breakout['close']:.4f} vs line ${breakout['line_level']:.4f})")
        return

    print(f"\n❌ NO VALID FALLING WEDGE PATTERN FOUND")
    for result in outcome['failed_combinations']:
        print(f"   ❌ Combination {result.get('combination', '?')}: FAILED")
        _print_result_lines(result, indent='      ')
        print(f"      Reasons: {', '.join(result['fail_reasons'])}")
    if outcome['combinations_tested'] > len(outcome['failed_combinations']):
        print(f"   ... (showing first {len(outcome['failed_combinations'])} failures)")
    print(f"   📊 Total combinations tested: {outcome['combinations_tested']} of {outcome['total_combinations']}")
