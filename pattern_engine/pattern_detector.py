"""
Falling Wedge Pattern Detection Module
Searches pivot trend lines for the first valid falling wedge and builds the
pattern, quality score and breakout state from it
"""

from typing import Dict, List, Optional

import pandas as pd

from .config import (
    FALLING_WEDGE_CONFIG, IDEAL_DURATION_HOURS, NEAR_BREAKOUT_THRESHOLD, make_wedge_config
)
from .logger import get_logger
from .pattern_validator import validate_falling_wedge
from .pivot_detector import calculate_volume_ratio, find_significant_levels
from .stock_data_loader import (
    create_sample_data, load_stock_data_from_csv, load_stock_data_from_db,
    load_stock_data_from_yfinance, prepare_price_data
)
from .trendline_detector import (
    count_candidate_lines, generate_candidate_lines, hours_between, project_line
)

log = get_logger(__name__)

STATUS_FOUND = 'found'
STATUS_NOT_FOUND = 'not_found'
STATUS_INSUFFICIENT_DATA = 'insufficient_data'

PHASE_FORMATION = 'formation'
PHASE_BREAKOUT = 'breakout'
PHASE_TARGET_PURSUIT = 'target_pursuit'
PHASE_COMPLETED = 'completed'

VOLUME_PROFILE_SCORES = {
    'decreasing': 20.0,
    'stable': 10.0,
    'increasing': 5.0,
}


def search_falling_wedge(highs: List[Dict], lows: List[Dict],
                         data: Optional[pd.DataFrame] = None,
                         config: Optional[Dict] = None) -> Dict:
    """
    Try every (upper, lower) line pair and stop at the first valid one.

    Upper lines are walked in ascending (i, j) order over the highs, and for
    each of them lower lines in ascending (k, l) order over the lows. All
    attempts are counted; failing results are kept up to
    `max_debug_combinations`.

    Returns:
        dict with 'result' (valid result or None), 'combinations_tested',
        'total_combinations' and 'failed_combinations'
    """
    if config is None:
        config = FALLING_WEDGE_CONFIG
    max_debug = config.get('max_debug_combinations', FALLING_WEDGE_CONFIG['max_debug_combinations'])

    search = {
        'result': None,
        'combinations_tested': 0,
        'total_combinations': count_candidate_lines(highs) * count_candidate_lines(lows),
        'failed_combinations': [],
    }

    lower_lines = list(generate_candidate_lines(lows))

    for upper_line in generate_candidate_lines(highs):
        for lower_line in lower_lines:
            search['combinations_tested'] += 1
            result = validate_falling_wedge(upper_line, lower_line, data, config)

            if result['valid']:
                search['result'] = result
                log.debug("Combination %d is a valid falling wedge", search['combinations_tested'])
                return search

            if len(search['failed_combinations']) < max_debug:
                result['combination'] = search['combinations_tested']
                search['failed_combinations'].append(result)

    return search


def calculate_pattern_quality(pattern: Dict) -> float:
    """Overall 0-100 quality score of a built falling wedge"""
    score = 0.0

    # Convergence score (0-25 points), full marks at 10% convergence
    score += min(25.0, pattern['convergence_pct'] * 2.5)

    # Volume profile score (0-20 points)
    score += VOLUME_PROFILE_SCORES.get(pattern['volume_profile'], 0.0)

    # Pattern duration score (0-15 points)
    duration_hours = pattern['pattern_width_minutes'] / 60.0
    score += max(0.0, 15.0 - (abs(duration_hours - IDEAL_DURATION_HOURS) / IDEAL_DURATION_HOURS) * 15.0)

    # Height score (0-20 points), full marks at 10% of the breakout level
    if pattern['breakout_level'] > 0:
        height_percent = pattern['pattern_height'] / pattern['breakout_level'] * 100
        score += max(0.0, min(20.0, height_percent * 2))

    # Slope convergence score (0-20 points)
    score += min(20.0, abs(pattern['upper_slope'] - pattern['lower_slope']) * 100)

    return min(100.0, score)


def build_falling_wedge_pattern(symbol: str, result: Dict, data: Optional[pd.DataFrame] = None) -> Dict:
    """
    Construct the complete pattern from a valid validation result.

    The breakout level is the upper line projected to the last bar of the
    series, which keeps the pattern a pure function of its inputs.
    """
    upper_line = result['upper_line']
    lower_line = result['lower_line']

    pattern_start = min(upper_line[0]['date'], lower_line[0]['date'])
    pattern_end = max(upper_line[1]['date'], lower_line[1]['date'])
    as_of = pd.Timestamp(data['Date'].iloc[-1]) if data is not None and len(data) else pattern_end

    breakout_level = project_line(upper_line, as_of)
    pattern_height = (max(upper_line[0]['price'], upper_line[1]['price'])
                      - min(lower_line[0]['price'], lower_line[1]['price']))

    pattern = {
        'symbol': symbol,
        'pattern_type': 'falling_wedge',
        'upper_trend_line_1': upper_line[0],
        'upper_trend_line_2': upper_line[1],
        'lower_trend_line_1': lower_line[0],
        'lower_trend_line_2': lower_line[1],
        'upper_slope': result['upper_slope'],
        'lower_slope': result['lower_slope'],
        'pattern_start': pattern_start,
        'pattern_end': pattern_end,
        'breakout_level': breakout_level,
        'pattern_width_minutes': int(hours_between(pattern_start, pattern_end) * 60),
        'pattern_height': pattern_height,
        'convergence_pct': result['convergence'] * 100,
        'height_pct': result['height'] * 100,
        'volume_profile': result['volume_profile'],
        'target_price': breakout_level + pattern_height,
        'detected_at': as_of,
        'current_phase': PHASE_FORMATION,
        'is_complete': False,
    }
    pattern['quality_score'] = calculate_pattern_quality(pattern)
    return pattern


def evaluate_breakout(pattern: Dict, data: pd.DataFrame, config: Optional[Dict] = None) -> Dict:
    """
    Check the latest bar against the wedge's upper line and target.

    Returns a dict of breakout flags plus the phase they imply; the pattern
    itself is not modified.
    """
    if config is None:
        config = FALLING_WEDGE_CONFIG

    last = len(data) - 1
    if last < 0:
        raise ValueError("Cannot evaluate a breakout without price data")

    bar = data.iloc[last]
    upper_line = [pattern['upper_trend_line_1'], pattern['upper_trend_line_2']]
    line_level = project_line(upper_line, bar['Date'])
    volume_ratio = calculate_volume_ratio(
        data, last, config.get('volume_lookback', FALLING_WEDGE_CONFIG['volume_lookback'])
    )

    close = float(bar['Close'])
    partial_target = line_level + pattern['pattern_height'] * 0.5
    full_target = line_level + pattern['pattern_height']

    state = {
        'as_of': pd.Timestamp(bar['Date']),
        'line_level': line_level,
        'close': close,
        'volume_ratio': volume_ratio,
        'upper_trend_line_break': float(bar['High']) > line_level,
        'price_close_above_line': close > line_level,
        'volume_confirmation': volume_ratio >= config['breakout_volume_ratio'],
        'is_near_breakout': close >= line_level * NEAR_BREAKOUT_THRESHOLD,
        'partial_target': close >= partial_target,
        'full_target': close >= full_target,
    }

    if state['full_target']:
        state['current_phase'] = PHASE_COMPLETED
    elif state['price_close_above_line']:
        state['current_phase'] = PHASE_TARGET_PURSUIT
    elif state['is_near_breakout']:
        state['current_phase'] = PHASE_BREAKOUT
    else:
        state['current_phase'] = PHASE_FORMATION
    return state


def detect_falling_wedge(data: pd.DataFrame, symbol: str = '', config: Optional[Dict] = None) -> Dict:
    """
    Run the whole detection pipeline on one price series.

    Short series and missing pivots produce an 'insufficient_data' outcome,
    an exhausted search a 'not_found' outcome; neither raises.
    """
    return _detect_in_prepared(prepare_price_data(data), symbol, make_wedge_config(config))


def _detect_in_prepared(data, symbol, config):
    outcome = {
        'status': STATUS_INSUFFICIENT_DATA,
        'symbol': symbol,
        'data_points': len(data),
        'highs': [],
        'lows': [],
        'combinations_tested': 0,
        'total_combinations': 0,
        'failed_combinations': [],
        'result': None,
        'pattern': None,
        'message': '',
    }

    if len(data) < config['min_data_points']:
        outcome['message'] = (f"insufficient data: {len(data)} bars "
                              f"(minimum {config['min_data_points']} required)")
        log.info("%s: %s", symbol or 'series', outcome['message'])
        return outcome

    highs, lows = find_significant_levels(
        data, window=config['pivot_window'], volume_lookback=config['volume_lookback']
    )
    outcome['highs'] = highs
    outcome['lows'] = lows

    if len(highs) < 2 or len(lows) < 2:
        outcome['message'] = (f"insufficient data: need at least 2 highs and 2 lows "
                              f"(found {len(highs)} highs, {len(lows)} lows)")
        log.info("%s: %s", symbol or 'series', outcome['message'])
        return outcome

    search = search_falling_wedge(highs, lows, data, config)
    outcome['combinations_tested'] = search['combinations_tested']
    outcome['total_combinations'] = search['total_combinations']
    outcome['failed_combinations'] = search['failed_combinations']

    if search['result'] is None:
        outcome['status'] = STATUS_NOT_FOUND
        outcome['message'] = (f"no valid falling wedge pattern found "
                              f"({search['combinations_tested']} combinations tested)")
        log.info("%s: %s", symbol or 'series', outcome['message'])
        return outcome

    outcome['status'] = STATUS_FOUND
    outcome['result'] = search['result']
    outcome['pattern'] = build_falling_wedge_pattern(symbol, search['result'], data)
    outcome['message'] = (f"falling wedge found after {search['combinations_tested']} "
                          f"of {search['total_combinations']} combinations")
    log.info("%s: %s", symbol or 'series', outcome['message'])
    return outcome


class FallingWedgeDetector:
    """Loads price data for a symbol and runs falling wedge detection on it"""

    SOURCES = ('db', 'csv', 'yfinance', 'sample')

    def __init__(self, symbol='LTBR', source='db', db_path='data/market-watch.db', csv_path=None,
                 lookback_days=90, period='3mo', interval='1h', config=None):
        """
        Initialize the FallingWedgeDetector

        Parameters:
        - symbol: Stock symbol (e.g., 'LTBR', 'PLTR')
        - source: Where to load bars from: 'db', 'csv', 'yfinance' or 'sample'
        - db_path: SQLite database holding the price_data table
        - csv_path: CSV file for the 'csv' source
        - lookback_days: Days of history to load from the database
        - period, interval: yfinance download window and bar size
        - config: Threshold overrides applied over FALLING_WEDGE_CONFIG
        """
        if source not in self.SOURCES:
            raise ValueError(f"Unknown data source {source!r}, expected one of {', '.join(self.SOURCES)}")
        if source == 'csv' and not csv_path:
            raise ValueError("csv_path is required for the 'csv' source")

        self.symbol = symbol
        self.source = source
        self.db_path = db_path
        self.csv_path = csv_path
        self.lookback_days = lookback_days
        self.period = period
        self.interval = interval
        self.config = make_wedge_config(config)

        # Data storage
        self.stock_data = None
        self.outcome = None

    def load_data(self):
        """Load price data from the configured source"""
        if self.source == 'db':
            self.stock_data = load_stock_data_from_db(self.symbol, self.db_path, days=self.lookback_days)
        elif self.source == 'csv':
            self.stock_data = load_stock_data_from_csv(self.csv_path)
        elif self.source == 'yfinance':
            self.stock_data = load_stock_data_from_yfinance(self.symbol, self.period, self.interval)
        else:
            self.stock_data = create_sample_data(self.symbol)
        return self.stock_data

    def detect(self):
        """Load data if needed and run detection"""
        if self.stock_data is None:
            self.load_data()

        self.stock_data = prepare_price_data(self.stock_data)
        self.outcome = _detect_in_prepared(self.stock_data, self.symbol, self.config)
        pattern = self.outcome['pattern']
        if pattern is not None:
            state = evaluate_breakout(pattern, self.stock_data, self.config)
            pattern['current_phase'] = state['current_phase']
            pattern['is_complete'] = state['current_phase'] == PHASE_COMPLETED
            self.outcome['breakout'] = state
        return self.outcome


def detect_falling_wedge_for_symbol(symbol, **kwargs):
    """Convenience function to run falling wedge detection for a given symbol"""
    detector = FallingWedgeDetector(symbol=symbol, **kwargs)
    outcome = detector.detect()
    return {
        'detector': detector,
        'outcome': outcome,
    }
