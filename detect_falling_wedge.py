#!/usr/bin/env python3
"""
Falling Wedge Detection Script
Loads price data for a symbol, searches it for a falling wedge and saves a JSON summary.
"""

import argparse
import logging
import sys
import traceback

from pattern_engine.logger import setup_logging
from pattern_engine.pattern_detector import FallingWedgeDetector
from pattern_engine.report import print_detection_report, save_detection_summary


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Detect falling wedge patterns in stock data')
    parser.add_argument('symbol', help='Stock symbol (e.g., LTBR, PLTR)')
    parser.add_argument('--source', choices=FallingWedgeDetector.SOURCES, default='db',
                        help='Where to load price data from')
    parser.add_argument('--db-path', default='data/market-watch.db', help='SQLite database path')
    parser.add_argument('--csv', dest='csv_path', help='CSV file with Date/High/Low/Close/Volume columns')
    parser.add_argument('--days', type=int, default=90, help='Days of history to load from the database')
    parser.add_argument('--period', default='3mo', help='yfinance download period')
    parser.add_argument('--interval', default='1h', help='yfinance bar interval')
    parser.add_argument('--min-duration', type=float, help='Minimum pattern duration in hours')
    parser.add_argument('--max-duration', type=float, help='Maximum pattern duration in hours')
    parser.add_argument('--min-convergence', type=float, help='Minimum convergence ratio')
    parser.add_argument('--max-convergence', type=float, help='Maximum convergence ratio')
    parser.add_argument('--min-height', type=float, help='Minimum wedge height ratio')
    parser.add_argument('--window', type=int, help='Pivot window in bars on each side')
    parser.add_argument('--output', help='JSON summary path (default data/falling_wedge_<symbol>.json)')
    parser.add_argument('--no-save', action='store_true', help='Do not write the JSON summary')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser.parse_args(argv)


def config_overrides(args):
    overrides = {
        'min_pattern_duration_hours': args.min_duration,
        'max_pattern_duration_hours': args.max_duration,
        'min_convergence': args.min_convergence,
        'max_convergence': args.max_convergence,
        'min_wedge_height': args.min_height,
        'pivot_window': args.window,
    }
    return {key: value for key, value in overrides.items() if value is not None}


def main(argv=None):
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    print(f"🚀 Detecting falling wedge for {args.symbol}")

    try:
        detector = FallingWedgeDetector(
            symbol=args.symbol,
            source=args.source,
            db_path=args.db_path,
            csv_path=args.csv_path,
            lookback_days=args.days,
            period=args.period,
            interval=args.interval,
            config=config_overrides(args)
        )
        outcome = detector.detect()
    except Exception as e:
        print(f"❌ Detection failed for {args.symbol}: {e}")
        if args.verbose:
            traceback.print_exc()
        return 1

    print_detection_report(outcome)

    if not args.no_save:
        path = save_detection_summary(outcome, args.output)
        print(f"\n✅ Saved summary to {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
