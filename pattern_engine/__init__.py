"""
Falling Wedge Pattern Engine

This package finds falling wedge chart patterns in OHLCV stock data by fitting
two-point trend lines through significant highs and lows and validating every
upper/lower line pair against duration, convergence and height thresholds.

Main Components:
- stock_data_loader: Load price bars from SQLite, CSV, yfinance or sample data
- pivot_detector: Detect significant highs/lows and trailing volume ratios
- trendline_detector: Enumerate two-point trend line candidates
- pattern_validator: Validate one upper/lower line pair
- pattern_detector: First-match search, pattern building and breakout checks
- report: JSON-ready summaries and console reports

Usage:
    from pattern_engine import detect_falling_wedge, summarize_detection

    outcome = detect_falling_wedge(price_frame, symbol='LTBR')
    summary = summarize_detection(outcome)
"""

from .config import (
    FALLING_WEDGE_CONFIG,
    make_wedge_config
)

from .stock_data_loader import (
    prepare_price_data,
    load_stock_data_from_db,
    load_stock_data_from_csv,
    load_stock_data_from_yfinance,
    create_sample_data
)

from .pivot_detector import (
    find_significant_levels,
    calculate_volume_ratio,
    calculate_volume_ratios
)

from .trendline_detector import (
    generate_candidate_lines,
    calculate_line_slope,
    project_line
)

from .pattern_validator import (
    validate_falling_wedge,
    calculate_volume_profile
)

from .pattern_detector import (
    search_falling_wedge,
    build_falling_wedge_pattern,
    calculate_pattern_quality,
    evaluate_breakout,
    detect_falling_wedge,
    FallingWedgeDetector,
    detect_falling_wedge_for_symbol
)

from .report import (
    summarize_detection,
    print_detection_report,
    save_detection_summary
)

__version__ = "1.0.0"
__description__ = "Falling wedge detection over pivot trend lines"
