"""
Stock Data Loader Module
Loads OHLCV bars from the local SQLite store, CSV files or yfinance and
normalizes them into the frame layout the detectors expect
"""

import sqlite3
import pandas as pd
import numpy as np
from datetime import datetime, timedelta
import yfinance as yf

from .logger import get_logger

log = get_logger(__name__)

REQUIRED_COLUMNS = ['Date', 'High', 'Low', 'Close', 'Volume']

_COLUMN_ALIASES = {
    'timestamp': 'Date',
    'date': 'Date',
    'datetime': 'Date',
    'open': 'Open',
    'high': 'High',
    'low': 'Low',
    'close': 'Close',
    'volume': 'Volume',
}


def prepare_price_data(df):
    """
    Normalize a raw OHLCV frame.

    Column names are matched case-insensitively, dates parsed, rows sorted
    oldest first, duplicate timestamps dropped (last one wins) and the index
    reset so row positions line up with pivot indices.
    """
    renamed = {}
    for col in df.columns:
        alias = _COLUMN_ALIASES.get(str(col).lower())
        if alias and alias not in df.columns and alias not in renamed.values():
            renamed[col] = alias
    df = df.rename(columns=renamed)

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Price data is missing required columns: {', '.join(missing)}")

    df = df.copy()
    if not pd.api.types.is_datetime64_any_dtype(df['Date']):
        if pd.api.types.is_numeric_dtype(df['Date']):
            df['Date'] = pd.to_datetime(df['Date'], unit='s')
        else:
            df['Date'] = pd.to_datetime(df['Date'])

    df = df.sort_values('Date', kind='mergesort')
    before = len(df)
    df = df.drop_duplicates(subset='Date', keep='last').reset_index(drop=True)
    if len(df) < before:
        log.warning("Dropped %d duplicate bars", before - len(df))

    df['Volume'] = df['Volume'].fillna(0).astype('int64')
    return df


def load_stock_data_from_db(symbol, db_path='data/market-watch.db', days=90, end_time=None):
    """Load the last `days` of bars for a symbol from the local SQLite store"""
    end_time = end_time or datetime.now()
    start_time = end_time - timedelta(days=days)

    query = """
    SELECT timestamp, open_price AS open, high_price AS high, low_price AS low,
           close_price AS close, volume
    FROM price_data
    WHERE symbol = ? AND timestamp >= ? AND timestamp <= ?
    ORDER BY timestamp ASC
    """

    log.info("Loading %s from %s (%s to %s)", symbol, db_path, start_time.date(), end_time.date())

    conn = sqlite3.connect(db_path)
    try:
        df = pd.read_sql_query(
            query, conn,
            params=(symbol, start_time.strftime('%Y-%m-%d %H:%M:%S'), end_time.strftime('%Y-%m-%d %H:%M:%S'))
        )
    finally:
        conn.close()

    if df.empty:
        log.warning("No price data found for %s", symbol)
        return pd.DataFrame(columns=REQUIRED_COLUMNS)

    df = prepare_price_data(df)
    log.info("Loaded %d bars for %s", len(df), symbol)
    return df


def load_stock_data_from_csv(path):
    """Load bars from a CSV file with Date/High/Low/Close/Volume columns"""
    df = pd.read_csv(path)
    df = prepare_price_data(df)
    log.info("Loaded %d bars from %s", len(df), path)
    return df


def load_stock_data_from_yfinance(symbol, period='3mo', interval='1h'):
    """Download bars from Yahoo Finance"""
    log.info("Downloading %s from yfinance (period=%s, interval=%s)", symbol, period, interval)
    df = yf.download(symbol, period=period, interval=interval, progress=False, auto_adjust=False)

    if df is None or df.empty:
        log.warning("yfinance returned no data for %s", symbol)
        return pd.DataFrame(columns=REQUIRED_COLUMNS)

    # Single-ticker downloads may still carry a (field, ticker) column index
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)

    df = df.reset_index()
    date_col = 'Datetime' if 'Datetime' in df.columns else 'Date'
    df = df.rename(columns={date_col: 'Date'})
    if getattr(df['Date'].dt, 'tz', None) is not None:
        df['Date'] = df['Date'].dt.tz_convert('US/Eastern').dt.tz_localize(None)

    return prepare_price_data(df)


def create_sample_data(symbol, days=20, bars_per_day=8, start_price=100.0, seed=None):
    """Create a synthetic hourly bar series for demonstration"""
    if seed is None:
        seed = sum(ord(c) for c in symbol)
    rng = np.random.default_rng(seed)

    end_date = datetime(2025, 6, 18, 16, 0)
    start_date = end_date - timedelta(days=days)
    business_days = pd.bdate_range(start=start_date.date(), end=end_date.date())

    dates = []
    for day in business_days:
        for hour in range(bars_per_day):
            dates.append(pd.Timestamp(day) + pd.Timedelta(hours=9 + hour))

    price = start_price
    data = []
    for date in dates:
        price = max(1.0, price * (1 + rng.normal(-0.0005, 0.006)))
        spread = price * 0.004
        open_price = price + rng.normal(0, spread * 0.5)
        data.append({
            'Date': date,
            'Open': round(open_price, 2),
            'High': round(max(open_price, price) + abs(rng.normal(0, spread)), 2),
            'Low': round(min(open_price, price) - abs(rng.normal(0, spread)), 2),
            'Close': round(price, 2),
            'Volume': int(max(0, rng.normal(50000, 12000))),
        })

    df = pd.DataFrame(data)
    log.info("Created %d sample bars for %s", len(df), symbol)
    return df
