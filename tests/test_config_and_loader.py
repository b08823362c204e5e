"""
Config, Data Loader and CLI Tests.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime

import pandas as pd
import pytest

from conftest import make_wedge_frame
from detect_falling_wedge import main
from pattern_engine.config import FALLING_WEDGE_CONFIG, make_wedge_config
from pattern_engine.stock_data_loader import (
    create_sample_data,
    load_stock_data_from_csv,
    load_stock_data_from_db,
    prepare_price_data,
)

# Layout of the market-watch price store
PRICE_DATA_DDL = """
CREATE TABLE IF NOT EXISTS price_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    timestamp DATETIME NOT NULL,
    open_price DECIMAL(10,2),
    high_price DECIMAL(10,2),
    low_price DECIMAL(10,2),
    close_price DECIMAL(10,2),
    volume INTEGER NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(symbol, timestamp)
)
"""


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────

class TestWedgeConfig:
    def test_defaults(self):
        config = make_wedge_config()
        assert config == FALLING_WEDGE_CONFIG
        assert config is not FALLING_WEDGE_CONFIG

    def test_overrides(self):
        config = make_wedge_config({"min_convergence": 0.005}, max_convergence=0.95)
        assert config["min_convergence"] == 0.005
        assert config["max_convergence"] == 0.95
        assert FALLING_WEDGE_CONFIG["max_convergence"] == 0.15

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="max_wedge_slope"):
            make_wedge_config(max_wedge_slope=-0.1)

    def test_inverted_bounds(self):
        with pytest.raises(ValueError):
            make_wedge_config(min_pattern_duration_hours=500)
        with pytest.raises(ValueError):
            make_wedge_config(min_convergence=0.2, max_convergence=0.1)

    @pytest.mark.parametrize("value", [0, -1, 2.5])
    def test_window_must_be_positive_integer(self, value):
        with pytest.raises(ValueError):
            make_wedge_config(pivot_window=value)


# ──────────────────────────────────────────────
# Data Loader
# ──────────────────────────────────────────────

class TestPreparePriceData:
    def test_normalizes_columns_order_and_duplicates(self):
        raw = pd.DataFrame({
            "timestamp": ["2025-06-13 10:00", "2025-06-13 09:00", "2025-06-13 10:00"],
            "high": [13.1, 13.3, 13.2],
            "low": [13.0, 13.2, 13.1],
            "close": [13.05, 13.25, 13.15],
            "volume": [100, 200, 300],
        })
        df = prepare_price_data(raw)
        assert list(df["Date"]) == [pd.Timestamp("2025-06-13 09:00"), pd.Timestamp("2025-06-13 10:00")]
        assert list(df["High"]) == [13.3, 13.2]
        assert list(df["Volume"]) == [200, 300]
        assert list(df.index) == [0, 1]

    def test_epoch_seconds(self):
        raw = pd.DataFrame({
            "Date": [1749805200, 1749808800],
            "High": [1.0, 2.0], "Low": [0.5, 1.5], "Close": [0.8, 1.8], "Volume": [1, 2],
        })
        df = prepare_price_data(raw)
        assert df["Date"].iloc[0] == pd.Timestamp("2025-06-13 09:00:00")

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="Volume"):
            prepare_price_data(pd.DataFrame({"Date": [], "High": [], "Low": [], "Close": []}))


class TestLoaders:
    def test_csv(self, tmp_path):
        path = tmp_path / "bars.csv"
        make_wedge_frame().to_csv(path, index=False)
        df = load_stock_data_from_csv(str(path))
        assert len(df) == 130
        assert pd.api.types.is_datetime64_any_dtype(df["Date"])

    def test_sqlite(self, tmp_path):
        db_path = str(tmp_path / "market.db")
        conn = sqlite3.connect(db_path)
        conn.execute(PRICE_DATA_DDL)
        rows = [
            ("LTBR", "2025-06-13 09:00:00", 13.2, 13.3, 13.1, 13.25, 1000),
            ("LTBR", "2025-06-13 08:00:00", 13.5, 13.67, 13.26, 13.26, 7028),
            ("PLTR", "2025-06-13 08:00:00", 140.0, 141.0, 139.0, 140.5, 5000),
            ("LTBR", "2025-01-01 08:00:00", 10.0, 10.5, 9.5, 10.0, 100),
        ]
        conn.executemany(
            "INSERT INTO price_data (symbol, timestamp, open_price, high_price, low_price, close_price, volume) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            rows,
        )
        conn.commit()
        conn.close()

        df = load_stock_data_from_db("LTBR", db_path, days=30, end_time=datetime(2025, 6, 20))
        assert len(df) == 2
        assert df["High"].iloc[0] == 13.67
        assert df["Date"].iloc[1] == pd.Timestamp("2025-06-13 09:00:00")

    def test_sqlite_no_rows(self, tmp_path):
        db_path = str(tmp_path / "empty.db")
        conn = sqlite3.connect(db_path)
        conn.execute(PRICE_DATA_DDL)
        conn.close()
        df = load_stock_data_from_db("LTBR", db_path)
        assert df.empty

    def test_sample_data_is_deterministic(self):
        first = create_sample_data("QQQ")
        second = create_sample_data("QQQ")
        pd.testing.assert_frame_equal(first, second)
        assert (first["High"] >= first["Low"]).all()


# ──────────────────────────────────────────────
# Command Line
# ──────────────────────────────────────────────

class TestCommandLine:
    def test_csv_run_writes_summary(self, tmp_path, capsys):
        csv_path = tmp_path / "ltbr.csv"
        out_path = tmp_path / "ltbr.json"
        make_wedge_frame().to_csv(csv_path, index=False)

        code = main(["LTBR", "--source", "csv", "--csv", str(csv_path), "--output", str(out_path)])
        assert code == 0
        assert "FOUND VALID FALLING WEDGE PATTERN" in capsys.readouterr().out
        with open(out_path) as f:
            assert json.load(f)["status"] == "found"

    def test_threshold_flags(self, tmp_path, capsys):
        csv_path = tmp_path / "ltbr.csv"
        make_wedge_frame().to_csv(csv_path, index=False)

        code = main(["LTBR", "--source", "csv", "--csv", str(csv_path),
                     "--max-convergence", "0.05", "--no-save"])
        assert code == 0
        assert "convergence too high" in capsys.readouterr().out

    def test_bad_config_returns_error(self, tmp_path, capsys):
        csv_path = tmp_path / "ltbr.csv"
        make_wedge_frame().to_csv(csv_path, index=False)

        code = main(["LTBR", "--source", "csv", "--csv", str(csv_path),
                     "--min-convergence", "0.5", "--no-save"])
        assert code == 1
        assert "Detection failed" in capsys.readouterr().out
