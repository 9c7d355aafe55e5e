import json
import logging
import shutil
import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest.mock import patch

import pytest

from backtesting import run_backtest
from backtesting.report import print_report
from backtesting.runner import run_strategy
from backtesting.schema import ExitReason, TradeType
from core.exceptions import NoTradingDaysError, ValidationError
from data.manager import DataManager
from data.storage.database import Database

CSV = """timestamp,open,high,low,close,volume
2024-01-01 09:15:00,95,100,90,95,1000
2024-01-02 09:15:00,99,99.5,98,99,500
2024-01-02 09:16:00,100,100.1,99.9,100.05,700
2024-01-02 09:17:00,100.1,100.25,100,100.2,300
2024-01-03 09:15:00,98.5,98.6,97.9,98,400
2024-01-04 09:15:00,97.95,98,97.85,97.95,100
"""


@pytest.mark.integration
class TestBacktestFlow(unittest.TestCase):
    """CSV -> SQLite -> daily summaries -> backtest -> report."""

    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.db_path = self.tmp_dir / "flow.db"
        csv_path = self.tmp_dir / "candles.csv"
        csv_path.write_text(CSV)

        self.db = Database(self.db_path)
        manager = DataManager(self.db)
        manager.import_csv(csv_path, "2885", "RELIANCE")
        manager.rebuild_daily_summaries("2885")

    def tearDown(self):
        self.db.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def test_full_run(self):
        report = run_strategy(self.db, "2885", "2024-01-01", "2024-01-04", stock_name="RELIANCE")

        self.assertEqual(report.total_trading_days, 4)
        self.assertEqual(report.skipped_days, [date(2024, 1, 1)])
        self.assertEqual(len(report.trades), 3)

        day2, day3, day4 = report.trades
        self.assertEqual((day2.type, day2.exit_reason), (TradeType.BUY, ExitReason.TARGET))
        self.assertEqual((day3.type, day3.exit_reason), (TradeType.SELL, ExitReason.STOP_LOSS))
        self.assertEqual(day3.quantity, 1022)
        # Day 4: below day 3's low of 97.9, still open at the close
        self.assertEqual((day4.type, day4.exit_reason), (TradeType.SELL, ExitReason.END_OF_DAY))
        self.assertEqual(day4.entry_price, 97.9)

        metrics = report.metrics
        self.assertEqual(metrics.total_trades, 3)
        self.assertEqual(metrics.winning_trades, 1)
        self.assertEqual(metrics.losing_trades, 2)
        self.assertAlmostEqual(metrics.total_pnl, sum(t.pnl for t in report.trades), places=2)
        self.assertAlmostEqual(report.final_capital, 100000.0 + sum(t.pnl for t in report.trades), places=6)
        self.assertIs(metrics.best_trade, day2)

    def test_report_serialization(self):
        report = run_strategy(self.db, "2885", "2024-01-01", "2024-01-04")
        data = json.loads(json.dumps(report.to_dict()))

        self.assertEqual(data["config"]["start_date"], "2024-01-01")
        self.assertEqual(data["config"]["target_percent"], 0.2)
        self.assertEqual(data["skipped_days"], 1)
        self.assertEqual(data["skipped_dates"], ["2024-01-01"])
        self.assertEqual(data["trades"][0]["type"], "BUY")
        self.assertEqual(data["trades"][0]["exit_reason"], "TARGET")
        self.assertEqual(data["metrics"]["best_trade"], data["trades"][0])

    def test_no_trading_days(self):
        with self.assertRaises(NoTradingDaysError):
            run_strategy(self.db, "2885", "2023-01-01", "2023-01-31")

    def test_validation_happens_first(self):
        with self.assertRaises(ValidationError):
            run_strategy(self.db, "2885", "2024-01-01", "2024-01-04", target_percent=11)

    def test_print_report(self):
        report = run_strategy(self.db, "2885", "2024-01-01", "2024-01-04", stock_name="RELIANCE")
        with patch("builtins.print") as mock_print:
            print_report(report)
        output = "\n".join(str(call.args[0]) for call in mock_print.call_args_list if call.args)

        self.assertIn("BREAKOUT BACKTEST REPORT - 2885 (RELIANCE)", output)
        self.assertIn("Total Trades:  3", output)
        self.assertIn("2024-01-02 BUY", output)
        self.assertIn("END_OF_DAY", output)


@pytest.mark.integration
class TestCommandLine:

    @pytest.fixture(autouse=True)
    def _reset_loggers(self):
        yield
        for name in ("backtesting", "data"):
            logging.getLogger(name).handlers.clear()

    @pytest.fixture
    def db_path(self, tmp_path):
        csv_path = tmp_path / "candles.csv"
        csv_path.write_text(CSV)
        db_path = tmp_path / "cli.db"
        assert run_backtest.main(["--db", str(db_path), "import-csv", str(csv_path), "--security-id", "2885"]) == 0
        assert run_backtest.main(["--db", str(db_path), "seed", "--security-id", "2885"]) == 0
        return db_path

    def test_run_json(self, capsys, db_path):
        code = run_backtest.main(["--db", str(db_path), "run", "--start", "2024-01-01", "--end", "2024-01-04",
                                  "--security-id", "2885", "--json"])
        assert code == 0
        captured = capsys.readouterr()
        data = json.loads(captured.out)
        assert data["metrics"]["total_trades"] == 3
        # Logs go to stderr, never into the JSON document
        assert "[BACKTEST START]" in captured.err

    def test_run_with_infinite_capital_is_rejected(self, db_path):
        code = run_backtest.main(["--db", str(db_path), "run", "--start", "2024-01-01", "--end", "2024-01-04",
                                  "--security-id", "2885", "--capital", "inf"])
        assert code == 2

    def test_invalid_input_exit_code(self, db_path):
        code = run_backtest.main(["--db", str(db_path), "run", "--start", "2024-01-04", "--end", "2024-01-01",
                                  "--security-id", "2885"])
        assert code == 2

    def test_no_data_exit_code(self, db_path):
        code = run_backtest.main(["--db", str(db_path), "run", "--start", "2020-01-01", "--end", "2020-02-01",
                                  "--security-id", "2885"])
        assert code == 1

    def test_seed_empty_database(self, tmp_path):
        assert run_backtest.main(["--db", str(tmp_path / "empty.db"), "seed"]) == 1
