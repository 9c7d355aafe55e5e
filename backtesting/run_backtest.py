#!/usr/bin/env python3
"""
🚀 RUN BACKTEST
===============

Command line entry point for the previous-day breakout backtester.

Usage:
    python -m backtesting.run_backtest import-csv data/reliance_1m.csv --security-id 2885
    python -m backtesting.run_backtest seed --security-id 2885
    python -m backtesting.run_backtest run --start 2024-01-01 --end 2024-03-31
    python -m backtesting.run_backtest run --start 2024-01-01 --end 2024-03-31 --target 0.5 --json
"""

import argparse
import json
import logging
import sys

from backtesting.report import print_report
from backtesting.runner import run_strategy
from config.settings import DATABASE_PATH, DEFAULT_SECURITY_ID, DEFAULT_STOCK_NAME, STRATEGY_CONFIG
from core.exceptions import BacktestError, ValidationError
from core.logger import setup_logger
from data.manager import DataManager
from data.storage.database import Database

logger = logging.getLogger("backtesting.run_backtest")


def cmd_run(args, db: Database) -> int:
    report = run_strategy(
        db,
        args.security_id,
        args.start,
        args.end,
        target_percent=args.target,
        stop_loss_percent=args.stop_loss,
        capital=args.capital,
        stock_name=args.stock_name,
    )
    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)
    return 0


def cmd_seed(args, db: Database) -> int:
    written = DataManager(db).rebuild_daily_summaries(args.security_id)
    logger.info(f"✅ Seeded {written} daily summaries")
    return 0


def cmd_import(args, db: Database) -> int:
    inserted = DataManager(db).import_csv(args.path, args.security_id, args.stock_name, args.interval)
    logger.info(f"✅ Imported {inserted} candles into {db.db_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="📊 Previous-Day Breakout Backtester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db", type=str, default=str(DATABASE_PATH), help="SQLite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run the breakout backtest over a date range")
    run.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    run.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    run.add_argument("--security-id", default=DEFAULT_SECURITY_ID, help="Security ID")
    run.add_argument("--stock-name", default=DEFAULT_STOCK_NAME, help="Display name")
    run.add_argument("--target", type=float, default=STRATEGY_CONFIG["TARGET_PERCENT"], help="Target (%%)")
    run.add_argument("--stop-loss", type=float, default=STRATEGY_CONFIG["STOP_LOSS_PERCENT"], help="Stop loss (%%)")
    run.add_argument("--capital", type=float, default=STRATEGY_CONFIG["INITIAL_CAPITAL"], help="Initial capital")
    run.add_argument("--json", action="store_true", help="Print the report as JSON")
    run.set_defaults(func=cmd_run)

    seed = sub.add_parser("seed", help="Rebuild daily summaries from stored 1-minute candles")
    seed.add_argument("--security-id", default=None, help="Limit to one security (default: all)")
    seed.set_defaults(func=cmd_seed)

    imp = sub.add_parser("import-csv", help="Import minute candles from a CSV file")
    imp.add_argument("path", help="CSV with timestamp, open, high, low, close[, volume] columns")
    imp.add_argument("--security-id", required=True, help="Security ID")
    imp.add_argument("--stock-name", default=None, help="Display name")
    imp.add_argument("--interval", default=STRATEGY_CONFIG["CANDLE_INTERVAL"], help="Candle interval in minutes")
    imp.set_defaults(func=cmd_import)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    setup_logger("backtesting")
    setup_logger("data")

    try:
        with Database(args.db) as db:
            return args.func(args, db)
    except ValidationError as e:
        logger.error(f"❌ Invalid input ({e.field}): {e}")
        return 2
    except BacktestError as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
