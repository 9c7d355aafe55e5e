"""
Invocation surface of the breakout backtest.

validate_request() enforces the input contract before any data is touched;
run_strategy() wires the store, the engine and the metrics together and
returns a BacktestReport.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from backtesting.analytics.metrics import MetricsCalculator
from backtesting.engine import BacktestEngine
from backtesting.schema import PerformanceMetrics, StrategyParameters, Trade
from config.settings import STRATEGY_CONFIG
from core.exceptions import NoTradingDaysError, ValidationError

logger = logging.getLogger("backtesting.runner")

DateLike = Union[str, date]


@dataclass(frozen=True)
class BacktestRequest:
    security_id: str
    start_date: date
    end_date: date
    params: StrategyParameters
    stock_name: Optional[str] = None


@dataclass
class BacktestReport:
    security_id: str
    stock_name: Optional[str]
    start_date: date
    end_date: date
    params: StrategyParameters
    trades: List[Trade]
    metrics: PerformanceMetrics
    total_trading_days: int
    skipped_days: List[date] = field(default_factory=list)
    final_capital: float = 0.0

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_days)

    @property
    def config(self) -> Dict[str, Any]:
        return {
            "security_id": self.security_id,
            "stock_name": self.stock_name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "target_percent": self.params.target_percent,
            "stop_loss_percent": self.params.stop_loss_percent,
            "capital": self.params.capital,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config,
            "trades": [t.to_dict() for t in self.trades],
            "metrics": self.metrics.to_dict(),
            "total_trading_days": self.total_trading_days,
            "skipped_days": self.skipped_count,
            "skipped_dates": [d.isoformat() for d in self.skipped_days],
            "final_capital": round(self.final_capital, 2),
        }


def _parse_date(value: DateLike, field_name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: expected YYYY-MM-DD, got {value!r}", field=field_name)


def _parse_number(value, default: float, field_name: str) -> float:
    if value is None or value == "":
        return float(default)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number, got {value!r}", field=field_name)
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number, got {number}", field=field_name)
    return number


def validate_request(security_id: Optional[str],
                     start_date: DateLike,
                     end_date: DateLike,
                     target_percent=None,
                     stop_loss_percent=None,
                     capital=None,
                     stock_name: Optional[str] = None) -> BacktestRequest:
    """Fails with ValidationError before any simulation runs."""
    if not security_id or not str(security_id).strip():
        raise ValidationError("Security ID is required", field="security_id")
    if start_date is None or end_date is None:
        raise ValidationError("Start date and end date are required", field="start_date")

    start = _parse_date(start_date, "start_date")
    end = _parse_date(end_date, "end_date")
    if start >= end:
        raise ValidationError("Start date must be before end date", field="start_date")

    params = StrategyParameters(
        target_percent=_parse_number(target_percent, STRATEGY_CONFIG["TARGET_PERCENT"], "target_percent"),
        stop_loss_percent=_parse_number(stop_loss_percent, STRATEGY_CONFIG["STOP_LOSS_PERCENT"], "stop_loss_percent"),
        capital=_parse_number(capital, STRATEGY_CONFIG["INITIAL_CAPITAL"], "capital"),
    ).validate()

    return BacktestRequest(
        security_id=str(security_id).strip(),
        start_date=start,
        end_date=end,
        params=params,
        stock_name=stock_name,
    )


def run_strategy(store,
                 security_id: str,
                 start_date: DateLike,
                 end_date: DateLike,
                 target_percent=STRATEGY_CONFIG["TARGET_PERCENT"],
                 stop_loss_percent=STRATEGY_CONFIG["STOP_LOSS_PERCENT"],
                 capital=STRATEGY_CONFIG["INITIAL_CAPITAL"],
                 stock_name: Optional[str] = None) -> BacktestReport:
    """
    Runs the previous-day breakout strategy for one security over [start_date, end_date].

    `store` must serve both candles and daily summaries (Database or InMemoryStore).
    Raises ValidationError on bad input and NoTradingDaysError when the range holds no candles.
    """
    request = validate_request(security_id, start_date, end_date,
                               target_percent, stop_loss_percent, capital, stock_name)

    engine = BacktestEngine(store, store, interval=STRATEGY_CONFIG["CANDLE_INTERVAL"])
    days = engine.trading_days(request.security_id, request.start_date, request.end_date)
    if not days:
        raise NoTradingDaysError(
            f"No trading days found for {request.security_id} between "
            f"{request.start_date} and {request.end_date}"
        )

    result = engine.run(request.security_id, request.start_date, request.end_date,
                        request.params, trading_days=days)
    metrics = MetricsCalculator.calculate_metrics(result.trades)

    return BacktestReport(
        security_id=request.security_id,
        stock_name=request.stock_name,
        start_date=request.start_date,
        end_date=request.end_date,
        params=request.params,
        trades=result.trades,
        metrics=metrics,
        total_trading_days=len(days),
        skipped_days=result.skipped_days,
        final_capital=result.final_capital,
    )
