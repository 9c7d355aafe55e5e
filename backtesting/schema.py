from dataclasses import dataclass, field, asdict
from enum import Enum
from datetime import datetime, date
from typing import Optional, List, Dict, Any

from config.settings import STRATEGY_CONFIG
from core.exceptions import ValidationError


class TradeType(Enum):
    BUY = "BUY"
    SELL = "SELL"


class ExitReason(Enum):
    TARGET = "TARGET"
    STOP_LOSS = "STOP_LOSS"
    END_OF_DAY = "END_OF_DAY"


@dataclass(frozen=True)
class StrategyParameters:
    """
    Immutable parameters of one backtest run.
    Percentages are expressed in percent (0.2 means 0.2%).
    """
    target_percent: float = STRATEGY_CONFIG["TARGET_PERCENT"]
    stop_loss_percent: float = STRATEGY_CONFIG["STOP_LOSS_PERCENT"]
    capital: float = STRATEGY_CONFIG["INITIAL_CAPITAL"]

    def validate(self) -> "StrategyParameters":
        max_pct = STRATEGY_CONFIG["MAX_PERCENT"]
        if not 0 < self.target_percent <= max_pct:
            raise ValidationError(f"Target percent must be a number between 0.01 and {max_pct:g}", field="target_percent")
        if not 0 < self.stop_loss_percent <= max_pct:
            raise ValidationError(f"Stop loss percent must be a number between 0.01 and {max_pct:g}", field="stop_loss_percent")
        min_capital = STRATEGY_CONFIG["MIN_CAPITAL"]
        if not self.capital >= min_capital:
            raise ValidationError(f"Capital must be a number greater than or equal to {min_capital:g}", field="capital")
        return self


@dataclass(frozen=True)
class Trade:
    """A realized breakout trade. At most one per security per trading day."""
    security_id: str
    date: date
    type: TradeType
    entry_price: float
    entry_time: datetime
    exit_price: float
    exit_time: datetime
    exit_reason: ExitReason
    quantity: int
    pnl: float
    pnl_percent: float  # Price return of the move, not weighted by quantity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "security_id": self.security_id,
            "date": self.date.isoformat(),
            "type": self.type.value,
            "entry_price": round(self.entry_price, 2),
            "entry_time": self.entry_time.isoformat(),
            "exit_price": round(self.exit_price, 2),
            "exit_time": self.exit_time.isoformat(),
            "exit_reason": self.exit_reason.value,
            "quantity": self.quantity,
            "pnl": self.pnl,
            "pnl_percent": self.pnl_percent,
        }


@dataclass(frozen=True)
class DayResult:
    trades: List[Trade]
    capital_out: float


@dataclass
class BacktestResult:
    """Output of the backtest driver: full ledger, skipped days and compounded capital."""
    security_id: str
    trading_days: List[date]
    trades: List[Trade] = field(default_factory=list)
    skipped_days: List[date] = field(default_factory=list)
    initial_capital: float = 0.0
    final_capital: float = 0.0


@dataclass(frozen=True)
class PerformanceMetrics:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    average_pnl: float = 0.0
    best_trade: Optional[Trade] = None
    worst_trade: Optional[Trade] = None
    max_drawdown: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["best_trade"] = self.best_trade.to_dict() if self.best_trade else None
        data["worst_trade"] = self.worst_trade.to_dict() if self.worst_trade else None
        return data
