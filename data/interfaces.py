from abc import ABC, abstractmethod
from typing import Optional, List, Iterable
from dataclasses import dataclass
from datetime import datetime, date


@dataclass(frozen=True)
class Candle:
    """
    Standardized OHLCV bar for one security.
    Frozen: candles are immutable once produced by the data source.
    """
    security_id: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    stock_name: Optional[str] = None

    @property
    def trading_day(self) -> date:
        # Local calendar date of the bar, as carried by its own timestamp (no UTC normalization)
        return self.timestamp.date()


@dataclass(frozen=True)
class DailySummary:
    """One OHLCV aggregate per (security_id, date), derived from minute candles."""
    security_id: str
    date: date
    daily_high: float
    daily_low: float
    open: float
    close: float
    total_volume: int = 0
    stock_name: Optional[str] = None

    @property
    def key(self):
        return (self.security_id, self.date)


class ICandleSource(ABC):
    """
    Interface for candle sources.
    Candles are assumed deduplicated by (security_id, interval, timestamp).
    """

    @abstractmethod
    def fetch_candles(self,
                      security_id: str,
                      interval: str,
                      start: datetime,
                      end: datetime) -> List[Candle]:
        """Candles with start <= timestamp <= end, ordered by timestamp."""
        pass

    @abstractmethod
    def fetch_day_candles(self, security_id: str, day: date, interval: str = "1") -> List[Candle]:
        """All candles whose local calendar date is `day`, ordered by timestamp."""
        pass

    @abstractmethod
    def candle_days(self, security_id: str, start: date, end: date, interval: str = "1") -> List[date]:
        """Distinct local calendar days in [start, end] holding at least one candle, ascending."""
        pass


class IDailySummaryStore(ABC):
    """Interface for the daily-summary store, idempotent by (security_id, date)."""

    @abstractmethod
    def upsert_daily_summary(self, summary: DailySummary) -> None:
        pass

    def upsert_daily_summaries(self, summaries: Iterable[DailySummary]) -> int:
        count = 0
        for summary in summaries:
            self.upsert_daily_summary(summary)
            count += 1
        return count

    @abstractmethod
    def most_recent_summary_at_or_before(self, security_id: str, day: date) -> Optional[DailySummary]:
        pass
