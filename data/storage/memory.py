import logging
from datetime import datetime, date
from typing import Dict, Iterable, List, Optional, Tuple

from data.interfaces import Candle, DailySummary, ICandleSource, IDailySummaryStore

logger = logging.getLogger("data.storage.memory")


class InMemoryStore(ICandleSource, IDailySummaryStore):
    """
    Dict-backed candle source and summary store.
    Same contract as the SQLite Database; used for in-process backtests and tests.
    """

    def __init__(self, candles: Iterable[Candle] = (), summaries: Iterable[DailySummary] = (), interval: str = "1"):
        self._candles: Dict[Tuple[str, str, datetime], Candle] = {}
        self._summaries: Dict[Tuple[str, date], DailySummary] = {}
        self.add_candles(candles, interval)
        self.upsert_daily_summaries(summaries)

    def add_candles(self, candles: Iterable[Candle], interval: str = "1") -> int:
        inserted = 0
        for c in candles:
            key = (c.security_id, interval, c.timestamp)
            if key in self._candles:
                continue
            self._candles[key] = c
            inserted += 1
        return inserted

    def _select(self, security_id: str, interval: str) -> List[Candle]:
        selected = [
            c for (sid, ivl, _), c in self._candles.items()
            if sid == security_id and ivl == interval
        ]
        selected.sort(key=lambda c: c.timestamp)
        return selected

    def fetch_candles(self, security_id: str, interval: str, start: datetime, end: datetime) -> List[Candle]:
        return [c for c in self._select(security_id, interval) if start <= c.timestamp <= end]

    def fetch_day_candles(self, security_id: str, day: date, interval: str = "1") -> List[Candle]:
        return [c for c in self._select(security_id, interval) if c.trading_day == day]

    def candle_days(self, security_id: str, start: date, end: date, interval: str = "1") -> List[date]:
        days = {c.trading_day for c in self._select(security_id, interval)}
        return sorted(d for d in days if start <= d <= end)

    def load_all_candles(self, security_id: Optional[str] = None, interval: str = "1") -> List[Candle]:
        return [
            c for (sid, ivl, _), c in self._candles.items()
            if ivl == interval and (security_id is None or sid == security_id)
        ]

    def upsert_daily_summary(self, summary: DailySummary) -> None:
        self._summaries[summary.key] = summary

    def most_recent_summary_at_or_before(self, security_id: str, day: date) -> Optional[DailySummary]:
        candidates = [
            s for (sid, d), s in self._summaries.items()
            if sid == security_id and d <= day
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda s: s.date)
