import logging
from datetime import date, timedelta
from typing import Optional

from data.interfaces import DailySummary, IDailySummaryStore

logger = logging.getLogger("backtesting.levels")


class LevelProvider:
    """
    Supplies the breakout trigger levels for a trading day: the high/low of the
    most recent daily summary dated strictly before that day.
    Weekends and holidays are bridged, since the lookup is "latest at or before
    day - 1", not "exactly day - 1".
    """

    def __init__(self, store: IDailySummaryStore):
        self.store = store

    def previous_levels(self, security_id: str, day: date) -> Optional[DailySummary]:
        bound = day - timedelta(days=1)
        summary = self.store.most_recent_summary_at_or_before(security_id, bound)
        if summary is None:
            logger.debug(f"No daily summary for {security_id} at or before {bound}")
        return summary
