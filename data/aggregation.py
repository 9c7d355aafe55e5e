import logging
from datetime import date
from typing import Dict, Iterable, Tuple

import pandas as pd

from data.interfaces import Candle, DailySummary

logger = logging.getLogger("data.aggregation")

SummaryKey = Tuple[str, date]


def aggregate(candles: Iterable[Candle]) -> Dict[SummaryKey, DailySummary]:
    """
    Folds minute candles into one DailySummary per (security_id, local calendar date).

    Input order does not matter: each group is ordered by timestamp to pick
    open (first bar) and close (last bar). High/low are the extremes of the group.
    An empty input yields an empty mapping.
    """
    # Stable sort in Python keeps tz-aware datetimes out of pandas' dtype inference
    ordered = sorted(candles, key=lambda c: c.timestamp)
    if not ordered:
        return {}

    df = pd.DataFrame(
        {
            "security_id": [c.security_id for c in ordered],
            "trade_date": [c.trading_day for c in ordered],
            "stock_name": [c.stock_name for c in ordered],
            "open": [c.open for c in ordered],
            "high": [c.high for c in ordered],
            "low": [c.low for c in ordered],
            "close": [c.close for c in ordered],
            "volume": [c.volume or 0 for c in ordered],
        }
    )

    grouped = df.groupby(["security_id", "trade_date"], sort=True).agg(
        daily_high=("high", "max"),
        daily_low=("low", "min"),
        open=("open", "first"),
        close=("close", "last"),
        total_volume=("volume", "sum"),
        stock_name=("stock_name", "first"),
    )

    summaries: Dict[SummaryKey, DailySummary] = {}
    for (security_id, trade_date), row in grouped.iterrows():
        stock_name = row["stock_name"] if isinstance(row["stock_name"], str) else None
        summary = DailySummary(
            security_id=str(security_id),
            date=trade_date,
            daily_high=float(row["daily_high"]),
            daily_low=float(row["daily_low"]),
            open=float(row["open"]),
            close=float(row["close"]),
            total_volume=int(row["total_volume"]),
            stock_name=stock_name,
        )
        summaries[summary.key] = summary

    logger.debug(f"Aggregated {len(ordered)} candles into {len(summaries)} daily summaries")
    return summaries
