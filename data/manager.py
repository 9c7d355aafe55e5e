import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
import pytz

from config.settings import SYSTEM_CONFIG, STRATEGY_CONFIG, VALID_INTERVALS
from core.exceptions import DataSourceError, EmptyInputError, ValidationError
from data.aggregation import aggregate
from data.interfaces import Candle
from data.storage.database import Database

logger = logging.getLogger("data.manager")

PRICE_COLUMNS = ["open", "high", "low", "close"]


class DataManager:
    """
    Orchestrates Data Flow:
    CSV file -> Quality Check -> Candle Storage -> Daily Summaries
    """

    def __init__(self, db: Database):
        self.db = db
        self.tz = pytz.timezone(SYSTEM_CONFIG["TIMEZONE"])

    def import_csv(self,
                   path: Union[str, Path],
                   security_id: str,
                   stock_name: Optional[str] = None,
                   interval: str = STRATEGY_CONFIG["CANDLE_INTERVAL"]) -> int:
        """
        Loads a candle CSV into the store.
        Naive timestamps are taken as market-local time. Returns inserted rows.
        """
        if interval not in VALID_INTERVALS:
            raise ValidationError(f"Interval must be one of {', '.join(VALID_INTERVALS)}", field="interval")

        try:
            df = pd.read_csv(path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise DataSourceError(f"Cannot read candle file {path}: {e}") from e

        df = self._normalize(df, path)
        candles = [
            Candle(
                security_id=security_id,
                timestamp=row.timestamp.to_pydatetime(),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=int(row.volume),
                stock_name=stock_name,
            )
            for row in df.itertuples(index=False)
        ]
        logger.info(f"Importing {len(candles)} candles for {security_id} from {path}")
        return self.db.save_bulk_candles(candles, interval)

    def _normalize(self, df: pd.DataFrame, path) -> pd.DataFrame:
        lower = {c.lower().strip(): c for c in df.columns}

        tcol = next((lower[n] for n in ("timestamp", "datetime", "date", "time") if n in lower), None)
        if tcol is None or any(c not in lower for c in PRICE_COLUMNS):
            raise DataSourceError(f"{path}: expected timestamp, open, high, low, close columns")

        out = pd.DataFrame({
            "timestamp": pd.to_datetime(df[tcol], errors="coerce"),
            **{c: pd.to_numeric(df[lower[c]], errors="coerce") for c in PRICE_COLUMNS},
        })
        if "volume" in lower:
            out["volume"] = pd.to_numeric(df[lower["volume"]], errors="coerce").fillna(0)
        else:
            out["volume"] = 0

        if out["timestamp"].dt.tz is None:
            # DST-ambiguous wall times become NaT and are dropped below
            out["timestamp"] = out["timestamp"].dt.tz_localize(self.tz, ambiguous="NaT", nonexistent="NaT")
        else:
            out["timestamp"] = out["timestamp"].dt.tz_convert(self.tz)

        original_count = len(out)
        prices = out[PRICE_COLUMNS].to_numpy(dtype=float)
        valid = (
            out["timestamp"].notna()
            & np.isfinite(prices).all(axis=1)
            & (prices > 0).all(axis=1)
            & (out["high"] >= out["low"])
            & out["open"].between(out["low"], out["high"])
            & out["close"].between(out["low"], out["high"])
            & (out["volume"] >= 0)
        )
        out = out[valid].sort_values("timestamp")

        dropped = original_count - len(out)
        if dropped > 0:
            logger.warning(f"[VALIDATION WARNING] {path}: dropped {dropped} malformed rows")
        return out

    def rebuild_daily_summaries(self, security_id: Optional[str] = None) -> int:
        """
        Recomputes daily summaries from stored 1-minute candles and upserts them.
        Existing summaries for the same (security_id, date) are replaced.
        """
        candles = self.db.load_all_candles(security_id, interval=STRATEGY_CONFIG["CANDLE_INTERVAL"])
        if not candles:
            scope = security_id or "any security"
            raise EmptyInputError(f"No 1-minute candles stored for {scope}; import data first")

        logger.info(f"Aggregating {len(candles)} candles into daily summaries...")
        summaries = aggregate(candles)
        written = self.db.upsert_daily_summaries(summaries.values())
        logger.info(f"Daily summaries written: {written}")
        return written
