import sqlite3
import logging
from datetime import datetime, date, timedelta
from typing import List, Optional, Iterable
from pathlib import Path
import pandas as pd
from config.settings import DATABASE_PATH, STRATEGY_CONFIG
from core.exceptions import DataSourceError
from data.interfaces import Candle, DailySummary, ICandleSource, IDailySummaryStore

logger = logging.getLogger("data.storage.database")


class Database(ICandleSource, IDailySummaryStore):
    """
    SQLite Database Manager.
    Stores minute candles and daily summaries, and serves both as the
    candle source and the daily-summary store of a backtest.
    """

    def __init__(self, db_path: Path = DATABASE_PATH):
        self.db_path = Path(db_path)
        self._ensure_db_dir()

        # Persistent Connection
        self.conn = self._connect()
        self._init_schema()
        logger.info(f"Database connected at {self.db_path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _ensure_db_dir(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
        except sqlite3.Error as e:
            logger.error(f"Failed to open database {self.db_path}: {e}")
            raise DataSourceError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row  # Return dict-like rows by default
        return conn

    def is_connected(self) -> bool:
        """Check if database connection is alive."""
        if self.conn is None:
            return False
        try:
            self.conn.execute("SELECT 1")
            return True
        except (sqlite3.ProgrammingError, sqlite3.OperationalError):
            return False

    def _ensure_connection(self):
        """Ensure database connection is alive, reconnect if needed."""
        if not self.is_connected():
            logger.warning("Database connection lost, attempting to reconnect...")
            self.conn = self._connect()
            logger.info("Database reconnected successfully")

    def get_connection(self) -> sqlite3.Connection:
        """Returns the persistent connection, ensuring it's alive."""
        self._ensure_connection()
        return self.conn

    def close(self):
        """Explicitly close the connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed.")

    def _init_schema(self):
        """Initialize the database schema if it doesn't exist."""
        try:
            cursor = self.conn.cursor()

            # 1. Minute Candles (OHLCV)
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS candles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                security_id TEXT NOT NULL,
                stock_name TEXT,
                interval TEXT NOT NULL,
                timestamp TEXT NOT NULL,   -- ISO-8601, offset kept when present
                trade_date TEXT NOT NULL,  -- local calendar date of the bar
                open REAL NOT NULL,
                high REAL NOT NULL,
                low REAL NOT NULL,
                close REAL NOT NULL,
                volume INTEGER NOT NULL DEFAULT 0,
                UNIQUE(security_id, interval, timestamp)
            )
            ''')

            # 2. Daily Summaries
            cursor.execute('''
            CREATE TABLE IF NOT EXISTS daily_summaries (
                security_id TEXT NOT NULL,
                stock_name TEXT,
                date TEXT NOT NULL,
                daily_high REAL NOT NULL,
                daily_low REAL NOT NULL,
                open REAL NOT NULL,
                close REAL NOT NULL,
                total_volume INTEGER NOT NULL DEFAULT 0,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                UNIQUE(security_id, date)
            )
            ''')

            # 3. Indices (Performance)
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_candles_day ON candles (security_id, interval, trade_date)')
            cursor.execute('CREATE INDEX IF NOT EXISTS idx_summaries_lookup ON daily_summaries (security_id, date)')

            self.conn.commit()
            logger.debug("Database schema and indices initialized.")
        except sqlite3.Error as e:
            logger.error(f"Failed to init schema: {e}")
            raise DataSourceError(f"Failed to init schema: {e}") from e

    # ------------------------------------------------------------------
    # Candles
    # ------------------------------------------------------------------

    def save_bulk_candles(self, candles: Iterable[Candle], interval: str = STRATEGY_CONFIG["CANDLE_INTERVAL"]) -> int:
        """
        Save multiple candles efficiently.
        Duplicates by (security_id, interval, timestamp) are ignored.
        Returns the number of rows actually inserted.
        """
        data = [
            (
                c.security_id, c.stock_name, interval,
                c.timestamp.isoformat(), c.trading_day.isoformat(),
                float(c.open), float(c.high), float(c.low), float(c.close), int(c.volume or 0)
            )
            for c in candles
        ]
        if not data:
            return 0

        try:
            self._ensure_connection()
            before = self.conn.total_changes
            self.conn.executemany('''
            INSERT OR IGNORE INTO candles
            (security_id, stock_name, interval, timestamp, trade_date, open, high, low, close, volume)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', data)
            self.conn.commit()
            inserted = self.conn.total_changes - before
        except sqlite3.Error as e:
            logger.error(f"Error saving bulk candles: {e}")
            raise DataSourceError(f"Error saving candles: {e}") from e

        skipped = len(data) - inserted
        logger.info(f"Saved {inserted} candles ({skipped} duplicates skipped)")
        return inserted

    def _query_candles(self, where: str, params: tuple) -> List[Candle]:
        query = f"""
            SELECT security_id, stock_name, timestamp, open, high, low, close, volume
            FROM candles
            WHERE {where}
        """
        try:
            self._ensure_connection()
            df = pd.read_sql_query(query, self.conn, params=params)
        except (sqlite3.Error, pd.errors.DatabaseError) as e:
            logger.error(f"Error loading candles: {e}")
            raise DataSourceError(f"Error loading candles: {e}") from e

        candles = [
            Candle(
                security_id=row.security_id,
                timestamp=datetime.fromisoformat(row.timestamp),
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=int(row.volume),
                stock_name=row.stock_name if isinstance(row.stock_name, str) else None,
            )
            for row in df.itertuples(index=False)
        ]
        candles.sort(key=lambda c: c.timestamp)
        return candles

    def fetch_candles(self, security_id: str, interval: str, start: datetime, end: datetime) -> List[Candle]:
        # Pre-filter on local dates (one day of slack for offset differences), then compare instants
        lo = (start.date() - timedelta(days=1)).isoformat()
        hi = (end.date() + timedelta(days=1)).isoformat()
        candles = self._query_candles(
            "security_id = ? AND interval = ? AND trade_date BETWEEN ? AND ?",
            (security_id, interval, lo, hi),
        )
        return [c for c in candles if start <= c.timestamp <= end]

    def fetch_day_candles(self, security_id: str, day: date, interval: str = "1") -> List[Candle]:
        return self._query_candles(
            "security_id = ? AND interval = ? AND trade_date = ?",
            (security_id, interval, day.isoformat()),
        )

    def load_all_candles(self, security_id: Optional[str] = None, interval: str = "1") -> List[Candle]:
        if security_id is None:
            return self._query_candles("interval = ?", (interval,))
        return self._query_candles("security_id = ? AND interval = ?", (security_id, interval))

    def candle_days(self, security_id: str, start: date, end: date, interval: str = "1") -> List[date]:
        try:
            self._ensure_connection()
            rows = self.conn.execute('''
                SELECT DISTINCT trade_date FROM candles
                WHERE security_id = ? AND interval = ? AND trade_date BETWEEN ? AND ?
                ORDER BY trade_date ASC
            ''', (security_id, interval, start.isoformat(), end.isoformat())).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Error listing trading days for {security_id}: {e}")
            raise DataSourceError(f"Error listing trading days: {e}") from e
        return [date.fromisoformat(row["trade_date"]) for row in rows]

    # ------------------------------------------------------------------
    # Daily summaries
    # ------------------------------------------------------------------

    def upsert_daily_summary(self, summary: DailySummary) -> None:
        self.upsert_daily_summaries([summary])

    def upsert_daily_summaries(self, summaries: Iterable[DailySummary]) -> int:
        """Insert or replace summaries keyed by (security_id, date)."""
        data = [
            (
                s.security_id, s.stock_name, s.date.isoformat(),
                s.daily_high, s.daily_low, s.open, s.close, int(s.total_volume)
            )
            for s in summaries
        ]
        if not data:
            return 0
        try:
            self._ensure_connection()
            self.conn.executemany('''
            INSERT OR REPLACE INTO daily_summaries
            (security_id, stock_name, date, daily_high, daily_low, open, close, total_volume)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ''', data)
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error saving daily summaries: {e}")
            raise DataSourceError(f"Error saving daily summaries: {e}") from e
        logger.info(f"Upserted {len(data)} daily summaries")
        return len(data)

    def most_recent_summary_at_or_before(self, security_id: str, day: date) -> Optional[DailySummary]:
        try:
            self._ensure_connection()
            row = self.conn.execute('''
                SELECT * FROM daily_summaries
                WHERE security_id = ? AND date <= ?
                ORDER BY date DESC
                LIMIT 1
            ''', (security_id, day.isoformat())).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Error loading daily summary for {security_id} <= {day}: {e}")
            raise DataSourceError(f"Error loading daily summary: {e}", day=day) from e

        if row is None:
            return None
        return DailySummary(
            security_id=row["security_id"],
            date=date.fromisoformat(row["date"]),
            daily_high=row["daily_high"],
            daily_low=row["daily_low"],
            open=row["open"],
            close=row["close"],
            total_volume=row["total_volume"],
            stock_name=row["stock_name"],
        )

    def count_daily_summaries(self, security_id: Optional[str] = None) -> int:
        self._ensure_connection()
        if security_id is None:
            return self.conn.execute("SELECT COUNT(*) FROM daily_summaries").fetchone()[0]
        return self.conn.execute(
            "SELECT COUNT(*) FROM daily_summaries WHERE security_id = ?", (security_id,)
        ).fetchone()[0]
