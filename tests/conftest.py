from datetime import date, datetime, timedelta

import pytest
import pytz

from backtesting.schema import StrategyParameters
from data.aggregation import aggregate
from data.interfaces import Candle, DailySummary
from data.storage.database import Database
from data.storage.memory import InMemoryStore

IST = pytz.timezone("Asia/Kolkata")
SECURITY_ID = "2885"


def make_candle(day: date, minute: int, o: float, h: float, l: float, c: float,
                volume: int = 100, security_id: str = SECURITY_ID) -> Candle:
    """Minute bar `minute` minutes after the 09:15 IST open of `day`."""
    start = IST.localize(datetime(day.year, day.month, day.day, 9, 15))
    return Candle(
        security_id=security_id,
        timestamp=start + timedelta(minutes=minute),
        open=o, high=h, low=l, close=c,
        volume=volume,
        stock_name="RELIANCE",
    )


def make_day(day: date, bars, security_id: str = SECURITY_ID):
    """One candle per (o, h, l, c) tuple, one minute apart."""
    return [make_candle(day, i, *bar, security_id=security_id) for i, bar in enumerate(bars)]


@pytest.fixture
def day_factory():
    return make_day


@pytest.fixture
def levels():
    """Previous-day levels: high 100, low 90."""
    return DailySummary(
        security_id=SECURITY_ID,
        date=date(2024, 1, 1),
        daily_high=100.0,
        daily_low=90.0,
        open=95.0,
        close=95.0,
        total_volume=1000,
    )


@pytest.fixture
def params():
    return StrategyParameters(target_percent=0.2, stop_loss_percent=0.2, capital=100000.0)


@pytest.fixture
def three_day_candles():
    """
    Day 1 sets levels (100 / 90).
    Day 2 breaks out long and hits target.
    Day 3 breaks below day 2's low and is stopped out on the entry bar.
    """
    return (
        make_day(date(2024, 1, 1), [(95.0, 100.0, 90.0, 95.0)])
        + make_day(date(2024, 1, 2), [
            (99.0, 99.5, 98.0, 99.0),
            (100.0, 100.1, 99.9, 100.05),
            (100.1, 100.25, 100.0, 100.2),
        ])
        + make_day(date(2024, 1, 3), [(98.5, 98.6, 97.9, 98.0)])
    )


@pytest.fixture
def memory_store(three_day_candles):
    return InMemoryStore(three_day_candles, aggregate(three_day_candles).values())


@pytest.fixture
def temp_db(tmp_path):
    db = Database(tmp_path / "test_breakout.db")
    yield db
    db.close()
