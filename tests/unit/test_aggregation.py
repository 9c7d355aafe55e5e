from datetime import date, datetime

import pytz

from data.aggregation import aggregate
from data.interfaces import Candle

DAY = date(2024, 1, 2)


def test_empty_input_yields_empty_mapping():
    assert aggregate([]) == {}


def test_open_close_follow_timestamps_not_input_order(day_factory):
    candles = day_factory(DAY, [
        (100.0, 101.0, 99.0, 100.5),
        (100.5, 103.0, 100.0, 102.0),
        (102.0, 102.5, 98.0, 99.5),
    ])
    shuffled = [candles[2], candles[0], candles[1]]

    summary = aggregate(shuffled)[("2885", DAY)]

    assert summary.open == 100.0
    assert summary.close == 99.5
    assert summary.daily_high == 103.0
    assert summary.daily_low == 98.0
    assert summary.total_volume == 300
    assert summary.stock_name == "RELIANCE"


def test_groups_by_security_and_day(day_factory):
    candles = (
        day_factory(DAY, [(10.0, 11.0, 9.0, 10.0)])
        + day_factory(date(2024, 1, 3), [(20.0, 21.0, 19.0, 20.0)])
        + day_factory(DAY, [(50.0, 55.0, 45.0, 52.0)], security_id="1333")
    )
    summaries = aggregate(candles)

    assert set(summaries) == {("2885", DAY), ("2885", date(2024, 1, 3)), ("1333", DAY)}
    assert summaries[("1333", DAY)].daily_high == 55.0
    for key, summary in summaries.items():
        assert summary.key == key


def test_summary_bounds_hold(day_factory):
    candles = day_factory(DAY, [
        (100.0, 100.2, 99.1, 99.4),
        (99.4, 99.9, 98.7, 99.8),
        (99.8, 101.6, 99.6, 101.1),
        (101.1, 101.3, 100.2, 100.3),
    ])
    s = aggregate(candles)[("2885", DAY)]

    assert s.daily_low <= s.open <= s.daily_high
    assert s.daily_low <= s.close <= s.daily_high


def test_day_is_local_calendar_date():
    ist = pytz.timezone("Asia/Kolkata")
    # 00:30 IST on Jan 3 is still Jan 2 in UTC
    ts = ist.localize(datetime(2024, 1, 3, 0, 30))
    candle = Candle("2885", ts, 10.0, 10.0, 10.0, 10.0, volume=1)

    assert list(aggregate([candle])) == [("2885", date(2024, 1, 3))]


def test_recomputation_is_deterministic(day_factory):
    candles = day_factory(DAY, [(10.0, 11.0, 9.0, 10.5), (10.5, 12.0, 10.0, 11.0)])
    assert aggregate(candles) == aggregate(list(reversed(candles)))
