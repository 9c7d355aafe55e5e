from datetime import date
from unittest.mock import patch

import pytest

from backtesting.engine import BacktestEngine
from backtesting.schema import ExitReason, TradeType
from core.exceptions import DataSourceError, NoCandlesError, NoPriorLevelsError
from data.storage.memory import InMemoryStore

JAN_1, JAN_2, JAN_3 = date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)


def test_trading_days_are_sorted_and_bounded(memory_store):
    engine = BacktestEngine(memory_store)
    assert engine.trading_days("2885", JAN_1, JAN_3) == [JAN_1, JAN_2, JAN_3]
    assert engine.trading_days("2885", JAN_2, JAN_2) == [JAN_2]
    assert engine.trading_days("9999", JAN_1, JAN_3) == []


def test_run_compounds_capital_across_days(memory_store, params):
    result = BacktestEngine(memory_store).run("2885", JAN_1, JAN_3, params)

    assert result.skipped_days == [JAN_1]
    assert [t.date for t in result.trades] == [JAN_2, JAN_3]

    day2, day3 = result.trades
    assert day2.type == TradeType.BUY
    assert day2.exit_reason == ExitReason.TARGET
    assert day2.pnl == pytest.approx(200.0)

    # Sized from 100200, not from the starting 100000
    assert day3.type == TradeType.SELL
    assert day3.exit_reason == ExitReason.STOP_LOSS
    assert day3.quantity == 1022
    assert day3.pnl == pytest.approx(-200.31)

    assert result.final_capital == pytest.approx(100000.0 + 200.0 - 200.31)


def test_first_day_without_prior_summary_is_skipped(memory_store, params):
    engine = BacktestEngine(memory_store)
    with pytest.raises(NoPriorLevelsError) as exc:
        engine.step("2885", JAN_1, params, params.capital)
    assert exc.value.day == JAN_1


def test_day_without_candles_is_skipped(memory_store, params):
    engine = BacktestEngine(memory_store)
    with pytest.raises(NoCandlesError):
        engine.step("2885", date(2024, 1, 5), params, params.capital)

    result = engine.run("2885", JAN_1, date(2024, 1, 5), params,
                        trading_days=[date(2024, 1, 5), JAN_2])
    assert result.skipped_days == [date(2024, 1, 5)]
    assert len(result.trades) == 1


def test_skipped_days_do_not_touch_capital(three_day_candles, params):
    # No summaries at all: every day is skipped
    store = InMemoryStore(three_day_candles)
    result = BacktestEngine(store).run("2885", JAN_1, JAN_3, params)

    assert result.trades == []
    assert result.skipped_days == [JAN_1, JAN_2, JAN_3]
    assert result.final_capital == params.capital


def test_separate_summary_store(three_day_candles, memory_store, params):
    candles_only = InMemoryStore(three_day_candles)
    result = BacktestEngine(candles_only, memory_store).run("2885", JAN_1, JAN_3, params)
    assert len(result.trades) == 2


def test_data_source_error_aborts_run(memory_store, params):
    engine = BacktestEngine(memory_store)
    with patch.object(memory_store, "fetch_day_candles", side_effect=DataSourceError("disk I/O error")):
        with pytest.raises(DataSourceError):
            engine.run("2885", JAN_1, JAN_3, params)


def test_unexpected_store_failure_is_wrapped_with_day(memory_store, params):
    engine = BacktestEngine(memory_store)
    with patch.object(memory_store, "most_recent_summary_at_or_before", side_effect=RuntimeError("boom")):
        with pytest.raises(DataSourceError) as exc:
            engine.step("2885", JAN_2, params, params.capital)

    assert exc.value.day == JAN_2
    assert "2024-01-02" in str(exc.value)
    assert isinstance(exc.value.__cause__, RuntimeError)


def test_run_is_repeatable(memory_store, params):
    engine = BacktestEngine(memory_store)
    first = engine.run("2885", JAN_1, JAN_3, params)
    second = engine.run("2885", JAN_1, JAN_3, params)

    assert first.trades == second.trades
    assert first.final_capital == second.final_capital


def test_in_memory_store_suppresses_duplicates(three_day_candles):
    store = InMemoryStore(three_day_candles)
    assert store.add_candles(three_day_candles) == 0
    assert store.add_candles(three_day_candles[:1], interval="5") == 1
    assert len(store.load_all_candles("2885")) == len(three_day_candles)
    assert len(store.load_all_candles(interval="5")) == 1
