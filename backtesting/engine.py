import logging
import time
from datetime import date
from typing import List, Optional

from backtesting.levels import LevelProvider
from backtesting.schema import BacktestResult, DayResult, StrategyParameters
from backtesting.simulator import simulate_day
from core.exceptions import DataSourceError, NoCandlesError, NoPriorLevelsError, SkipDay
from data.interfaces import ICandleSource, IDailySummaryStore

logger = logging.getLogger("backtesting.engine")


class BacktestEngine:
    """
    Day-by-day driver of the breakout backtest.

    Capital is an explicit fold over the trading days:
        capital_n = step(capital_{n-1}, day_n)
    so days are processed strictly in chronological order and never in parallel.
    """

    def __init__(self,
                 candle_source: ICandleSource,
                 summary_store: Optional[IDailySummaryStore] = None,
                 interval: str = "1"):
        self.candles = candle_source
        self.levels = LevelProvider(summary_store if summary_store is not None else candle_source)
        self.interval = interval

    def trading_days(self, security_id: str, start: date, end: date) -> List[date]:
        try:
            return self.candles.candle_days(security_id, start, end, self.interval)
        except DataSourceError:
            raise
        except Exception as e:
            raise DataSourceError(f"Listing trading days for {security_id} failed: {e}") from e

    def step(self, security_id: str, day: date, params: StrategyParameters, capital: float) -> DayResult:
        """
        Simulates a single day with the capital carried over from the previous one.
        Raises SkipDay when the day cannot be simulated.
        """
        try:
            levels = self.levels.previous_levels(security_id, day)
            if levels is None:
                raise NoPriorLevelsError(day)

            candles = self.candles.fetch_day_candles(security_id, day, self.interval)
            if not candles:
                raise NoCandlesError(day)
        except (SkipDay, DataSourceError):
            raise
        except Exception as e:
            raise DataSourceError(f"Loading data for {security_id} failed: {e}", day=day) from e

        return simulate_day(candles, levels, params, capital)

    def run(self, security_id: str, start: date, end: date, params: StrategyParameters,
            trading_days: Optional[List[date]] = None) -> BacktestResult:
        """
        The Main Event Loop. Processes trading days in chronological order.
        """
        days = sorted(trading_days) if trading_days is not None else self.trading_days(security_id, start, end)

        logger.info(f"[BACKTEST START] {security_id} | {start} to {end} | Days: {len(days)} | Capital: {params.capital:.2f}")
        started = time.time()

        result = BacktestResult(
            security_id=security_id,
            trading_days=days,
            initial_capital=params.capital,
            final_capital=params.capital,
        )
        capital = params.capital

        for day in days:
            try:
                day_result = self.step(security_id, day, params, capital)
            except SkipDay as skip:
                logger.warning(f"Skipping {day}: {skip.reason}")
                result.skipped_days.append(day)
                continue

            if day_result.trades:
                result.trades.extend(day_result.trades)
                logger.info(f"{day}: {len(day_result.trades)} trade(s) executed | P&L: "
                            f"{sum(t.pnl for t in day_result.trades):.2f}")
            else:
                logger.info(f"{day}: No trades executed")
            capital = day_result.capital_out

        result.final_capital = capital
        duration = time.time() - started
        logger.info(f"[BACKTEST END] {security_id} | Trades: {len(result.trades)} | Skipped: {len(result.skipped_days)} "
                    f"| Final Capital: {capital:.2f} | {duration:.2f}s")
        return result
