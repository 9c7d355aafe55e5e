import pandas as pd
from typing import Sequence
from backtesting.schema import PerformanceMetrics, Trade


class MetricsCalculator:
    @staticmethod
    def max_drawdown(trades: Sequence[Trade]) -> float:
        """
        Largest drop of cumulative P&L from its running peak, walking the ledger
        in order. Indexed by trade count, not time: skipped days do not appear.
        The peak starts at 0, so a losing first trade is already a drawdown.
        """
        if not trades:
            return 0.0
        running = pd.Series([t.pnl for t in trades], dtype=float).cumsum()
        peak = running.cummax().clip(lower=0.0)
        return float((peak - running).max())

    @staticmethod
    def calculate_metrics(trades: Sequence[Trade]) -> PerformanceMetrics:
        if not trades:
            return PerformanceMetrics()

        pnls = [t.pnl for t in trades]
        wins = [p for p in pnls if p > 0]
        losses = [p for p in pnls if p < 0]

        total_pnl = sum(pnls)
        win_rate = len(wins) / len(pnls) * 100

        # max/min keep the first trade on ties
        best = max(trades, key=lambda t: t.pnl)
        worst = min(trades, key=lambda t: t.pnl)

        return PerformanceMetrics(
            total_trades=len(trades),
            winning_trades=len(wins),
            losing_trades=len(losses),
            win_rate=round(win_rate, 2),
            total_pnl=round(total_pnl, 2),
            average_pnl=round(total_pnl / len(trades), 2),
            best_trade=best,
            worst_trade=worst,
            max_drawdown=round(MetricsCalculator.max_drawdown(trades), 2),
        )
