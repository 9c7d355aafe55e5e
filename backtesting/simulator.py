"""
Single-day breakout simulation.

Per day the simulation walks WAITING_FOR_SIGNAL -> IN_POSITION -> CLOSED, one
candle at a time, in timestamp order:

- Entry: the first candle whose high exceeds the previous day's high opens a BUY
  at that high; failing that, a candle whose low breaks the previous day's low
  opens a SELL at that low. BUY is checked first on the same candle.
- Exit: from the entry candle onwards, the target is checked before the stop-loss.
  A position still open after the last candle is closed at that candle's close.
- Only one trade per day; once CLOSED the remaining candles are ignored.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence, Tuple

from backtesting.schema import DayResult, ExitReason, StrategyParameters, Trade, TradeType
from data.interfaces import Candle, DailySummary

logger = logging.getLogger("backtesting.simulator")


class SimState(Enum):
    WAITING_FOR_SIGNAL = "WAITING_FOR_SIGNAL"
    IN_POSITION = "IN_POSITION"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class OpenPosition:
    type: TradeType
    entry_price: float
    entry_time: datetime
    target: float
    stop_loss: float
    quantity: int


def _open_position(candle: Candle, levels: DailySummary, params: StrategyParameters,
                   capital: float) -> Optional[OpenPosition]:
    target_pct = params.target_percent / 100
    stop_pct = params.stop_loss_percent / 100

    if candle.high > levels.daily_high:
        side = TradeType.BUY
        entry_price = levels.daily_high  # Filled at the breakout level itself
        target = entry_price * (1 + target_pct)
        stop_loss = entry_price * (1 - stop_pct)
    elif candle.low < levels.daily_low:
        side = TradeType.SELL
        entry_price = levels.daily_low
        target = entry_price * (1 - target_pct)
        stop_loss = entry_price * (1 + stop_pct)
    else:
        return None

    quantity = max(0, math.floor(capital / entry_price))
    return OpenPosition(
        type=side,
        entry_price=entry_price,
        entry_time=candle.timestamp,
        target=target,
        stop_loss=stop_loss,
        quantity=quantity,
    )


def check_exit(candle: Candle, position: OpenPosition) -> Optional[Tuple[float, ExitReason]]:
    """Target wins over stop-loss when one candle touches both."""
    if position.type == TradeType.BUY:
        if candle.high >= position.target:
            return position.target, ExitReason.TARGET
        if candle.low <= position.stop_loss:
            return position.stop_loss, ExitReason.STOP_LOSS
    else:
        if candle.low <= position.target:
            return position.target, ExitReason.TARGET
        if candle.high >= position.stop_loss:
            return position.stop_loss, ExitReason.STOP_LOSS
    return None


def close_position(position: OpenPosition, security_id: str, exit_price: float,
                   exit_time: datetime, reason: ExitReason) -> Trade:
    if position.type == TradeType.BUY:
        move = exit_price - position.entry_price
    else:
        move = position.entry_price - exit_price

    pnl = move * position.quantity
    pnl_percent = move / position.entry_price * 100

    return Trade(
        security_id=security_id,
        date=exit_time.date(),
        type=position.type,
        entry_price=position.entry_price,
        entry_time=position.entry_time,
        exit_price=exit_price,
        exit_time=exit_time,
        exit_reason=reason,
        quantity=position.quantity,
        pnl=round(pnl, 2),
        pnl_percent=round(pnl_percent, 2),
    )


def simulate_day(candles: Sequence[Candle], levels: DailySummary,
                 params: StrategyParameters, capital_in: float) -> DayResult:
    """
    Runs the breakout rule over one day of minute candles (timestamp order).
    Returns zero or one trade and the capital after the day.
    """
    state = SimState.WAITING_FOR_SIGNAL
    position: Optional[OpenPosition] = None
    trade: Optional[Trade] = None

    for candle in candles:
        if state == SimState.WAITING_FOR_SIGNAL:
            position = _open_position(candle, levels, params, capital_in)
            if position is None:
                continue
            state = SimState.IN_POSITION
            logger.debug(f"+++ [OPEN] {position.type.value} {candle.security_id} | Qty: {position.quantity} "
                         f"@ {position.entry_price:.2f} | TP {position.target:.2f} | SL {position.stop_loss:.2f}")

        # Exit is evaluated on the entry candle too
        exit_check = check_exit(candle, position)
        if exit_check is not None:
            exit_price, reason = exit_check
            trade = close_position(position, candle.security_id, exit_price, candle.timestamp, reason)
            state = SimState.CLOSED
            break

    if state == SimState.IN_POSITION:
        last = candles[-1]
        trade = close_position(position, last.security_id, last.close, last.timestamp, ExitReason.END_OF_DAY)
        state = SimState.CLOSED

    if trade is None:
        return DayResult(trades=[], capital_out=capital_in)

    if trade.quantity == 0:
        logger.warning(f"[SIZE] {trade.security_id} {trade.date}: capital {capital_in:.2f} below entry "
                       f"price {trade.entry_price:.2f}, trade recorded with zero quantity")

    outcome = "(WIN)" if trade.pnl > 0 else "(LOSS)" if trade.pnl < 0 else "(FLAT)"
    logger.debug(f"--- [CLOSED] {trade.security_id} {outcome} | P&L: {trade.pnl:.2f} | Reason: {trade.exit_reason.value}")
    return DayResult(trades=[trade], capital_out=capital_in + trade.pnl)
