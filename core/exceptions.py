"""
Error taxonomy shared by the data layer and the backtesting engine.

Hard errors (ValidationError, DataSourceError...) abort a run.
SkipDay and its subclasses are soft: the engine records the day as skipped
and moves on.
"""

from datetime import date
from typing import Optional


class BacktestError(Exception):
    """Root of every error raised by this project."""


class ValidationError(BacktestError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class EmptyInputError(BacktestError):
    pass


class NoTradingDaysError(BacktestError):
    pass


class DataSourceError(BacktestError):
    """A storage or data-feed collaborator failed."""

    def __init__(self, message: str, day: Optional[date] = None):
        if day is not None:
            message = f"{message} (day={day.isoformat()})"
        super().__init__(message)
        self.day = day


class SkipDay(BacktestError):
    def __init__(self, day: date, reason: str):
        super().__init__(f"Skipping {day.isoformat()}: {reason}")
        self.day = day
        self.reason = reason


class NoPriorLevelsError(SkipDay):
    def __init__(self, day: date):
        super().__init__(day, "no previous day data available")


class NoCandlesError(SkipDay):
    def __init__(self, day: date):
        super().__init__(day, "no candles found")
