"""Sources of the current time, real or fixed."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

_GMT = timezone(timedelta(0), "GMT")


class TimeSource(ABC):
    """Something that tells the time."""

    @abstractmethod
    def now(self) -> datetime:
        """The current time."""

    @abstractmethod
    def since(self, moment: datetime) -> timedelta:
        """Time elapsed since ``moment``."""


class DefaultTimeSource(TimeSource):
    """The system clock, reported in the GMT zone that S3 uses."""

    def now(self) -> datetime:
        return datetime.now(_GMT)

    def since(self, moment: datetime) -> timedelta:
        return datetime.now(_GMT) - moment


class FixedTimeSource(TimeSource):
    """A clock that stands still until advanced."""

    def __init__(self, at: datetime):
        self._time = at

    def now(self) -> datetime:
        return self._time

    def since(self, moment: datetime) -> timedelta:
        return self._time - moment

    def advance(self, by: timedelta) -> None:
        self._time = self._time + by