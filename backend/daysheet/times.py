from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

from .errors import TimeOverflowError

MINUTES_PER_DAY = 24 * 60

_COLON_FORMAT = re.compile(r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})$")
_DIGITS_FORMAT = re.compile(r"^\d{1,4}$")


class RoundMode(enum.Enum):
    NONE = "none"
    NORMAL = "normal"
    UP = "up"
    DOWN = "down"
    SAT_UP = "sat_up"
    SAT_DOWN = "sat_down"

    @property
    def is_sat(self) -> bool:
        return self in (RoundMode.SAT_UP, RoundMode.SAT_DOWN)


def _round_minutes(minutes: int, mode: RoundMode, resolution: int) -> int:
    """Round a minute count to a multiple of the resolution (NONE leaves it as is)."""
    if resolution <= 0:
        raise ValueError("resolution must be positive")
    remainder = minutes % resolution
    lower = minutes - remainder
    if mode is RoundMode.NONE:
        return minutes
    if mode is RoundMode.NORMAL:
        return lower if remainder <= resolution // 2 else lower + resolution
    if mode in (RoundMode.DOWN, RoundMode.SAT_DOWN):
        return lower
    return minutes if remainder == 0 else lower + resolution


@dataclass(frozen=True, order=True)
class Time:
    """Minute granular wall clock time between 00:00 and 24:00."""

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        valid = (0 <= self.hour < 24 and 0 <= self.minute < 60) or (self.hour == 24 and self.minute == 0)
        if not valid:
            raise ValueError(f"Invalid time {self.hour}:{self.minute:02}")

    @classmethod
    def hm(cls, hour: int, minute: int = 0) -> "Time":
        if minute == 60:
            return cls(hour + 1, 0)
        return cls(hour, minute)

    @classmethod
    def from_minutes(cls, minutes: int) -> "Time":
        return cls(minutes // 60, minutes % 60)

    @classmethod
    def parse(cls, text: str) -> "Time":
        value = text.strip()
        match = _COLON_FORMAT.match(value)
        if match:
            return cls(int(match.group("hour")), int(match.group("minute")))
        if _DIGITS_FORMAT.match(value):
            number = int(value)
            if len(value) <= 2:
                return cls(number, 0)
            return cls(number // 100, number % 100)
        raise ValueError(f"Cannot parse time '{text}'")

    @property
    def total_minutes(self) -> int:
        return self.hour * 60 + self.minute

    def try_add_relative(self, offset: "TimeRelative") -> Optional["Time"]:
        minutes = self.total_minutes + offset.minutes
        if minutes < 0 or minutes > MINUTES_PER_DAY:
            return None
        return Time.from_minutes(minutes)

    def round(self, mode: RoundMode, resolution: int) -> "Time":
        minute = _round_minutes(self.minute, mode, resolution)
        return Time.from_minutes(min(self.hour * 60 + minute, MINUTES_PER_DAY))

    def __add__(self, offset: "TimeRelative") -> "Time":
        if not isinstance(offset, TimeRelative):
            return NotImplemented
        result = self.try_add_relative(offset)
        if result is None:
            raise TimeOverflowError(f"{self} {offset} is outside of the day")
        return result

    def __sub__(self, other: "Time") -> "TimeRelative":
        if not isinstance(other, Time):
            return NotImplemented
        return TimeRelative(self.total_minutes - other.total_minutes)

    def __str__(self) -> str:
        return f"{self.hour:02}:{self.minute:02}"


@dataclass(frozen=True, order=True)
class TimeRelative:
    """Signed duration in minutes, bounded by a full day in either direction."""

    ZERO: ClassVar["TimeRelative"]

    minutes: int = 0

    def __post_init__(self) -> None:
        if abs(self.minutes) > MINUTES_PER_DAY:
            raise ValueError(f"Relative time out of range: {self.minutes} minutes")

    @classmethod
    def new(cls, negative: bool, hours: int, minutes: int) -> Optional["TimeRelative"]:
        if not (hours == 24 and minutes == 0 or 0 <= hours < 24 and 0 <= minutes < 60):
            return None
        total = hours * 60 + minutes
        return cls(-total if negative else total)

    @classmethod
    def from_minutes(cls, minutes: int) -> Optional["TimeRelative"]:
        if abs(minutes) > MINUTES_PER_DAY:
            return None
        return cls(minutes)

    @classmethod
    def from_minutes_sat(cls, minutes: int) -> "TimeRelative":
        return cls(max(-MINUTES_PER_DAY, min(MINUTES_PER_DAY, minutes)))

    def is_negative(self) -> bool:
        return self.minutes < 0

    def abs(self) -> "TimeRelative":
        return TimeRelative(abs(self.minutes))

    def round(self, mode: RoundMode, resolution: int) -> "TimeRelative":
        # durations round on their total length, not on the minute of the hour
        rounded = min(_round_minutes(abs(self.minutes), mode, resolution), MINUTES_PER_DAY)
        return TimeRelative(-rounded if self.is_negative() else rounded)

    def __neg__(self) -> "TimeRelative":
        return TimeRelative(-self.minutes)

    def __add__(self, other: "TimeRelative") -> "TimeRelative":
        if not isinstance(other, TimeRelative):
            return NotImplemented
        return TimeRelative.from_minutes_sat(self.minutes + other.minutes)

    def __sub__(self, other: "TimeRelative") -> "TimeRelative":
        if not isinstance(other, TimeRelative):
            return NotImplemented
        return TimeRelative.from_minutes_sat(self.minutes - other.minutes)

    def __str__(self) -> str:
        if self.minutes == 0:
            return "0"
        hours, minutes = divmod(abs(self.minutes), 60)
        text = "-" if self.minutes < 0 else "+"
        if hours:
            text += f"{hours}h"
        if minutes:
            text += f"{minutes}m"
        return text


TimeRelative.ZERO = TimeRelative(0)


class TimeCheck(enum.Enum):
    VALID = "valid"
    TOO_EARLY = "too_early"
    TOO_LATE = "too_late"


@dataclass(frozen=True)
class TimeRange:
    """Closed range of wall clock times; empty when ``min >= max``."""

    min: Time
    max: Time

    def __init__(self, start: Time, end: Time) -> None:
        # an inverted range collapses onto its maximum
        object.__setattr__(self, "min", end if start > end else start)
        object.__setattr__(self, "max", end)

    def is_empty(self) -> bool:
        return self.min >= self.max

    def duration(self) -> TimeRelative:
        return self.max - self.min

    def contains(self, t: Time) -> bool:
        return self.min <= t <= self.max

    def check_time(self, t: Time) -> TimeCheck:
        if t < self.min:
            return TimeCheck.TOO_EARLY
        if t > self.max:
            return TimeCheck.TOO_LATE
        return TimeCheck.VALID

    def normalize(self, t: Time, mode: RoundMode, resolution: int) -> Optional[Time]:
        check = self.check_time(t)
        if check is TimeCheck.VALID:
            return t.round(mode, resolution)
        if not mode.is_sat:
            return None
        if check is TimeCheck.TOO_EARLY:
            return self.min.round(RoundMode.UP, resolution)
        return self.max.round(RoundMode.DOWN, resolution)

    def overlaps(self, other: "TimeRange") -> bool:
        return self.min <= other.max and other.min <= self.max

    def with_min(self, new_min: Time) -> "TimeRange":
        return TimeRange(new_min, self.max)

    def with_max(self, new_max: Time) -> "TimeRange":
        return TimeRange(self.min, new_max)

    def extend(self, other: "TimeRange") -> "TimeRange":
        return TimeRange(min(self.min, other.min), max(self.max, other.max))

    def split_at(self, t: Time) -> Tuple["TimeRange", "TimeRange"]:
        bounded = max(self.min, min(self.max, t))
        return TimeRange(self.min, bounded), TimeRange(bounded, self.max)

    def split(self, exclude: "TimeRange") -> Tuple["TimeRange", "TimeRange"]:
        """Parts of this range before and after ``exclude``, each possibly empty."""
        before = TimeRange(self.min, min(self.max, exclude.min))
        after = TimeRange(max(self.min, exclude.max), self.max)
        return before, after

    def __str__(self) -> str:
        return f"{self.min}-{self.max}"
