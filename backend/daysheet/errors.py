from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .times import TimeRange


class NormalizationError(Exception):
    """Base class for every failure while turning a day into a timesheet."""


class UnmatchedBoundaryError(NormalizationError):
    pass


class UnbookedGapError(NormalizationError):
    def __init__(self, ranges: Sequence["TimeRange"]) -> None:
        self.ranges = list(ranges)
        joined = ", ".join(str(r) for r in self.ranges)
        super().__init__(f"Unbooked times: {joined}")


class TimeOverflowError(NormalizationError):
    pass


class RoundingInfeasibleError(NormalizationError):
    def __init__(self, remaining_minutes: int) -> None:
        self.remaining_minutes = remaining_minutes
        super().__init__(f"Failed to round: remaining error is {remaining_minutes} minutes")


class InvalidIssueError(ValueError):
    pass
