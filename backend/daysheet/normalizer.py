from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Tuple

from .actions import (
    Action,
    ActionSet,
    ActiveDay,
    DayEnd,
    DayStart,
    JiraIssue,
    Work,
    WorkEnd,
    WorkStart,
)
from .errors import RoundingInfeasibleError, TimeOverflowError, UnbookedGapError, UnmatchedBoundaryError
from .times import RoundMode, Time, TimeCheck, TimeRange, TimeRelative

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "work"


@dataclass
class We:
    """Single booking while a day is being normalized."""

    id: str
    description: str
    start: Time
    end: Time
    implicit: bool = False

    @property
    def range(self) -> TimeRange:
        return TimeRange(self.start, self.end)

    def duration(self) -> TimeRelative:
        return (self.end - self.start).abs()

    def same_issue(self, other: "We") -> bool:
        return self.id == other.id

    def sort_key(self) -> Tuple[Time, Time]:
        return self.start, self.end

    def to_work(self) -> Work:
        return Work(start=self.start, end=self.end, issue=JiraIssue(self.id), description=self.description)


@dataclass
class FilledRange:
    range: TimeRange
    work: List[We] = field(default_factory=list)


@dataclass(frozen=True)
class BreaksInfo:
    work_time: TimeRelative
    break_time: TimeRelative
    breaks: Tuple[TimeRange, ...] = ()


@dataclass(frozen=True)
class BreaksConfig:
    min_breaks_minutes: int = 45
    min_work_time_minutes: int = 6 * 60
    default_break: Tuple[Time, Time] = (Time(12, 0), Time(12, 45))


@dataclass
class NormalizedDay:
    date: dt.date
    entries: List[Work]
    orig_breaks: BreaksInfo
    final_breaks: BreaksInfo


def start_end_spans(actions: ActionSet) -> List[TimeRange]:
    """On duty spans delimited by day start and day end markers."""
    spans: List[TimeRange] = []
    current_start: Optional[Time] = None
    for action in actions:
        if isinstance(action, DayStart):
            # a second start is most likely a forgotten day end before a break
            if current_start is None:
                current_start = action.ts
        elif isinstance(action, DayEnd):
            if current_start is None:
                raise UnmatchedBoundaryError(f"Unmatched DayEnd: at {action.ts}")
            spans.append(TimeRange(current_start, action.ts))
            current_start = None
    if current_start is not None:
        raise UnmatchedBoundaryError(f"Missing DayEnd: started at {current_start}")
    return spans


def within_range(span: TimeRange, action: Action) -> bool:
    start, end = action.times()
    if isinstance(action, WorkStart):
        # an issue started before the span still attributes its time
        return span.check_time(start) in (TimeCheck.VALID, TimeCheck.TOO_EARLY)
    return span.contains(start) or (end is not None and span.contains(end))


def unbooked_times(target: TimeRange, work: Sequence[We]) -> List[TimeRange]:
    """Parts of ``target`` not covered by ``work``, which must be sorted by start."""
    result: List[TimeRange] = []
    remaining = target
    for booking in work:
        if remaining.is_empty():
            return result
        before, remaining = remaining.split(booking.range)
        if not before.is_empty():
            result.append(before)
    if not remaining.is_empty():
        result.append(remaining)
    return result


def fill_gap(target: TimeRange, active_issue: Optional[JiraIssue], work: List[We]) -> List[TimeRange]:
    """Book unbooked parts of ``target`` on the active issue.

    Returns the parts that could not be attributed; empty when everything
    is booked.
    """
    unbooked = unbooked_times(target, work)
    if not unbooked or active_issue is None:
        return unbooked
    description = active_issue.default_action or DEFAULT_DESCRIPTION
    for gap in unbooked:
        work.append(
            We(id=active_issue.ident, description=description, start=gap.min, end=gap.max, implicit=True)
        )
    work.sort(key=We.sort_key)
    return []


def fail_unbooked(unbooked: List[TimeRange]) -> None:
    if unbooked:
        raise UnbookedGapError(unbooked)


def fill_range(
    span: TimeRange,
    active_issue: Optional[JiraIssue],
    actions: ActionSet,
) -> Tuple[FilledRange, Optional[JiraIssue]]:
    """Attribute every minute of ``span``; consumed actions are removed from ``actions``.

    Returns the filled range and the issue still active at its end.
    """
    overlapping = [action for action in actions if within_range(span, action)]
    remaining = span
    work: List[We] = []

    for action in overlapping:
        actions.discard(action)
        if isinstance(action, WorkStart):
            fail_unbooked(fill_gap(span.with_max(action.ts), active_issue, work))
            # started before the span: the issue takes over from the span start, not from
            # its own ts, so no time before DayStart is ever booked
            remaining = span.with_min(max(action.ts, span.min))
            active_issue = JiraIssue(
                ident=action.issue.ident,
                description=action.issue.description,
                default_action=action.description,
            )
        elif isinstance(action, WorkEnd):
            fail_unbooked(fill_gap(span.with_max(action.ts), active_issue, work))
            remaining = span.with_min(action.ts)
            if active_issue is not None and active_issue.ident == action.issue.ident:
                active_issue = None
        elif isinstance(action, Work):
            work.append(
                We(id=action.issue.ident, description=action.description, start=action.start, end=action.end)
            )

    fail_unbooked(fill_gap(remaining, active_issue, work))

    if work:
        return FilledRange(range=TimeRange(work[0].start, work[-1].end), work=work), active_issue
    return FilledRange(range=span, work=work), active_issue


def day_splits(actions: ActionSet, active_issue: Optional[JiraIssue]) -> Tuple[List[FilledRange], Optional[JiraIssue]]:
    parts: List[FilledRange] = []
    for span in start_end_spans(actions):
        filled, active_issue = fill_range(span, active_issue, actions)
        logger.debug("Filled span %s with %d bookings", span, len(filled.work))
        parts.append(filled)
    return parts, active_issue


def handle_free_standing(actions: ActionSet) -> List[FilledRange]:
    """Explicit bookings outside of every on duty span, one range each."""
    return [
        FilledRange(
            range=TimeRange(action.start, action.end),
            work=[We(id=action.issue.ident, description=action.description, start=action.start, end=action.end)],
        )
        for action in actions
        if isinstance(action, Work)
    ]


def compact_bookings(work: List[We]) -> None:
    """Chain bookings back to back, keeping the first one and every duration."""
    if not work:
        return
    next_start = work[0].end
    for booking in work[1:]:
        duration = booking.duration()
        booking.start = next_start
        booking.end = next_start + duration
        next_start = booking.end


def move_to_different_start(work: List[We], new_start: Time) -> None:
    if not work:
        return
    offset = new_start - work[0].start
    for booking in work:
        start = booking.start.try_add_relative(offset)
        end = booking.end.try_add_relative(offset)
        if start is None or end is None:
            raise TimeOverflowError(f"Moving {booking.id} by {offset} leaves the day")
        booking.start = start
        booking.end = end


def round_bookings(filled: FilledRange, resolution: int) -> None:
    """Round every booking duration to ``resolution`` minutes keeping the total error bounded."""
    work = filled.work
    if not work:
        return

    rounded_start = work[0].start.round(RoundMode.NORMAL, resolution)
    total_duration = 0
    total_rounded = 0
    unit = TimeRelative(resolution)
    for booking in work:
        duration = booking.duration()
        total_duration += duration.minutes
        rounded = duration.round(RoundMode.NORMAL, resolution)
        if rounded.minutes == 0:
            rounded = unit
        total_rounded += rounded.minutes
        booking.end = booking.start + rounded

    round_error = total_rounded - total_duration

    for booking in reversed(work):
        if abs(round_error) < resolution:
            break
        while abs(round_error) >= resolution and booking.duration().minutes > resolution:
            correction = -resolution if round_error > 0 else resolution
            round_error += correction
            booking.end = booking.end + TimeRelative(correction)

    if abs(round_error) > resolution:
        raise RoundingInfeasibleError(round_error)

    compact_bookings(work)
    move_to_different_start(work, rounded_start)
    filled.range = filled.range.with_min(rounded_start).with_max(work[-1].end)


def combine_bookings(work: List[We]) -> None:
    """Fold every booking into the first earlier booking of the same issue."""
    original = list(work)
    work.clear()
    for booking in original:
        existing = next((w for w in work if w.same_issue(booking)), None)
        if existing is not None:
            existing.end = existing.end + booking.duration()
        else:
            work.append(booking)
    work.sort(key=We.sort_key)
    compact_bookings(work)


def calc_breaks(items: Sequence) -> BreaksInfo:
    """Work and break totals of ranged items in chronological order."""
    if not items:
        return BreaksInfo(work_time=TimeRelative.ZERO, break_time=TimeRelative.ZERO)

    first = items[0].range
    work_time = first.duration()
    break_time = TimeRelative.ZERO
    breaks: List[TimeRange] = []
    previous_end = first.max
    for item in items[1:]:
        current = item.range
        gap = TimeRange(previous_end, current.min)
        work_time += current.duration()
        break_time += gap.duration()
        previous_end = current.max
        if not gap.is_empty():
            breaks.append(gap)
    return BreaksInfo(work_time=work_time, break_time=break_time, breaks=tuple(breaks))


def try_insert_break(config: BreaksConfig, entries: List[We]) -> None:
    """Punch the configured break out of an automatically filled booking."""
    break_bounds = TimeRange(*config.default_break)
    index = next(
        (
            i
            for i, entry in enumerate(entries)
            if entry.implicit
            and entry.duration().minutes >= config.min_breaks_minutes
            and break_bounds.overlaps(entry.range)
        ),
        None,
    )
    if index is None:
        return

    to_split = entries.pop(index)
    original = to_split.range
    if original.min <= break_bounds.min and original.max >= break_bounds.max:
        parts = list(original.split(break_bounds))
    elif break_bounds.min < original.min:
        start = original.min.try_add_relative(break_bounds.duration()) or original.max
        parts = [original.with_min(start)]
    else:
        end = original.max.try_add_relative(-break_bounds.duration()) or original.min
        parts = [original.with_max(end)]

    replacements = [replace(to_split, start=part.min, end=part.max) for part in parts if not part.is_empty()]
    entries[index:index] = replacements
    logger.debug("Inserted break %s into booking %s", break_bounds, to_split.id)


def flatten_ranges(ranges: Sequence[FilledRange]) -> List[We]:
    return [booking for filled in ranges for booking in filled.work]


@dataclass
class Normalizer:
    resolution: int = 15
    breaks_config: BreaksConfig = field(default_factory=BreaksConfig)
    combine_bookings: bool = True
    add_break: bool = True

    def __post_init__(self) -> None:
        if int(self.resolution) <= 0:
            raise ValueError("resolution must be a positive number of minutes")

    def create_normalized(self, current_day: ActiveDay) -> NormalizedDay:
        working_day = current_day.copy()
        actions = working_day.actions

        splits, _ = day_splits(actions, working_day.active_issue)
        splits.extend(handle_free_standing(actions))
        # free standing work may lie before, between or after the spans
        splits.sort(key=lambda filled: filled.range.min)

        orig_breaks = calc_breaks(splits)

        for filled in splits:
            round_bookings(filled, self.resolution)
            if self.combine_bookings:
                combine_bookings(filled.work)

        entries = flatten_ranges(splits)

        # only automatic bookings around noon: punch a hole for the break
        if (
            orig_breaks.break_time == TimeRelative.ZERO
            and self.add_break
            and self.breaks_config.min_breaks_minutes > 0
            and orig_breaks.work_time.minutes >= self.breaks_config.min_work_time_minutes
        ):
            try_insert_break(self.breaks_config, entries)

        final_breaks = calc_breaks(entries)
        logger.debug(
            "Normalized %s: %d entries, work %s, breaks %s",
            current_day.day,
            len(entries),
            final_breaks.work_time,
            final_breaks.break_time,
        )

        return NormalizedDay(
            date=current_day.day,
            entries=[booking.to_work() for booking in entries],
            orig_breaks=orig_breaks,
            final_breaks=final_breaks,
        )
