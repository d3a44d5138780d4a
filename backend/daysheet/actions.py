from __future__ import annotations

import bisect
import datetime as dt
from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import InvalidIssueError
from .times import Time

DEFAULT_LOCATION = "office"

START_OF_DAY = Time(0, 0)
END_OF_DAY = Time(24, 0)


@dataclass(frozen=True)
class JiraIssue:
    ident: str
    description: Optional[str] = None
    default_action: Optional[str] = None

    @classmethod
    def create(cls, ident: str) -> "JiraIssue":
        """Validate a ``PROJECT-NUMBER`` issue key and return it upper-cased."""
        project, sep, number = ident.strip().partition("-")
        if not sep:
            raise InvalidIssueError(f"Invalid Jira issue number: {ident}")
        if not project or not (project.isascii() and project.isalpha()):
            raise InvalidIssueError(f"Invalid Jira issue number, project ident is not ascii: {project}")
        if not number or not (number.isascii() and number.isdigit()):
            raise InvalidIssueError(f"Invalid Jira issue number, issue number is not numeric: {number}")
        return cls(ident=f"{project}-{number}".upper())


SortKey = Tuple[Time, bool, Time, int]


class TimedAction:
    """Shared contract of all day events: a start, an optional end and a tie-break ordinal."""

    ORDINAL: ClassVar[int]

    def times(self) -> Tuple[Time, Optional[Time]]:
        raise NotImplementedError

    def sort_key(self) -> SortKey:
        start, end = self.times()
        # no end sorts before an end at the same start
        return (start, end is not None, end if end is not None else START_OF_DAY, self.ORDINAL)

    @property
    def start_time(self) -> Time:
        return self.times()[0]

    @property
    def end_time(self) -> Optional[Time]:
        return self.times()[1]


@dataclass(frozen=True)
class Work(TimedAction):
    ORDINAL: ClassVar[int] = 0
    start: Time
    end: Time
    issue: JiraIssue
    description: str

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.start, self.end


@dataclass(frozen=True)
class WorkEvent(TimedAction):
    ORDINAL: ClassVar[int] = 1
    ts: Time
    issue: JiraIssue
    description: str

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.ts, None


@dataclass(frozen=True)
class WorkStart(TimedAction):
    ORDINAL: ClassVar[int] = 2
    ts: Time
    issue: JiraIssue
    description: str

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.ts, None


@dataclass(frozen=True)
class WorkEnd(TimedAction):
    ORDINAL: ClassVar[int] = 3
    ts: Time
    issue: JiraIssue

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.ts, None


@dataclass(frozen=True)
class DayStart(TimedAction):
    ORDINAL: ClassVar[int] = 4
    ts: Time
    location: str = DEFAULT_LOCATION

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.ts, None


@dataclass(frozen=True)
class DayEnd(TimedAction):
    ORDINAL: ClassVar[int] = 5
    ts: Time

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.ts, None


@dataclass(frozen=True)
class DayOff(TimedAction):
    ORDINAL: ClassVar[int] = 6

    def times(self) -> Tuple[Time, Optional[Time]]:
        return START_OF_DAY, None


@dataclass(frozen=True)
class ZA(TimedAction):
    """Time compensation (Zeitausgleich) absence."""

    ORDINAL: ClassVar[int] = 7
    start: Time
    end: Time

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.start, self.end


@dataclass(frozen=True)
class Vacation(TimedAction):
    ORDINAL: ClassVar[int] = 8

    def times(self) -> Tuple[Time, Optional[Time]]:
        return START_OF_DAY, None


@dataclass(frozen=True)
class Sick(TimedAction):
    ORDINAL: ClassVar[int] = 9

    def times(self) -> Tuple[Time, Optional[Time]]:
        return START_OF_DAY, None


@dataclass(frozen=True)
class Doctor(TimedAction):
    ORDINAL: ClassVar[int] = 10
    start: Time
    end: Time

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.start, self.end


@dataclass(frozen=True)
class CurrentWork(TimedAction):
    ORDINAL: ClassVar[int] = 11
    start: Time
    issue: JiraIssue
    description: str

    def times(self) -> Tuple[Time, Optional[Time]]:
        return self.start, None


Action = Union[
    Work,
    WorkEvent,
    WorkStart,
    WorkEnd,
    DayStart,
    DayEnd,
    DayOff,
    ZA,
    Vacation,
    Sick,
    Doctor,
    CurrentWork,
]

ACTION_TYPES = (
    Work,
    WorkEvent,
    WorkStart,
    WorkEnd,
    DayStart,
    DayEnd,
    DayOff,
    ZA,
    Vacation,
    Sick,
    Doctor,
    CurrentWork,
)


class ActionSet:
    """Actions ordered by their sort key.

    Two actions with an equal sort key are the same entry: inserting the
    second one is a no-op, exactly like an ordered set keyed by the
    comparator.
    """

    def __init__(self, actions: Iterable[Action] = ()) -> None:
        self._keys: List[SortKey] = []
        self._actions: List[Action] = []
        for action in actions:
            self.add(action)

    def add(self, action: Action) -> bool:
        key = action.sort_key()
        index = bisect.bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            return False
        self._keys.insert(index, key)
        self._actions.insert(index, action)
        return True

    def _index_of(self, action: Action) -> Optional[int]:
        key = action.sort_key()
        index = bisect.bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            return index
        return None

    def discard(self, action: Action) -> bool:
        index = self._index_of(action)
        if index is None:
            return False
        del self._keys[index]
        del self._actions[index]
        return True

    def copy(self) -> "ActionSet":
        clone = ActionSet()
        clone._keys = list(self._keys)
        clone._actions = list(self._actions)
        return clone

    def __contains__(self, action: object) -> bool:
        if not isinstance(action, ACTION_TYPES):
            return False
        return self._index_of(action) is not None

    def __iter__(self) -> Iterator[Action]:
        return iter(list(self._actions))

    def __len__(self) -> int:
        return len(self._actions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActionSet):
            return NotImplemented
        return self._actions == other._actions

    def __repr__(self) -> str:
        return f"ActionSet({self._actions!r})"


@dataclass
class ActiveDay:
    """A calendar day as recorded: boundary markers, bookings and issue markers."""

    day: dt.date
    main_location: str = DEFAULT_LOCATION
    # issue started on a previous day and never ended
    active_issue: Optional[JiraIssue] = None
    actions: ActionSet = field(default_factory=ActionSet)

    def add_action(self, action: Action) -> bool:
        return self.actions.add(action)

    def remove_action(self, action: Action) -> bool:
        return self.actions.discard(action)

    def copy(self) -> "ActiveDay":
        return ActiveDay(
            day=self.day,
            main_location=self.main_location,
            active_issue=self.active_issue,
            actions=self.actions.copy(),
        )

    def current_issue(self, now: Time) -> Optional[JiraIssue]:
        """The issue being worked on at ``now``, replaying issue starts and ends."""
        current = self.active_issue
        for action in self.actions:
            if action.start_time > now:
                break
            if isinstance(action, WorkStart):
                current = JiraIssue(
                    ident=action.issue.ident,
                    description=action.issue.description,
                    default_action=action.issue.default_action or action.description,
                )
            elif isinstance(action, WorkEnd) and current is not None and current.ident == action.issue.ident:
                current = None
        return current

    def last_action_end(self, now: Time) -> Optional[Time]:
        ends = [action.end_time for action in self.actions if action.end_time is not None and action.end_time <= now]
        return max(ends) if ends else None
