from __future__ import annotations

from typing import Iterable

from .normalizer import NormalizedDay


def export_day(day: NormalizedDay) -> str:
    """Render a normalized day in the pipe delimited timesheet import format."""
    lines = [
        f"{day.date.isoformat()}|{entry.start}|{entry.end}|{entry.issue.ident}|{entry.description}\n"
        for entry in day.entries
    ]
    return "".join(lines)


def export_days(days: Iterable[NormalizedDay]) -> str:
    return "".join(export_day(day) for day in days)
