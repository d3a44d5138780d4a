from __future__ import annotations

import datetime as dt

from daysheet.actions import JiraIssue, Work
from daysheet.exporter import export_day, export_days
from daysheet.normalizer import BreaksInfo, NormalizedDay
from daysheet.times import Time, TimeRange, TimeRelative


def work(start: int, end: int, issue: str, description: str) -> Work:
    return Work(
        start=Time.hm(start // 100, start % 100),
        end=Time.hm(end // 100, end % 100),
        issue=JiraIssue.create(issue),
        description=description,
    )


def normalized(date: dt.date, entries) -> NormalizedDay:
    breaks = BreaksInfo(
        work_time=TimeRelative(300),
        break_time=TimeRelative(45),
        breaks=(TimeRange(Time(12, 0), Time(12, 45)),),
    )
    return NormalizedDay(date=date, entries=entries, orig_breaks=breaks, final_breaks=breaks)


def test_export():
    day = normalized(
        dt.date(2022, 1, 6),
        [
            work(845, 900, "I-15", "some meeting+org"),
            work(900, 1200, "ISSUE-12345", "other"),
            work(1245, 1700, "A-51", "the afternoon"),
        ],
    )

    assert export_day(day) == (
        "2022-01-06|08:45|09:00|I-15|some meeting+org\n"
        "2022-01-06|09:00|12:00|ISSUE-12345|other\n"
        "2022-01-06|12:45|17:00|A-51|the afternoon\n"
    )


def test_export_empty_day():
    assert export_day(normalized(dt.date(2022, 1, 7), [])) == ""


def test_export_several_days_in_order():
    first = normalized(dt.date(2022, 1, 6), [work(800, 1200, "A-1", "dev")])
    second = normalized(dt.date(2022, 1, 7), [work(900, 1000, "B-2", "review")])

    assert export_days([first, second]) == (
        "2022-01-06|08:00|12:00|A-1|dev\n"
        "2022-01-07|09:00|10:00|B-2|review\n"
    )
