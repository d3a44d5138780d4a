from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional, Union

from typing_extensions import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_serializer

from . import actions as act
from .normalizer import BreaksInfo, NormalizedDay
from .times import Time, TimeRange


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


def _canonical_time(value: Any) -> Any:
    if isinstance(value, Time):
        return str(value)
    if isinstance(value, str):
        return str(Time.parse(value))
    return value


class IssuePayload(BaseModel):
    ident: str
    description: Optional[str] = None
    default_action: Optional[str] = None

    @field_validator("ident")
    @classmethod
    def _validate_ident(cls, value: str) -> str:
        return act.JiraIssue.create(value).ident

    def to_issue(self) -> act.JiraIssue:
        return act.JiraIssue(ident=self.ident, description=self.description, default_action=self.default_action)

    @classmethod
    def from_issue(cls, issue: act.JiraIssue) -> "IssuePayload":
        return cls(ident=issue.ident, description=issue.description, default_action=issue.default_action)


class _ActionPayload(BaseModel):
    @field_validator("ts", "start", "end", mode="before", check_fields=False)
    @classmethod
    def _validate_time(cls, value: Any) -> Any:
        return _canonical_time(value)


class WorkPayload(_ActionPayload):
    kind: Literal["work"] = "work"
    start: str
    end: str
    issue: IssuePayload
    description: str

    def to_action(self) -> act.Work:
        return act.Work(
            start=Time.parse(self.start),
            end=Time.parse(self.end),
            issue=self.issue.to_issue(),
            description=self.description,
        )


class WorkEventPayload(_ActionPayload):
    kind: Literal["work_event"] = "work_event"
    ts: str
    issue: IssuePayload
    description: str

    def to_action(self) -> act.WorkEvent:
        return act.WorkEvent(ts=Time.parse(self.ts), issue=self.issue.to_issue(), description=self.description)


class WorkStartPayload(_ActionPayload):
    kind: Literal["work_start"] = "work_start"
    ts: str
    issue: IssuePayload
    description: str

    def to_action(self) -> act.WorkStart:
        return act.WorkStart(ts=Time.parse(self.ts), issue=self.issue.to_issue(), description=self.description)


class WorkEndPayload(_ActionPayload):
    kind: Literal["work_end"] = "work_end"
    ts: str
    issue: IssuePayload

    def to_action(self) -> act.WorkEnd:
        return act.WorkEnd(ts=Time.parse(self.ts), issue=self.issue.to_issue())


class DayStartPayload(_ActionPayload):
    kind: Literal["day_start"] = "day_start"
    ts: str
    location: str = act.DEFAULT_LOCATION

    def to_action(self) -> act.DayStart:
        return act.DayStart(ts=Time.parse(self.ts), location=self.location)


class DayEndPayload(_ActionPayload):
    kind: Literal["day_end"] = "day_end"
    ts: str

    def to_action(self) -> act.DayEnd:
        return act.DayEnd(ts=Time.parse(self.ts))


class DayOffPayload(_ActionPayload):
    kind: Literal["day_off"] = "day_off"

    def to_action(self) -> act.DayOff:
        return act.DayOff()


class ZAPayload(_ActionPayload):
    kind: Literal["za"] = "za"
    start: str
    end: str

    def to_action(self) -> act.ZA:
        return act.ZA(start=Time.parse(self.start), end=Time.parse(self.end))


class VacationPayload(_ActionPayload):
    kind: Literal["vacation"] = "vacation"

    def to_action(self) -> act.Vacation:
        return act.Vacation()


class SickPayload(_ActionPayload):
    kind: Literal["sick"] = "sick"

    def to_action(self) -> act.Sick:
        return act.Sick()


class DoctorPayload(_ActionPayload):
    kind: Literal["doctor"] = "doctor"
    start: str
    end: str

    def to_action(self) -> act.Doctor:
        return act.Doctor(start=Time.parse(self.start), end=Time.parse(self.end))


class CurrentWorkPayload(_ActionPayload):
    kind: Literal["current_work"] = "current_work"
    start: str
    issue: IssuePayload
    description: str

    def to_action(self) -> act.CurrentWork:
        return act.CurrentWork(start=Time.parse(self.start), issue=self.issue.to_issue(), description=self.description)


ActionPayload = Annotated[
    Union[
        WorkPayload,
        WorkEventPayload,
        WorkStartPayload,
        WorkEndPayload,
        DayStartPayload,
        DayEndPayload,
        DayOffPayload,
        ZAPayload,
        VacationPayload,
        SickPayload,
        DoctorPayload,
        CurrentWorkPayload,
    ],
    Field(discriminator="kind"),
]

action_payload_adapter: TypeAdapter = TypeAdapter(ActionPayload)


def payload_from_action(action: act.Action) -> Any:
    """Tagged document for an action, as sent over the API and stored in the database."""
    if isinstance(action, act.Work):
        return WorkPayload(
            start=action.start,
            end=action.end,
            issue=IssuePayload.from_issue(action.issue),
            description=action.description,
        )
    if isinstance(action, act.WorkEvent):
        return WorkEventPayload(ts=action.ts, issue=IssuePayload.from_issue(action.issue), description=action.description)
    if isinstance(action, act.WorkStart):
        return WorkStartPayload(ts=action.ts, issue=IssuePayload.from_issue(action.issue), description=action.description)
    if isinstance(action, act.WorkEnd):
        return WorkEndPayload(ts=action.ts, issue=IssuePayload.from_issue(action.issue))
    if isinstance(action, act.DayStart):
        return DayStartPayload(ts=action.ts, location=action.location)
    if isinstance(action, act.DayEnd):
        return DayEndPayload(ts=action.ts)
    if isinstance(action, act.DayOff):
        return DayOffPayload()
    if isinstance(action, act.ZA):
        return ZAPayload(start=action.start, end=action.end)
    if isinstance(action, act.Vacation):
        return VacationPayload()
    if isinstance(action, act.Sick):
        return SickPayload()
    if isinstance(action, act.Doctor):
        return DoctorPayload(start=action.start, end=action.end)
    if isinstance(action, act.CurrentWork):
        return CurrentWorkPayload(
            start=action.start, issue=IssuePayload.from_issue(action.issue), description=action.description
        )
    raise TypeError(f"Unknown action {action!r}")


def action_from_document(document: Any) -> act.Action:
    return action_payload_adapter.validate_python(document).to_action()


def document_from_action(action: act.Action) -> dict[str, Any]:
    return payload_from_action(action).model_dump(mode="json")


class ActionRequest(BaseModel):
    action: ActionPayload


class ActiveIssueRequest(BaseModel):
    issue: Optional[IssuePayload] = None


class ActiveDayResponse(BaseModel):
    day: dt.date
    main_location: str
    active_issue: Optional[IssuePayload]
    actions: List[ActionPayload]

    @classmethod
    def from_active_day(cls, active_day: act.ActiveDay) -> "ActiveDayResponse":
        return cls(
            day=active_day.day,
            main_location=active_day.main_location,
            active_issue=IssuePayload.from_issue(active_day.active_issue) if active_day.active_issue else None,
            actions=[payload_from_action(action) for action in active_day.actions],
        )


class TimeRangeResponse(BaseModel):
    start: str
    end: str

    @classmethod
    def from_range(cls, value: TimeRange) -> "TimeRangeResponse":
        return cls(start=str(value.min), end=str(value.max))


class BreaksInfoResponse(BaseModel):
    work_minutes: int
    break_minutes: int
    work_time: str
    break_time: str
    breaks: List[TimeRangeResponse]

    @classmethod
    def from_info(cls, info: BreaksInfo) -> "BreaksInfoResponse":
        return cls(
            work_minutes=info.work_time.minutes,
            break_minutes=info.break_time.minutes,
            work_time=str(info.work_time),
            break_time=str(info.break_time),
            breaks=[TimeRangeResponse.from_range(r) for r in info.breaks],
        )


class BookingResponse(BaseModel):
    start: str
    end: str
    issue: str
    description: str


class NormalizedDayResponse(BaseModel):
    date: dt.date
    entries: List[BookingResponse]
    orig_breaks: BreaksInfoResponse
    final_breaks: BreaksInfoResponse

    @classmethod
    def from_normalized(cls, normalized: NormalizedDay) -> "NormalizedDayResponse":
        return cls(
            date=normalized.date,
            entries=[
                BookingResponse(
                    start=str(entry.start),
                    end=str(entry.end),
                    issue=entry.issue.ident,
                    description=entry.description,
                )
                for entry in normalized.entries
            ],
            orig_breaks=BreaksInfoResponse.from_info(normalized.orig_breaks),
            final_breaks=BreaksInfoResponse.from_info(normalized.final_breaks),
        )


class ExportRequest(BaseModel):
    range_start: dt.date
    range_end: dt.date
    type: Literal["timesheet"] = "timesheet"
    format: Literal["txt"] = "txt"


class ExportResponse(BaseModel):
    id: int
    type: str
    format: str
    range_start: dt.date
    range_end: dt.date
    created_at: dt.datetime
    path: str
    checksum: str

    model_config = ConfigDict(from_attributes=True)

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "format": self.format,
            "range_start": self.range_start,
            "range_end": self.range_end,
            "created_at": _serialize_datetime(self.created_at),
            "path": self.path,
            "checksum": self.checksum,
        }


class SettingsResponse(BaseModel):
    environment: str
    resolution_minutes: int
    combine_bookings: bool
    add_break: bool
    min_breaks_minutes: int
    min_work_time_minutes: int
    default_break_start: str
    default_break_end: str


class SettingsUpdateRequest(BaseModel):
    resolution_minutes: Optional[int] = Field(default=None, ge=1, le=60)
    combine_bookings: Optional[bool] = None
    add_break: Optional[bool] = None
    min_breaks_minutes: Optional[int] = Field(default=None, ge=0)
    min_work_time_minutes: Optional[int] = Field(default=None, ge=0)
    default_break_start: Optional[str] = None
    default_break_end: Optional[str] = None

    @field_validator("default_break_start", "default_break_end", mode="before")
    @classmethod
    def _validate_break_time(cls, value: Any) -> Any:
        return _canonical_time(value) if value is not None else value
