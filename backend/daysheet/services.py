from __future__ import annotations

import datetime as dt
import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .actions import (
    DEFAULT_LOCATION,
    END_OF_DAY,
    ZA,
    Action,
    ActionSet,
    ActiveDay,
    DayStart,
    Doctor,
    JiraIssue,
    Work,
)
from .config import settings
from .errors import NormalizationError
from .exporter import export_day, export_days as render_days
from .models import ExportRecord, StoredDay
from .normalizer import NormalizedDay
from .schemas import IssuePayload, action_from_document, document_from_action
from .state import RuntimeState

logger = logging.getLogger(__name__)


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _encode_issue(issue: Optional[JiraIssue]) -> Optional[Dict[str, Any]]:
    if issue is None:
        return None
    return IssuePayload.from_issue(issue).model_dump(mode="json")


def _decode_issue(document: Optional[Dict[str, Any]]) -> Optional[JiraIssue]:
    if not document:
        return None
    return IssuePayload.model_validate(document).to_issue()


def _to_active_day(record: StoredDay) -> ActiveDay:
    return ActiveDay(
        day=record.day,
        main_location=record.main_location or DEFAULT_LOCATION,
        active_issue=_decode_issue(record.active_issue),
        actions=ActionSet(action_from_document(document) for document in record.actions or []),
    )


def _get_record(db: Session, day: dt.date) -> Optional[StoredDay]:
    return db.query(StoredDay).filter(StoredDay.day == day).one_or_none()


def load_day(db: Session, day: dt.date) -> Optional[ActiveDay]:
    record = _get_record(db, day)
    return _to_active_day(record) if record else None


def new_day(db: Session, state: RuntimeState, day: dt.date) -> ActiveDay:
    """Start a day, inheriting location and open issue from the last recorded day."""
    earliest = day - dt.timedelta(days=state.carry_over_days)
    previous = (
        db.query(StoredDay)
        .filter(StoredDay.day < day, StoredDay.day >= earliest)
        .order_by(StoredDay.day.desc())
        .first()
    )
    if previous is None:
        return ActiveDay(day=day)
    previous_day = _to_active_day(previous)
    return ActiveDay(
        day=day,
        main_location=previous_day.main_location,
        active_issue=previous_day.current_issue(END_OF_DAY),
    )


def get_or_create_day(db: Session, state: RuntimeState, day: dt.date) -> ActiveDay:
    return load_day(db, day) or new_day(db, state, day)


def store_day(db: Session, active_day: ActiveDay) -> StoredDay:
    record = _get_record(db, active_day.day)
    if record is None:
        record = StoredDay(day=active_day.day)
    record.main_location = active_day.main_location
    record.active_issue = _encode_issue(active_day.active_issue)
    record.actions = [document_from_action(action) for action in active_day.actions]
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("Stored %s with %d actions", active_day.day, len(active_day.actions))
    return record


def _require_day(db: Session, day: dt.date) -> ActiveDay:
    active_day = load_day(db, day)
    if active_day is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Day not found")
    return active_day


def _validate_action(action: Action) -> None:
    if isinstance(action, (Work, ZA, Doctor)) and action.end <= action.start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End time must be after start time")


def add_action(db: Session, state: RuntimeState, day: dt.date, action: Action) -> ActiveDay:
    _validate_action(action)
    active_day = get_or_create_day(db, state, day)
    if not active_day.add_action(action):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An entry at {action.start_time} already exists",
        )
    if isinstance(action, DayStart):
        active_day.main_location = action.location
    store_day(db, active_day)
    return active_day


def remove_action(db: Session, day: dt.date, action: Action) -> ActiveDay:
    active_day = _require_day(db, day)
    if not active_day.remove_action(action):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
    store_day(db, active_day)
    return active_day


def set_active_issue(db: Session, state: RuntimeState, day: dt.date, issue: Optional[JiraIssue]) -> ActiveDay:
    active_day = get_or_create_day(db, state, day)
    active_day.active_issue = issue
    store_day(db, active_day)
    return active_day


def _normalize(state: RuntimeState, active_day: ActiveDay) -> NormalizedDay:
    try:
        return state.normalizer().create_normalized(active_day)
    except NormalizationError as exc:
        logger.warning("Cannot normalize %s: %s", active_day.day, exc)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{active_day.day}: {exc}",
        ) from exc


def normalize_day(db: Session, state: RuntimeState, day: dt.date) -> NormalizedDay:
    return _normalize(state, _require_day(db, day))


def export_day_text(db: Session, state: RuntimeState, day: dt.date) -> str:
    return export_day(normalize_day(db, state, day))


def _checksum_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


def export_days(
    db: Session,
    state: RuntimeState,
    export_type: str,
    export_format: str,
    start_date: dt.date,
    end_date: dt.date,
) -> ExportRecord:
    if export_type != "timesheet":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported export type")
    if export_format != "txt":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported export format")
    if end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must be after start date")

    records = (
        db.query(StoredDay)
        .filter(StoredDay.day >= start_date, StoredDay.day <= end_date)
        .order_by(StoredDay.day.asc())
        .all()
    )
    normalized: List[NormalizedDay] = [_normalize(state, _to_active_day(record)) for record in records]

    filename = f"export_{export_type}_{start_date}_{end_date}_{int(_now().timestamp())}.{export_format}"
    path = settings.export_dir / filename
    path.write_text(render_days(normalized), encoding="utf-8")

    export = ExportRecord(
        type=export_type,
        format=export_format,
        range_start=start_date,
        range_end=end_date,
        path=str(path),
        checksum=_checksum_file(path),
    )
    db.add(export)
    db.commit()
    db.refresh(export)
    logger.info("Exported %d days to %s", len(normalized), path)
    return export


def get_export(db: Session, export_id: int) -> ExportRecord:
    export = db.get(ExportRecord, export_id)
    if not export:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export not found")
    return export


def update_runtime_settings(db: Session, state: RuntimeState, updates: dict) -> dict:
    state.apply(updates)
    state.persist(db, updates)
    return state.snapshot()
