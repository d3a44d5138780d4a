from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import FileResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import db_session, get_db, init_db
from .logging_config import setup_logging
from .schemas import (
    ActionRequest,
    ActiveDayResponse,
    ActiveIssueRequest,
    ExportRequest,
    ExportResponse,
    NormalizedDayResponse,
    SettingsResponse,
    SettingsUpdateRequest,
)
from .services import (
    add_action,
    export_day_text,
    export_days,
    get_export,
    get_or_create_day,
    normalize_day,
    remove_action,
    set_active_issue,
    update_runtime_settings,
)
from .state import RuntimeState

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

init_db()

runtime_state = RuntimeState(settings)
with db_session() as session:
    try:
        runtime_state.load_from_db(session)
    except SQLAlchemyError:
        logger.exception("Could not load stored settings, using defaults")

app = FastAPI(title=settings.app_name)
app.state.runtime_state = runtime_state


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/days/{day}", response_model=ActiveDayResponse)
def read_day(day: dt.date, request: Request, db: Session = Depends(get_db)) -> ActiveDayResponse:
    state: RuntimeState = request.app.state.runtime_state
    return ActiveDayResponse.from_active_day(get_or_create_day(db, state, day))


@app.post("/days/{day}/actions", response_model=ActiveDayResponse, status_code=status.HTTP_201_CREATED)
def create_day_action(
    day: dt.date,
    payload: ActionRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ActiveDayResponse:
    state: RuntimeState = request.app.state.runtime_state
    active_day = add_action(db, state, day, payload.action.to_action())
    return ActiveDayResponse.from_active_day(active_day)


@app.delete("/days/{day}/actions", status_code=status.HTTP_204_NO_CONTENT)
def delete_day_action(day: dt.date, payload: ActionRequest, db: Session = Depends(get_db)) -> Response:
    remove_action(db, day, payload.action.to_action())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/days/{day}/active-issue", response_model=ActiveDayResponse)
def update_active_issue(
    day: dt.date,
    payload: ActiveIssueRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> ActiveDayResponse:
    state: RuntimeState = request.app.state.runtime_state
    issue = payload.issue.to_issue() if payload.issue else None
    return ActiveDayResponse.from_active_day(set_active_issue(db, state, day, issue))


@app.get("/days/{day}/normalized", response_model=NormalizedDayResponse)
def read_normalized_day(day: dt.date, request: Request, db: Session = Depends(get_db)) -> NormalizedDayResponse:
    state: RuntimeState = request.app.state.runtime_state
    return NormalizedDayResponse.from_normalized(normalize_day(db, state, day))


@app.get("/days/{day}/export", response_class=PlainTextResponse)
def read_day_export(day: dt.date, request: Request, db: Session = Depends(get_db)) -> PlainTextResponse:
    state: RuntimeState = request.app.state.runtime_state
    return PlainTextResponse(export_day_text(db, state, day))


@app.post("/exports", response_model=ExportResponse, status_code=status.HTTP_201_CREATED)
def create_export(payload: ExportRequest, request: Request, db: Session = Depends(get_db)) -> ExportResponse:
    state: RuntimeState = request.app.state.runtime_state
    return export_days(db, state, payload.type, payload.format, payload.range_start, payload.range_end)


@app.get("/exports/{export_id}")
def download_export(export_id: int, db: Session = Depends(get_db)) -> FileResponse:
    export = get_export(db, export_id)
    path = Path(export.path)
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export file missing")
    return FileResponse(path, media_type="text/plain", filename=path.name)


@app.get("/settings", response_model=SettingsResponse)
def read_settings(request: Request) -> SettingsResponse:
    state: RuntimeState = request.app.state.runtime_state
    return SettingsResponse(**state.snapshot())


@app.put("/settings", response_model=SettingsResponse)
def write_settings(payload: SettingsUpdateRequest, request: Request, db: Session = Depends(get_db)) -> SettingsResponse:
    state: RuntimeState = request.app.state.runtime_state
    snapshot = update_runtime_settings(db, state, payload.model_dump(exclude_unset=True))
    return SettingsResponse(**snapshot)
