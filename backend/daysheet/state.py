from __future__ import annotations

import json
from threading import RLock
from typing import Any, Dict

from sqlalchemy.orm import Session

from .config import Settings
from .models import AppSetting
from .normalizer import BreaksConfig, Normalizer
from .times import Time

INT_KEYS = {"resolution_minutes", "min_breaks_minutes", "min_work_time_minutes"}
BOOL_KEYS = {"combine_bookings", "add_break"}
TIME_KEYS = {"default_break_start", "default_break_end"}
PERSISTED_KEYS = INT_KEYS | BOOL_KEYS | TIME_KEYS


class RuntimeState:
    """Normalizer settings that can be adjusted while the service runs."""

    def __init__(self, base_settings: Settings):
        self._lock = RLock()
        self.environment = base_settings.environment
        self.resolution_minutes: int = max(1, int(base_settings.resolution_minutes))
        self.combine_bookings: bool = base_settings.combine_bookings
        self.add_break: bool = base_settings.add_break
        self.min_breaks_minutes: int = base_settings.min_breaks_minutes
        self.min_work_time_minutes: int = base_settings.min_work_time_minutes
        self.default_break_start: Time = Time.parse(base_settings.default_break_start)
        self.default_break_end: Time = Time.parse(base_settings.default_break_end)
        self.carry_over_days: int = base_settings.carry_over_days

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "environment": self.environment,
                "resolution_minutes": self.resolution_minutes,
                "combine_bookings": self.combine_bookings,
                "add_break": self.add_break,
                "min_breaks_minutes": self.min_breaks_minutes,
                "min_work_time_minutes": self.min_work_time_minutes,
                "default_break_start": str(self.default_break_start),
                "default_break_end": str(self.default_break_end),
            }

    def apply(self, updates: Dict[str, Any]) -> None:
        with self._lock:
            if updates.get("resolution_minutes") is not None:
                self.resolution_minutes = max(1, int(updates["resolution_minutes"]))
            if updates.get("combine_bookings") is not None:
                self.combine_bookings = bool(updates["combine_bookings"])
            if updates.get("add_break") is not None:
                self.add_break = bool(updates["add_break"])
            if updates.get("min_breaks_minutes") is not None:
                self.min_breaks_minutes = max(0, int(updates["min_breaks_minutes"]))
            if updates.get("min_work_time_minutes") is not None:
                self.min_work_time_minutes = max(0, int(updates["min_work_time_minutes"]))
            if updates.get("default_break_start"):
                self.default_break_start = Time.parse(str(updates["default_break_start"]))
            if updates.get("default_break_end"):
                self.default_break_end = Time.parse(str(updates["default_break_end"]))

    def breaks_config(self) -> BreaksConfig:
        with self._lock:
            return BreaksConfig(
                min_breaks_minutes=self.min_breaks_minutes,
                min_work_time_minutes=self.min_work_time_minutes,
                default_break=(self.default_break_start, self.default_break_end),
            )

    def normalizer(self) -> Normalizer:
        with self._lock:
            return Normalizer(
                resolution=self.resolution_minutes,
                breaks_config=self.breaks_config(),
                combine_bookings=self.combine_bookings,
                add_break=self.add_break,
            )

    def load_from_db(self, session: Session) -> None:
        records = session.query(AppSetting).filter(AppSetting.key.in_(PERSISTED_KEYS)).all()
        if not records:
            return
        decoded: Dict[str, Any] = {}
        for record in records:
            if record.key in INT_KEYS:
                decoded[record.key] = int(record.value) if record.value else None
            elif record.key in BOOL_KEYS:
                try:
                    decoded[record.key] = bool(json.loads(record.value))
                except json.JSONDecodeError:
                    decoded[record.key] = None
            elif record.key in TIME_KEYS:
                decoded[record.key] = record.value or None
        if decoded:
            self.apply(decoded)

    def persist(self, session: Session, updates: Dict[str, Any]) -> None:
        for key, value in updates.items():
            if key not in PERSISTED_KEYS or value is None:
                continue
            if key in BOOL_KEYS:
                value = json.dumps(bool(value))
            elif key in TIME_KEYS:
                value = str(Time.parse(str(value)))
            else:
                value = str(int(value))
            record = session.query(AppSetting).filter(AppSetting.key == key).one_or_none()
            if record:
                record.value = value
            else:
                session.add(AppSetting(key=key, value=value))
        session.commit()
