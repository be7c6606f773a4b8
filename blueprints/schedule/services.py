# blueprints/schedule/services.py
from __future__ import annotations
import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import case

from errors import ConflictFailure, NotFound, ValidationFailure
from extensions import db
from models import (
    Attendance, AttendanceSession, AuditLog, Schedule, SchoolClass, Subject,
    Teacher, TeacherSubject, Weekday,
)
from blueprints.constraints.services import find_conflicts
from .intervals import TimeInterval, TimeOfDay

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ("subject_id", "class_id", "teacher_id", "day", "start_time", "end_time")
CONFLICT_FIELDS = ("day", "start_time", "end_time", "class_id", "teacher_id")
SORT_FIELDS = ("day", "start_time", "end_time", "created_at")

# Monday-first, the enum is stored by name and would sort alphabetically
DAY_ORDER = case(*[(Schedule.day == d, d.ordinal) for d in Weekday])


def schedule_to_dict(s: Schedule) -> Dict[str, Any]:
    return {
        "id": s.id,
        "subject_id": s.subject_id,
        "class_id": s.class_id,
        "teacher_id": s.teacher_id,
        "day": s.day.value,
        "start_time": s.start_time,
        "end_time": s.end_time,
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "subject": ({"id": s.subject.id, "name": s.subject.name} if s.subject else None),
        "class": ({"id": s.school_class.id, "name": s.school_class.name} if s.school_class else None),
        "teacher": ({"id": s.teacher.id, "name": s.teacher.name} if s.teacher else None),
    }


def _audit(action: str, entity_id: int, actor_id: Optional[int], payload: dict | None = None):
    db.session.add(AuditLog(user_id=actor_id, action=action, entity="schedule",
                            entity_id=entity_id, payload=payload or {}))


def _int_field(data: dict, name: str) -> int:
    try:
        return int(data[name])
    except (TypeError, ValueError):
        raise ValidationFailure(f"{name} must be an integer", field=name) from None


def _lock_or_404(model, pk: int, code: str, label: str):
    # FOR UPDATE serialises writers touching the same class/teacher (no-op on SQLite)
    obj = db.session.query(model).filter(model.id == pk).with_for_update().one_or_none()
    if obj is None:
        raise NotFound(f"{label} not found", code=code, details={"id": pk})
    return obj


def _require_assignment(teacher_id: int, subject_id: int) -> None:
    link = TeacherSubject.query.filter_by(teacher_id=teacher_id, subject_id=subject_id).first()
    if not link:
        raise ValidationFailure("This teacher is not assigned to teach this subject",
                                field="subject_id", code="TEACHER_NOT_ASSIGNED",
                                details={"teacher_id": teacher_id, "subject_id": subject_id})


def _raise_if_conflicting(day: Weekday, interval: TimeInterval, class_id: int, teacher_id: int,
                          exclude_schedule_id: Optional[int] = None) -> None:
    report = find_conflicts(day, interval, class_id, teacher_id, exclude_schedule_id=exclude_schedule_id)
    if report.has_conflicts:
        log.info("schedule write rejected", extra={
            "event": "schedule_conflict",
            "class_conflicts": len(report.class_conflicts),
            "teacher_conflicts": len(report.teacher_conflicts),
        })
        raise ConflictFailure("Schedule conflicts detected", code="SCHEDULE_CONFLICT",
                              details={"conflicts": report.to_dict()})


def get_schedule(schedule_id: int) -> Schedule:
    s = db.session.get(Schedule, schedule_id)
    if not s:
        raise NotFound("Schedule not found", code="SCHEDULE_NOT_FOUND", details={"id": schedule_id})
    return s


def create_schedule(data: Dict[str, Any], actor_id: Optional[int] = None) -> Schedule:
    missing = [k for k in REQUIRED_FIELDS if data.get(k) in (None, "")]
    if missing:
        raise ValidationFailure(f"Required fields: {', '.join(REQUIRED_FIELDS)}",
                                field=missing[0], code="MISSING_FIELDS", details={"missing": missing})

    day = Weekday.parse(data["day"])
    interval = TimeInterval.parse(data["start_time"], data["end_time"])
    teacher_id = _int_field(data, "teacher_id")
    class_id = _int_field(data, "class_id")
    subject_id = _int_field(data, "subject_id")

    try:
        _lock_or_404(Teacher, teacher_id, "TEACHER_NOT_FOUND", "Teacher")
        _lock_or_404(SchoolClass, class_id, "CLASS_NOT_FOUND", "Class")
        if not db.session.get(Subject, subject_id):
            raise NotFound("Subject not found", code="SUBJECT_NOT_FOUND", details={"id": subject_id})
        _require_assignment(teacher_id, subject_id)
        _raise_if_conflicting(day, interval, class_id, teacher_id)

        s = Schedule(subject_id=subject_id, class_id=class_id, teacher_id=teacher_id, day=day,
                     start_time=str(interval.start), end_time=str(interval.end))
        db.session.add(s)
        db.session.flush()
        _audit("CREATE", s.id, actor_id, schedule_to_dict(s))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("schedule created", extra={"event": "schedule_created", "schedule_id": s.id})
    return s


def update_schedule(schedule_id: int, changes: Dict[str, Any], actor_id: Optional[int] = None) -> Schedule:
    """Partial update: only supplied (non-null) fields are merged over the stored row."""
    try:
        s = get_schedule(schedule_id)
        supplied = {k: v for k, v in changes.items() if k in REQUIRED_FIELDS and v not in (None, "")}

        day = Weekday.parse(supplied["day"]) if "day" in supplied else s.day
        start = TimeOfDay.parse(supplied["start_time"], "start_time") if "start_time" in supplied else TimeOfDay.parse(s.start_time, "start_time")
        end = TimeOfDay.parse(supplied["end_time"], "end_time") if "end_time" in supplied else TimeOfDay.parse(s.end_time, "end_time")
        interval = TimeInterval(start, end)

        teacher_id = _int_field(supplied, "teacher_id") if "teacher_id" in supplied else s.teacher_id
        class_id = _int_field(supplied, "class_id") if "class_id" in supplied else s.class_id
        subject_id = _int_field(supplied, "subject_id") if "subject_id" in supplied else s.subject_id

        recheck = any(k in supplied for k in CONFLICT_FIELDS)
        if recheck:
            _lock_or_404(Teacher, teacher_id, "TEACHER_NOT_FOUND", "Teacher")
            _lock_or_404(SchoolClass, class_id, "CLASS_NOT_FOUND", "Class")
        if "subject_id" in supplied and not db.session.get(Subject, subject_id):
            raise NotFound("Subject not found", code="SUBJECT_NOT_FOUND", details={"id": subject_id})

        _require_assignment(teacher_id, subject_id)

        if recheck:
            _raise_if_conflicting(day, interval, class_id, teacher_id, exclude_schedule_id=s.id)

        s.day = day
        s.start_time = str(interval.start)
        s.end_time = str(interval.end)
        s.teacher_id = teacher_id
        s.class_id = class_id
        s.subject_id = subject_id
        _audit("UPDATE", s.id, actor_id, {k: str(v) for k, v in supplied.items()})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("schedule updated", extra={"event": "schedule_updated", "schedule_id": s.id})
    return s


def delete_schedule(schedule_id: int, actor_id: Optional[int] = None) -> None:
    try:
        s = get_schedule(schedule_id)
        related_sessions = AttendanceSession.query.filter_by(schedule_id=s.id).count()
        related_attendances = Attendance.query.filter_by(schedule_id=s.id).count()
        if related_sessions or related_attendances:
            raise ConflictFailure(
                "Cannot delete schedule with existing attendance sessions or records",
                code="SCHEDULE_HAS_DEPENDENTS",
                details={"related_sessions": related_sessions, "related_attendances": related_attendances},
            )
        db.session.delete(s)
        _audit("DELETE", schedule_id, actor_id, {"id": schedule_id})
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("schedule deleted", extra={"event": "schedule_deleted", "schedule_id": schedule_id})


def list_schedules(filters: Dict[str, Any] | None = None, page: int = 1, limit: int = 10,
                   sort_by: str = "day", sort_order: str = "asc") -> Dict[str, Any]:
    filters = filters or {}
    q = Schedule.query
    for name in ("class_id", "teacher_id", "subject_id"):
        if filters.get(name) is not None:
            q = q.filter(getattr(Schedule, name) == int(filters[name]))
    if filters.get("day"):
        q = q.filter(Schedule.day == Weekday.parse(filters["day"]))

    if sort_by not in SORT_FIELDS or sort_order not in ("asc", "desc"):
        sort_by, sort_order = "day", "asc"
    col = DAY_ORDER if sort_by == "day" else getattr(Schedule, sort_by)
    primary = col.asc() if sort_order == "asc" else col.desc()

    page = page if page > 0 else 1
    limit = limit if limit > 0 else 10
    total = q.count()
    items = (q.order_by(primary, Schedule.start_time.asc())
             .offset((page - 1) * limit).limit(limit).all())
    return {
        "schedules": [schedule_to_dict(s) for s in items],
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
        "filters": {k: filters.get(k) for k in ("class_id", "teacher_id", "subject_id", "day")},
    }
