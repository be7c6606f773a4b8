# blueprints/attendance/services.py
from __future__ import annotations
import logging
import math
import secrets
import string
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy.exc import IntegrityError

from errors import ConflictFailure, ExpiredFailure, Forbidden, NotFound, ValidationFailure
from extensions import db
from models import (
    Attendance, AttendanceSession, AttendanceStatus, Schedule, Student, utcnow,
)
from blueprints.schedule.weekly import utc_day_bounds

log = logging.getLogger(__name__)

TOKEN_ALPHABET = string.ascii_uppercase + string.digits
TOKEN_ATTEMPTS = 10


# ---------- serialisation ----------
def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def session_to_dict(sess: AttendanceSession, now: Optional[datetime] = None,
                    with_attendances: bool = False) -> Dict[str, Any]:
    now = now or utcnow()
    sch = sess.schedule
    out = {
        "id": sess.id,
        "schedule_id": sess.schedule_id,
        "token": sess.token,
        "date": _iso(sess.date),
        "expires_at": _iso(sess.expires_at),
        "active": is_active(sess, now),
        "schedule": {
            "id": sch.id,
            "day": sch.day.value,
            "start_time": sch.start_time,
            "end_time": sch.end_time,
            "subject": sch.subject.name if sch.subject else None,
            "class": sch.school_class.name if sch.school_class else None,
        },
    }
    if with_attendances:
        out["attendances"] = [
            {"id": a.id, "status": a.status.value,
             "student": {"id": a.student.id, "name": a.student.name, "nis": a.student.nis}}
            for a in sess.attendances
        ]
    return out


def attendance_to_dict(a: Attendance) -> Dict[str, Any]:
    return {
        "id": a.id,
        "student_id": a.student_id,
        "schedule_id": a.schedule_id,
        "session_id": a.session_id,
        "status": a.status.value,
        "date": _iso(a.date),
        "scanned_at": _iso(a.scanned_at),
        "subject": a.schedule.subject.name if a.schedule and a.schedule.subject else None,
        "session_date": _iso(a.session.date) if a.session else None,
    }


# ---------- sessions ----------
def is_active(sess: AttendanceSession, now: datetime) -> bool:
    """The one expiry predicate; listings and submission both go through it."""
    return sess.is_active(now)


def _active_clause(now: datetime):
    # SQL twin of is_active(): now <= expires_at
    return AttendanceSession.expires_at >= now


def _duration(duration_minutes: Optional[int]) -> int:
    cfg = current_app.config
    if duration_minutes is None:
        return int(cfg.get("ATTENDANCE_SESSION_DEFAULT_MINUTES", 30))
    lo = int(cfg.get("ATTENDANCE_SESSION_MIN_MINUTES", 5))
    hi = int(cfg.get("ATTENDANCE_SESSION_MAX_MINUTES", 180))
    if not lo <= int(duration_minutes) <= hi:
        raise ValidationFailure(f"Duration must be between {lo} and {hi} minutes",
                                field="duration_minutes", code="INVALID_DURATION")
    return int(duration_minutes)


def _new_token() -> str:
    length = int(current_app.config.get("ATTENDANCE_TOKEN_LENGTH", 8))
    for _ in range(TOKEN_ATTEMPTS):
        token = "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
        if not AttendanceSession.query.filter_by(token=token).first():
            return token
    raise RuntimeError("could not generate a unique attendance token")


def open_session(schedule_id: int, teacher_id: int, duration_minutes: Optional[int] = None,
                 now: Optional[datetime] = None) -> AttendanceSession:
    """Open a time-boxed check-in window for one of the teacher's own schedules."""
    now = now or utcnow()
    minutes = _duration(duration_minutes)

    sch = Schedule.query.filter_by(id=schedule_id, teacher_id=teacher_id).first()
    if not sch:
        # another teacher's schedule is reported the same as a missing one
        raise NotFound("Schedule not found or not assigned to this teacher",
                       code="SCHEDULE_NOT_FOUND", details={"schedule_id": schedule_id})

    sess = AttendanceSession(
        schedule_id=sch.id,
        date=now,
        token=_new_token(),
        expires_at=now + timedelta(minutes=minutes),
    )
    db.session.add(sess)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise

    log.info("attendance session opened", extra={
        "event": "attendance_session_opened", "session_id": sess.id, "schedule_id": sch.id,
    })
    return sess


def list_sessions(teacher_id: int, schedule_id: Optional[int] = None, active: Optional[bool] = None,
                  on_date: Optional[date] = None, page: int = 1, limit: int = 10,
                  now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    q = (AttendanceSession.query
         .join(Schedule, Schedule.id == AttendanceSession.schedule_id)
         .filter(Schedule.teacher_id == teacher_id))
    if schedule_id is not None:
        q = q.filter(Schedule.id == schedule_id)
    if active is True:
        q = q.filter(_active_clause(now))
    elif active is False:
        q = q.filter(AttendanceSession.expires_at < now)
    if on_date is not None:
        # same school-local day as the "today" views
        tz = ZoneInfo(current_app.config["SCHOOL_TIMEZONE"])
        start, end = utc_day_bounds(datetime.combine(on_date, datetime.min.time(), tzinfo=tz))
        q = q.filter(AttendanceSession.date >= start, AttendanceSession.date < end)

    page = page if page > 0 else 1
    limit = limit if limit > 0 else 10
    total = q.count()
    items = (q.order_by(AttendanceSession.date.desc(), AttendanceSession.id.desc())
             .offset((page - 1) * limit).limit(limit).all())
    return {
        "sessions": [session_to_dict(s, now, with_attendances=True) for s in items],
        "pagination": {
            "total": total, "page": page, "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


# ---------- submission ----------
def _commit_attendance(a: Attendance) -> Attendance:
    db.session.add(a)
    try:
        db.session.commit()
    except IntegrityError:
        # unique (student_id, session_id) caught a concurrent duplicate
        db.session.rollback()
        raise ConflictFailure("Attendance already recorded for this session",
                              code="DUPLICATE_SUBMISSION",
                              details={"student_id": a.student_id, "session_id": a.session_id})
    return a


def submit_attendance(student_id: int, token: str, now: Optional[datetime] = None) -> Attendance:
    now = now or utcnow()
    student = db.session.get(Student, student_id)
    if not student:
        raise NotFound("Student not found", code="STUDENT_NOT_FOUND", details={"id": student_id})

    sess = AttendanceSession.query.filter_by(token=(token or "").strip().upper()).first()
    if not sess:
        raise NotFound("Invalid attendance token", code="INVALID_TOKEN")

    if not is_active(sess, now):
        raise ExpiredFailure("Attendance session has expired", code="SESSION_EXPIRED",
                             details={"expires_at": _iso(sess.expires_at)})

    if sess.schedule.class_id != student.class_id:
        raise Forbidden("This attendance session is not for your class", code="WRONG_CLASS")

    existing = Attendance.query.filter_by(student_id=student.id, session_id=sess.id).first()
    if existing:
        raise ConflictFailure("You have already submitted attendance for this session",
                              code="DUPLICATE_SUBMISSION",
                              details={"status": existing.status.value,
                                       "submitted_at": _iso(existing.scanned_at)})

    a = _commit_attendance(Attendance(
        student_id=student.id,
        session_id=sess.id,
        schedule_id=sess.schedule_id,
        status=AttendanceStatus.PRESENT,
        date=now,
        scanned_at=now,
    ))
    log.info("attendance submitted", extra={
        "event": "attendance_submitted", "session_id": sess.id, "student_id": student.id,
    })
    return a


# ---------- teacher-side records ----------
def add_manual_attendance(teacher_id: int, session_id: int, student_id: int, status,
                          now: Optional[datetime] = None) -> Attendance:
    now = now or utcnow()
    status = AttendanceStatus.parse(status)

    sess = (AttendanceSession.query
            .join(Schedule, Schedule.id == AttendanceSession.schedule_id)
            .filter(AttendanceSession.id == session_id, Schedule.teacher_id == teacher_id)
            .first())
    if not sess:
        raise NotFound("Session not found or unauthorized", code="SESSION_NOT_FOUND",
                       details={"session_id": session_id})

    student = Student.query.filter_by(id=student_id, class_id=sess.schedule.class_id).first()
    if not student:
        raise NotFound("Student not found or not in this class", code="STUDENT_NOT_FOUND",
                       details={"student_id": student_id})

    existing = Attendance.query.filter_by(session_id=sess.id, student_id=student.id).first()
    if existing:
        raise ConflictFailure("Student already has attendance for this session",
                              code="DUPLICATE_ATTENDANCE",
                              details={"attendance_id": existing.id, "status": existing.status.value})

    # no scanned_at: entered by the teacher, not self-submitted
    a = _commit_attendance(Attendance(
        student_id=student.id,
        session_id=sess.id,
        schedule_id=sess.schedule_id,
        status=status,
        date=now,
    ))
    log.info("manual attendance added", extra={
        "event": "attendance_manual", "session_id": sess.id, "student_id": student.id,
    })
    return a


def update_attendance_status(teacher_id: int, attendance_id: int, status) -> Attendance:
    status = AttendanceStatus.parse(status)
    a = (Attendance.query
         .join(Schedule, Schedule.id == Attendance.schedule_id)
         .filter(Attendance.id == attendance_id, Schedule.teacher_id == teacher_id)
         .first())
    if not a:
        raise NotFound("Attendance record not found or unauthorized", code="ATTENDANCE_NOT_FOUND",
                       details={"attendance_id": attendance_id})
    a.status = status
    db.session.commit()
    return a


# ---------- student history ----------
def _student_or_404(student_id: int) -> Student:
    st = db.session.get(Student, student_id)
    if not st:
        raise NotFound("Student not found", code="STUDENT_NOT_FOUND", details={"id": student_id})
    return st


def _date_range(q, date_from: Optional[date], date_to: Optional[date]):
    if date_from:
        q = q.filter(Attendance.date >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        q = q.filter(Attendance.date < datetime.combine(date_to, datetime.min.time()) + timedelta(days=1))
    return q


def student_attendance(student_id: int, status=None, subject_id: Optional[int] = None,
                       date_from: Optional[date] = None, date_to: Optional[date] = None,
                       page: int = 1, limit: int = 10) -> Dict[str, Any]:
    _student_or_404(student_id)
    q = Attendance.query.filter(Attendance.student_id == student_id)
    if status:
        q = q.filter(Attendance.status == AttendanceStatus.parse(status))
    if subject_id is not None:
        q = q.join(Schedule, Schedule.id == Attendance.schedule_id).filter(Schedule.subject_id == subject_id)
    q = _date_range(q, date_from, date_to)

    page = page if page > 0 else 1
    limit = limit if limit > 0 else 10
    total = q.count()
    items = q.order_by(Attendance.date.desc()).offset((page - 1) * limit).limit(limit).all()
    return {
        "attendances": [attendance_to_dict(a) for a in items],
        "pagination": {
            "total": total, "page": page, "limit": limit,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
    }


def attendance_summary(student_id: int, date_from: Optional[date] = None,
                       date_to: Optional[date] = None) -> Dict[str, Any]:
    _student_or_404(student_id)
    q = _date_range(Attendance.query.filter(Attendance.student_id == student_id), date_from, date_to)
    counts = {s.value: 0 for s in AttendanceStatus}
    for a in q.all():
        counts[a.status.value] += 1
    total = sum(counts.values())
    rate = round(counts[AttendanceStatus.PRESENT.value] / total * 100, 2) if total else 0.0
    return {"student_id": student_id, "total": total, "counts": counts, "attendance_rate": rate}
