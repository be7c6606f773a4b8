# blueprints/schedule/weekly.py
from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Tuple

from errors import NotFound
from extensions import db
from models import AttendanceSession, Schedule, SchoolClass, Student, Teacher, Weekday
from .services import DAY_ORDER, schedule_to_dict


def weekday_for(reference: date | datetime) -> Weekday:
    """Monday-first mapping of a calendar day, fixed table, independent of locale."""
    return Weekday.from_index(reference.weekday())


def group_by_day(schedules: Iterable[Schedule]) -> Dict[Weekday, List[Schedule]]:
    """All seven weekdays as keys, input order kept inside each day.

    The input is expected sorted by (day, start_time); nothing is re-sorted here.
    """
    out: Dict[Weekday, List[Schedule]] = {d: [] for d in Weekday.ordered()}
    for s in schedules:
        out[s.day].append(s)
    return out


def _week_rows(**by) -> List[Schedule]:
    return (Schedule.query.filter_by(**by)
            .order_by(DAY_ORDER.asc(), Schedule.start_time.asc())
            .all())


def _day_rows(day: Weekday, **by) -> List[Schedule]:
    return (Schedule.query.filter_by(day=day, **by)
            .order_by(Schedule.start_time.asc())
            .all())


def today_for_class(class_id: int, reference: date | datetime) -> Tuple[Weekday, List[Schedule]]:
    day = weekday_for(reference)
    return day, _day_rows(day, class_id=class_id)


def today_for_teacher(teacher_id: int, reference: date | datetime) -> Tuple[Weekday, List[Schedule]]:
    day = weekday_for(reference)
    return day, _day_rows(day, teacher_id=teacher_id)


# ---------- views ----------
def _weekly_dict(grouped: Dict[Weekday, List[Schedule]]) -> Dict[str, list]:
    return {d.value: [schedule_to_dict(s) for s in items] for d, items in grouped.items()}


def _get_or_404(model, pk: int, code: str, label: str):
    obj = db.session.get(model, pk)
    if not obj:
        raise NotFound(f"{label} not found", code=code, details={"id": pk})
    return obj


def class_week(class_id: int) -> Dict:
    _get_or_404(SchoolClass, class_id, "CLASS_NOT_FOUND", "Class")
    return {"weekly_schedule": _weekly_dict(group_by_day(_week_rows(class_id=class_id)))}


def teacher_week(teacher_id: int) -> Dict:
    _get_or_404(Teacher, teacher_id, "TEACHER_NOT_FOUND", "Teacher")
    return {"weekly_schedule": _weekly_dict(group_by_day(_week_rows(teacher_id=teacher_id)))}


def student_week(student_id: int) -> Dict:
    st = _get_or_404(Student, student_id, "STUDENT_NOT_FOUND", "Student")
    return {
        "class_id": st.class_id,
        "weekly_schedule": _weekly_dict(group_by_day(_week_rows(class_id=st.class_id))),
    }


def utc_day_bounds(reference: datetime) -> Tuple[datetime, datetime]:
    # stored instants are naive UTC; an aware reference is the school's wall clock
    start = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=1)
    if reference.tzinfo is not None:
        start = start.astimezone(timezone.utc).replace(tzinfo=None)
        end = end.astimezone(timezone.utc).replace(tzinfo=None)
    return start, end


def _with_sessions_on(schedules: List[Schedule], reference: datetime) -> List[Dict]:
    """Schedule dicts plus the attendance sessions opened on the reference day."""
    start, end = utc_day_bounds(reference)
    ids = [s.id for s in schedules]
    by_schedule: Dict[int, list] = {}
    if ids:
        rows = (AttendanceSession.query
                .filter(AttendanceSession.schedule_id.in_(ids),
                        AttendanceSession.date >= start, AttendanceSession.date < end)
                .order_by(AttendanceSession.date.asc())
                .all())
        for sess in rows:
            by_schedule.setdefault(sess.schedule_id, []).append({
                "id": sess.id,
                "date": sess.date.isoformat(),
                "expires_at": sess.expires_at.isoformat(),
            })
    out = []
    for s in schedules:
        item = schedule_to_dict(s)
        item["sessions"] = by_schedule.get(s.id, [])
        out.append(item)
    return out


def student_today(student_id: int, reference: datetime) -> Dict:
    st = _get_or_404(Student, student_id, "STUDENT_NOT_FOUND", "Student")
    day, rows = today_for_class(st.class_id, reference)
    return {"today": day.value, "schedules": _with_sessions_on(rows, reference)}


def teacher_today(teacher_id: int, reference: datetime) -> Dict:
    _get_or_404(Teacher, teacher_id, "TEACHER_NOT_FOUND", "Teacher")
    day, rows = today_for_teacher(teacher_id, reference)
    return {"today": day.value, "schedules": _with_sessions_on(rows, reference)}
