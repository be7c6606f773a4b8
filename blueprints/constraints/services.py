# blueprints/constraints/services.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field

from errors import ValidationFailure
from models import db, Schedule, Weekday
from blueprints.schedule.intervals import TimeInterval

log = logging.getLogger(__name__)


@dataclass
class ConflictReport:
    class_conflicts: list[Schedule] = field(default_factory=list)
    teacher_conflicts: list[Schedule] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.class_conflicts or self.teacher_conflicts)

    def to_dict(self) -> dict:
        from blueprints.schedule.services import schedule_to_dict  # local import, avoids cycles
        return {
            "class_conflicts": [schedule_to_dict(s) for s in self.class_conflicts],
            "teacher_conflicts": [schedule_to_dict(s) for s in self.teacher_conflicts],
        }


def _same_day(day: Weekday, exclude_schedule_id: int | None, **by) -> list[Schedule]:
    q = db.session.query(Schedule).filter_by(day=day, **by)
    if exclude_schedule_id is not None:
        q = q.filter(Schedule.id != exclude_schedule_id)
    return q.order_by(Schedule.start_time.asc()).all()


def find_conflicts(day: Weekday, interval: TimeInterval, class_id: int, teacher_id: int,
                   exclude_schedule_id: int | None = None) -> ConflictReport:
    """Same-day schedules of the class and of the teacher that overlap ``interval``.

    Read only. A class or a teacher has a handful of periods per day, so a
    linear scan over each set is enough.
    """
    class_rows = _same_day(day, exclude_schedule_id, class_id=class_id)
    teacher_rows = _same_day(day, exclude_schedule_id, teacher_id=teacher_id)
    return ConflictReport(
        class_conflicts=[s for s in class_rows if interval.overlaps(s.interval)],
        teacher_conflicts=[s for s in teacher_rows if interval.overlaps(s.interval)],
    )


def check_conflicts(payload: dict) -> ConflictReport:
    """Preview variant: validates a raw payload and reports without writing."""
    required = ["class_id", "teacher_id", "day", "start_time", "end_time"]
    missing = [k for k in required if payload.get(k) in (None, "")]
    if missing:
        raise ValidationFailure(f"Required fields: {', '.join(required)}",
                                field=missing[0], code="MISSING_FIELDS", details={"missing": missing})

    day = Weekday.parse(payload["day"])
    interval = TimeInterval.parse(payload["start_time"], payload["end_time"])
    exclude = payload.get("exclude_schedule_id") or payload.get("id")
    try:
        class_id = int(payload["class_id"])
        teacher_id = int(payload["teacher_id"])
        exclude = int(exclude) if exclude is not None else None
    except (TypeError, ValueError) as e:
        raise ValidationFailure(f"ids must be integers: {e}", code="BAD_REQUEST") from e

    report = find_conflicts(day, interval, class_id, teacher_id, exclude_schedule_id=exclude)
    if report.has_conflicts:
        log.info("conflict preview found overlaps", extra={
            "event": "schedule_conflict_preview",
            "class_conflicts": len(report.class_conflicts),
            "teacher_conflicts": len(report.teacher_conflicts),
        })
    return report
