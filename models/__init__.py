from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum as PyEnum

from flask_login import UserMixin
from sqlalchemy import (
    Enum, ForeignKey, UniqueConstraint, Index, Boolean, DateTime, Integer, String, JSON
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from errors import ValidationFailure
from extensions import db
from blueprints.schedule.intervals import TimeInterval


def utcnow() -> datetime:
    """Naive UTC timestamp; the single clock for every stored and compared instant."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------- Enums ----------
class Role(PyEnum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class Weekday(PyEnum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def ordered(cls) -> list["Weekday"]:
        return list(cls)

    @classmethod
    def from_index(cls, idx: int) -> "Weekday":
        # 0=Mon .. 6=Sun, same as date.weekday()
        return _WEEKDAY_BY_INDEX[idx]

    @property
    def ordinal(self) -> int:
        return _WEEKDAY_BY_INDEX.index(self)

    @classmethod
    def parse(cls, value) -> "Weekday":
        if isinstance(value, cls):
            return value
        label = str(value or "").strip().upper()
        if label in cls.__members__:
            return cls[label]
        if label in _WEEKDAY_ALIASES:
            return _WEEKDAY_ALIASES[label]
        raise ValidationFailure(
            f"Invalid day. Must be one of: {', '.join(d.value for d in cls)}",
            field="day", code="INVALID_DAY",
        )


_WEEKDAY_BY_INDEX = [
    Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY,
    Weekday.FRIDAY, Weekday.SATURDAY, Weekday.SUNDAY,
]

# labels used by the seed data of the school
_WEEKDAY_ALIASES = {
    "SENIN": Weekday.MONDAY,
    "SELASA": Weekday.TUESDAY,
    "RABU": Weekday.WEDNESDAY,
    "KAMIS": Weekday.THURSDAY,
    "JUMAT": Weekday.FRIDAY,
    "SABTU": Weekday.SATURDAY,
    "MINGGU": Weekday.SUNDAY,
}


class AttendanceStatus(PyEnum):
    PRESENT = "PRESENT"
    EXCUSED = "EXCUSED"
    SICK = "SICK"
    ABSENT = "ABSENT"

    @classmethod
    def parse(cls, value) -> "AttendanceStatus":
        if isinstance(value, cls):
            return value
        label = str(value or "").strip().upper()
        if label in cls.__members__:
            return cls[label]
        if label in _STATUS_ALIASES:
            return _STATUS_ALIASES[label]
        raise ValidationFailure(
            f"Invalid status. Must be one of: {', '.join(s.value for s in cls)}",
            field="status", code="INVALID_STATUS",
        )


_STATUS_ALIASES = {
    "HADIR": AttendanceStatus.PRESENT,
    "IZIN": AttendanceStatus.EXCUSED,
    "SAKIT": AttendanceStatus.SICK,
    "ALPHA": AttendanceStatus.ABSENT,
}


# ---------- Directory ----------
class SchoolClass(db.Model):
    __tablename__ = "class"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    students = relationship("Student", back_populates="school_class")

    def __repr__(self):
        return f"<SchoolClass {self.name}>"


class Subject(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    def __repr__(self):
        return f"<Subject {self.name}>"


class Teacher(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    subjects = relationship("Subject", secondary="teacher_subject", viewonly=True)

    def __repr__(self):
        return f"<Teacher {self.name}>"


class Student(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    nis: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    class_id: Mapped[int] = mapped_column(ForeignKey("class.id", ondelete="RESTRICT"), nullable=False, index=True)

    school_class = relationship("SchoolClass", back_populates="students")

    def __repr__(self):
        return f"<Student {self.nis}>"


class TeacherSubject(db.Model):
    __tablename__ = "teacher_subject"

    id: Mapped[int] = mapped_column(primary_key=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teacher.id", ondelete="RESTRICT"), nullable=False)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False)

    teacher = relationship("Teacher")
    subject = relationship("Subject")

    __table_args__ = (
        UniqueConstraint("teacher_id", "subject_id", name="uq_teacher_subject"),
    )


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, index=True, default=Role.STUDENT.value)
    is_active_flag: Mapped[bool] = mapped_column("is_active", Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teacher.id", ondelete="SET NULL"), nullable=True)
    student_id: Mapped[int | None] = mapped_column(ForeignKey("student.id", ondelete="SET NULL"), nullable=True)

    # Flask-Login reads .is_active
    @property
    def is_active(self):
        return bool(self.is_active_flag)

    def __repr__(self):
        return f"<User {self.email}>"


# ---------- Scheduling ----------
class Schedule(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False)
    class_id: Mapped[int] = mapped_column(ForeignKey("class.id", ondelete="RESTRICT"), nullable=False)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("teacher.id", ondelete="RESTRICT"), nullable=False)
    day: Mapped[Weekday] = mapped_column(Enum(Weekday, name="weekday"), nullable=False)
    # strict "HH:MM", so string order is time order
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    subject = relationship("Subject")
    school_class = relationship("SchoolClass")
    teacher = relationship("Teacher")
    sessions = relationship("AttendanceSession", back_populates="schedule")

    __table_args__ = (
        Index("ix_schedule_class_day", "class_id", "day"),
        Index("ix_schedule_teacher_day", "teacher_id", "day"),
    )

    @property
    def interval(self):
        return TimeInterval.parse(self.start_time, self.end_time)

    def __repr__(self):
        return f"<Schedule {self.day.value} {self.start_time}-{self.end_time} class={self.class_id}>"


class AttendanceSession(db.Model):
    __tablename__ = "attendance_session"

    id: Mapped[int] = mapped_column(primary_key=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedule.id", ondelete="RESTRICT"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    token: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    schedule = relationship("Schedule", back_populates="sessions")
    attendances = relationship("Attendance", back_populates="session")

    def is_active(self, now: datetime) -> bool:
        # expiry is derived, the instant of expires_at itself is still open
        return now <= self.expires_at


class Attendance(db.Model):
    id: Mapped[int] = mapped_column(primary_key=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="RESTRICT"), nullable=False, index=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedule.id", ondelete="RESTRICT"), nullable=False, index=True)
    session_id: Mapped[int | None] = mapped_column(ForeignKey("attendance_session.id", ondelete="RESTRICT"), nullable=True)
    status: Mapped[AttendanceStatus] = mapped_column(Enum(AttendanceStatus, name="attendance_status"), nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    scanned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    student = relationship("Student")
    schedule = relationship("Schedule")
    session = relationship("AttendanceSession", back_populates="attendances")

    __table_args__ = (
        UniqueConstraint("student_id", "session_id", name="uq_attendance_student_session"),
    )


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    entity: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
