from __future__ import annotations
import re
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from errors import ConflictFailure, ExpiredFailure, Forbidden, NotFound, ValidationFailure
from models import Attendance, AttendanceStatus
from blueprints.attendance import services as att
from blueprints.schedule.weekly import teacher_today

pytestmark = pytest.mark.usefixtures("ctx")

T0 = datetime(2024, 1, 1, 7, 0)


@pytest.fixture()
def lesson(school, make_schedule):
    """Budi's maths period for X IPA 1 (Andi's class)."""
    return make_schedule()


@pytest.fixture()
def session(lesson, school):
    return att.open_session(lesson.id, school.budi, now=T0)


# ---------- opening ----------
def test_open_session_defaults_to_thirty_minutes(session, lesson):
    assert session.schedule_id == lesson.id
    assert session.date == T0
    assert session.expires_at == T0 + timedelta(minutes=30)
    assert re.fullmatch(r"[A-Z0-9]{8}", session.token)


def test_open_session_custom_duration(lesson, school):
    sess = att.open_session(lesson.id, school.budi, duration_minutes=45, now=T0)
    assert sess.expires_at - sess.date == timedelta(minutes=45)


@pytest.mark.parametrize("minutes", [4, 181, 0])
def test_open_session_rejects_out_of_range_duration(lesson, school, minutes):
    with pytest.raises(ValidationFailure) as ei:
        att.open_session(lesson.id, school.budi, duration_minutes=minutes, now=T0)
    assert ei.value.code == "INVALID_DURATION"


def test_open_session_on_someone_elses_schedule(lesson, school):
    with pytest.raises(NotFound) as ei:
        att.open_session(lesson.id, school.siti, now=T0)
    assert ei.value.code == "SCHEDULE_NOT_FOUND"
    with pytest.raises(NotFound):
        att.open_session(999, school.budi, now=T0)


def test_tokens_are_unique(lesson, school):
    tokens = {att.open_session(lesson.id, school.budi, now=T0).token for _ in range(20)}
    assert len(tokens) == 20


# ---------- submission ----------
def test_submit_marks_present(session, school):
    a = att.submit_attendance(school.andi, session.token, now=T0 + timedelta(minutes=5))
    assert a.status is AttendanceStatus.PRESENT
    assert a.session_id == session.id
    assert a.schedule_id == session.schedule_id
    assert a.scanned_at == T0 + timedelta(minutes=5)


def test_submit_accepts_the_exact_expiry_instant(session, school):
    a = att.submit_attendance(school.andi, session.token, now=T0 + timedelta(minutes=30))
    assert a.id is not None


def test_submit_one_second_late_is_expired(session, school):
    with pytest.raises(ExpiredFailure) as ei:
        att.submit_attendance(school.andi, session.token, now=T0 + timedelta(minutes=30, seconds=1))
    assert ei.value.code == "SESSION_EXPIRED"
    assert Attendance.query.count() == 0


def test_submit_token_is_case_insensitive(session, school):
    att.submit_attendance(school.andi, f"  {session.token.lower()} ", now=T0)
    assert Attendance.query.count() == 1


def test_submit_unknown_token(session, school):
    with pytest.raises(NotFound) as ei:
        att.submit_attendance(school.andi, "ZZZZZZZZ", now=T0)
    assert ei.value.code == "INVALID_TOKEN"


def test_submit_from_another_class(session, school):
    with pytest.raises(Forbidden) as ei:
        att.submit_attendance(school.rina, session.token, now=T0)
    assert ei.value.code == "WRONG_CLASS"


def test_submit_twice_is_a_conflict(session, school):
    att.submit_attendance(school.andi, session.token, now=T0)
    with pytest.raises(ConflictFailure) as ei:
        att.submit_attendance(school.andi, session.token, now=T0 + timedelta(minutes=1))
    assert ei.value.code == "DUPLICATE_SUBMISSION"
    assert Attendance.query.count() == 1


def test_unique_constraint_backs_the_duplicate_check(session, school):
    att.submit_attendance(school.andi, session.token, now=T0)
    # a concurrent writer that slipped past the read check
    with pytest.raises(ConflictFailure) as ei:
        att._commit_attendance(Attendance(
            student_id=school.andi, session_id=session.id, schedule_id=session.schedule_id,
            status=AttendanceStatus.PRESENT, date=T0, scanned_at=T0,
        ))
    assert ei.value.code == "DUPLICATE_SUBMISSION"


def test_expiry_check_precedes_class_check(session, school):
    with pytest.raises(ExpiredFailure):
        att.submit_attendance(school.rina, session.token, now=T0 + timedelta(hours=1))


# ---------- listing ----------
def test_active_listing_matches_submission(lesson, school):
    old = att.open_session(lesson.id, school.budi, duration_minutes=5, now=T0)
    fresh = att.open_session(lesson.id, school.budi, now=T0 + timedelta(minutes=20))
    now = T0 + timedelta(minutes=25)

    listed = att.list_sessions(school.budi, active=True, now=now)["sessions"]
    assert [s["id"] for s in listed] == [fresh.id]
    assert listed[0]["active"] is True

    with pytest.raises(ExpiredFailure):
        att.submit_attendance(school.andi, old.token, now=now)
    att.submit_attendance(school.andi, fresh.token, now=now)

    inactive = att.list_sessions(school.budi, active=False, now=now)["sessions"]
    assert [s["id"] for s in inactive] == [old.id]


def test_list_sessions_is_scoped_to_the_teacher(session, school):
    assert att.list_sessions(school.siti, now=T0)["pagination"]["total"] == 0
    data = att.list_sessions(school.budi, on_date=date(2024, 1, 1), now=T0)
    assert data["pagination"]["total"] == 1
    assert att.list_sessions(school.budi, on_date=date(2024, 1, 2), now=T0)["sessions"] == []


def test_date_filter_uses_the_school_day(app, lesson, school):
    app.config["SCHOOL_TIMEZONE"] = "Asia/Jakarta"
    # 06:30 in Jakarta on the 19th is 23:30 UTC on the 18th
    opened = datetime(2026, 10, 18, 23, 30)
    sess = att.open_session(lesson.id, school.budi, now=opened)

    data = att.list_sessions(school.budi, on_date=date(2026, 10, 19), now=opened)
    assert [s["id"] for s in data["sessions"]] == [sess.id]
    assert att.list_sessions(school.budi, on_date=date(2026, 10, 18), now=opened)["sessions"] == []

    today = teacher_today(school.budi, datetime(2026, 10, 19, 9, 0, tzinfo=ZoneInfo("Asia/Jakarta")))
    assert [x["id"] for x in today["schedules"][0]["sessions"]] == [sess.id]


# ---------- manual & status ----------
def test_manual_attendance_has_no_scan_time(session, school):
    a = att.add_manual_attendance(school.budi, session.id, school.andi, "SAKIT", now=T0)
    assert a.status is AttendanceStatus.SICK
    assert a.scanned_at is None


def test_manual_attendance_rules(session, school):
    with pytest.raises(NotFound) as ei:
        att.add_manual_attendance(school.siti, session.id, school.andi, "PRESENT", now=T0)
    assert ei.value.code == "SESSION_NOT_FOUND"

    with pytest.raises(NotFound) as ei:
        att.add_manual_attendance(school.budi, session.id, school.rina, "PRESENT", now=T0)
    assert ei.value.code == "STUDENT_NOT_FOUND"

    att.add_manual_attendance(school.budi, session.id, school.andi, "PRESENT", now=T0)
    with pytest.raises(ConflictFailure):
        att.add_manual_attendance(school.budi, session.id, school.andi, "ABSENT", now=T0)


def test_manual_attendance_blocks_later_self_submission(session, school):
    att.add_manual_attendance(school.budi, session.id, school.andi, "EXCUSED", now=T0)
    with pytest.raises(ConflictFailure):
        att.submit_attendance(school.andi, session.token, now=T0)


def test_update_status_only_for_own_records(session, school):
    a = att.submit_attendance(school.andi, session.token, now=T0)
    with pytest.raises(NotFound):
        att.update_attendance_status(school.siti, a.id, "ABSENT")
    out = att.update_attendance_status(school.budi, a.id, "izin")
    assert out.status is AttendanceStatus.EXCUSED


# ---------- history ----------
def test_history_and_summary(lesson, school):
    for i, status in enumerate(["PRESENT", "PRESENT", "ABSENT"]):
        sess = att.open_session(lesson.id, school.budi, now=T0 + timedelta(days=7 * i))
        if status == "PRESENT":
            att.submit_attendance(school.andi, sess.token, now=sess.date)
        else:
            att.add_manual_attendance(school.budi, sess.id, school.andi, status, now=sess.date)

    history = att.student_attendance(school.andi, page=1, limit=2)
    assert history["pagination"]["total"] == 3
    assert history["attendances"][0]["status"] == "ABSENT"  # newest first

    only_present = att.student_attendance(school.andi, status="HADIR")
    assert only_present["pagination"]["total"] == 2

    summary = att.attendance_summary(school.andi)
    assert summary["total"] == 3
    assert summary["counts"] == {"PRESENT": 2, "EXCUSED": 0, "SICK": 0, "ABSENT": 1}
    assert summary["attendance_rate"] == 66.67

    first_week = att.attendance_summary(school.andi, date_to=date(2024, 1, 1))
    assert first_week["total"] == 1 and first_week["attendance_rate"] == 100.0


def test_summary_of_an_empty_history(school):
    assert att.attendance_summary(school.rina)["attendance_rate"] == 0.0
    with pytest.raises(NotFound):
        att.attendance_summary(999)
