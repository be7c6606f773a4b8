from __future__ import annotations
from datetime import timedelta

import pytest

from conftest import login, send
from extensions import db
from models import AttendanceSession, utcnow

BASE = "/api/v1"


@pytest.fixture()
def lesson_id(app, make_schedule):
    with app.app_context():
        return make_schedule().id


def _payload(school, **kw):
    data = {"subject_id": school.math, "class_id": school.x1, "teacher_id": school.budi,
            "day": "MONDAY", "start_time": "07:00", "end_time": "08:00"}
    data.update(kw)
    return data


# ---------- schedules ----------
def test_admin_schedule_crud(client, school):
    token = login(client, "admin@example.com")

    rv = send(client, "POST", f"{BASE}/schedules", token, _payload(school, day="SENIN"))
    assert rv.status_code == 201
    created = rv.get_json()["schedule"]
    assert created["day"] == "MONDAY"
    assert created["teacher"]["name"] == "Budi"

    rv = send(client, "PUT", f"{BASE}/schedules/{created['id']}", token, {"end_time": "08:30"})
    assert rv.status_code == 200
    assert rv.get_json()["schedule"]["end_time"] == "08:30"

    rv = client.get(f"{BASE}/schedules/{created['id']}")
    assert rv.get_json()["schedule"]["start_time"] == "07:00"

    listing = client.get(f"{BASE}/schedules?class_id={school.x1}&limit=5").get_json()
    assert listing["pagination"]["total"] == 1
    assert listing["filters"]["class_id"] == school.x1

    assert send(client, "DELETE", f"{BASE}/schedules/{created['id']}", token).status_code == 200
    assert client.get(f"{BASE}/schedules/{created['id']}").status_code == 404


def test_conflicting_create_returns_409_envelope(client, school):
    token = login(client, "admin@example.com")
    assert send(client, "POST", f"{BASE}/schedules", token, _payload(school)).status_code == 201

    rv = send(client, "POST", f"{BASE}/schedules", token,
              _payload(school, teacher_id=school.siti, start_time="07:30", end_time="08:30"))
    assert rv.status_code == 409
    err = rv.get_json()["errors"][0]
    assert err["code"] == "SCHEDULE_CONFLICT"
    assert len(err["details"]["conflicts"]["class_conflicts"]) == 1


def test_invalid_time_is_400_with_field(client, school):
    token = login(client, "admin@example.com")
    rv = send(client, "POST", f"{BASE}/schedules", token, _payload(school, start_time="7:00"))
    assert rv.status_code == 400
    err = rv.get_json()["errors"][0]
    assert err["code"] == "INVALID_TIME_FORMAT"
    assert err["details"]["field"] == "start_time"
    assert err["message"] == "Time must be in HH:MM format (24-hour)"


def test_check_conflicts_endpoint(client, school, lesson_id):
    token = login(client, "admin@example.com")
    free = {"class_id": school.x1, "teacher_id": school.budi, "day": "MONDAY",
            "start_time": "08:00", "end_time": "09:00"}
    rv = send(client, "POST", f"{BASE}/schedules/check-conflicts", token, free)
    assert rv.status_code == 200
    assert rv.get_json()["has_conflicts"] is False

    rv = send(client, "POST", f"{BASE}/schedules/check-conflicts", token, {**free, "start_time": "07:30"})
    assert rv.status_code == 409
    body = rv.get_json()
    assert [s["id"] for s in body["conflicts"]["class_conflicts"]] == [lesson_id]
    assert [s["id"] for s in body["conflicts"]["teacher_conflicts"]] == [lesson_id]

    rv = send(client, "POST", f"{BASE}/schedules/check-conflicts", token,
              {**free, "start_time": "07:30", "exclude_schedule_id": lesson_id})
    assert rv.status_code == 200


def test_check_conflicts_accepts_id_of_the_row_being_edited(client, school, lesson_id):
    token = login(client, "admin@example.com")
    edit = {"id": lesson_id, "class_id": school.x1, "teacher_id": school.budi, "day": "MONDAY",
            "start_time": "07:00", "end_time": "08:30"}
    rv = send(client, "POST", f"{BASE}/schedules/check-conflicts", token, edit)
    assert rv.status_code == 200
    assert rv.get_json()["has_conflicts"] is False

    rv = send(client, "POST", f"{BASE}/schedules/check-conflicts", token, {**edit, "id": None})
    assert rv.status_code == 409


def test_delete_with_sessions_is_409(app, client, school, lesson_id):
    with app.app_context():
        now = utcnow()
        db.session.add(AttendanceSession(schedule_id=lesson_id, date=now, token="KEEPME01",
                                         expires_at=now + timedelta(minutes=30)))
        db.session.commit()
    token = login(client, "admin@example.com")
    rv = send(client, "DELETE", f"{BASE}/schedules/{lesson_id}", token)
    assert rv.status_code == 409
    assert rv.get_json()["errors"][0]["details"]["related_sessions"] == 1


def test_week_views(client, school, lesson_id):
    login(client, "andi@example.com")
    week = client.get(f"{BASE}/schedules/student/{school.andi}/week").get_json()["weekly_schedule"]
    assert [s["id"] for s in week["MONDAY"]] == [lesson_id]
    assert len(week) == 7

    week = client.get(f"{BASE}/schedules/class/{school.x2}/week").get_json()["weekly_schedule"]
    assert all(v == [] for v in week.values())

    today = client.get(f"{BASE}/schedules/student/{school.andi}/today").get_json()
    assert today["today"] in week


# ---------- attendance ----------
def test_teacher_opens_and_student_submits(app, school, lesson_id):
    teacher, student = app.test_client(), app.test_client()
    t_token = login(teacher, "budi@example.com")
    s_token = login(student, "andi@example.com")

    rv = send(teacher, "POST", f"{BASE}/teachers/me/attendance-sessions", t_token, {"schedule_id": lesson_id})
    assert rv.status_code == 201
    sess = rv.get_json()["session"]
    assert sess["active"] is True
    assert len(sess["token"]) == 8

    rv = send(student, "POST", f"{BASE}/students/me/submit-attendance", s_token, {"token": sess["token"]})
    assert rv.status_code == 201
    assert rv.get_json()["attendance"]["status"] == "PRESENT"

    rv = send(student, "POST", f"{BASE}/students/me/submit-attendance", s_token, {"token": sess["token"]})
    assert rv.status_code == 409
    assert rv.get_json()["errors"][0]["code"] == "DUPLICATE_SUBMISSION"

    listed = teacher.get(f"{BASE}/teachers/me/attendance-sessions?active=true").get_json()
    assert listed["pagination"]["total"] == 1
    assert listed["sessions"][0]["attendances"][0]["student"]["nis"] == "1001"

    summary = student.get(f"{BASE}/students/{school.andi}/attendance-summary").get_json()
    assert summary["counts"]["PRESENT"] == 1
    assert summary["attendance_rate"] == 100.0


def test_expired_and_wrong_class_submissions(app, school, lesson_id):
    teacher = app.test_client()
    t_token = login(teacher, "budi@example.com")
    sess = send(teacher, "POST", f"{BASE}/teachers/me/attendance-sessions", t_token,
                {"schedule_id": lesson_id, "duration_minutes": 10}).get_json()["session"]

    rina = app.test_client()
    r_token = login(rina, "rina@example.com")
    rv = send(rina, "POST", f"{BASE}/students/me/submit-attendance", r_token, {"token": sess["token"]})
    assert rv.status_code == 403
    assert rv.get_json()["errors"][0]["code"] == "WRONG_CLASS"

    with app.app_context():
        row = db.session.get(AttendanceSession, sess["id"])
        row.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

    andi = app.test_client()
    a_token = login(andi, "andi@example.com")
    rv = send(andi, "POST", f"{BASE}/students/me/submit-attendance", a_token, {"token": sess["token"]})
    assert rv.status_code == 410
    assert rv.get_json()["errors"][0]["code"] == "SESSION_EXPIRED"


def test_session_duration_bounds_over_http(client, school, lesson_id):
    token = login(client, "budi@example.com")
    rv = send(client, "POST", f"{BASE}/teachers/me/attendance-sessions", token,
              {"schedule_id": lesson_id, "duration_minutes": 181})
    assert rv.status_code == 400
    assert rv.get_json()["errors"][0]["details"]["field"] == "duration_minutes"


def test_other_teacher_cannot_open_session(client, school, lesson_id):
    token = login(client, "siti@example.com")
    rv = send(client, "POST", f"{BASE}/teachers/me/attendance-sessions", token, {"schedule_id": lesson_id})
    assert rv.status_code == 404


def test_manual_attendance_and_status_change(app, school, lesson_id):
    teacher = app.test_client()
    token = login(teacher, "budi@example.com")
    sess = send(teacher, "POST", f"{BASE}/teachers/me/attendance-sessions", token,
                {"schedule_id": lesson_id}).get_json()["session"]

    rv = send(teacher, "POST", f"{BASE}/teachers/me/manual-attendance", token,
              {"session_id": sess["id"], "student_id": school.andi, "status": "IZIN"})
    assert rv.status_code == 201
    record = rv.get_json()["attendance"]
    assert record["status"] == "EXCUSED"
    assert record["scanned_at"] is None

    rv = send(teacher, "PUT", f"{BASE}/teachers/me/attendance/{record['id']}", token, {"status": "PRESENT"})
    assert rv.status_code == 200
    assert rv.get_json()["attendance"]["status"] == "PRESENT"

    rv = send(teacher, "PUT", f"{BASE}/teachers/me/attendance/{record['id']}", token, {"status": "LATE"})
    assert rv.status_code == 400
    assert rv.get_json()["errors"][0]["code"] == "INVALID_STATUS"

    history = teacher.get(f"{BASE}/students/{school.andi}/attendance").get_json()
    assert history["pagination"]["total"] == 1
