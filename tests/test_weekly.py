from __future__ import annotations
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from errors import NotFound
from extensions import db
from models import AttendanceSession, Weekday
from blueprints.schedule import weekly

pytestmark = pytest.mark.usefixtures("ctx")

JAKARTA = ZoneInfo("Asia/Jakarta")
# 2024-01-01 is a Monday
MONDAY_MORNING = datetime(2024, 1, 1, 9, 0, tzinfo=JAKARTA)


def test_group_by_day_has_all_seven_keys(school, make_schedule):
    a = make_schedule(day="WEDNESDAY")
    grouped = weekly.group_by_day([a])
    assert list(grouped) == Weekday.ordered()
    assert grouped[Weekday.WEDNESDAY] == [a]
    assert grouped[Weekday.SUNDAY] == []


def test_class_week_orders_by_start_time(school, make_schedule):
    make_schedule(start_time="10:00", end_time="11:00")
    make_schedule(start_time="07:00", end_time="08:00")
    make_schedule(day="FRIDAY")

    week = weekly.class_week(school.x1)["weekly_schedule"]
    assert list(week) == ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"]
    assert [s["start_time"] for s in week["MONDAY"]] == ["07:00", "10:00"]
    assert len(week["FRIDAY"]) == 1
    assert week["SATURDAY"] == []


def test_teacher_week_spans_classes(school, make_schedule):
    make_schedule()
    make_schedule(class_id=school.x2, start_time="08:00", end_time="09:00")
    week = weekly.teacher_week(school.budi)["weekly_schedule"]
    assert [s["class_id"] for s in week["MONDAY"]] == [school.x1, school.x2]


def test_student_week_uses_the_students_class(school, make_schedule):
    make_schedule()
    make_schedule(class_id=school.x2, teacher_id=school.siti, day="TUESDAY")
    data = weekly.student_week(school.rina)
    assert data["class_id"] == school.x2
    assert data["weekly_schedule"]["MONDAY"] == []
    assert len(data["weekly_schedule"]["TUESDAY"]) == 1


def test_unknown_owner_is_not_found(school):
    with pytest.raises(NotFound):
        weekly.class_week(999)
    with pytest.raises(NotFound):
        weekly.student_today(999, MONDAY_MORNING)


def test_today_views_pick_the_reference_weekday(school, make_schedule):
    make_schedule()
    make_schedule(day="TUESDAY")
    day, rows = weekly.today_for_class(school.x1, MONDAY_MORNING)
    assert day is Weekday.MONDAY
    assert len(rows) == 1
    day, rows = weekly.today_for_teacher(school.budi, MONDAY_MORNING + timedelta(days=1))
    assert day is Weekday.TUESDAY and len(rows) == 1


def test_student_today_includes_sessions_opened_that_day(school, make_schedule):
    s = make_schedule()
    # 08:30 Jakarta == 01:30 UTC the same day; stored naive UTC
    opened = datetime(2024, 1, 1, 1, 30)
    db.session.add_all([
        AttendanceSession(schedule_id=s.id, date=opened, token="TODAY001",
                          expires_at=opened + timedelta(minutes=30)),
        AttendanceSession(schedule_id=s.id, date=opened - timedelta(days=7), token="LASTWEEK",
                          expires_at=opened - timedelta(days=7) + timedelta(minutes=30)),
    ])
    db.session.commit()

    data = weekly.student_today(school.andi, MONDAY_MORNING)
    assert data["today"] == "MONDAY"
    assert len(data["schedules"]) == 1
    assert [x["id"] for x in data["schedules"][0]["sessions"]] == [
        AttendanceSession.query.filter_by(token="TODAY001").one().id
    ]


def test_teacher_today_is_empty_on_a_free_day(school, make_schedule):
    make_schedule()
    sunday = MONDAY_MORNING - timedelta(days=1)
    assert weekly.teacher_today(school.budi, sunday) == {"today": "SUNDAY", "schedules": []}
