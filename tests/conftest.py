from __future__ import annotations
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import Role, SchoolClass, Student, Subject, Teacher, TeacherSubject, User

PASSWORD = "pass"


@pytest.fixture()
def app():
    from blueprints.auth.routes import _login_attempts
    _login_attempts.clear()
    app = create_app("test")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture()
def ctx(app):
    """App context for service-level tests.

    HTTP tests leave it out: a pushed context would be reused by every
    request, and with it ``g`` (logged-in user, CSRF token).
    """
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def school(app):
    """Two classes, two teachers, one student per class and a login for each role."""
    with app.app_context():
        return _seed_school()


def _seed_school() -> SimpleNamespace:
    x1, x2 = SchoolClass(name="X IPA 1"), SchoolClass(name="X IPA 2")
    math, physics = Subject(name="Matematika"), Subject(name="Fisika")
    budi, siti = Teacher(name="Budi"), Teacher(name="Siti")
    db.session.add_all([x1, x2, math, physics, budi, siti])
    db.session.flush()

    db.session.add_all([
        TeacherSubject(teacher_id=budi.id, subject_id=math.id),
        TeacherSubject(teacher_id=siti.id, subject_id=math.id),
        TeacherSubject(teacher_id=siti.id, subject_id=physics.id),
    ])
    andi = Student(name="Andi", nis="1001", class_id=x1.id)
    rina = Student(name="Rina", nis="2001", class_id=x2.id)
    db.session.add_all([andi, rina])
    db.session.flush()

    pw = generate_password_hash(PASSWORD)
    db.session.add_all([
        User(email="admin@example.com", password_hash=pw, role=Role.ADMIN.value),
        User(email="budi@example.com", password_hash=pw, role=Role.TEACHER.value, teacher_id=budi.id),
        User(email="siti@example.com", password_hash=pw, role=Role.TEACHER.value, teacher_id=siti.id),
        User(email="andi@example.com", password_hash=pw, role=Role.STUDENT.value, student_id=andi.id),
        User(email="rina@example.com", password_hash=pw, role=Role.STUDENT.value, student_id=rina.id),
    ])
    db.session.commit()

    return SimpleNamespace(
        x1=x1.id, x2=x2.id, math=math.id, physics=physics.id,
        budi=budi.id, siti=siti.id, andi=andi.id, rina=rina.id,
    )


@pytest.fixture()
def make_schedule(school):
    """Create a schedule through the service; call inside an app context."""
    from blueprints.schedule.services import create_schedule

    def _make(**overrides):
        data = {
            "subject_id": school.math, "class_id": school.x1, "teacher_id": school.budi,
            "day": "MONDAY", "start_time": "07:00", "end_time": "08:00",
        }
        data.update(overrides)
        return create_schedule(data)
    return _make


def login(client, email: str, password: str = PASSWORD) -> str:
    """Log in and return a CSRF token for the session."""
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.get_json()
    r = client.get("/api/v1/csrf")
    assert r.status_code == 200
    return r.get_json()["csrf"]


def send(client, method: str, url: str, token: str, json=None):
    return client.open(url, method=method, json=json, headers={"X-CSRF-Token": token})
