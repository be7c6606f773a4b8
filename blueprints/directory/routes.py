from __future__ import annotations
import logging
from typing import Any, Type

from flask import jsonify, request, url_for
from flask_login import login_required
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query

from . import api_bp
from .schemas import (
    ClassIn, ClassOut,
    StudentIn, StudentOut,
    SubjectIn, SubjectOut,
    TeacherIn, TeacherOut,
    TeacherSubjectIn, TeacherSubjectOut,
)
from blueprints.auth.routes import admin_required
from blueprints.core.validation import load_body
from errors import ConflictFailure, NotFound, ValidationFailure
from extensions import db
from models import SchoolClass, Student, Subject, Teacher, TeacherSubject

log = logging.getLogger(__name__)

# ----------------------- Helpers -----------------------
def created(location: str, data: Any):
    resp = jsonify({"ok": True, "item": data})
    resp.status_code = 201
    resp.headers["Location"] = location
    return resp

def _page_args() -> tuple[int, int]:
    try:
        page = max(1, int(request.args.get("page", 1)))
        per_page = min(100, max(1, int(request.args.get("per_page", 20))))
    except ValueError:
        raise ValidationFailure("page and per_page must be integers", field="page") from None
    return page, per_page

def _paginate(query: Query, serializer: Type[BaseModel]):
    page, per_page = _page_args()
    total = query.count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    items = [serializer.model_validate(r).model_dump(mode="json") for r in rows]
    return jsonify({"ok": True, "items": items, "meta": {"page": page, "per_page": per_page, "total": total}})

def _search(query: Query, *cols):
    q = (request.args.get("q") or "").strip()
    if q:
        query = query.filter(or_(*(c.ilike(f"%{q}%") for c in cols)))
    return query

def _require(model, pk: int, code: str, label: str):
    obj = db.session.get(model, pk)
    if not obj:
        raise NotFound(f"{label} not found", code=code, details={"id": pk})
    return obj

def _save(obj, label: str):
    db.session.add(obj)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictFailure(f"{label} already exists", code="UNIQUE_CONSTRAINT") from None
    log.info("%s created", label.lower(), extra={"event": "directory_created"})
    return obj

# ---------- Classes ----------
@api_bp.get("/classes")
@login_required
def classes_list():
    q = _search(db.session.query(SchoolClass), SchoolClass.name).order_by(SchoolClass.name.asc())
    return _paginate(q, ClassOut)

@api_bp.get("/classes/<int:id>")
@login_required
def classes_get(id: int):
    c = _require(SchoolClass, id, "CLASS_NOT_FOUND", "Class")
    return jsonify({"ok": True, "item": ClassOut.model_validate(c).model_dump(mode="json")})

@api_bp.post("/classes")
@admin_required
def classes_create():
    parsed = load_body(ClassIn)
    c = _save(SchoolClass(name=parsed.name), "Class")
    return created(url_for("directory_api.classes_get", id=c.id), ClassOut.model_validate(c).model_dump(mode="json"))

# ---------- Subjects ----------
@api_bp.get("/subjects")
@login_required
def subjects_list():
    q = _search(db.session.query(Subject), Subject.name).order_by(Subject.name.asc())
    return _paginate(q, SubjectOut)

@api_bp.get("/subjects/<int:id>")
@login_required
def subjects_get(id: int):
    s = _require(Subject, id, "SUBJECT_NOT_FOUND", "Subject")
    return jsonify({"ok": True, "item": SubjectOut.model_validate(s).model_dump(mode="json")})

@api_bp.post("/subjects")
@admin_required
def subjects_create():
    parsed = load_body(SubjectIn)
    s = _save(Subject(name=parsed.name.strip()), "Subject")
    return created(url_for("directory_api.subjects_get", id=s.id), SubjectOut.model_validate(s).model_dump(mode="json"))

# ---------- Teachers ----------
@api_bp.get("/teachers")
@login_required
def teachers_list():
    q = _search(db.session.query(Teacher), Teacher.name).order_by(Teacher.name.asc())
    return _paginate(q, TeacherOut)

@api_bp.get("/teachers/<int:id>")
@login_required
def teachers_get(id: int):
    t = _require(Teacher, id, "TEACHER_NOT_FOUND", "Teacher")
    out = TeacherOut.model_validate(t).model_dump(mode="json")
    out["subjects"] = [{"id": s.id, "name": s.name} for s in t.subjects]
    return jsonify({"ok": True, "item": out})

@api_bp.post("/teachers")
@admin_required
def teachers_create():
    parsed = load_body(TeacherIn)
    t = _save(Teacher(name=parsed.name.strip()), "Teacher")
    return created(url_for("directory_api.teachers_get", id=t.id), TeacherOut.model_validate(t).model_dump(mode="json"))

# ---------- Students ----------
@api_bp.get("/students")
@login_required
def students_list():
    q = _search(db.session.query(Student), Student.name, Student.nis)
    class_id = request.args.get("class_id", type=int)
    if class_id is not None:
        q = q.filter(Student.class_id == class_id)
    return _paginate(q.order_by(Student.name.asc()), StudentOut)

@api_bp.get("/students/<int:id>")
@login_required
def students_get(id: int):
    st = _require(Student, id, "STUDENT_NOT_FOUND", "Student")
    return jsonify({"ok": True, "item": StudentOut.model_validate(st).model_dump(mode="json")})

@api_bp.post("/students")
@admin_required
def students_create():
    parsed = load_body(StudentIn)
    _require(SchoolClass, parsed.class_id, "CLASS_NOT_FOUND", "Class")
    st = _save(Student(name=parsed.name.strip(), nis=parsed.nis.strip(), class_id=parsed.class_id), "Student")
    return created(url_for("directory_api.students_get", id=st.id), StudentOut.model_validate(st).model_dump(mode="json"))

# ---------- Teacher <-> Subject ----------
@api_bp.get("/teacher-subjects")
@login_required
def teacher_subjects_list():
    q = db.session.query(TeacherSubject)
    teacher_id = request.args.get("teacher_id", type=int)
    if teacher_id is not None:
        q = q.filter(TeacherSubject.teacher_id == teacher_id)
    return _paginate(q.order_by(TeacherSubject.id.asc()), TeacherSubjectOut)

@api_bp.post("/teacher-subjects")
@admin_required
def teacher_subjects_create():
    parsed = load_body(TeacherSubjectIn)
    _require(Teacher, parsed.teacher_id, "TEACHER_NOT_FOUND", "Teacher")
    _require(Subject, parsed.subject_id, "SUBJECT_NOT_FOUND", "Subject")
    link = _save(TeacherSubject(teacher_id=parsed.teacher_id, subject_id=parsed.subject_id), "Assignment")
    out = TeacherSubjectOut.model_validate(link).model_dump(mode="json")
    return jsonify({"ok": True, "item": out}), 201
