# blueprints/attendance/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user

from blueprints.auth.routes import self_or_staff_required, student_required, teacher_required
from blueprints.core.validation import load_args, load_body
from . import services as svc
from .schemas import (
    HistoryQuery, ManualAttendanceIn, SessionCreateIn, SessionQuery, StatusIn, SubmitIn, SummaryQuery,
)

api_bp = Blueprint("attendance_api", __name__)

# ---------- teacher ----------
@api_bp.post("/teachers/me/attendance-sessions")
@teacher_required
def open_session():
    body = load_body(SessionCreateIn)
    sess = svc.open_session(body.schedule_id, current_user.teacher_id, body.duration_minutes)
    return jsonify({"ok": True, "session": svc.session_to_dict(sess)}), 201

@api_bp.get("/teachers/me/attendance-sessions")
@teacher_required
def list_sessions():
    q = load_args(SessionQuery)
    data = svc.list_sessions(current_user.teacher_id, schedule_id=q.schedule_id, active=q.active,
                             on_date=q.on_date, page=q.page, limit=q.limit)
    return jsonify({"ok": True, **data})

@api_bp.post("/teachers/me/manual-attendance")
@teacher_required
def manual_attendance():
    body = load_body(ManualAttendanceIn)
    a = svc.add_manual_attendance(current_user.teacher_id, body.session_id, body.student_id, body.status)
    return jsonify({"ok": True, "attendance": svc.attendance_to_dict(a)}), 201

@api_bp.put("/teachers/me/attendance/<int:attendance_id>")
@teacher_required
def update_status(attendance_id: int):
    body = load_body(StatusIn)
    a = svc.update_attendance_status(current_user.teacher_id, attendance_id, body.status)
    return jsonify({"ok": True, "attendance": svc.attendance_to_dict(a)})

# ---------- student ----------
@api_bp.post("/students/me/submit-attendance")
@student_required
def submit_attendance():
    body = load_body(SubmitIn)
    a = svc.submit_attendance(current_user.student_id, body.token)
    return jsonify({"ok": True, "attendance": svc.attendance_to_dict(a)}), 201

@api_bp.get("/students/<int:student_id>/attendance")
@self_or_staff_required("student_id")
def student_history(student_id: int):
    q = load_args(HistoryQuery)
    data = svc.student_attendance(student_id, status=q.status, subject_id=q.subject_id,
                                  date_from=q.date_from, date_to=q.date_to, page=q.page, limit=q.limit)
    return jsonify({"ok": True, **data})

@api_bp.get("/students/<int:student_id>/attendance-summary")
@self_or_staff_required("student_id")
def student_summary(student_id: int):
    q = load_args(SummaryQuery)
    return jsonify({"ok": True, **svc.attendance_summary(student_id, q.date_from, q.date_to)})
