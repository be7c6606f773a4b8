# blueprints/schedule/routes.py
from __future__ import annotations
from datetime import datetime
from zoneinfo import ZoneInfo

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from blueprints.auth.routes import admin_required, self_or_staff_required
from blueprints.core.validation import load_args, load_body
from models import Role
from . import services as svc
from . import weekly
from .schemas import ScheduleIn, ScheduleQuery

api_bp = Blueprint("schedule_api", __name__)


def _school_now() -> datetime:
    return datetime.now(ZoneInfo(current_app.config["SCHOOL_TIMEZONE"]))


def _actor_id():
    return getattr(current_user, "id", None)


# ---------- CRUD ----------
@api_bp.get("/schedules")
@login_required
def list_schedules():
    q = load_args(ScheduleQuery)
    limit = min(q.limit, current_app.config.get("SCHEDULE_PAGE_LIMIT_MAX", 100))
    data = svc.list_schedules(
        filters={"class_id": q.class_id, "teacher_id": q.teacher_id,
                 "subject_id": q.subject_id, "day": q.day},
        page=q.page, limit=limit, sort_by=q.sort_by, sort_order=q.sort_order,
    )
    return jsonify({"ok": True, **data})


@api_bp.get("/schedules/<int:schedule_id>")
@login_required
def get_schedule(schedule_id: int):
    return jsonify({"ok": True, "schedule": svc.schedule_to_dict(svc.get_schedule(schedule_id))})


@api_bp.post("/schedules")
@admin_required
def create_schedule():
    body = load_body(ScheduleIn)
    s = svc.create_schedule(body.model_dump(), actor_id=_actor_id())
    return jsonify({"ok": True, "schedule": svc.schedule_to_dict(s)}), 201


@api_bp.put("/schedules/<int:schedule_id>")
@admin_required
def update_schedule(schedule_id: int):
    body = load_body(ScheduleIn)
    s = svc.update_schedule(schedule_id, body.model_dump(exclude_none=True), actor_id=_actor_id())
    return jsonify({"ok": True, "schedule": svc.schedule_to_dict(s)})


@api_bp.delete("/schedules/<int:schedule_id>")
@admin_required
def delete_schedule(schedule_id: int):
    svc.delete_schedule(schedule_id, actor_id=_actor_id())
    return jsonify({"ok": True})


# ---------- weekly / today ----------
@api_bp.get("/schedules/class/<int:class_id>/week")
@login_required
def class_week(class_id: int):
    return jsonify({"ok": True, **weekly.class_week(class_id)})


@api_bp.get("/schedules/teacher/<int:teacher_id>/week")
@login_required
def teacher_week(teacher_id: int):
    return jsonify({"ok": True, **weekly.teacher_week(teacher_id)})


@api_bp.get("/schedules/teacher/<int:teacher_id>/today")
@self_or_staff_required("teacher_id", staff=(Role.ADMIN.value,))
def teacher_today(teacher_id: int):
    return jsonify({"ok": True, **weekly.teacher_today(teacher_id, _school_now())})


@api_bp.get("/schedules/student/<int:student_id>/today")
@self_or_staff_required("student_id")
def student_today(student_id: int):
    return jsonify({"ok": True, **weekly.student_today(student_id, _school_now())})


@api_bp.get("/schedules/student/<int:student_id>/week")
@self_or_staff_required("student_id")
def student_week(student_id: int):
    return jsonify({"ok": True, **weekly.student_week(student_id)})
