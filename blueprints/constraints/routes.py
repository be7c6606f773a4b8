# blueprints/constraints/routes.py
from flask import Blueprint, jsonify

from blueprints.auth.routes import admin_required
from blueprints.core.validation import load_body
from blueprints.schedule.schemas import ConflictCheckIn
from .services import check_conflicts

api_bp = Blueprint("constraints_api", __name__)

@api_bp.post("/schedules/check-conflicts")
@admin_required
def schedules_check_conflicts():
    body = load_body(ConflictCheckIn)
    report = check_conflicts(body.model_dump())

    if not report.has_conflicts:
        return jsonify({"ok": True, "has_conflicts": False, "conflicts": report.to_dict()}), 200
    # a found conflict is a business outcome -> 409
    return jsonify({
        "ok": False,
        "has_conflicts": True,
        "conflicts": report.to_dict(),
        "errors": [{"code": "SCHEDULE_CONFLICT", "message": "Schedule conflicts detected",
                    "details": report.to_dict()}],
    }), 409
