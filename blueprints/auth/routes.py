# blueprints/auth/routes.py
from __future__ import annotations
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, abort, current_app
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.security import check_password_hash

from errors import ValidationFailure
from extensions import csrf, db, login_manager
from models import Role, User

api_bp = Blueprint("auth_api", __name__)

DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 minutes
_login_attempts: dict[str, list[float]] = {}  # ip|email -> [timestamps]

STAFF = (Role.ADMIN.value, Role.TEACHER.value)

@login_manager.user_loader
def load_user(uid: str) -> Optional[User]:
    try:
        return db.session.get(User, int(uid))
    except (TypeError, ValueError):
        return None

# ---------- rate limit ----------
def _rl_key(email: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(email or '').lower()}"

def _rl_check_and_hit(email: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    cutoff = now - win
    # drop keys whose newest hit left the window
    for key in [k for k, ts in _login_attempts.items() if not ts or ts[-1] < cutoff]:
        del _login_attempts[key]
    bucket = _login_attempts.setdefault(_rl_key(email), [])
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True

# ---------- role decorators ----------
def _role() -> Optional[str]:
    return getattr(current_user, "role", None)

def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if _role() != Role.ADMIN.value:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def teacher_required(fn: Callable):
    """Only users linked to a Teacher row; the view reads current_user.teacher_id."""
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if _role() != Role.TEACHER.value or current_user.teacher_id is None:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def student_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if _role() != Role.STUDENT.value or current_user.student_id is None:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def self_or_staff_required(arg: str = "student_id", staff: tuple[str, ...] = STAFF):
    """Staff roles pass; anyone else only when the URL id ``arg`` is their own link.

    ``arg`` doubles as the User column holding the link (student_id / teacher_id).
    """
    def decorator(fn: Callable):
        @wraps(fn)
        @login_required
        def wrapper(*args, **kwargs):
            if _role() in staff:
                return fn(*args, **kwargs)
            own = getattr(current_user, arg, None)
            if own is None or own != kwargs.get(arg):
                abort(403)
            return fn(*args, **kwargs)
        return wrapper
    return decorator

# ---------- 401 ----------
@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"ok": False, "errors": [
        {"code": "UNAUTHORIZED", "message": "Authentication required", "details": {}}
    ]}), 401

def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "teacher_id": user.teacher_id,
        "student_id": user.student_id,
    }

# ---------- API ----------
@api_bp.post("/auth/login")
@csrf.exempt
def api_login():
    payload = request.get_json(silent=True) or request.form or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        raise ValidationFailure("Email and password are required",
                                field="email" if not email else "password", code="MISSING_CREDENTIALS")

    if not _rl_check_and_hit(email):
        return jsonify({"ok": False, "errors": [
            {"code": "TOO_MANY_ATTEMPTS", "message": "Too many login attempts", "details": {}}
        ]}), 429

    user: Optional[User] = User.query.filter_by(email=email).first()
    if not user or not user.password_hash or not check_password_hash(user.password_hash, password):
        return jsonify({"ok": False, "errors": [
            {"code": "INVALID_CREDENTIALS", "message": "Invalid email or password", "details": {}}
        ]}), 401

    if not user.is_active:
        abort(403)

    login_user(user, remember=True)
    current_app.logger.info("user logged in", extra={"event": "login"})
    return jsonify({"ok": True, "user": user_to_dict(user)})

@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})

@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"ok": True, "user": user_to_dict(current_user)})
