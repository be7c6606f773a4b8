from __future__ import annotations
import json, logging, time
from datetime import datetime, timezone
from uuid import uuid4

from flask import current_app, g, jsonify, request
from flask_wtf.csrf import CSRFError, generate_csrf
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from errors import ServiceError
from extensions import csrf, db

from . import bp, api_bp

REQUEST_ID_HEADER = "X-Request-ID"

class JSONFormatter(logging.Formatter):
    FIELDS = ("event", "path", "method", "status", "duration_ms", "request_id",
              "schedule_id", "session_id", "student_id", "code",
              "class_conflicts", "teacher_conflicts")

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in self.FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

def _setup_structured_logging(app):
    # the service loggers propagate to root, so the handler goes on both
    for logger in (app.logger, logging.getLogger()):
        has_json = any(
            isinstance(h, logging.StreamHandler)
            and isinstance(getattr(h, "formatter", None), JSONFormatter)
            for h in logger.handlers
        )
        if not has_json:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    app.logger.propagate = False

def _envelope(code: str, message: str, status: int, details: dict | None = None):
    return jsonify({"ok": False, "errors": [
        {"code": code, "message": message, "details": details or {}}
    ]}), status

# ---------- request log ----------
@bp.before_app_request
def _start_timer():
    g._req_start = time.perf_counter()
    g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex

@bp.after_app_request
def _log_request(response: Response):
    start = getattr(g, "_req_start", None)
    duration_ms = int((time.perf_counter() - start) * 1000) if start is not None else None
    request_id = getattr(g, "request_id", None)
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    logging.getLogger("http").info("request handled", extra={
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "request_id": request_id,
    })
    return response

@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)

# ---------- errors ----------
@bp.app_errorhandler(ServiceError)
def _service_error(e: ServiceError):
    return jsonify({"ok": False, "errors": [e.to_dict()]}), e.status

@bp.app_errorhandler(CSRFError)
def _csrf_error(e: CSRFError):
    return _envelope("CSRF_FAILED", e.description or "CSRF token missing or invalid", 400)

@bp.app_errorhandler(SQLAlchemyError)
def _db_error(e: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception("database failure", extra={
        "event": "db_error", "request_id": getattr(g, "request_id", None),
    })
    return _envelope("INTERNAL_ERROR", "Internal server error", 500)

@bp.app_errorhandler(HTTPException)
def _http_error(e: HTTPException):
    if e.code is not None and e.code < 400:
        return e  # routing redirects
    code = (e.name or "error").upper().replace(" ", "_")
    return _envelope(code, e.description or e.name, e.code or 500)

# ---------- endpoints ----------
@api_bp.get("/csrf")
@csrf.exempt
def get_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf": token})
    resp.set_cookie("csrf_token", token, samesite="Lax")
    return resp

@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "request_id": getattr(g, "request_id", None),
    })
