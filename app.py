from __future__ import annotations
import os
from importlib import import_module
from flask import Flask
from config import config_map
from extensions import db, migrate, login_manager, csrf
from werkzeug.security import generate_password_hash
from sqlalchemy import inspect

API_PREFIX = "/api/v1"

def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # users may not exist yet (before `flask db upgrade`)
        if not inspect(db.engine).has_table("users"):
            return

        from models import User, Teacher  # local import, avoids cycles
        created = 0
        for u in app.config.get("DEFAULT_USERS", []):
            if User.query.filter_by(email=u["email"]).first():
                continue
            user = User(
                email=u["email"],
                password_hash=generate_password_hash(u["password"]),
                role=u["role"],
                is_active_flag=True,
            )
            name = u.get("teacher_name")
            if name:
                t = Teacher.query.filter_by(name=name).first()
                if t:
                    user.teacher_id = t.id
            db.session.add(user)
            created += 1
        if created:
            db.session.commit()
            app.logger.info("default users seeded", extra={"event": "seed_users"})

def register_blueprints(app: Flask) -> None:
    # core first: its record_once hook sets up logging for everything after it
    import_module("blueprints.core.routes")
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import api_bp as auth_api_bp
    from blueprints.directory import api_bp as directory_api_bp
    from blueprints.schedule.routes import api_bp as schedule_api_bp
    from blueprints.constraints.routes import api_bp as constraints_api_bp
    from blueprints.attendance.routes import api_bp as attendance_api_bp

    app.register_blueprint(core_bp)
    app.register_blueprint(core_api_bp, url_prefix=API_PREFIX)
    app.register_blueprint(auth_api_bp, url_prefix=API_PREFIX)
    app.register_blueprint(directory_api_bp, url_prefix=API_PREFIX)
    app.register_blueprint(constraints_api_bp, url_prefix=API_PREFIX)
    app.register_blueprint(schedule_api_bp, url_prefix=API_PREFIX)
    app.register_blueprint(attendance_api_bp, url_prefix=API_PREFIX)

def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    register_blueprints(app)
    _seed_from_config(app)
    return app
