from __future__ import annotations
import os
from pathlib import Path

class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'school.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # wall clock used to resolve "today" for the daily views
    SCHOOL_TIMEZONE = os.getenv("SCHOOL_TIMEZONE", "Asia/Jakarta")

    ATTENDANCE_SESSION_DEFAULT_MINUTES = 30
    ATTENDANCE_SESSION_MIN_MINUTES = 5
    ATTENDANCE_SESSION_MAX_MINUTES = 180
    ATTENDANCE_TOKEN_LENGTH = 8

    SCHEDULE_PAGE_LIMIT_MAX = 100

    AUTH_RL_MAX = 5
    AUTH_RL_WINDOW = 300  # seconds

    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ["X-CSRF-Token", "X-CSRFToken"]

    SEED_TEST_DATA = False
    DEFAULT_USERS: list[dict] = []

class DevConfig(BaseConfig):
    DEBUG = True
    SEED_TEST_DATA = True
    DEFAULT_USERS = [
        {"email": "admin@example.com", "password": "pass", "role": "ADMIN"},
        # optionally linked to an existing Teacher by name
        {"email": "t1@example.com", "password": "pass", "role": "TEACHER",
         "teacher_name": None},
    ]

class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False}}
    AUTH_RL_MAX = 100

class ProdConfig(BaseConfig):
    DEBUG = False

config_map = {
    "dev": DevConfig,
    "test": TestConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}
