"""
Idempotent seed script.
Usage:
  python seed.py --reset         # drop and recreate the database, then load demo data
  python seed.py --ensure-admin  # create only the admin user (admin@example.com / admin)
  python seed.py                 # fill in whatever demo data is missing
"""
import argparse

from werkzeug.security import generate_password_hash

from app import create_app
from errors import ServiceError
from extensions import db
from models import (
    Role, Schedule, SchoolClass, Student, Subject, Teacher, TeacherSubject, User, Weekday,
)
from blueprints.schedule.services import create_schedule

CLASSES = ["X IPA 1", "X IPA 2"]
SUBJECTS = ["Matematika", "Fisika", "Bahasa Indonesia"]
TEACHERS = {
    "Budi Santoso": ["Matematika", "Fisika"],
    "Siti Rahma": ["Bahasa Indonesia"],
}
STUDENTS = [
    ("Andi Wijaya", "2024001", "X IPA 1"),
    ("Dewi Lestari", "2024002", "X IPA 1"),
    ("Rizky Pratama", "2024003", "X IPA 2"),
]
# (class, subject, teacher, day, start, end)
SCHEDULES = [
    ("X IPA 1", "Matematika", "Budi Santoso", "SENIN", "07:00", "08:30"),
    ("X IPA 1", "Bahasa Indonesia", "Siti Rahma", "SENIN", "08:30", "10:00"),
    ("X IPA 2", "Fisika", "Budi Santoso", "SENIN", "08:30", "10:00"),
    ("X IPA 2", "Bahasa Indonesia", "Siti Rahma", "SELASA", "07:00", "08:30"),
]

# ---- helpers ----
def get_or_create(model, defaults=None, **by):
    """Idempotent create keyed by unique columns."""
    inst = db.session.query(model).filter_by(**by).first()
    if inst:
        return inst, False
    inst = model(**{**(defaults or {}), **by})
    db.session.add(inst)
    db.session.flush()
    return inst, True

def ensure_user(email, password, role, **links):
    if User.query.filter_by(email=email).first():
        return False
    db.session.add(User(email=email, password_hash=generate_password_hash(password),
                        role=role, is_active_flag=True, **links))
    return True

# ---- directory ----
def seed_directory():
    ids = {"class": {}, "subject": {}, "teacher": {}, "student": {}}
    for name in CLASSES:
        ids["class"][name] = get_or_create(SchoolClass, name=name)[0].id
    for name in SUBJECTS:
        ids["subject"][name] = get_or_create(Subject, name=name)[0].id
    for name, subjects in TEACHERS.items():
        t, _ = get_or_create(Teacher, name=name)
        ids["teacher"][name] = t.id
        for subj in subjects:
            get_or_create(TeacherSubject, teacher_id=t.id, subject_id=ids["subject"][subj])
    for name, nis, cls in STUDENTS:
        st, _ = get_or_create(Student, nis=nis, defaults={"name": name, "class_id": ids["class"][cls]})
        ids["student"][nis] = st.id
    db.session.commit()
    return ids

def seed_schedules(ids):
    created = 0
    for cls, subj, teacher, day, start, end in SCHEDULES:
        exists = Schedule.query.filter_by(
            class_id=ids["class"][cls], day=Weekday.parse(day), start_time=start,
        ).first()
        if exists:
            continue
        try:
            create_schedule({
                "class_id": ids["class"][cls], "subject_id": ids["subject"][subj],
                "teacher_id": ids["teacher"][teacher], "day": day,
                "start_time": start, "end_time": end,
            })
            created += 1
        except ServiceError as e:
            print(f"[seed] skipped {cls} {day} {start}: {e.code} {e.message}")
    return created

def seed_users(ids):
    ensure_admin()
    for i, (name, _) in enumerate(TEACHERS.items(), start=1):
        ensure_user(f"teacher{i}@example.com", "pass", Role.TEACHER.value, teacher_id=ids["teacher"][name])
    for nis, student_id in ids["student"].items():
        ensure_user(f"{nis}@example.com", "pass", Role.STUDENT.value, student_id=student_id)
    db.session.commit()

def ensure_admin():
    created = ensure_user("admin@example.com", "admin", Role.ADMIN.value)
    db.session.commit()
    return created

def seed_all():
    ids = seed_directory()
    n = seed_schedules(ids)
    seed_users(ids)
    return n

# ---- main ----
def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="drop + create + full seed (demo)")
    parser.add_argument("--ensure-admin", action="store_true", help="create only the admin user")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
            n = seed_all()
            print(f"[seed] reset+seed complete, {n} schedules")
            return

        if args.ensure_admin:
            created = ensure_admin()
            print("Admin created." if created else "Admin already exists.")
            return

        db.create_all()
        n = seed_all()
        print(f"[seed] soft seed complete, {n} new schedules")

if __name__ == "__main__":
    main()
