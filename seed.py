"""
Idempotent seed-скрипт.
Запуск:
  python seed.py --reset         # дропнуть и пересоздать БД + демо-данные + admin
  python seed.py --ensure-admin  # создать только администратора (без сидов)
  python seed.py                 # мягкое наполнение недостающих данных (idempotent)
"""
from datetime import time
from decimal import Decimal
import argparse

from app import create_app
from extensions import db
from models import Admin, CourseGroup, CourseGroupStatus, PermissionLevel, Student, Subject, Teacher
from blueprints.groups.schemas import GroupCreate, StatusChange
from blueprints.groups import services as groups_svc

ADMIN_EMAIL = "admin@acainfo.local"
ADMIN_PASSWORD = "admin12345"
DEMO_PASSWORD = "password123"
MAJOR = "Computer Engineering"


def get_or_create(model, defaults=None, password=None, **by):
    """Идемпотентное создание по уникальным ключам."""
    inst = db.session.query(model).filter_by(**by).first()
    if inst:
        return inst, False
    data = dict(defaults or {})
    data.update(by)
    inst = model(**data)
    if password is not None:
        inst.set_password(password)
    db.session.add(inst)
    db.session.flush()
    return inst, True


# ---- сиды справочников ----
def seed_directory():
    """Преподаватели, студенты, предметы одной специальности."""
    ids = {}

    t1, _ = get_or_create(Teacher, email="ivanov@acainfo.local", defaults=dict(name="Ivan Ivanov"),
                          password=DEMO_PASSWORD)
    t2, _ = get_or_create(Teacher, email="petrova@acainfo.local", defaults=dict(name="Maria Petrova"),
                          password=DEMO_PASSWORD)
    ids["teacher_ivanov_id"] = t1.id
    ids["teacher_petrova_id"] = t2.id

    for i, name in enumerate(("Ana Garcia", "Luis Martin", "Sara Lopez"), start=1):
        st, _ = get_or_create(Student, email=f"student{i}@acainfo.local",
                              defaults=dict(name=name, major=MAJOR), password=DEMO_PASSWORD)
        ids[f"student{i}_id"] = st.id

    subjects = (("Calculus I", 1), ("Programming I", 1), ("Data Structures", 2), ("Operating Systems", 3))
    for name, year in subjects:
        s, _ = get_or_create(Subject, name=name, major=MAJOR, defaults=dict(course_year=year))
        ids[f"subj_{name}"] = s.id

    db.session.commit()
    return ids


# ---- группы + занятия (через те же правила, что и API) ----
def seed_groups(ids):
    plans = [
        ("Calculus I", ids["teacher_ivanov_id"], Decimal("120.00"), [
            {"day_of_week": "MONDAY", "start_time": time(10, 0), "end_time": time(12, 0), "classroom": "A-101"},
            {"day_of_week": "WEDNESDAY", "start_time": time(10, 0), "end_time": time(12, 0), "classroom": "A-101"},
        ], True),
        ("Programming I", ids["teacher_petrova_id"], Decimal("150.00"), [
            {"day_of_week": "TUESDAY", "start_time": time(16, 0), "end_time": time(18, 0), "classroom": "Lab-3"},
        ], True),
        ("Data Structures", None, Decimal("150.00"), [
            {"day_of_week": "MONDAY", "start_time": time(12, 0), "end_time": time(14, 0), "classroom": "A-101"},
        ], False),
    ]
    created = 0
    for subject_name, teacher_id, price, sessions, activate in plans:
        sid = ids[f"subj_{subject_name}"]
        if CourseGroup.query.filter_by(subject_id=sid).first():
            continue
        group = groups_svc.create_group(GroupCreate(
            subject_id=sid, teacher_id=teacher_id, price=price, max_capacity=20, sessions=sessions,
        ), actor="seed")
        if activate:
            groups_svc.change_status(group.id, StatusChange(status=CourseGroupStatus.ACTIVE,
                                                            reason="demo data"), actor="seed")
        created += 1
    return created


# ---- админ ----
def ensure_admin():
    if Admin.query.filter_by(email=ADMIN_EMAIL).first():
        return False
    get_or_create(Admin, email=ADMIN_EMAIL,
                  defaults=dict(name="Admin", permission_level=PermissionLevel.FULL, active_flag=True),
                  password=ADMIN_PASSWORD)
    db.session.commit()
    return True


# ---- main ----
def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--reset", action="store_true", help="drop + create + full seed (demo)")
    parser.add_argument("--ensure-admin", action="store_true", help=f"create only {ADMIN_EMAIL}")
    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        if args.reset:
            db.drop_all()
            db.create_all()
            ids = seed_directory()
            n = seed_groups(ids)
            ensure_admin()
            print(f"[seed] reset+seed complete ({n} groups)")
            return

        if args.ensure_admin:
            created = ensure_admin()
            print("Admin created." if created else "Admin already exists.")
            return

        # режим по умолчанию: мягкое наполнение недостающих данных
        db.create_all()
        ids = seed_directory()
        n = seed_groups(ids)
        ensure_admin()
        print(f"[seed] soft seed complete ({n} new groups)")


if __name__ == "__main__":
    main()
