from __future__ import annotations
import itertools
from datetime import time
from decimal import Decimal

import pytest

from app import create_app
from extensions import db
from models import (
    Admin, CourseGroup, CourseGroupStatus, DayOfWeek, Enrollment, GroupSession,
    PaymentStatus, PermissionLevel, Student, Subject, Teacher,
)
from blueprints.auth.routes import _login_attempts

PASSWORD = "password123"
MAJOR = "Computer Engineering"


def t(hhmm: str) -> time:
    h, m = hhmm.split(":")
    return time(int(h), int(m))


class Factory:
    """Создание строк напрямую, в обход правил: для подготовки данных."""

    def __init__(self):
        self._seq = itertools.count(1)

    def _n(self) -> int:
        return next(self._seq)

    def _account(self, model, email=None, name=None, password=PASSWORD, **kw):
        n = self._n()
        acc = model(name=name or f"{model.__name__} {n}",
                    email=email or f"{model.__name__.lower()}{n}@test.local", **kw)
        acc.set_password(password)
        db.session.add(acc)
        db.session.commit()
        return acc

    def admin(self, email="admin@test.local", permission_level=PermissionLevel.FULL, active=True, **kw):
        return self._account(Admin, email=email, permission_level=permission_level, active_flag=active, **kw)

    def teacher(self, **kw):
        return self._account(Teacher, **kw)

    def student(self, major=MAJOR, **kw):
        return self._account(Student, major=major, **kw)

    def subject(self, name=None, major=MAJOR, course_year=1):
        s = Subject(name=name or f"Subject {self._n()}", major=major, course_year=course_year)
        db.session.add(s)
        db.session.commit()
        return s

    def group(self, subject=None, teacher=None, status=CourseGroupStatus.PLANNED, max_capacity=30, price="100.00"):
        subject = subject or self.subject()
        g = CourseGroup(subject_id=subject.id, teacher_id=teacher.id if teacher else None,
                        status=status, price=Decimal(price), max_capacity=max_capacity)
        db.session.add(g)
        db.session.commit()
        return g

    def session(self, group, day="MONDAY", start="10:00", end="12:00", classroom=None):
        s = GroupSession(course_group_id=group.id, day_of_week=DayOfWeek(day),
                         start_time=t(start), end_time=t(end), classroom=classroom)
        db.session.add(s)
        db.session.commit()
        return s

    def enrollment(self, student, group, payment_status=PaymentStatus.PENDING):
        en = Enrollment(student_id=student.id, course_group_id=group.id, payment_status=payment_status)
        db.session.add(en)
        db.session.commit()
        return en


@pytest.fixture()
def app():
    app = create_app("test")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    _login_attempts.clear()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make(app):
    return Factory()


def login(client, email, password=PASSWORD):
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.get_json()
    return r


@pytest.fixture()
def admin_client(client, make):
    make.admin()
    login(client, "admin@test.local")
    return client


def error_code(resp) -> str:
    return resp.get_json()["errors"][0]["code"]
