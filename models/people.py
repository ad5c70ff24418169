from __future__ import annotations
import enum

from sqlalchemy import Boolean, Enum, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db
from .user import AccountMixin, Role


class PermissionLevel(str, enum.Enum):
    FULL = "FULL"          # всё
    ACADEMIC = "ACADEMIC"  # предметы, группы
    USERS = "USERS"        # студенты, преподаватели
    READONLY = "READONLY"


class Admin(AccountMixin, db.Model):
    __tablename__ = "admin"
    ROLE = Role.ADMIN

    permission_level: Mapped[PermissionLevel] = mapped_column(
        Enum(PermissionLevel), nullable=False, default=PermissionLevel.FULL
    )
    # колонка is_active, но атрибут другой: UserMixin уже занял .is_active
    active_flag: Mapped[bool] = mapped_column("is_active", Boolean, nullable=False, default=True)
    notes: Mapped[str | None] = mapped_column(String(500))

    @property
    def is_active(self):
        return bool(self.active_flag)

    def can_perform_action(self) -> bool:
        return self.is_active and self.permission_level == PermissionLevel.FULL


class Teacher(AccountMixin, db.Model):
    __tablename__ = "teacher"
    ROLE = Role.TEACHER

    groups = relationship("CourseGroup", back_populates="teacher")


class Student(AccountMixin, db.Model):
    __tablename__ = "student"
    ROLE = Role.STUDENT

    major: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    enrollments = relationship("Enrollment", back_populates="student", cascade="all, delete-orphan")
    group_requests = relationship("GroupRequest", back_populates="student", cascade="all, delete-orphan")
