from __future__ import annotations
import enum
from datetime import datetime, time
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Time, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db
from .base import IdentityMixin, utcnow


class CourseGroupStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class CourseGroupType(str, enum.Enum):
    REGULAR = "REGULAR"
    INTENSIVE = "INTENSIVE"


class DayOfWeek(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @property
    def weekday(self) -> int:
        # 0=Mon .. 6=Sun
        return list(DayOfWeek).index(self)


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class CourseGroup(IdentityMixin, db.Model):
    __tablename__ = "course_group"

    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="RESTRICT"), nullable=False, index=True)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teacher.id", ondelete="SET NULL"), nullable=True, index=True)
    status: Mapped[CourseGroupStatus] = mapped_column(
        Enum(CourseGroupStatus), nullable=False, default=CourseGroupStatus.PLANNED
    )
    type: Mapped[CourseGroupType] = mapped_column(
        Enum(CourseGroupType), nullable=False, default=CourseGroupType.REGULAR
    )
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=30)

    subject = relationship("Subject", back_populates="course_groups")
    teacher = relationship("Teacher", back_populates="groups")
    sessions = relationship(
        "GroupSession", back_populates="course_group", cascade="all, delete-orphan",
        order_by="GroupSession.id",
    )
    enrollments = relationship("Enrollment", back_populates="course_group", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_course_group_price_positive"),
        CheckConstraint("max_capacity >= 1", name="ck_course_group_capacity"),
        Index("ix_course_group_status_capacity", "status", "max_capacity"),
    )

    def __repr__(self):
        return f"<CourseGroup {self.id} {self.status.value if self.status else None}>"


class GroupSession(IdentityMixin, db.Model):
    __tablename__ = "group_session"

    course_group_id: Mapped[int] = mapped_column(
        ForeignKey("course_group.id", ondelete="CASCADE"), nullable=False, index=True
    )
    day_of_week: Mapped[DayOfWeek] = mapped_column(Enum(DayOfWeek), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    classroom: Mapped[str | None] = mapped_column(String(50))

    course_group = relationship("CourseGroup", back_populates="sessions")

    __table_args__ = (
        UniqueConstraint("course_group_id", "day_of_week", "start_time", name="uq_session_group_day_start"),
        CheckConstraint("end_time > start_time", name="ck_session_time_range"),
        Index("ix_session_classroom_day", "classroom", "day_of_week"),
    )


class Enrollment(IdentityMixin, db.Model):
    __tablename__ = "enrollment"

    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="CASCADE"), nullable=False, index=True)
    course_group_id: Mapped[int] = mapped_column(
        ForeignKey("course_group.id", ondelete="CASCADE"), nullable=False, index=True
    )
    enrollment_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )

    student = relationship("Student", back_populates="enrollments")
    course_group = relationship("CourseGroup", back_populates="enrollments")

    __table_args__ = (
        UniqueConstraint("student_id", "course_group_id", name="uq_enrollment_student_group"),
    )
