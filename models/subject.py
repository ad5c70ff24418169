from __future__ import annotations

from sqlalchemy import Integer, String, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db
from .base import IdentityMixin


class Subject(IdentityMixin, db.Model):
    __tablename__ = "subject"

    name: Mapped[str] = mapped_column(String(150), nullable=False)
    major: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    course_year: Mapped[int] = mapped_column(Integer, nullable=False)

    course_groups = relationship("CourseGroup", back_populates="subject")
    group_requests = relationship("GroupRequest", back_populates="subject", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("name", "major", name="uq_subject_name_major"),
        CheckConstraint("course_year BETWEEN 1 AND 6", name="ck_subject_course_year"),
    )

    def __repr__(self):
        return f"<Subject {self.name} ({self.major})>"
