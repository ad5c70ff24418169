from __future__ import annotations
import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db
from .base import IdentityMixin, utcnow


class RequestStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class GroupRequest(IdentityMixin, db.Model):
    __tablename__ = "group_request"

    student_id: Mapped[int] = mapped_column(ForeignKey("student.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id: Mapped[int] = mapped_column(ForeignKey("subject.id", ondelete="CASCADE"), nullable=False, index=True)
    request_date: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING)
    admin_comments: Mapped[str | None] = mapped_column(String(500))

    student = relationship("Student", back_populates="group_requests")
    subject = relationship("Subject", back_populates="group_requests")

    __table_args__ = (
        Index("ix_group_request_subject_status", "subject_id", "status"),
    )
