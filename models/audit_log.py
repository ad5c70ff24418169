from __future__ import annotations

from sqlalchemy import Integer, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db
from .base import IdentityMixin


class AuditLog(IdentityMixin, db.Model):
    __tablename__ = "audit_logs"

    actor: Mapped[str | None] = mapped_column(String(64))  # "ADMIN:1"
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer)
    payload: Mapped[dict | None] = mapped_column(JSON)
