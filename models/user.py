from __future__ import annotations
from enum import Enum
from typing import ClassVar

from flask_login import UserMixin
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from werkzeug.security import generate_password_hash, check_password_hash

from .base import IdentityMixin


class Role(str, Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


class AccountMixin(IdentityMixin, UserMixin):
    """Поля и помощники, общие для Admin/Teacher/Student."""
    ROLE: ClassVar[Role]

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(150), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    @property
    def role(self) -> str:
        return self.ROLE.value

    # Flask-Login: id уникален только внутри таблицы, поэтому добавляем роль
    def get_id(self) -> str:
        return f"{self.ROLE.value}:{self.id}"

    def set_password(self, raw: str) -> None:
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw)

    def __repr__(self):
        return f"<{type(self).__name__} {self.email}>"
