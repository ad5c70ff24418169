from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Type, TypeVar

from extensions import db

M = TypeVar("M")


@dataclass
class CheckError:
    code: str
    details: dict = field(default_factory=dict)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message or self.code, "details": self.details}


class DomainError(Exception):
    """Бизнес-ошибка с HTTP-статусом и списком CheckError."""
    status_code = 400

    def __init__(self, *errors: CheckError):
        self.errors = list(errors)
        super().__init__("; ".join(e.message or e.code for e in self.errors))

    @classmethod
    def of(cls, code: str, message: str, **details):
        return cls(CheckError(code=code, details=details, message=message))

    @property
    def code(self) -> str | None:
        return self.errors[0].code if self.errors else None

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "errors": [e.to_dict() for e in self.errors]}


class ValidationFailed(DomainError):
    status_code = 400


class Forbidden(DomainError):
    status_code = 403


class ResourceNotFound(DomainError):
    status_code = 404


class Conflict(DomainError):
    status_code = 409


def get_or_raise(model: Type[M], pk: int, label: str | None = None) -> M:
    obj = db.session.get(model, pk)
    if obj is None:
        name = label or model.__name__.lower()
        raise ResourceNotFound.of(f"{name.upper()}_NOT_FOUND", f"{name} {pk} not found", id=pk)
    return obj
