from __future__ import annotations
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

EMAIL_RE = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


# email храним в нижнем регистре, сравниваем так же
Email = Annotated[str, BeforeValidator(_norm_email), Field(max_length=150, pattern=EMAIL_RE)]
Name = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=100)]
Major = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=100)]
Password = Annotated[str, Field(min_length=8, max_length=128)]


class LoginIn(BaseModel):
    email: Annotated[str, BeforeValidator(_norm_email), Field(min_length=1, max_length=150)]
    password: str = Field(min_length=1, max_length=128)


class RegisterIn(BaseModel):
    name: Name
    email: Email
    password: Password
    major: Major


class ChangePasswordIn(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: Password


class ProfileUpdate(BaseModel):
    name: Optional[Name] = None
