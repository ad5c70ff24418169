from __future__ import annotations
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, Field

from blueprints.auth.schemas import Email, Major, Name, Password


def _strip(v):
    return v.strip() if isinstance(v, str) else v


SubjectName = Annotated[str, BeforeValidator(_strip), Field(min_length=1, max_length=150)]
CourseYear = Annotated[int, Field(ge=1, le=6)]


# ---------- Students ----------
class StudentIn(BaseModel):
    name: Name
    email: Email
    password: Password
    major: Major


class StudentUpdate(BaseModel):
    name: Optional[Name] = None
    email: Optional[Email] = None
    password: Optional[Password] = None
    major: Optional[Major] = None


class StudentOut(BaseModel):
    id: int
    name: str
    email: str
    major: str
    created_at: datetime


# ---------- Teachers ----------
class TeacherIn(BaseModel):
    name: Name
    email: Email
    password: Password


class TeacherUpdate(BaseModel):
    name: Optional[Name] = None
    email: Optional[Email] = None
    password: Optional[Password] = None


class TeacherOut(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime


# ---------- Subjects ----------
class SubjectIn(BaseModel):
    name: SubjectName
    major: Major
    course_year: CourseYear


class SubjectUpdate(BaseModel):
    name: Optional[SubjectName] = None
    major: Optional[Major] = None
    course_year: Optional[CourseYear] = None


class SubjectOut(BaseModel):
    id: int
    name: str
    major: str
    course_year: int
