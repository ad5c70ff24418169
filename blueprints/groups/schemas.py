from __future__ import annotations
from datetime import time
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, Field

from models import CourseGroupStatus, CourseGroupType, DayOfWeek


def _upper(v):
    return v.strip().upper() if isinstance(v, str) else v


def _blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


# перечисления принимаем в любом регистре: "monday" == "MONDAY"
Day = Annotated[DayOfWeek, BeforeValidator(_upper)]
GroupType = Annotated[CourseGroupType, BeforeValidator(_upper)]
GroupStatus = Annotated[CourseGroupStatus, BeforeValidator(_upper)]
# длина проверяется только у строки, None и пустая строка означают «без аудитории»
Classroom = Annotated[Optional[Annotated[str, Field(max_length=50)]], BeforeValidator(_blank_to_none)]


# ---------- Sessions ----------
class SessionIn(BaseModel):
    day_of_week: Day
    start_time: time
    end_time: time
    classroom: Classroom = None


class SessionUpdate(BaseModel):
    day_of_week: Optional[Day] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    classroom: Classroom = None


class SessionCheckIn(SessionIn):
    """Пробная проверка занятия без записи."""
    course_group_id: Optional[int] = None
    teacher_id: Optional[int] = None
    session_id: Optional[int] = None


# ---------- Groups ----------
class GroupCreate(BaseModel):
    subject_id: int
    teacher_id: Optional[int] = None
    type: GroupType = CourseGroupType.REGULAR
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    max_capacity: Optional[int] = Field(None, ge=1)  # по умолчанию DEFAULT_MAX_CAPACITY
    sessions: List[SessionIn] = Field(default_factory=list)


class StatusChange(BaseModel):
    status: GroupStatus
    reason: Optional[str] = Field(None, max_length=500)


class TeacherAssign(BaseModel):
    teacher_id: int
