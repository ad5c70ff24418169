# blueprints/constraints/services.py
"""Правила расписания, жизненного цикла группы и допуска к записи.

Предикаты ниже чистые: принимают уже загруженные объекты (или любые
объекты с полями day_of_week/start_time/end_time/classroom/id/course_group_id)
и возвращают список CheckError. Пустой список означает «можно».
Запросы к БД собраны в run_session_checks / teacher_sessions.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import time
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func

from blueprints.core.errors import CheckError, Conflict, ValidationFailed
from blueprints.core.filters import fmt_time, minutes_between
from models import (
    CourseGroup, CourseGroupStatus, DayOfWeek, GroupSession, PaymentStatus,
)

log = logging.getLogger(__name__)

# коды, которые означают «плохие входные данные», а не конфликт с чужими данными
VALIDATION_CODES = frozenset({
    "INVALID_TIME_RANGE", "OUT_OF_HOURS", "INVALID_DURATION", "GROUP_CLOSED",
    "INVALID_STATUS_TRANSITION", "TEACHER_ALREADY_ASSIGNED",
    "GROUP_NOT_ACTIVE", "MAJOR_MISMATCH", "PAYMENT_NOT_PENDING",
})

ALLOWED_TRANSITIONS: dict[CourseGroupStatus, frozenset[CourseGroupStatus]] = {
    CourseGroupStatus.PLANNED: frozenset({CourseGroupStatus.ACTIVE, CourseGroupStatus.CLOSED}),
    CourseGroupStatus.ACTIVE: frozenset({CourseGroupStatus.CLOSED}),
    CourseGroupStatus.CLOSED: frozenset(),
}


@dataclass
class SessionLimits:
    day_start: time = time(6, 0)
    day_end: time = time(22, 0)
    min_minutes: int = 30
    max_minutes: int = 240

    @classmethod
    def from_config(cls, cfg) -> "SessionLimits":
        return cls(
            day_start=cfg.get("SESSION_DAY_START", cls.day_start),
            day_end=cfg.get("SESSION_DAY_END", cls.day_end),
            min_minutes=cfg.get("SESSION_MIN_MINUTES", cls.min_minutes),
            max_minutes=cfg.get("SESSION_MAX_MINUTES", cls.max_minutes),
        )


@dataclass
class SessionCandidate:
    """Занятие, которое хотят добавить или изменить (ещё не в БД)."""
    course_group_id: Optional[int]
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    classroom: Optional[str] = None
    id: Optional[int] = None  # id редактируемого занятия


def _room_key(classroom: Optional[str]) -> str:
    return (classroom or "").strip().lower()


def _session_ref(s) -> dict:
    return {
        "session_id": getattr(s, "id", None),
        "group_id": getattr(s, "course_group_id", None),
        "day_of_week": s.day_of_week.value,
        "start_time": fmt_time(s.start_time),
        "end_time": fmt_time(s.end_time),
    }


def time_overlaps(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    # полуинтервалы [start, end): касание концами не пересечение
    return a_start < b_end and b_start < a_end


def sessions_overlap(a, b) -> bool:
    return a.day_of_week == b.day_of_week and time_overlaps(a.start_time, a.end_time, b.start_time, b.end_time)


def _others(existing: Iterable, cand) -> list:
    # редактируемое занятие не конфликтует само с собой
    return [s for s in existing if cand.id is None or s.id != cand.id]


# ---------- 1. Время ----------
def check_time_range(start: time, end: time, limits: SessionLimits | None = None) -> list[CheckError]:
    if end <= start:
        return [CheckError(
            code="INVALID_TIME_RANGE",
            message="end time must be after start time",
            details={"start_time": fmt_time(start), "end_time": fmt_time(end)},
        )]
    if limits is None:
        return []
    errors: list[CheckError] = []
    if start < limits.day_start or end > limits.day_end:
        errors.append(CheckError(
            code="OUT_OF_HOURS",
            message=f"sessions must fit between {limits.day_start:%H:%M} and {limits.day_end:%H:%M}",
            details={"day_start": fmt_time(limits.day_start), "day_end": fmt_time(limits.day_end)},
        ))
    duration = minutes_between(start, end)
    if duration < limits.min_minutes or duration > limits.max_minutes:
        errors.append(CheckError(
            code="INVALID_DURATION",
            message=f"session must last between {limits.min_minutes} and {limits.max_minutes} minutes",
            details={"minutes": duration, "min": limits.min_minutes, "max": limits.max_minutes},
        ))
    return errors


# ---------- 2. Занятия той же группы ----------
def check_group_slots(cand, group_sessions: Iterable) -> list[CheckError]:
    for s in _others(group_sessions, cand):
        if s.day_of_week != cand.day_of_week:
            continue
        if s.start_time == cand.start_time:
            return [CheckError(code="DUPLICATE_SLOT", message="group already has a session at this day and start time",
                               details=_session_ref(s))]
        if time_overlaps(s.start_time, s.end_time, cand.start_time, cand.end_time):
            return [CheckError(code="GROUP_BUSY", message="group already has an overlapping session",
                               details=_session_ref(s))]
    return []


# ---------- 3. Преподаватель ----------
def check_teacher_busy(cand, teacher_id: Optional[int], teacher_sessions: Iterable) -> list[CheckError]:
    if not teacher_id:
        return []
    for s in _others(teacher_sessions, cand):
        # занятия своей группы уже проверены в check_group_slots
        if cand.course_group_id is not None and s.course_group_id == cand.course_group_id:
            continue
        if sessions_overlap(s, cand):
            return [CheckError(code="TEACHER_BUSY", message="teacher has an overlapping session",
                               details={"teacher_id": teacher_id, **_session_ref(s)})]
    return []


# ---------- 4. Аудитория ----------
def check_classroom_busy(cand, room_sessions: Iterable) -> list[CheckError]:
    key = _room_key(cand.classroom)
    if not key:
        return []
    for s in _others(room_sessions, cand):
        if cand.course_group_id is not None and s.course_group_id == cand.course_group_id:
            continue
        if _room_key(s.classroom) == key and sessions_overlap(s, cand):
            return [CheckError(code="CLASSROOM_BUSY", message="classroom is already booked",
                               details={"classroom": s.classroom, **_session_ref(s)})]
    return []


def check_group_open(group: CourseGroup) -> list[CheckError]:
    if group.status == CourseGroupStatus.CLOSED:
        return [CheckError(code="GROUP_CLOSED", message="group is closed", details={"group_id": group.id})]
    return []


# ---------- выборки ----------
def _day_sessions(day: DayOfWeek):
    return GroupSession.query.filter(GroupSession.day_of_week == day)


def teacher_sessions(teacher_id: int, day: DayOfWeek | None = None) -> list[GroupSession]:
    q = GroupSession.query.join(CourseGroup, CourseGroup.id == GroupSession.course_group_id) \
        .filter(CourseGroup.teacher_id == teacher_id)
    if day is not None:
        q = q.filter(GroupSession.day_of_week == day)
    return q.order_by(GroupSession.start_time).all()


def classroom_sessions(classroom: Optional[str], day: DayOfWeek | None = None) -> list[GroupSession]:
    key = _room_key(classroom)
    if not key:
        return []
    q = GroupSession.query.filter(func.lower(func.trim(GroupSession.classroom)) == key)
    if day is not None:
        q = q.filter(GroupSession.day_of_week == day)
    return q.order_by(GroupSession.start_time).all()


def run_session_checks(cand: SessionCandidate, teacher_id: Optional[int],
                       limits: SessionLimits | None = None) -> tuple[bool, list[CheckError]]:
    """Полная проверка занятия. Ничего не пишет в БД."""
    if limits is None:
        limits = SessionLimits.from_config(current_app.config)

    errors = check_time_range(cand.start_time, cand.end_time, limits)
    if errors:
        # с кривым интервалом пересечения не ищем
        return False, errors

    same_day = _day_sessions(cand.day_of_week)
    group_sessions = same_day.filter(GroupSession.course_group_id == cand.course_group_id).all() \
        if cand.course_group_id is not None else []
    errors += check_group_slots(cand, group_sessions)

    if teacher_id:
        errors += check_teacher_busy(cand, teacher_id, teacher_sessions(teacher_id, cand.day_of_week))

    if _room_key(cand.classroom):
        errors += check_classroom_busy(cand, classroom_sessions(cand.classroom, cand.day_of_week))

    return not errors, errors


# ---------- жизненный цикл ----------
def check_status_transition(current: CourseGroupStatus, target: CourseGroupStatus) -> list[CheckError]:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        return [CheckError(
            code="INVALID_STATUS_TRANSITION",
            message=f"cannot move group from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )]
    return []


def check_group_deletable(group: CourseGroup, enrolled: int) -> list[CheckError]:
    if group.status != CourseGroupStatus.PLANNED or enrolled > 0:
        return [CheckError(
            code="GROUP_NOT_DELETABLE",
            message="only PLANNED groups without enrollments can be deleted",
            details={"group_id": group.id, "status": group.status.value, "enrolled": enrolled},
        )]
    return []


# ---------- назначение преподавателя ----------
def check_teacher_assignable(group: CourseGroup) -> list[CheckError]:
    if group.teacher_id is not None:
        return [CheckError(
            code="TEACHER_ALREADY_ASSIGNED",
            message="group already has a teacher, unassign first",
            details={"group_id": group.id, "teacher_id": group.teacher_id},
        )]
    return check_group_open(group)


def check_teacher_schedule(teacher_id: int, group_sessions: Iterable, busy: Iterable) -> list[CheckError]:
    busy = list(busy)
    for mine in group_sessions:
        for other in busy:
            if other.course_group_id == mine.course_group_id:
                continue
            if sessions_overlap(mine, other):
                return [CheckError(
                    code="TEACHER_BUSY",
                    message="teacher has an overlapping session",
                    details={"teacher_id": teacher_id, "session": _session_ref(mine), "conflict": _session_ref(other)},
                )]
    return []


# ---------- запись студента ----------
def check_admission(group: CourseGroup, student, enrolled: int, already_enrolled: bool) -> list[CheckError]:
    """Порядок проверок фиксирован: первая сработавшая и есть ответ."""
    if group.status != CourseGroupStatus.ACTIVE:
        return [CheckError(code="GROUP_NOT_ACTIVE", message="group is not accepting enrollments",
                           details={"group_id": group.id, "status": group.status.value})]
    if enrolled >= group.max_capacity:
        return [CheckError(code="GROUP_FULL", message="no available spots",
                           details={"group_id": group.id, "max_capacity": group.max_capacity})]
    if already_enrolled:
        return [CheckError(code="DUPLICATE_ENROLLMENT", message="student is already enrolled in this group",
                           details={"group_id": group.id, "student_id": student.id})]
    if group.subject.major != student.major:
        return [CheckError(code="MAJOR_MISMATCH", message="subject belongs to another major",
                           details={"subject_major": group.subject.major, "student_major": student.major})]
    return []


def check_cancellation(enrollment) -> list[CheckError]:
    if enrollment.payment_status != PaymentStatus.PENDING:
        return [CheckError(code="PAYMENT_NOT_PENDING", message="only unpaid enrollments can be cancelled",
                           details={"payment_status": enrollment.payment_status.value})]
    if enrollment.course_group.status == CourseGroupStatus.CLOSED:
        return [CheckError(code="GROUP_CLOSED", message="group is closed",
                           details={"group_id": enrollment.course_group_id})]
    return []


def raise_for(errors: list[CheckError]) -> None:
    """Бросает ValidationFailed/Conflict по коду первой ошибки."""
    if not errors:
        return
    exc = ValidationFailed if errors[0].code in VALIDATION_CODES else Conflict
    log.warning("guard rejected: %s", ", ".join(e.code for e in errors))
    raise exc(*errors)
