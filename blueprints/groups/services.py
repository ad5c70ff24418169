# blueprints/groups/services.py
from __future__ import annotations
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import (
    CourseGroup, CourseGroupStatus, Enrollment, GroupSession, PaymentStatus, Student, Subject, Teacher,
)
from blueprints.admin.services import audit
from blueprints.constraints.services import (
    SessionCandidate, check_group_deletable, check_group_open, check_status_transition,
    check_teacher_assignable, check_teacher_schedule, classroom_sessions, raise_for, run_session_checks,
    teacher_sessions,
)
from blueprints.core.errors import Conflict, get_or_raise
from blueprints.core.filters import enum_value, fmt_dt, fmt_money, fmt_time, minutes_between
from .schemas import GroupCreate, SessionIn, SessionUpdate, StatusChange

log = logging.getLogger(__name__)


# ---------- helpers ----------
def get_group(gid: int, lock: bool = False) -> CourseGroup:
    if lock:
        # SELECT ... FOR UPDATE: проверка и запись в одной транзакции
        group = (db.session.query(CourseGroup)
                 .filter(CourseGroup.id == gid)
                 .with_for_update()
                 .one_or_none())
        if group is not None:
            return group
    return get_or_raise(CourseGroup, gid, "group")


def enrolled_count(gid: int) -> int:
    return db.session.query(func.count(Enrollment.id)).filter(Enrollment.course_group_id == gid).scalar() or 0


def _commit(code: str, message: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.warning("unique constraint fired: %s", code)
        raise Conflict.of(code, message)


def serialize_session(s: GroupSession) -> Dict[str, Any]:
    return {
        "id": s.id,
        "course_group_id": s.course_group_id,
        "day_of_week": enum_value(s.day_of_week),
        "start_time": fmt_time(s.start_time),
        "end_time": fmt_time(s.end_time),
        "classroom": s.classroom,
    }


def serialize_group(g: CourseGroup, detail: bool = False) -> Dict[str, Any]:
    enrolled = enrolled_count(g.id)
    out = {
        "id": g.id,
        "subject": {"id": g.subject.id, "name": g.subject.name, "major": g.subject.major,
                    "course_year": g.subject.course_year},
        "teacher": {"id": g.teacher.id, "name": g.teacher.name} if g.teacher else None,
        "status": enum_value(g.status),
        "type": enum_value(g.type),
        "price": fmt_money(g.price),
        "max_capacity": g.max_capacity,
        "enrolled": enrolled,
        "available_spots": max(g.max_capacity - enrolled, 0),
        "created_at": fmt_dt(g.created_at),
    }
    if detail:
        out["sessions"] = [serialize_session(s) for s in g.sessions]
    return out


def _candidate(group: CourseGroup, data: SessionIn) -> SessionCandidate:
    return SessionCandidate(
        course_group_id=group.id, day_of_week=data.day_of_week,
        start_time=data.start_time, end_time=data.end_time, classroom=data.classroom,
    )


def _add_checked_session(group: CourseGroup, data: SessionIn) -> GroupSession:
    _, errors = run_session_checks(_candidate(group, data), group.teacher_id)
    raise_for(errors)
    s = GroupSession(course_group_id=group.id, day_of_week=data.day_of_week,
                     start_time=data.start_time, end_time=data.end_time, classroom=data.classroom)
    db.session.add(s)
    # следующий кандидат должен видеть это занятие
    db.session.flush()
    return s


# ---------- groups ----------
def list_groups(status: Optional[CourseGroupStatus] = None, subject_id: Optional[int] = None,
                teacher_id: Optional[int] = None, without_teacher: bool = False) -> List[CourseGroup]:
    q = db.session.query(CourseGroup)
    if status is not None:
        q = q.filter(CourseGroup.status == status)
    if subject_id is not None:
        q = q.filter(CourseGroup.subject_id == subject_id)
    if teacher_id is not None:
        q = q.filter(CourseGroup.teacher_id == teacher_id)
    if without_teacher:
        q = q.filter(CourseGroup.teacher_id.is_(None))
    return q.order_by(CourseGroup.id).all()


def create_group(data: GroupCreate, actor: Optional[str] = None) -> CourseGroup:
    subject = get_or_raise(Subject, data.subject_id)
    teacher = get_or_raise(Teacher, data.teacher_id) if data.teacher_id is not None else None
    group = CourseGroup(
        subject_id=subject.id,
        teacher_id=teacher.id if teacher else None,
        status=CourseGroupStatus.PLANNED,
        type=data.type,
        price=data.price,
        max_capacity=data.max_capacity or current_app.config.get("DEFAULT_MAX_CAPACITY", 30),
    )
    db.session.add(group)
    db.session.flush()
    for s in data.sessions:
        _add_checked_session(group, s)
    audit("group.create", "course_group", group.id,
          {"subject_id": subject.id, "teacher_id": group.teacher_id, "sessions": len(data.sessions)}, actor)
    _commit("DUPLICATE_SLOT", "group already has a session at this day and start time")
    log.info("group %s created for subject %s (%d sessions)", group.id, subject.id, len(data.sessions))
    return group


def change_status(gid: int, data: StatusChange, actor: Optional[str] = None) -> CourseGroup:
    group = get_group(gid, lock=True)
    raise_for(check_status_transition(group.status, data.status))
    prev = group.status
    group.status = data.status
    # причина хранится только в журнале
    audit("group.status", "course_group", gid,
          {"from": prev.value, "to": data.status.value, "reason": data.reason}, actor)
    db.session.commit()
    log.info("group %s: %s -> %s", gid, prev.value, data.status.value)
    return group


def assign_teacher(gid: int, teacher_id: int, actor: Optional[str] = None) -> CourseGroup:
    group = get_group(gid, lock=True)
    teacher = get_or_raise(Teacher, teacher_id)
    raise_for(check_teacher_assignable(group))
    raise_for(check_teacher_schedule(teacher.id, group.sessions, teacher_sessions(teacher.id)))
    group.teacher_id = teacher.id
    audit("group.teacher.assign", "course_group", gid, {"teacher_id": teacher.id}, actor)
    db.session.commit()
    log.info("teacher %s assigned to group %s", teacher.id, gid)
    return group


def unassign_teacher(gid: int, actor: Optional[str] = None) -> CourseGroup:
    group = get_group(gid, lock=True)
    raise_for(check_group_open(group))
    if group.teacher_id is None:
        return group
    prev = group.teacher_id
    group.teacher_id = None
    audit("group.teacher.unassign", "course_group", gid, {"teacher_id": prev}, actor)
    db.session.commit()
    log.info("teacher %s unassigned from group %s", prev, gid)
    return group


def delete_group(gid: int, actor: Optional[str] = None) -> None:
    group = get_group(gid, lock=True)
    raise_for(check_group_deletable(group, enrolled_count(gid)))
    audit("group.delete", "course_group", gid,
          {"subject_id": group.subject_id, "status": group.status.value}, actor)
    db.session.delete(group)
    db.session.commit()
    log.info("group %s deleted", gid)


# ---------- sessions ----------
def add_session(gid: int, data: SessionIn) -> GroupSession:
    group = get_group(gid, lock=True)
    raise_for(check_group_open(group))
    s = _add_checked_session(group, data)
    _commit("DUPLICATE_SLOT", "group already has a session at this day and start time")
    log.info("session %s added to group %s (%s %s-%s)", s.id, gid,
             s.day_of_week.value, fmt_time(s.start_time), fmt_time(s.end_time))
    return s


def update_session(sid: int, data: SessionUpdate) -> GroupSession:
    s = get_or_raise(GroupSession, sid, "session")
    group = get_group(s.course_group_id, lock=True)
    raise_for(check_group_open(group))

    fields = data.model_fields_set
    cand = SessionCandidate(
        course_group_id=group.id,
        day_of_week=data.day_of_week if data.day_of_week is not None else s.day_of_week,
        start_time=data.start_time if data.start_time is not None else s.start_time,
        end_time=data.end_time if data.end_time is not None else s.end_time,
        # явный null очищает аудиторию
        classroom=data.classroom if "classroom" in fields else s.classroom,
        id=s.id,
    )
    _, errors = run_session_checks(cand, group.teacher_id)
    raise_for(errors)

    s.day_of_week, s.start_time, s.end_time, s.classroom = (
        cand.day_of_week, cand.start_time, cand.end_time, cand.classroom)
    _commit("DUPLICATE_SLOT", "group already has a session at this day and start time")
    log.info("session %s updated", sid)
    return s


def delete_session(sid: int) -> None:
    s = get_or_raise(GroupSession, sid, "session")
    raise_for(check_group_open(s.course_group))
    db.session.delete(s)
    db.session.commit()
    log.info("session %s deleted", sid)


# ---------- views ----------
def _week_order(sessions: List[GroupSession]) -> List[Dict[str, Any]]:
    sessions = sorted(sessions, key=lambda s: (s.day_of_week.weekday, s.start_time))
    return [serialize_session(s) for s in sessions]


def busy_schedule(teacher_id: Optional[int], classroom: Optional[str]) -> Dict[str, Any]:
    """Недельная занятость преподавателя и аудитории, на которую смотрят при составлении группы."""
    if teacher_id is not None:
        get_or_raise(Teacher, teacher_id)
    return {
        "teacher_id": teacher_id,
        "classroom": (classroom or "").strip() or None,
        "teacher_sessions": _week_order(teacher_sessions(teacher_id)) if teacher_id is not None else [],
        "classroom_sessions": _week_order(classroom_sessions(classroom)),
    }


def group_students(gid: int) -> List[Dict[str, Any]]:
    get_or_raise(CourseGroup, gid, "group")
    rows = (db.session.query(Enrollment, Student)
            .join(Student, Student.id == Enrollment.student_id)
            .filter(Enrollment.course_group_id == gid)
            .order_by(Student.name)
            .all())
    return [
        {"id": st.id, "name": st.name, "email": st.email, "major": st.major,
         "enrollment_id": en.id, "enrollment_date": fmt_dt(en.enrollment_date),
         "payment_status": enum_value(en.payment_status)}
        for en, st in rows
    ]


def group_stats(gid: int) -> Dict[str, Any]:
    group = get_or_raise(CourseGroup, gid, "group")
    payments = dict(
        db.session.query(Enrollment.payment_status, func.count(Enrollment.id))
        .filter(Enrollment.course_group_id == gid)
        .group_by(Enrollment.payment_status)
        .all()
    )
    enrolled = sum(payments.values())
    occupancy = (Decimal(enrolled) * 100 / group.max_capacity) if group.max_capacity else Decimal(0)
    return {
        "group_id": gid,
        "status": group.status.value,
        "enrolled": enrolled,
        "max_capacity": group.max_capacity,
        "available_spots": max(group.max_capacity - enrolled, 0),
        "occupancy_rate": float(round(occupancy, 2)),
        "sessions": len(group.sessions),
        "weekly_minutes": sum(minutes_between(s.start_time, s.end_time) for s in group.sessions),
        "paid": payments.get(PaymentStatus.PAID, 0),
        "pending": payments.get(PaymentStatus.PENDING, 0),
        "failed": payments.get(PaymentStatus.FAILED, 0),
    }
