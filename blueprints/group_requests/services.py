# blueprints/group_requests/services.py
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from extensions import db
from models import CourseGroup, CourseGroupStatus, GroupRequest, RequestStatus, Student, Subject
from blueprints.admin.services import audit
from blueprints.core.errors import CheckError, Conflict, Forbidden, ValidationFailed, get_or_raise
from blueprints.core.filters import enum_value, fmt_dt

log = logging.getLogger(__name__)


def serialize_request(r: GroupRequest) -> Dict[str, Any]:
    return {
        "id": r.id,
        "student": {"id": r.student.id, "name": r.student.name, "email": r.student.email},
        "subject": {"id": r.subject.id, "name": r.subject.name, "major": r.subject.major},
        "request_date": fmt_dt(r.request_date),
        "status": enum_value(r.status),
        "admin_comments": r.admin_comments,
    }


def _active_group_exists(subject_id: int) -> bool:
    return db.session.query(
        CourseGroup.query.filter_by(subject_id=subject_id, status=CourseGroupStatus.ACTIVE).exists()
    ).scalar()


def _pending_exists(student_id: int, subject_id: int) -> bool:
    return db.session.query(
        GroupRequest.query.filter_by(student_id=student_id, subject_id=subject_id,
                                     status=RequestStatus.PENDING).exists()
    ).scalar()


def request_errors(student: Student, subject: Subject) -> List[CheckError]:
    if subject.major != student.major:
        return [CheckError(code="MAJOR_MISMATCH", message="subject belongs to another major",
                           details={"subject_major": subject.major, "student_major": student.major})]
    if _active_group_exists(subject.id):
        return [CheckError(code="ACTIVE_GROUP_EXISTS", message="an active group already exists for this subject",
                           details={"subject_id": subject.id})]
    if _pending_exists(student.id, subject.id):
        return [CheckError(code="DUPLICATE_REQUEST", message="a pending request for this subject already exists",
                           details={"subject_id": subject.id})]
    return []


def can_request(student_id: int, subject_id: int) -> tuple[bool, List[CheckError]]:
    student = get_or_raise(Student, student_id)
    subject = get_or_raise(Subject, subject_id)
    errors = request_errors(student, subject)
    return not errors, errors


def create_request(student_id: int, subject_id: int) -> GroupRequest:
    student = get_or_raise(Student, student_id)
    subject = get_or_raise(Subject, subject_id)
    errors = request_errors(student, subject)
    if errors:
        exc = ValidationFailed if errors[0].code == "MAJOR_MISMATCH" else Conflict
        raise exc(*errors)
    r = GroupRequest(student_id=student.id, subject_id=subject.id, status=RequestStatus.PENDING)
    db.session.add(r)
    db.session.commit()
    log.info("student %s requested a group for subject %s", student_id, subject_id)
    return r


def list_for_student(student_id: int) -> List[GroupRequest]:
    return (GroupRequest.query.filter_by(student_id=student_id)
            .order_by(GroupRequest.request_date.desc(), GroupRequest.id.desc()).all())


def cancel_request(rid: int, student_id: int) -> None:
    r = get_or_raise(GroupRequest, rid, "request")
    if r.student_id != student_id:
        raise Forbidden.of("NOT_OWNER", "request belongs to another student", request_id=rid)
    if r.status != RequestStatus.PENDING:
        raise ValidationFailed.of("REQUEST_NOT_PENDING", "only pending requests can be cancelled",
                                  status=r.status.value)
    db.session.delete(r)
    db.session.commit()
    log.info("group request %s cancelled by student %s", rid, student_id)


def search(status: Optional[RequestStatus] = None, student_id: Optional[int] = None,
           subject_id: Optional[int] = None, date_from: Optional[datetime] = None,
           date_to: Optional[datetime] = None) -> List[GroupRequest]:
    q = GroupRequest.query
    if status is not None:
        q = q.filter(GroupRequest.status == status)
    if student_id is not None:
        q = q.filter(GroupRequest.student_id == student_id)
    if subject_id is not None:
        q = q.filter(GroupRequest.subject_id == subject_id)
    if date_from is not None:
        q = q.filter(GroupRequest.request_date >= date_from)
    if date_to is not None:
        q = q.filter(GroupRequest.request_date <= date_to)
    return q.order_by(GroupRequest.request_date, GroupRequest.id).all()


def update_status(rid: int, status: RequestStatus, comments: Optional[str] = None,
                  actor: Optional[str] = None) -> GroupRequest:
    r = get_or_raise(GroupRequest, rid, "request")
    if r.status != RequestStatus.PENDING:
        raise ValidationFailed.of("REQUEST_NOT_PENDING", "request was already processed", status=r.status.value)
    if status == RequestStatus.PENDING:
        raise ValidationFailed.of("INVALID_STATUS", "status must be APPROVED or REJECTED")
    r.status = status
    r.admin_comments = comments
    audit("group_request.status", "group_request", rid,
          {"to": status.value, "comments": comments}, actor)
    db.session.commit()
    log.info("group request %s -> %s", rid, status.value)
    return r


def get_request(rid: int) -> GroupRequest:
    return get_or_raise(GroupRequest, rid, "request")


def delete_request(rid: int, actor: Optional[str] = None) -> None:
    """Админ удаляет заявку в любом статусе; студент может только отменить свою PENDING."""
    r = get_or_raise(GroupRequest, rid, "request")
    audit("group_request.delete", "group_request", rid,
          {"student_id": r.student_id, "subject_id": r.subject_id, "status": r.status.value}, actor)
    db.session.delete(r)
    db.session.commit()
    log.info("group request %s deleted by %s", rid, actor)


def stats_by_subject() -> List[Dict[str, Any]]:
    rows = (db.session.query(Subject.id, Subject.name, Subject.major, GroupRequest.status,
                             func.count(GroupRequest.id))
            .join(GroupRequest, GroupRequest.subject_id == Subject.id)
            .group_by(Subject.id, Subject.name, Subject.major, GroupRequest.status)
            .order_by(Subject.name)
            .all())
    out: Dict[int, Dict[str, Any]] = {}
    for sid, name, major, status, n in rows:
        item = out.setdefault(sid, {
            "subject_id": sid, "subject": name, "major": major, "total": 0,
            **{s.value: 0 for s in RequestStatus},
        })
        item[status.value] = n
        item["total"] += n
    return sorted(out.values(), key=lambda x: (-x["PENDING"], x["subject"]))
