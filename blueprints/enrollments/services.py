# blueprints/enrollments/services.py
from __future__ import annotations
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from extensions import db
from models import CourseGroup, Enrollment, PaymentStatus, Student
from blueprints.admin.services import audit
from blueprints.constraints.services import check_admission, check_cancellation, raise_for
from blueprints.core.errors import CheckError, Conflict, Forbidden, get_or_raise
from blueprints.core.filters import enum_value, fmt_dt, fmt_money
from blueprints.groups.services import enrolled_count, get_group

log = logging.getLogger(__name__)


def _is_enrolled(student_id: int, gid: int) -> bool:
    return db.session.query(
        Enrollment.query.filter_by(student_id=student_id, course_group_id=gid).exists()
    ).scalar()


def serialize_enrollment(en: Enrollment) -> Dict[str, Any]:
    g = en.course_group
    return {
        "id": en.id,
        "student_id": en.student_id,
        "course_group_id": en.course_group_id,
        "subject": {"id": g.subject.id, "name": g.subject.name},
        "group_status": enum_value(g.status),
        "price": fmt_money(g.price),
        "enrollment_date": fmt_dt(en.enrollment_date),
        "payment_status": enum_value(en.payment_status),
    }


def admission_errors(student: Student, group: CourseGroup) -> List[CheckError]:
    return check_admission(group, student, enrolled_count(group.id), _is_enrolled(student.id, group.id))


def can_enroll(student_id: int, gid: int) -> Tuple[bool, List[CheckError]]:
    """То же, что enroll, но без записи и без исключений для бизнес-отказов."""
    student = get_or_raise(Student, student_id)
    group = get_group(gid)
    errors = admission_errors(student, group)
    return not errors, errors


def enroll(student_id: int, gid: int) -> Enrollment:
    student = get_or_raise(Student, student_id)
    # блокируем строку группы: два запроса на последнее место не пройдут оба
    group = get_group(gid, lock=True)
    raise_for(admission_errors(student, group))

    en = Enrollment(student_id=student.id, course_group_id=group.id, payment_status=PaymentStatus.PENDING)
    db.session.add(en)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        log.warning("duplicate enrollment race: student=%s group=%s", student_id, gid)
        raise Conflict.of("DUPLICATE_ENROLLMENT", "student is already enrolled in this group",
                          group_id=gid, student_id=student_id)
    log.info("student %s enrolled in group %s", student_id, gid)
    return en


def cancel(eid: int, student_id: int) -> None:
    en = get_or_raise(Enrollment, eid)
    if en.student_id != student_id:
        raise Forbidden.of("NOT_OWNER", "enrollment belongs to another student", enrollment_id=eid)
    raise_for(check_cancellation(en))
    db.session.delete(en)
    db.session.commit()
    log.info("enrollment %s cancelled by student %s", eid, student_id)


def list_for_student(student_id: int) -> List[Enrollment]:
    return (Enrollment.query
            .filter_by(student_id=student_id)
            .order_by(Enrollment.enrollment_date.desc(), Enrollment.id.desc())
            .all())


def list_enrollments(group_id: Optional[int] = None, student_id: Optional[int] = None,
                     payment_status: Optional[PaymentStatus] = None) -> List[Enrollment]:
    q = Enrollment.query
    if group_id is not None:
        q = q.filter(Enrollment.course_group_id == group_id)
    if student_id is not None:
        q = q.filter(Enrollment.student_id == student_id)
    if payment_status is not None:
        q = q.filter(Enrollment.payment_status == payment_status)
    return q.order_by(Enrollment.id).all()


def update_payment(eid: int, status: PaymentStatus, actor: Optional[str] = None) -> Enrollment:
    en = get_or_raise(Enrollment, eid)
    prev = en.payment_status
    if prev == status:
        return en
    en.payment_status = status
    audit("enrollment.payment", "enrollment", eid, {"from": prev.value, "to": status.value}, actor)
    db.session.commit()
    log.info("enrollment %s payment %s -> %s", eid, prev.value, status.value)
    return en


def force_delete(eid: int, reason: Optional[str] = None, actor: Optional[str] = None) -> None:
    """Удаление записи админом в обход правил отмены."""
    en = get_or_raise(Enrollment, eid)
    audit("enrollment.force_delete", "enrollment", eid,
          {"student_id": en.student_id, "course_group_id": en.course_group_id,
           "payment_status": en.payment_status.value, "reason": reason}, actor)
    db.session.delete(en)
    db.session.commit()
    log.warning("enrollment %s force-deleted by %s (reason: %s)", eid, actor, reason)


def student_stats(student_id: int) -> Dict[str, Any]:
    rows = list_for_student(student_id)
    by_status = {p.value: 0 for p in PaymentStatus}
    due = Decimal("0")
    paid = Decimal("0")
    for en in rows:
        by_status[en.payment_status.value] += 1
        if en.payment_status == PaymentStatus.PAID:
            paid += en.course_group.price
        elif en.payment_status == PaymentStatus.PENDING:
            due += en.course_group.price
    return {
        "enrollments": len(rows),
        "payments": by_status,
        "amount_paid": fmt_money(paid),
        "amount_due": fmt_money(due),
    }
