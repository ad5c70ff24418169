# blueprints/admin/services.py
from __future__ import annotations
from typing import Any, Dict, List, Optional

from sqlalchemy import func

from extensions import db
from models import (
    AuditLog, CourseGroup, CourseGroupStatus, Enrollment, GroupRequest, PaymentStatus,
    RequestStatus, Student, Subject, Teacher,
)


def audit(action: str, entity: str, entity_id: Optional[int],
          payload: Optional[dict] = None, actor: Optional[str] = None) -> AuditLog:
    """Добавляет запись в журнал в текущей транзакции (commit делает вызывающий)."""
    row = AuditLog(actor=actor, action=action, entity=entity, entity_id=entity_id, payload=payload or {})
    db.session.add(row)
    return row


def recent_audit(limit: int = 50, entity: Optional[str] = None, entity_id: Optional[int] = None) -> List[Dict[str, Any]]:
    q = db.session.query(AuditLog)
    if entity:
        q = q.filter(AuditLog.entity == entity)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    rows = q.order_by(AuditLog.id.desc()).limit(limit).all()
    return [
        {"id": a.id, "actor": a.actor, "action": a.action, "entity": a.entity,
         "entity_id": a.entity_id, "payload": a.payload or {},
         "created_at": a.created_at.isoformat(timespec="seconds")}
        for a in rows
    ]


def _count_by(column, model) -> Dict[str, int]:
    rows = db.session.query(column, func.count(model.id)).group_by(column).all()
    return {getattr(k, "value", k): n for k, n in rows}


def dashboard_summary() -> Dict[str, Any]:
    groups_by_status = {s.value: 0 for s in CourseGroupStatus}
    groups_by_status.update(_count_by(CourseGroup.status, CourseGroup))
    payments = {p.value: 0 for p in PaymentStatus}
    payments.update(_count_by(Enrollment.payment_status, Enrollment))

    without_teacher = (db.session.query(func.count(CourseGroup.id))
                       .filter(CourseGroup.teacher_id.is_(None),
                               CourseGroup.status != CourseGroupStatus.CLOSED)
                       .scalar())
    pending_requests = (db.session.query(func.count(GroupRequest.id))
                        .filter(GroupRequest.status == RequestStatus.PENDING)
                        .scalar())

    return {
        "counters": {
            "students": db.session.query(func.count(Student.id)).scalar(),
            "teachers": db.session.query(func.count(Teacher.id)).scalar(),
            "subjects": db.session.query(func.count(Subject.id)).scalar(),
            "groups": sum(groups_by_status.values()),
            "enrollments": sum(payments.values()),
        },
        "groups_by_status": groups_by_status,
        "payments": payments,
        "groups_without_teacher": without_teacher,
        "pending_group_requests": pending_requests,
    }
