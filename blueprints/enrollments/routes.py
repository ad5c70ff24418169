# blueprints/enrollments/routes.py
from __future__ import annotations
from flask import Blueprint, jsonify, request
from flask_login import current_user

from models import PaymentStatus
from blueprints.auth.routes import actor_ref, admin_required, student_required
from blueprints.core.errors import ValidationFailed
from . import services as svc
from .schemas import ForcedDelete, PaymentUpdate

api_bp = Blueprint("enrollments_api", __name__)


# ---------- student ----------
@api_bp.post("/student/groups/<int:gid>/enroll")
@student_required
def enroll(gid: int):
    en = svc.enroll(current_user.id, gid)
    return jsonify({"ok": True, "enrollment": svc.serialize_enrollment(en)}), 201


@api_bp.get("/student/groups/<int:gid>/can-enroll")
@student_required
def can_enroll(gid: int):
    ok, errors = svc.can_enroll(current_user.id, gid)
    return jsonify({"ok": True, "can_enroll": ok, "reasons": [e.to_dict() for e in errors]})


@api_bp.get("/student/enrollments")
@student_required
def my_enrollments():
    rows = svc.list_for_student(current_user.id)
    return jsonify({"ok": True, "items": [svc.serialize_enrollment(en) for en in rows]})


@api_bp.delete("/student/enrollments/<int:eid>")
@student_required
def cancel(eid: int):
    svc.cancel(eid, current_user.id)
    return jsonify({"ok": True})


# ---------- admin ----------
@api_bp.get("/admin/enrollments")
@admin_required
def list_enrollments():
    raw = request.args.get("payment_status")
    try:
        status = PaymentStatus(raw.strip().upper()) if raw else None
    except ValueError:
        raise ValidationFailed.of("BAD_REQUEST", f"unknown payment status {raw!r}")
    rows = svc.list_enrollments(
        group_id=request.args.get("group_id", type=int),
        student_id=request.args.get("student_id", type=int),
        payment_status=status,
    )
    return jsonify({"ok": True, "items": [svc.serialize_enrollment(en) for en in rows]})


@api_bp.put("/admin/enrollments/<int:eid>/payment")
@admin_required
def update_payment(eid: int):
    data = PaymentUpdate.model_validate(request.get_json(silent=True) or {})
    en = svc.update_payment(eid, data.payment_status, actor=actor_ref())
    return jsonify({"ok": True, "enrollment": svc.serialize_enrollment(en)})


@api_bp.delete("/admin/enrollments/<int:eid>")
@admin_required
def force_delete(eid: int):
    data = ForcedDelete.model_validate(request.get_json(silent=True) or {})
    svc.force_delete(eid, data.reason, actor=actor_ref())
    return jsonify({"ok": True})
