# blueprints/group_requests/routes.py
from __future__ import annotations
from datetime import date, datetime, time

from flask import Blueprint, jsonify, request
from flask_login import current_user

from models import RequestStatus
from blueprints.auth.routes import actor_ref, admin_required, student_required
from blueprints.core.errors import ValidationFailed
from . import services as svc
from .schemas import GroupRequestIn, RequestStatusUpdate

api_bp = Blueprint("group_requests_api", __name__)


def _date_arg(name: str, end_of_day: bool = False) -> datetime | None:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        d = date.fromisoformat(raw)
    except ValueError:
        raise ValidationFailed.of("BAD_REQUEST", f"bad date in {name!r}", value=raw)
    return datetime.combine(d, time.max if end_of_day else time.min)


# ---------- student ----------
@api_bp.post("/student/group-requests")
@student_required
def create_request():
    data = GroupRequestIn.model_validate(request.get_json(silent=True) or {})
    r = svc.create_request(current_user.id, data.subject_id)
    return jsonify({"ok": True, "request": svc.serialize_request(r)}), 201


@api_bp.get("/student/group-requests")
@student_required
def my_requests():
    return jsonify({"ok": True, "items": [svc.serialize_request(r) for r in svc.list_for_student(current_user.id)]})


@api_bp.get("/student/subjects/<int:subject_id>/can-request")
@student_required
def can_request(subject_id: int):
    ok, errors = svc.can_request(current_user.id, subject_id)
    return jsonify({"ok": True, "can_request": ok, "reasons": [e.to_dict() for e in errors]})


@api_bp.delete("/student/group-requests/<int:rid>")
@student_required
def cancel_request(rid: int):
    svc.cancel_request(rid, current_user.id)
    return jsonify({"ok": True})


# ---------- admin ----------
@api_bp.get("/admin/group-requests/pending")
@admin_required
def pending_requests():
    rows = svc.search(status=RequestStatus.PENDING)
    return jsonify({"ok": True, "items": [svc.serialize_request(r) for r in rows]})


@api_bp.get("/admin/group-requests")
@admin_required
def search_requests():
    raw = request.args.get("status")
    try:
        status = RequestStatus(raw.strip().upper()) if raw else None
    except ValueError:
        raise ValidationFailed.of("BAD_REQUEST", f"unknown status {raw!r}")
    rows = svc.search(
        status=status,
        student_id=request.args.get("student_id", type=int),
        subject_id=request.args.get("subject_id", type=int),
        date_from=_date_arg("from"),
        date_to=_date_arg("to", end_of_day=True),
    )
    return jsonify({"ok": True, "items": [svc.serialize_request(r) for r in rows]})


@api_bp.get("/admin/group-requests/<int:rid>")
@admin_required
def get_request(rid: int):
    return jsonify({"ok": True, "request": svc.serialize_request(svc.get_request(rid))})


@api_bp.delete("/admin/group-requests/<int:rid>")
@admin_required
def delete_request(rid: int):
    svc.delete_request(rid, actor=actor_ref())
    return jsonify({"ok": True})


@api_bp.put("/admin/group-requests/<int:rid>/status")
@admin_required
def update_status(rid: int):
    data = RequestStatusUpdate.model_validate(request.get_json(silent=True) or {})
    r = svc.update_status(rid, data.status, data.admin_comments, actor=actor_ref())
    return jsonify({"ok": True, "request": svc.serialize_request(r)})


@api_bp.get("/admin/group-requests/stats")
@admin_required
def request_stats():
    return jsonify({"ok": True, "items": svc.stats_by_subject()})
