# blueprints/groups/routes.py
from __future__ import annotations
from flask import Blueprint, jsonify, request

from models import CourseGroupStatus
from blueprints.auth.routes import actor_ref, admin_required
from blueprints.core.errors import ValidationFailed
from . import services as svc
from .schemas import GroupCreate, SessionIn, SessionUpdate, StatusChange, TeacherAssign

api_bp = Blueprint("groups_api", __name__)


def _json() -> dict:
    return request.get_json(silent=True) or {}


def _status_arg():
    raw = request.args.get("status")
    if not raw:
        return None
    try:
        return CourseGroupStatus(raw.strip().upper())
    except ValueError:
        raise ValidationFailed.of("BAD_REQUEST", f"unknown status {raw!r}",
                                  allowed=[s.value for s in CourseGroupStatus])


# ---------- groups ----------
@api_bp.get("/groups")
@admin_required
def list_groups():
    rows = svc.list_groups(
        status=_status_arg(),
        subject_id=request.args.get("subject_id", type=int),
        teacher_id=request.args.get("teacher_id", type=int),
        without_teacher=request.args.get("without_teacher", "").lower() in ("1", "true", "yes"),
    )
    return jsonify({"ok": True, "items": [svc.serialize_group(g) for g in rows]})


@api_bp.post("/groups")
@admin_required
def create_group():
    group = svc.create_group(GroupCreate.model_validate(_json()), actor=actor_ref())
    resp = jsonify({"ok": True, "group": svc.serialize_group(group, detail=True)})
    resp.status_code = 201
    resp.headers["Location"] = f"/api/v1/admin/groups/{group.id}"
    return resp


@api_bp.get("/groups/<int:gid>")
@admin_required
def get_group(gid: int):
    return jsonify({"ok": True, "group": svc.serialize_group(svc.get_group(gid), detail=True)})


@api_bp.delete("/groups/<int:gid>")
@admin_required
def delete_group(gid: int):
    svc.delete_group(gid, actor=actor_ref())
    return jsonify({"ok": True})


@api_bp.put("/groups/<int:gid>/status")
@admin_required
def change_status(gid: int):
    group = svc.change_status(gid, StatusChange.model_validate(_json()), actor=actor_ref())
    return jsonify({"ok": True, "group": svc.serialize_group(group)})


@api_bp.put("/groups/<int:gid>/teacher")
@admin_required
def assign_teacher(gid: int):
    data = TeacherAssign.model_validate(_json())
    group = svc.assign_teacher(gid, data.teacher_id, actor=actor_ref())
    return jsonify({"ok": True, "group": svc.serialize_group(group)})


@api_bp.delete("/groups/<int:gid>/teacher")
@admin_required
def unassign_teacher(gid: int):
    group = svc.unassign_teacher(gid, actor=actor_ref())
    return jsonify({"ok": True, "group": svc.serialize_group(group)})


@api_bp.get("/groups/<int:gid>/students")
@admin_required
def group_students(gid: int):
    return jsonify({"ok": True, "items": svc.group_students(gid)})


@api_bp.get("/groups/<int:gid>/stats")
@admin_required
def group_stats(gid: int):
    return jsonify({"ok": True, "stats": svc.group_stats(gid)})


# ---------- sessions ----------
@api_bp.get("/groups/<int:gid>/sessions")
@admin_required
def list_sessions(gid: int):
    group = svc.get_group(gid)
    return jsonify({"ok": True, "items": [svc.serialize_session(s) for s in group.sessions]})


@api_bp.post("/groups/<int:gid>/sessions")
@admin_required
def add_session(gid: int):
    s = svc.add_session(gid, SessionIn.model_validate(_json()))
    return jsonify({"ok": True, "session": svc.serialize_session(s)}), 201


@api_bp.put("/groups/sessions/<int:sid>")
@admin_required
def update_session(sid: int):
    s = svc.update_session(sid, SessionUpdate.model_validate(_json()))
    return jsonify({"ok": True, "session": svc.serialize_session(s)})


@api_bp.delete("/groups/sessions/<int:sid>")
@admin_required
def delete_session(sid: int):
    svc.delete_session(sid)
    return jsonify({"ok": True})


# ---------- занятость ----------
@api_bp.get("/schedule")
@admin_required
def busy_schedule():
    teacher_id = request.args.get("teacher_id", type=int)
    classroom = request.args.get("classroom")
    if teacher_id is None and not (classroom or "").strip():
        raise ValidationFailed.of("BAD_REQUEST", "teacher_id or classroom is required")
    return jsonify({"ok": True, **svc.busy_schedule(teacher_id, classroom)})
