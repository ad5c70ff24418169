# blueprints/teacher/routes.py
from __future__ import annotations
from flask import Blueprint, jsonify, request
from flask_login import current_user

from extensions import db
from models import DayOfWeek
from blueprints.auth.routes import account_to_dict, teacher_required
from blueprints.auth.schemas import ProfileUpdate
from blueprints.core.errors import ValidationFailed
from blueprints.groups.services import serialize_group
from . import services as svc

api_bp = Blueprint("teacher_api", __name__)


@api_bp.get("/teacher/profile")
@teacher_required
def profile():
    return jsonify({"ok": True, "profile": account_to_dict(current_user)})


@api_bp.put("/teacher/profile")
@teacher_required
def update_profile():
    data = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
    if data.name is not None:
        current_user.name = data.name
        db.session.commit()
    return jsonify({"ok": True, "profile": account_to_dict(current_user)})


@api_bp.get("/teacher/schedule")
@teacher_required
def schedule():
    return jsonify({"ok": True, "items": svc.weekly_schedule(current_user.id)})


@api_bp.get("/teacher/schedule/<day>")
@teacher_required
def schedule_for_day(day: str):
    try:
        dow = DayOfWeek(day.strip().upper())
    except ValueError:
        raise ValidationFailed.of("BAD_REQUEST", f"unknown day {day!r}", allowed=[d.value for d in DayOfWeek])
    return jsonify({"ok": True, "day": dow.value, "items": svc.weekly_schedule(current_user.id, dow)})


@api_bp.get("/teacher/groups")
@teacher_required
def groups():
    return jsonify({"ok": True, "items": [serialize_group(g, detail=True)
                                           for g in svc.teacher_groups(current_user.id)]})


@api_bp.get("/teacher/stats")
@teacher_required
def stats():
    return jsonify({"ok": True, "stats": svc.teacher_stats(current_user.id)})
