# blueprints/student/routes.py
from __future__ import annotations
from flask import Blueprint, jsonify, request
from flask_login import current_user

from extensions import db
from models import CourseGroup, CourseGroupStatus, Subject
from blueprints.auth.routes import account_to_dict, student_required
from blueprints.auth.schemas import ProfileUpdate
from blueprints.enrollments.services import student_stats
from blueprints.groups.services import enrolled_count, serialize_group

api_bp = Blueprint("student_api", __name__)


@api_bp.get("/student/profile")
@student_required
def profile():
    return jsonify({"ok": True, "profile": account_to_dict(current_user)})


@api_bp.put("/student/profile")
@student_required
def update_profile():
    data = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
    if data.name is not None:
        current_user.name = data.name
        db.session.commit()
    return jsonify({"ok": True, "profile": account_to_dict(current_user)})


@api_bp.get("/student/subjects")
@student_required
def my_subjects():
    q = Subject.query.filter(Subject.major == current_user.major)
    year = request.args.get("course_year", type=int)
    if year is not None:
        q = q.filter(Subject.course_year == year)
    rows = q.order_by(Subject.course_year, Subject.name).all()
    return jsonify({"ok": True, "items": [
        {"id": s.id, "name": s.name, "major": s.major, "course_year": s.course_year} for s in rows
    ]})


@api_bp.get("/student/groups/available")
@student_required
def available_groups():
    # открытые группы своей специальности, где ещё есть места
    rows = (CourseGroup.query
            .join(Subject, Subject.id == CourseGroup.subject_id)
            .filter(CourseGroup.status == CourseGroupStatus.ACTIVE, Subject.major == current_user.major)
            .order_by(Subject.name, CourseGroup.id)
            .all())
    items = [serialize_group(g, detail=True) for g in rows if enrolled_count(g.id) < g.max_capacity]
    return jsonify({"ok": True, "items": items})


@api_bp.get("/student/stats")
@student_required
def stats():
    return jsonify({"ok": True, "stats": student_stats(current_user.id)})
