# blueprints/constraints/routes.py
from flask import Blueprint, request, jsonify

from models import CourseGroup, GroupSession, Teacher
from blueprints.auth.routes import admin_required
from blueprints.core.errors import get_or_raise
from blueprints.groups.schemas import SessionCheckIn
from .services import SessionCandidate, VALIDATION_CODES, run_session_checks

api_bp = Blueprint("constraints_api", __name__)


@api_bp.post("/constraints/check")
@admin_required
def constraints_check():
    """Пробный прогон проверок занятия: ничего не сохраняет."""
    data = SessionCheckIn.model_validate(request.get_json(silent=True) or {})

    teacher_id = data.teacher_id
    if data.course_group_id is not None:
        group = get_or_raise(CourseGroup, data.course_group_id, "group")
        if teacher_id is None:
            teacher_id = group.teacher_id
    if teacher_id is not None:
        get_or_raise(Teacher, teacher_id)
    if data.session_id is not None:
        get_or_raise(GroupSession, data.session_id, "session")

    cand = SessionCandidate(
        course_group_id=data.course_group_id, day_of_week=data.day_of_week,
        start_time=data.start_time, end_time=data.end_time,
        classroom=data.classroom, id=data.session_id,
    )
    ok, errors = run_session_checks(cand, teacher_id)
    if ok:
        return jsonify({"ok": True, "errors": []}), 200
    status = 400 if errors[0].code in VALIDATION_CODES else 409
    return jsonify({"ok": False, "errors": [e.to_dict() for e in errors]}), status
