# blueprints/directory/routes.py
from __future__ import annotations
import logging
from typing import Any, Optional

from flask import Blueprint, jsonify, request, url_for
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from extensions import db
from models import CourseGroup, Enrollment, Student, Subject, Teacher
from blueprints.admin.services import audit
from blueprints.auth.routes import actor_ref, admin_required, email_taken
from blueprints.core.errors import Conflict, get_or_raise
from blueprints.groups.services import serialize_group
from .schemas import (
    StudentIn, StudentOut, StudentUpdate,
    SubjectIn, SubjectOut, SubjectUpdate,
    TeacherIn, TeacherOut, TeacherUpdate,
)

log = logging.getLogger(__name__)

api_bp = Blueprint("directory_api", __name__)


# ----------------------- Helpers -----------------------
def ok(data: Any, status: int = 200):
    return jsonify(data), status


def created(location: str, data: Any):
    resp = jsonify(data)
    resp.status_code = 201
    resp.headers["Location"] = location
    return resp


def _dump(schema, obj) -> dict:
    return schema.model_validate(obj, from_attributes=True).model_dump(mode="json")


def _search_filter(model, q: str):
    fields_map = {
        Student: [Student.name, Student.email],
        Teacher: [Teacher.name, Teacher.email],
        Subject: [Subject.name],
    }
    term = f"%{str(q).strip()}%"
    return or_(*[col.ilike(term) for col in fields_map.get(model, [])])


def _commit(code: str, message: str, **details) -> None:
    try:
        db.session.commit()
    except IntegrityError as ex:
        db.session.rollback()
        log.warning("integrity error: %s", getattr(ex, "orig", ex))
        raise Conflict.of(code, message, **details)


def _ensure_email_free(email: str, exclude=None) -> None:
    if email_taken(email, exclude=exclude):
        raise Conflict.of("EMAIL_TAKEN", "email is already registered", email=email)


def _ensure_subject_free(name: str, major: str, exclude: Optional[Subject] = None) -> None:
    other = Subject.query.filter_by(name=name, major=major).first()
    if other is not None and other is not exclude:
        raise Conflict.of("SUBJECT_EXISTS", "subject with this name already exists in the major",
                          name=name, major=major)


def _count(model, *criteria) -> int:
    return db.session.query(func.count(model.id)).filter(*criteria).scalar() or 0


# ---- Students ----
@api_bp.get("/students")
@admin_required
def students_list():
    s = db.session.query(Student)
    if request.args.get("major"):
        s = s.filter(Student.major == request.args["major"])
    if request.args.get("q"):
        s = s.filter(_search_filter(Student, request.args["q"]))
    return ok({"ok": True, "items": [_dump(StudentOut, st) for st in s.order_by(Student.name).all()]})


@api_bp.get("/students/stats")
@admin_required
def students_stats():
    rows = (db.session.query(Student.major, func.count(Student.id))
            .group_by(Student.major).order_by(Student.major).all())
    return ok({"ok": True, "total": sum(n for _, n in rows),
               "by_major": [{"major": m, "students": n} for m, n in rows]})


@api_bp.post("/students")
@admin_required
def students_create():
    parsed = StudentIn.model_validate(request.get_json(silent=True) or {})
    _ensure_email_free(parsed.email)
    st = Student(name=parsed.name, email=parsed.email, major=parsed.major)
    st.set_password(parsed.password)
    db.session.add(st)
    _commit("EMAIL_TAKEN", "email is already registered", email=parsed.email)
    log.info("student %s created", st.id)
    return created(url_for("directory_api.students_get", id=st.id), _dump(StudentOut, st))


@api_bp.get("/students/<int:id>")
@admin_required
def students_get(id: int):
    return ok(_dump(StudentOut, get_or_raise(Student, id)))


@api_bp.put("/students/<int:id>")
@admin_required
def students_update(id: int):
    parsed = StudentUpdate.model_validate(request.get_json(silent=True) or {})
    st = get_or_raise(Student, id)
    if parsed.email is not None and parsed.email != st.email:
        _ensure_email_free(parsed.email, exclude=st)
        st.email = parsed.email
    if parsed.name is not None:
        st.name = parsed.name
    if parsed.major is not None:
        st.major = parsed.major
    if parsed.password is not None:
        st.set_password(parsed.password)
    _commit("EMAIL_TAKEN", "email is already registered", email=st.email)
    return ok(_dump(StudentOut, st))


@api_bp.get("/students/<int:id>/can-delete")
@admin_required
def students_can_delete(id: int):
    get_or_raise(Student, id)
    n = _count(Enrollment, Enrollment.student_id == id)
    return ok({"ok": True, "can_delete": n == 0, "enrollments": n})


@api_bp.delete("/students/<int:id>")
@admin_required
def students_delete(id: int):
    st = get_or_raise(Student, id)
    n = _count(Enrollment, Enrollment.student_id == id)
    # с записями удаляем только явно: force=1 снимает и записи
    if n and request.args.get("force", "").lower() not in ("1", "true", "yes"):
        raise Conflict.of("STUDENT_HAS_ENROLLMENTS", "student has enrollments", enrollments=n)
    if n:
        audit("student.force_delete", "student", id, {"email": st.email, "enrollments": n}, actor_ref())
    db.session.delete(st)
    db.session.commit()
    log.info("student %s deleted (%d enrollments removed)", id, n)
    return "", 204


# ---- Teachers ----
@api_bp.get("/teachers")
@admin_required
def teachers_list():
    s = db.session.query(Teacher)
    if request.args.get("q"):
        s = s.filter(_search_filter(Teacher, request.args["q"]))
    return ok({"ok": True, "items": [_dump(TeacherOut, t) for t in s.order_by(Teacher.name).all()]})


@api_bp.post("/teachers")
@admin_required
def teachers_create():
    parsed = TeacherIn.model_validate(request.get_json(silent=True) or {})
    _ensure_email_free(parsed.email)
    t = Teacher(name=parsed.name, email=parsed.email)
    t.set_password(parsed.password)
    db.session.add(t)
    _commit("EMAIL_TAKEN", "email is already registered", email=parsed.email)
    log.info("teacher %s created", t.id)
    return created(url_for("directory_api.teachers_get", id=t.id), _dump(TeacherOut, t))


@api_bp.get("/teachers/<int:id>")
@admin_required
def teachers_get(id: int):
    return ok(_dump(TeacherOut, get_or_raise(Teacher, id)))


@api_bp.put("/teachers/<int:id>")
@admin_required
def teachers_update(id: int):
    parsed = TeacherUpdate.model_validate(request.get_json(silent=True) or {})
    t = get_or_raise(Teacher, id)
    if parsed.email is not None and parsed.email != t.email:
        _ensure_email_free(parsed.email, exclude=t)
        t.email = parsed.email
    if parsed.name is not None:
        t.name = parsed.name
    if parsed.password is not None:
        t.set_password(parsed.password)
    _commit("EMAIL_TAKEN", "email is already registered", email=t.email)
    return ok(_dump(TeacherOut, t))


@api_bp.get("/teachers/<int:id>/groups")
@admin_required
def teachers_groups(id: int):
    get_or_raise(Teacher, id)
    rows = CourseGroup.query.filter_by(teacher_id=id).order_by(CourseGroup.id).all()
    return ok({"ok": True, "items": [serialize_group(g, detail=True) for g in rows]})


@api_bp.get("/teachers/<int:id>/can-delete")
@admin_required
def teachers_can_delete(id: int):
    get_or_raise(Teacher, id)
    n = _count(CourseGroup, CourseGroup.teacher_id == id)
    return ok({"ok": True, "can_delete": n == 0, "groups": n})


@api_bp.delete("/teachers/<int:id>")
@admin_required
def teachers_delete(id: int):
    t = get_or_raise(Teacher, id)
    n = _count(CourseGroup, CourseGroup.teacher_id == id)
    if n:
        raise Conflict.of("TEACHER_HAS_GROUPS", "teacher is assigned to groups", groups=n)
    db.session.delete(t)
    db.session.commit()
    log.info("teacher %s deleted", id)
    return "", 204


# ---- Subjects ----
@api_bp.get("/subjects")
@admin_required
def subjects_list():
    s = db.session.query(Subject)
    if request.args.get("major"):
        s = s.filter(Subject.major == request.args["major"])
    year = request.args.get("course_year", type=int)
    if year is not None:
        s = s.filter(Subject.course_year == year)
    if request.args.get("q"):
        s = s.filter(_search_filter(Subject, request.args["q"]))
    rows = s.order_by(Subject.major, Subject.course_year, Subject.name).all()
    return ok({"ok": True, "items": [_dump(SubjectOut, x) for x in rows]})


@api_bp.post("/subjects")
@admin_required
def subjects_create():
    parsed = SubjectIn.model_validate(request.get_json(silent=True) or {})
    _ensure_subject_free(parsed.name, parsed.major)
    x = Subject(name=parsed.name, major=parsed.major, course_year=parsed.course_year)
    db.session.add(x)
    _commit("SUBJECT_EXISTS", "subject with this name already exists in the major",
            name=parsed.name, major=parsed.major)
    log.info("subject %s created", x.id)
    return created(url_for("directory_api.subjects_get", id=x.id), _dump(SubjectOut, x))


@api_bp.get("/subjects/<int:id>")
@admin_required
def subjects_get(id: int):
    return ok(_dump(SubjectOut, get_or_raise(Subject, id)))


@api_bp.put("/subjects/<int:id>")
@admin_required
def subjects_update(id: int):
    parsed = SubjectUpdate.model_validate(request.get_json(silent=True) or {})
    x = get_or_raise(Subject, id)
    name = parsed.name if parsed.name is not None else x.name
    major = parsed.major if parsed.major is not None else x.major
    _ensure_subject_free(name, major, exclude=x)
    x.name, x.major = name, major
    if parsed.course_year is not None:
        x.course_year = parsed.course_year
    _commit("SUBJECT_EXISTS", "subject with this name already exists in the major", name=name, major=major)
    return ok(_dump(SubjectOut, x))


@api_bp.get("/subjects/<int:id>/can-delete")
@admin_required
def subjects_can_delete(id: int):
    get_or_raise(Subject, id)
    n = _count(CourseGroup, CourseGroup.subject_id == id)
    return ok({"ok": True, "can_delete": n == 0, "groups": n})


@api_bp.delete("/subjects/<int:id>")
@admin_required
def subjects_delete(id: int):
    x = get_or_raise(Subject, id)
    n = _count(CourseGroup, CourseGroup.subject_id == id)
    if n:
        raise Conflict.of("SUBJECT_HAS_GROUPS", "subject has course groups", groups=n)
    db.session.delete(x)
    db.session.commit()
    log.info("subject %s deleted", id)
    return "", 204
