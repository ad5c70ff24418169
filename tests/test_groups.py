from __future__ import annotations

import pytest
from pydantic import ValidationError as PydanticValidationError

from extensions import db
from models import AuditLog, CourseGroup, CourseGroupStatus, GroupSession, PaymentStatus, PermissionLevel
from blueprints.core.errors import Conflict, ResourceNotFound, ValidationFailed
from blueprints.groups import services as svc
from blueprints.groups.schemas import SessionIn, SessionUpdate, StatusChange
from conftest import error_code, login

BASE = "/api/v1/admin/groups"


def _session(day="MONDAY", start="10:00", end="12:00", classroom=None):
    return {"day_of_week": day, "start_time": start, "end_time": end, "classroom": classroom}


# ---------- доступ ----------
def test_groups_require_admin(client, make):
    assert client.get(BASE).status_code == 401
    st = make.student()
    login(client, st.email)
    r = client.get(BASE)
    assert r.status_code == 403
    assert error_code(r) == "FORBIDDEN"


def test_readonly_admin_can_read_but_not_write(client, make):
    make.admin(permission_level=PermissionLevel.READONLY)
    login(client, "admin@test.local")
    subject = make.subject()
    assert client.get(BASE).status_code == 200
    r = client.post(BASE, json={"subject_id": subject.id, "price": "10.00"})
    assert r.status_code == 403


# ---------- создание ----------
def test_create_group_with_sessions(admin_client, make):
    subject = make.subject()
    teacher = make.teacher()
    r = admin_client.post(BASE, json={
        "subject_id": subject.id, "teacher_id": teacher.id, "type": "intensive",
        "price": "150.50", "max_capacity": 12,
        "sessions": [_session("MONDAY", "10:00", "12:00", "A-101"), _session("wednesday", "16:00", "18:00")],
    })
    assert r.status_code == 201, r.get_json()
    g = r.get_json()["group"]
    assert g["status"] == "PLANNED"
    assert g["type"] == "INTENSIVE"
    assert g["price"] == "150.50"
    assert g["max_capacity"] == 12
    assert g["available_spots"] == 12
    assert g["teacher"]["id"] == teacher.id
    assert [s["day_of_week"] for s in g["sessions"]] == ["MONDAY", "WEDNESDAY"]
    assert r.headers["Location"].endswith(f"/groups/{g['id']}")


def test_create_group_defaults_capacity(admin_client, make):
    subject = make.subject()
    r = admin_client.post(BASE, json={"subject_id": subject.id, "price": "99.99"})
    assert r.status_code == 201
    assert r.get_json()["group"]["max_capacity"] == 30
    assert r.get_json()["group"]["teacher"] is None


@pytest.mark.parametrize("payload", [
    {"price": "0"},
    {"price": "-5"},
    {"price": "123456789.00"},   # больше 8 цифр до запятой
    {"price": "10.001"},
    {"price": "10", "max_capacity": 0},
])
def test_create_group_validates_price_and_capacity(admin_client, make, payload):
    subject = make.subject()
    r = admin_client.post(BASE, json={"subject_id": subject.id, **payload})
    assert r.status_code == 400
    assert error_code(r) == "BAD_REQUEST"


def test_create_group_unknown_subject(admin_client):
    r = admin_client.post(BASE, json={"subject_id": 999, "price": "10"})
    assert r.status_code == 404
    assert error_code(r) == "SUBJECT_NOT_FOUND"


def test_create_group_rejects_conflicting_initial_sessions(admin_client, make):
    subject = make.subject()
    r = admin_client.post(BASE, json={
        "subject_id": subject.id, "price": "10",
        "sessions": [_session("MONDAY", "10:00", "12:00"), _session("MONDAY", "11:00", "13:00")],
    })
    assert r.status_code == 409
    assert error_code(r) == "GROUP_BUSY"
    # вся операция откатилась
    assert CourseGroup.query.count() == 0


# ---------- занятия ----------
def test_session_end_must_be_after_start(admin_client, make):
    g = make.group()
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(start="10:00", end="10:00"))
    assert r.status_code == 400
    err = r.get_json()["errors"][0]
    assert err["code"] == "INVALID_TIME_RANGE"
    assert err["message"] == "end time must be after start time"


def test_session_working_hours(admin_client, make):
    g = make.group()
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(start="05:00", end="07:00"))
    assert r.status_code == 400
    assert error_code(r) == "OUT_OF_HOURS"
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(start="10:00", end="15:00"))
    assert error_code(r) == "INVALID_DURATION"


def test_duplicate_slot_and_group_overlap(admin_client, make):
    g = make.group()
    make.session(g, "MONDAY", "10:00", "12:00")
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(start="10:00", end="11:00"))
    assert r.status_code == 409
    assert error_code(r) == "DUPLICATE_SLOT"
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(start="11:00", end="13:00"))
    assert r.status_code == 409
    assert error_code(r) == "GROUP_BUSY"
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(start="12:00", end="13:00"))
    assert r.status_code == 201


def test_teacher_overlap_across_groups_on_session_create(admin_client, make):
    teacher = make.teacher()
    a = make.group(teacher=teacher)
    make.session(a, "MONDAY", "10:00", "12:00")
    b = make.group(teacher=teacher)

    r = admin_client.post(f"{BASE}/{b.id}/sessions", json=_session(start="11:00", end="13:00"))
    assert r.status_code == 409
    assert error_code(r) == "TEACHER_BUSY"

    # касание концами допустимо
    r = admin_client.post(f"{BASE}/{b.id}/sessions", json=_session(start="12:00", end="14:00"))
    assert r.status_code == 201


def test_classroom_double_booking(admin_client, make):
    a = make.group()
    make.session(a, "MONDAY", "10:00", "12:00", classroom="A-101")
    b = make.group()
    r = admin_client.post(f"{BASE}/{b.id}/sessions", json=_session(start="11:00", end="12:00", classroom=" a-101 "))
    assert r.status_code == 409
    assert error_code(r) == "CLASSROOM_BUSY"
    # другая аудитория, другой преподаватель, то же время разрешено
    r = admin_client.post(f"{BASE}/{b.id}/sessions", json=_session(start="11:00", end="12:00", classroom="B-202"))
    assert r.status_code == 201
    # без аудитории аудитория не проверяется
    c = make.group()
    r = admin_client.post(f"{BASE}/{c.id}/sessions", json=_session(start="10:00", end="12:00", classroom="  "))
    assert r.status_code == 201
    assert r.get_json()["session"]["classroom"] is None


@pytest.mark.parametrize("classroom", [None, "", "   "])
def test_session_schema_accepts_missing_classroom(classroom):
    data = SessionIn.model_validate(_session(classroom=classroom))
    assert data.classroom is None
    data = SessionUpdate.model_validate({"classroom": classroom})
    assert data.classroom is None
    assert "classroom" in data.model_fields_set


def test_session_schema_limits_classroom_length():
    assert SessionIn.model_validate(_session(classroom="  B-202 ")).classroom == "B-202"
    with pytest.raises(PydanticValidationError):
        SessionIn.model_validate(_session(classroom="x" * 51))


def test_session_without_classroom_skips_room_check(admin_client, make):
    a, b = make.group(), make.group()
    make.session(a, "MONDAY", "10:00", "12:00")
    for classroom in (None, "  "):
        r = admin_client.post(f"{BASE}/{b.id}/sessions", json=_session(start="10:00", end="11:00", classroom=classroom))
        assert r.status_code == 201, r.get_json()
        body = r.get_json()["session"]
        assert body["classroom"] is None
        assert admin_client.delete(f"{BASE}/sessions/{body['id']}").status_code == 200

    r = admin_client.post(f"{BASE}/{b.id}/sessions", json=_session(classroom="x" * 51))
    assert r.status_code == 400


def test_update_session_excludes_itself(admin_client, make):
    g = make.group()
    s = make.session(g, "MONDAY", "10:00", "12:00", classroom="A-101")
    r = admin_client.put(f"{BASE}/sessions/{s.id}", json={"start_time": "10:30", "end_time": "12:30"})
    assert r.status_code == 200, r.get_json()
    body = r.get_json()["session"]
    assert body["start_time"] == "10:30"
    assert body["classroom"] == "A-101"

    # явный null очищает аудиторию
    r = admin_client.put(f"{BASE}/sessions/{s.id}", json={"classroom": None})
    assert r.get_json()["session"]["classroom"] is None


def test_update_session_conflicts(admin_client, make):
    g = make.group()
    make.session(g, "MONDAY", "10:00", "12:00")
    other = make.session(g, "TUESDAY", "10:00", "12:00")
    r = admin_client.put(f"{BASE}/sessions/{other.id}", json={"day_of_week": "MONDAY"})
    assert r.status_code == 409
    assert error_code(r) == "DUPLICATE_SLOT"
    r = admin_client.put(f"{BASE}/sessions/{other.id}", json={"end_time": "09:00"})
    assert r.status_code == 400
    assert error_code(r) == "INVALID_TIME_RANGE"


def test_closed_group_sessions_are_frozen(admin_client, make):
    g = make.group(status=CourseGroupStatus.CLOSED)
    s = make.session(g)
    r = admin_client.post(f"{BASE}/{g.id}/sessions", json=_session(day="FRIDAY"))
    assert r.status_code == 400
    assert error_code(r) == "GROUP_CLOSED"
    assert error_code(admin_client.put(f"{BASE}/sessions/{s.id}", json={"classroom": "X"})) == "GROUP_CLOSED"
    assert error_code(admin_client.delete(f"{BASE}/sessions/{s.id}")) == "GROUP_CLOSED"


def test_delete_session(admin_client, make):
    g = make.group()
    sid = make.session(g).id
    assert admin_client.delete(f"{BASE}/sessions/{sid}").status_code == 200
    assert db.session.get(GroupSession, sid) is None
    r = admin_client.delete(f"{BASE}/sessions/{sid}")
    assert r.status_code == 404
    assert error_code(r) == "SESSION_NOT_FOUND"


# ---------- назначение преподавателя ----------
def test_assign_teacher_conflict_scenario(admin_client, make):
    teacher = make.teacher()
    a = make.group(teacher=teacher)
    make.session(a, "MONDAY", "10:00", "12:00")

    b = make.group()
    make.session(b, "MONDAY", "11:00", "13:00")
    r = admin_client.put(f"{BASE}/{b.id}/teacher", json={"teacher_id": teacher.id})
    assert r.status_code == 409
    err = r.get_json()["errors"][0]
    assert err["code"] == "TEACHER_BUSY"
    assert err["details"]["conflict"]["group_id"] == a.id

    c = make.group()
    make.session(c, "MONDAY", "12:00", "14:00")
    r = admin_client.put(f"{BASE}/{c.id}/teacher", json={"teacher_id": teacher.id})
    assert r.status_code == 200
    assert r.get_json()["group"]["teacher"]["id"] == teacher.id


def test_assign_teacher_requires_unassigned_group(admin_client, make):
    t1, t2 = make.teacher(), make.teacher()
    g = make.group(teacher=t1)
    r = admin_client.put(f"{BASE}/{g.id}/teacher", json={"teacher_id": t2.id})
    assert r.status_code == 400
    assert error_code(r) == "TEACHER_ALREADY_ASSIGNED"

    # явное снятие, затем назначение
    r = admin_client.delete(f"{BASE}/{g.id}/teacher")
    assert r.status_code == 200
    assert r.get_json()["group"]["teacher"] is None
    r = admin_client.put(f"{BASE}/{g.id}/teacher", json={"teacher_id": t2.id})
    assert r.status_code == 200


def test_assign_teacher_to_closed_group(admin_client, make):
    teacher = make.teacher()
    g = make.group(status=CourseGroupStatus.CLOSED)
    r = admin_client.put(f"{BASE}/{g.id}/teacher", json={"teacher_id": teacher.id})
    assert r.status_code == 400
    assert error_code(r) == "GROUP_CLOSED"


def test_assign_unknown_teacher(admin_client, make):
    g = make.group()
    r = admin_client.put(f"{BASE}/{g.id}/teacher", json={"teacher_id": 404})
    assert r.status_code == 404
    assert error_code(r) == "TEACHER_NOT_FOUND"


# ---------- статусы ----------
def test_status_lifecycle(admin_client, make):
    g = make.group()
    r = admin_client.put(f"{BASE}/{g.id}/status", json={"status": "ACTIVE", "reason": "enough students"})
    assert r.status_code == 200
    assert r.get_json()["group"]["status"] == "ACTIVE"

    r = admin_client.put(f"{BASE}/{g.id}/status", json={"status": "PLANNED"})
    assert r.status_code == 400
    assert error_code(r) == "INVALID_STATUS_TRANSITION"

    assert admin_client.put(f"{BASE}/{g.id}/status", json={"status": "closed"}).status_code == 200
    for target in ("PLANNED", "ACTIVE", "CLOSED"):
        r = admin_client.put(f"{BASE}/{g.id}/status", json={"status": target})
        assert r.status_code == 400

    log = (AuditLog.query.filter_by(entity="course_group", entity_id=g.id, action="group.status")
           .order_by(AuditLog.id).first())
    assert log.payload == {"from": "PLANNED", "to": "ACTIVE", "reason": "enough students"}
    assert log.actor.startswith("ADMIN:")


def test_status_unknown_value(admin_client, make):
    g = make.group()
    r = admin_client.put(f"{BASE}/{g.id}/status", json={"status": "ARCHIVED"})
    assert r.status_code == 400
    assert error_code(r) == "BAD_REQUEST"


# ---------- удаление ----------
def test_delete_planned_empty_group(admin_client, make):
    g = make.group()
    gid = g.id
    make.session(g)
    r = admin_client.delete(f"{BASE}/{gid}")
    assert r.status_code == 200
    assert db.session.get(CourseGroup, gid) is None
    assert GroupSession.query.count() == 0


def test_delete_group_with_enrollment_conflicts(admin_client, make):
    g = make.group()
    make.enrollment(make.student(), g)
    r = admin_client.delete(f"{BASE}/{g.id}")
    assert r.status_code == 409
    assert error_code(r) == "GROUP_NOT_DELETABLE"


def test_delete_active_group_conflicts(admin_client, make):
    g = make.group(status=CourseGroupStatus.ACTIVE)
    r = admin_client.delete(f"{BASE}/{g.id}")
    assert r.status_code == 409


# ---------- просмотр ----------
def test_list_filters_and_stats(admin_client, make):
    teacher = make.teacher()
    a = make.group(teacher=teacher, status=CourseGroupStatus.ACTIVE, max_capacity=4)
    make.group()
    make.session(a, "MONDAY", "10:00", "12:00")
    make.session(a, "THURSDAY", "10:00", "11:30")
    s1, s2 = make.student(), make.student()
    make.enrollment(s1, a, PaymentStatus.PAID)
    make.enrollment(s2, a)

    items = admin_client.get(f"{BASE}?status=active").get_json()["items"]
    assert [g["id"] for g in items] == [a.id]
    items = admin_client.get(f"{BASE}?without_teacher=1").get_json()["items"]
    assert a.id not in [g["id"] for g in items]

    stats = admin_client.get(f"{BASE}/{a.id}/stats").get_json()["stats"]
    assert stats["enrolled"] == 2
    assert stats["available_spots"] == 2
    assert stats["occupancy_rate"] == 50.0
    assert stats["sessions"] == 2
    assert stats["weekly_minutes"] == 210
    assert (stats["paid"], stats["pending"]) == (1, 1)

    students = admin_client.get(f"{BASE}/{a.id}/students").get_json()["items"]
    assert {s["id"] for s in students} == {s1.id, s2.id}

    assert admin_client.get(f"{BASE}?status=bogus").status_code == 400
    assert error_code(admin_client.get(f"{BASE}/999")) == "GROUP_NOT_FOUND"


# ---------- сервисный слой ----------
def test_services_raise_typed_errors(app, make):
    g = make.group()
    with pytest.raises(ResourceNotFound):
        svc.get_group(12345)
    with pytest.raises(ValidationFailed) as exc:
        svc.add_session(g.id, SessionIn(day_of_week="MONDAY", start_time="12:00", end_time="11:00"))
    assert exc.value.code == "INVALID_TIME_RANGE"

    svc.add_session(g.id, SessionIn(day_of_week="MONDAY", start_time="10:00", end_time="12:00"))
    with pytest.raises(Conflict) as exc:
        svc.add_session(g.id, SessionIn(day_of_week="MONDAY", start_time="10:00", end_time="11:00"))
    assert exc.value.code == "DUPLICATE_SLOT"
    db.session.rollback()

    svc.change_status(g.id, StatusChange(status="ACTIVE"))
    svc.change_status(g.id, StatusChange(status="CLOSED"))
    with pytest.raises(ValidationFailed):
        svc.change_status(g.id, StatusChange(status="ACTIVE"))


# ---------- занятость преподавателя и аудитории ----------
def test_busy_schedule_for_teacher_and_classroom(admin_client, make):
    teacher = make.teacher()
    g1 = make.group(teacher=teacher)
    g2 = make.group()
    wed = make.session(g1, "WEDNESDAY", "09:00", "10:30", classroom="A-101")
    mon = make.session(g1, "MONDAY", "14:00", "15:00")
    room = make.session(g2, "MONDAY", "08:00", "09:00", classroom=" a-101")
    make.session(g2, "TUESDAY", "08:00", "09:00", classroom="B-202")

    r = admin_client.get(f"/api/v1/admin/schedule?teacher_id={teacher.id}&classroom=A-101 ")
    assert r.status_code == 200
    body = r.get_json()
    assert body["classroom"] == "A-101"
    assert [s["id"] for s in body["teacher_sessions"]] == [mon.id, wed.id]
    assert [s["id"] for s in body["classroom_sessions"]] == [room.id, wed.id]
    assert body["classroom_sessions"][0]["start_time"] == "08:00"

    body = admin_client.get("/api/v1/admin/schedule?classroom=b-202").get_json()
    assert body["teacher_sessions"] == []
    assert len(body["classroom_sessions"]) == 1


def test_busy_schedule_arguments(admin_client):
    r = admin_client.get("/api/v1/admin/schedule")
    assert r.status_code == 400
    assert error_code(r) == "BAD_REQUEST"
    r = admin_client.get("/api/v1/admin/schedule?teacher_id=999")
    assert r.status_code == 404
    assert error_code(r) == "TEACHER_NOT_FOUND"
