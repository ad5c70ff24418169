from __future__ import annotations
from types import SimpleNamespace

import pytest

from models import CourseGroupStatus, DayOfWeek, PaymentStatus
from blueprints.constraints.services import (
    ALLOWED_TRANSITIONS, SessionCandidate, SessionLimits,
    check_admission, check_cancellation, check_classroom_busy, check_group_deletable,
    check_group_slots, check_status_transition, check_teacher_busy, check_teacher_schedule,
    check_time_range, time_overlaps,
)
from conftest import error_code, t

LIMITS = SessionLimits()


def _s(id, group_id, day="MONDAY", start="10:00", end="12:00", classroom=None):
    return SimpleNamespace(id=id, course_group_id=group_id, day_of_week=DayOfWeek(day),
                           start_time=t(start), end_time=t(end), classroom=classroom)


def _cand(group_id=1, day="MONDAY", start="10:00", end="12:00", classroom=None, id=None):
    return SessionCandidate(course_group_id=group_id, day_of_week=DayOfWeek(day),
                            start_time=t(start), end_time=t(end), classroom=classroom, id=id)


def _codes(errors):
    return [e.code for e in errors]


# ---------- интервалы ----------
@pytest.mark.parametrize("a,b,expected", [
    (("10:00", "12:00"), ("11:00", "13:00"), True),
    (("10:00", "12:00"), ("12:00", "14:00"), False),   # касание концами
    (("10:00", "12:00"), ("08:00", "10:00"), False),
    (("10:00", "12:00"), ("10:30", "11:00"), True),    # вложенный
    (("10:00", "12:00"), ("09:00", "13:00"), True),    # охватывающий
])
def test_time_overlaps_half_open(a, b, expected):
    assert time_overlaps(t(a[0]), t(a[1]), t(b[0]), t(b[1])) is expected
    assert time_overlaps(t(b[0]), t(b[1]), t(a[0]), t(a[1])) is expected


def test_time_range_rejects_empty_interval():
    errors = check_time_range(t("10:00"), t("10:00"), LIMITS)
    assert _codes(errors) == ["INVALID_TIME_RANGE"]
    assert errors[0].message == "end time must be after start time"
    assert _codes(check_time_range(t("12:00"), t("10:00"))) == ["INVALID_TIME_RANGE"]


def test_time_range_working_hours_and_duration():
    assert check_time_range(t("06:00"), t("08:00"), LIMITS) == []
    assert check_time_range(t("20:00"), t("22:00"), LIMITS) == []
    assert _codes(check_time_range(t("05:30"), t("07:00"), LIMITS)) == ["OUT_OF_HOURS"]
    assert _codes(check_time_range(t("21:00"), t("22:30"), LIMITS)) == ["OUT_OF_HOURS"]
    assert _codes(check_time_range(t("10:00"), t("10:15"), LIMITS)) == ["INVALID_DURATION"]
    assert _codes(check_time_range(t("10:00"), t("14:01"), LIMITS)) == ["INVALID_DURATION"]
    assert check_time_range(t("10:00"), t("14:00"), LIMITS) == []


# ---------- группа ----------
def test_group_duplicate_slot_and_overlap():
    existing = [_s(1, 1, start="10:00", end="12:00")]
    assert _codes(check_group_slots(_cand(start="10:00", end="11:00"), existing)) == ["DUPLICATE_SLOT"]
    assert _codes(check_group_slots(_cand(start="11:00", end="13:00"), existing)) == ["GROUP_BUSY"]
    assert check_group_slots(_cand(start="12:00", end="13:00"), existing) == []
    assert check_group_slots(_cand(day="TUESDAY"), existing) == []


def test_group_slots_ignore_edited_session():
    existing = [_s(1, 1, start="10:00", end="12:00")]
    assert check_group_slots(_cand(start="10:00", end="11:30", id=1), existing) == []


# ---------- преподаватель ----------
def test_teacher_busy_any_group_same_day():
    busy = [_s(7, 2, start="10:00", end="12:00")]
    errors = check_teacher_busy(_cand(group_id=1, start="11:00", end="13:00"), 5, busy)
    assert _codes(errors) == ["TEACHER_BUSY"]
    assert errors[0].details["session_id"] == 7
    assert errors[0].details["teacher_id"] == 5

    assert check_teacher_busy(_cand(group_id=1, start="12:00", end="14:00"), 5, busy) == []
    assert check_teacher_busy(_cand(group_id=1, day="FRIDAY"), 5, busy) == []
    # без преподавателя проверять нечего
    assert check_teacher_busy(_cand(group_id=1, start="11:00", end="13:00"), None, busy) == []


def test_teacher_busy_excludes_edited_session():
    busy = [_s(7, 2, start="10:00", end="12:00")]
    assert check_teacher_busy(_cand(group_id=2, start="10:30", end="12:30", id=7), 5, busy) == []


def test_teacher_schedule_reports_both_sessions():
    mine = [_s(10, 3, start="11:00", end="13:00")]
    busy = [_s(1, 1, start="10:00", end="12:00")]
    errors = check_teacher_schedule(5, mine, busy)
    assert _codes(errors) == ["TEACHER_BUSY"]
    assert errors[0].details["session"]["session_id"] == 10
    assert errors[0].details["conflict"]["session_id"] == 1
    assert check_teacher_schedule(5, [_s(10, 3, start="12:00", end="14:00")], busy) == []


# ---------- аудитория ----------
def test_classroom_compared_trimmed_case_insensitive():
    booked = [_s(3, 2, classroom="A-101")]
    errors = check_classroom_busy(_cand(group_id=1, start="11:00", end="12:30", classroom="  a-101 "), booked)
    assert _codes(errors) == ["CLASSROOM_BUSY"]
    assert check_classroom_busy(_cand(group_id=1, start="11:00", end="12:30", classroom="B-202"), booked) == []
    assert check_classroom_busy(_cand(group_id=1, classroom="   "), booked) == []
    assert check_classroom_busy(_cand(group_id=1, classroom=None), booked) == []


def test_same_time_different_teacher_and_room_is_fine():
    other = [_s(3, 2, classroom="A-101")]
    cand = _cand(group_id=1, classroom="B-202")
    assert check_teacher_busy(cand, 9, []) == []
    assert check_classroom_busy(cand, other) == []


# ---------- жизненный цикл ----------
@pytest.mark.parametrize("src", list(CourseGroupStatus))
@pytest.mark.parametrize("dst", list(CourseGroupStatus))
def test_transition_table(src, dst):
    allowed = {
        (CourseGroupStatus.PLANNED, CourseGroupStatus.ACTIVE),
        (CourseGroupStatus.PLANNED, CourseGroupStatus.CLOSED),
        (CourseGroupStatus.ACTIVE, CourseGroupStatus.CLOSED),
    }
    errors = check_status_transition(src, dst)
    if (src, dst) in allowed:
        assert errors == []
    else:
        assert _codes(errors) == ["INVALID_STATUS_TRANSITION"]


def test_closed_is_terminal():
    assert ALLOWED_TRANSITIONS[CourseGroupStatus.CLOSED] == frozenset()


def test_group_deletable_only_planned_and_empty():
    planned = SimpleNamespace(id=1, status=CourseGroupStatus.PLANNED)
    active = SimpleNamespace(id=2, status=CourseGroupStatus.ACTIVE)
    assert check_group_deletable(planned, 0) == []
    assert _codes(check_group_deletable(planned, 1)) == ["GROUP_NOT_DELETABLE"]
    assert _codes(check_group_deletable(active, 0)) == ["GROUP_NOT_DELETABLE"]


# ---------- допуск к записи ----------
def _group(status=CourseGroupStatus.ACTIVE, cap=2, major="CS"):
    return SimpleNamespace(id=1, status=status, max_capacity=cap, subject=SimpleNamespace(major=major))


def test_admission_checks_run_in_fixed_order():
    st = SimpleNamespace(id=1, major="Math")
    # всё плохо сразу: побеждает первая проверка
    assert _codes(check_admission(_group(status=CourseGroupStatus.PLANNED, cap=1), st, 1, True)) == ["GROUP_NOT_ACTIVE"]
    assert _codes(check_admission(_group(cap=1), st, 1, True)) == ["GROUP_FULL"]
    assert _codes(check_admission(_group(cap=2), st, 1, True)) == ["DUPLICATE_ENROLLMENT"]
    assert _codes(check_admission(_group(cap=2), st, 1, False)) == ["MAJOR_MISMATCH"]
    assert check_admission(_group(cap=2, major="Math"), st, 1, False) == []


def test_group_full_message():
    errors = check_admission(_group(cap=1), SimpleNamespace(id=1, major="CS"), 1, False)
    assert errors[0].message == "no available spots"


def test_cancellation_guard():
    def en(payment, status):
        return SimpleNamespace(payment_status=payment, course_group_id=1,
                               course_group=SimpleNamespace(status=status))
    assert check_cancellation(en(PaymentStatus.PENDING, CourseGroupStatus.ACTIVE)) == []
    assert _codes(check_cancellation(en(PaymentStatus.PAID, CourseGroupStatus.ACTIVE))) == ["PAYMENT_NOT_PENDING"]
    assert _codes(check_cancellation(en(PaymentStatus.FAILED, CourseGroupStatus.ACTIVE))) == ["PAYMENT_NOT_PENDING"]
    assert _codes(check_cancellation(en(PaymentStatus.PENDING, CourseGroupStatus.CLOSED))) == ["GROUP_CLOSED"]


# ---------- пробная проверка через API ----------
def test_dry_run_endpoint_reports_conflicts_without_writing(admin_client, make):
    teacher = make.teacher()
    g1 = make.group(teacher=teacher)
    make.session(g1, "MONDAY", "10:00", "12:00", classroom="A-101")
    g2 = make.group()

    payload = {"course_group_id": g2.id, "teacher_id": teacher.id, "day_of_week": "monday",
               "start_time": "11:00", "end_time": "12:30", "classroom": "a-101"}
    r = admin_client.post("/api/v1/admin/constraints/check", json=payload)
    assert r.status_code == 409
    codes = [e["code"] for e in r.get_json()["errors"]]
    assert codes == ["TEACHER_BUSY", "CLASSROOM_BUSY"]

    r = admin_client.post("/api/v1/admin/constraints/check",
                          json={**payload, "start_time": "12:00", "end_time": "13:00"})
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "errors": []}

    r = admin_client.post("/api/v1/admin/constraints/check",
                          json={**payload, "start_time": "10:00", "end_time": "10:00"})
    assert r.status_code == 400
    assert error_code(r) == "INVALID_TIME_RANGE"

    # ничего не записано
    r = admin_client.get(f"/api/v1/admin/groups/{g2.id}/sessions")
    assert r.get_json()["items"] == []
