# blueprints/teacher/services.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional

from sqlalchemy import func

from blueprints.core.filters import fmt_time, minutes_between
from extensions import db
from models import CourseGroup, CourseGroupStatus, DayOfWeek, Enrollment, GroupSession, Subject


@dataclass
class LessonOut:
    session_id: int
    group_id: int
    day_of_week: str
    start: str
    end: str
    subject: str
    group_status: str
    classroom: str | None
    duration_hours: float


def _duration_hours(s: GroupSession) -> float:
    return round(minutes_between(s.start_time, s.end_time) / 60.0, 2)


def weekly_schedule(teacher_id: int, day: Optional[DayOfWeek] = None) -> List[Dict]:
    """Все занятия преподавателя: по дням недели (пн..вс), внутри дня по началу."""
    q = (db.session.query(GroupSession, CourseGroup, Subject)
         .join(CourseGroup, CourseGroup.id == GroupSession.course_group_id)
         .join(Subject, Subject.id == CourseGroup.subject_id)
         .filter(CourseGroup.teacher_id == teacher_id))
    if day is not None:
        q = q.filter(GroupSession.day_of_week == day)

    lessons = [
        LessonOut(
            session_id=s.id, group_id=g.id, day_of_week=s.day_of_week.value,
            start=fmt_time(s.start_time), end=fmt_time(s.end_time), subject=subj.name,
            group_status=g.status.value, classroom=s.classroom, duration_hours=_duration_hours(s),
        )
        for s, g, subj in q.all()
    ]
    # enum в БД хранится строкой, поэтому порядок дней считаем сами
    lessons.sort(key=lambda l: (DayOfWeek(l.day_of_week).weekday, l.start))
    return [asdict(l) for l in lessons]


def teacher_groups(teacher_id: int) -> List[CourseGroup]:
    return CourseGroup.query.filter_by(teacher_id=teacher_id).order_by(CourseGroup.id).all()


def teacher_stats(teacher_id: int) -> Dict:
    groups = teacher_groups(teacher_id)
    by_status = {s.value: 0 for s in CourseGroupStatus}
    for g in groups:
        by_status[g.status.value] += 1
    sessions = [s for g in groups for s in g.sessions]
    students = 0
    if groups:
        students = (db.session.query(func.count(func.distinct(Enrollment.student_id)))
                    .filter(Enrollment.course_group_id.in_([g.id for g in groups]))
                    .scalar()) or 0
    return {
        "groups": len(groups),
        "groups_by_status": by_status,
        "sessions": len(sessions),
        "weekly_hours": round(sum(_duration_hours(s) for s in sessions), 2),
        "students": students,
    }
