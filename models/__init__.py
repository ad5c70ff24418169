from extensions import db
from .user import Role, AccountMixin
from .people import Admin, Teacher, Student, PermissionLevel
from .subject import Subject
from .course_group import (
    CourseGroup, CourseGroupStatus, CourseGroupType,
    GroupSession, DayOfWeek,
    Enrollment, PaymentStatus,
)
from .group_request import GroupRequest, RequestStatus
from .audit_log import AuditLog

# порядок важен: логин ищет по email именно в такой последовательности
ACCOUNT_MODELS = {
    Role.ADMIN.value: Admin,
    Role.TEACHER.value: Teacher,
    Role.STUDENT.value: Student,
}

__all__ = [
    "db", "Role", "AccountMixin", "Admin", "Teacher", "Student", "PermissionLevel",
    "Subject", "CourseGroup", "CourseGroupStatus", "CourseGroupType",
    "GroupSession", "DayOfWeek", "Enrollment", "PaymentStatus",
    "GroupRequest", "RequestStatus", "AuditLog", "ACCOUNT_MODELS",
]
