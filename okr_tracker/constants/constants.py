"""Constants for roles, statuses and categories used across OKRs, courses and enrollments."""

from enum import Enum


class UserRole(str, Enum):
    """Enumeration of user roles within the organization."""

    employee = "employee"
    manager = "manager"
    hr = "hr"
    admin = "admin"
    super_admin = "super_admin"


class UserStatus(str, Enum):
    """Enumeration of profile statuses."""

    active = "active"
    inactive = "inactive"
    suspended = "suspended"


class OKRCategory(str, Enum):
    performance = "performance"
    skill = "skill"
    learning = "learning"
    career = "career"


class OKRStatus(str, Enum):
    on_track = "on_track"
    at_risk = "at_risk"
    off_track = "off_track"


class OKRScope(str, Enum):
    personal = "personal"
    team = "team"
    company = "company"


class CheckInChangeType(str, Enum):
    progress = "progress"
    edit = "edit"


class CourseCategory(str, Enum):
    design = "design"
    development = "development"
    marketing = "marketing"
    leadership = "leadership"
    data = "data"
    communication = "communication"
    product = "product"
    other = "other"


class CourseDifficulty(str, Enum):
    beginner = "beginner"
    intermediate = "intermediate"
    advanced = "advanced"


class EnrollmentStatus(str, Enum):
    """Derived from module completions, never set directly."""

    in_progress = "in_progress"
    completed = "completed"


class AuditAction(str, Enum):
    okr_create = "okr_create"
    okr_update = "okr_update"
    okr_delete = "okr_delete"
    okr_archive = "okr_archive"
    okr_restore = "okr_restore"
    okr_duplicate = "okr_duplicate"
    kr_update = "kr_update"
    checkin_create = "checkin_create"
    focus_toggle = "focus_toggle"
    career_level_up = "career_level_up"
    login = "login"
    logout = "logout"


# Roles a member's role may be changed to. super_admin is assigned out of band.
ASSIGNABLE_ROLES = [UserRole.employee, UserRole.manager, UserRole.hr, UserRole.admin]

CERTIFICATE_MAX_SIZE = 10 * 1024 * 1024  # 10MB
CERTIFICATE_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
}
