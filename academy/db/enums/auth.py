"""Membership role enums."""

from enum import Enum


class Role(str, Enum):
    """Role of a member inside an academy (tenant)."""

    STUDENT = "student"
    SUPPORT = "support"
    ADMIN = "admin"
    OWNER = "owner"


# Roles that receive course-scoped staff fan-outs
STAFF_ROLES = (Role.ADMIN, Role.SUPPORT)
