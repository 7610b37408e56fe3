"""
Guardian relationship service for managing the student access graph.
"""
from app.services.guardian.guardian_service import (
    register_student,
    add_guardian,
    remove_guardian,
    set_primary_guardian,
    list_guardians,
    list_students_for_guardian,
    link_guardian,
    lock_student,
)
from app.services.guardian.guardian_models import (
    GuardianView,
    StudentView,
    GuardianResult,
    StudentResult,
)

__all__ = [
    "register_student",
    "add_guardian",
    "remove_guardian",
    "set_primary_guardian",
    "list_guardians",
    "list_students_for_guardian",
    "link_guardian",
    "lock_student",
    "GuardianView",
    "StudentView",
    "GuardianResult",
    "StudentResult",
]
