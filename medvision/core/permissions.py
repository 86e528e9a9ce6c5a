"""Role-based authorization policy.

A single table maps ``(resource, action)`` to the roles allowed to perform it.
Ownership rules (a doctor touching only their own appointments, a patient
reading only their own prescriptions) are applied by the services on top of
this table.
"""
from typing import Dict, FrozenSet, Tuple

from .exceptions import Forbidden
from .security import UserRole

ADMIN = UserRole.ADMIN
DOCTOR = UserRole.DOCTOR
PATIENT = UserRole.PATIENT

ANY_ROLE = frozenset({ADMIN, DOCTOR, PATIENT})
STAFF = frozenset({ADMIN, DOCTOR})
ADMIN_ONLY = frozenset({ADMIN})

POLICY: Dict[Tuple[str, str], FrozenSet[UserRole]] = {
    # Accounts
    ("admin", "create"): ADMIN_ONLY,
    ("doctor", "create"): ADMIN_ONLY,
    ("doctor", "read"): ADMIN_ONLY,
    ("doctor", "list"): ADMIN_ONLY,
    ("doctor", "update"): ADMIN_ONLY,
    ("doctor", "delete"): ADMIN_ONLY,
    ("patient", "create"): ADMIN_ONLY,
    ("patient", "read"): ADMIN_ONLY,
    ("patient", "list"): ADMIN_ONLY,
    ("patient", "update"): ADMIN_ONLY,
    ("patient", "delete"): ADMIN_ONLY,
    # Appointments
    ("appointment", "create"): ADMIN_ONLY,
    ("appointment", "read"): ANY_ROLE,
    ("appointment", "list"): ANY_ROLE,
    ("appointment", "update"): STAFF,
    ("appointment", "delete"): ADMIN_ONLY,
    ("appointment", "issue_token"): ANY_ROLE,
    ("appointment", "availability"): STAFF,
    # Prescriptions
    ("prescription", "create"): STAFF,
    ("prescription", "read"): ANY_ROLE,
    ("prescription", "list"): ANY_ROLE,
    ("prescription", "update"): STAFF,
    ("prescription", "delete"): STAFF,
}


def is_allowed(role: UserRole, resource: str, action: str) -> bool:
    """Unknown (resource, action) pairs are denied."""
    return UserRole(role) in POLICY.get((resource, action), frozenset())


def authorize(role: UserRole, resource: str, action: str) -> None:
    if not is_allowed(role, resource, action):
        raise Forbidden()
