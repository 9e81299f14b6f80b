# backend/utils/permissions.py
from typing import List

from models.intervention import InterventionStatus
from models.users import UserRole

TERMINAL_STATUSES = {InterventionStatus.COMPLETED, InterventionStatus.CANCELED}

# Roles allowed to create or edit catalog items
CATALOG_ROLES = {UserRole.ADMIN, UserRole.SUPERVISOR}


def can_manage_catalog(role) -> bool:
    return role in CATALOG_ROLES


# Statuses an intervention may be moved to by the given role
def allowed_next_statuses(role, current_status) -> List[InterventionStatus]:
    role = UserRole(role)
    current_status = InterventionStatus(current_status)

    # Completed / canceled jobs are frozen for everyone but admins
    if current_status in TERMINAL_STATUSES and role != UserRole.ADMIN:
        return [current_status]

    if role in (UserRole.ADMIN, UserRole.SUPERVISOR):
        return list(InterventionStatus)

    # TECHNICIAN
    return [InterventionStatus.OPEN, InterventionStatus.IN_PROGRESS, InterventionStatus.QUALITY_ASSESSMENT]


def is_locked_for(role, status) -> bool:
    """True when ``status`` is terminal and ``role`` cannot move it anywhere."""
    status = InterventionStatus(status)
    return status in TERMINAL_STATUSES and allowed_next_statuses(role, status) == [status]
