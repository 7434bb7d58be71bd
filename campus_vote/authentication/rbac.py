# campus_vote/authentication/rbac.py

from enum import Enum
import logging

from campus_vote import db
from campus_vote.database.models import Role, UserRole
from campus_vote.errors import AuthenticationError, PermissionDenied

logger = logging.getLogger(__name__)

# Role-based access control evaluated in-process against the same session as
# the guarded operation, so every read/write decision sees committed roles.


class Permission(Enum):
    VOTE = "vote"
    VIEW_ACTIVE_ELECTIONS = "view_active_elections"
    VIEW_RESULTS = "view_results"
    VIEW_OWN_VOTES = "view_own_votes"
    VIEW_ALL_ELECTIONS = "view_all_elections"
    MANAGE_ELECTIONS = "manage_elections"
    MANAGE_CANDIDATES = "manage_candidates"
    VIEW_ALL_VOTES = "view_all_votes"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    VIEW_ROLES = "view_roles"


_STUDENT_PERMISSIONS = [
    Permission.VOTE,
    Permission.VIEW_ACTIVE_ELECTIONS,
    Permission.VIEW_RESULTS,
    Permission.VIEW_OWN_VOTES,
]

# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    Role.STUDENT: _STUDENT_PERMISSIONS,
    Role.ADMIN: _STUDENT_PERMISSIONS + [
        Permission.VIEW_ALL_ELECTIONS,
        Permission.MANAGE_ELECTIONS,
        Permission.MANAGE_CANDIDATES,
        Permission.VIEW_ALL_VOTES,
        Permission.VIEW_AUDIT_LOGS,
        Permission.VIEW_ROLES,
    ],
}


class RBACService:
    def get_roles(self, principal_id):
        if not principal_id:
            return set()
        rows = db.session.execute(
            db.select(UserRole.role).where(UserRole.user_id == principal_id)
        ).scalars()
        return set(rows)

    def has_role(self, principal_id, role):
        if isinstance(role, str):
            role = Role(role)
        if not principal_id:
            return False
        found = db.session.execute(
            db.select(UserRole.id).where(UserRole.user_id == principal_id, UserRole.role == role)
        ).first()
        return found is not None

    def is_admin(self, principal_id):
        return self.has_role(principal_id, Role.ADMIN)

    def has_permission(self, principal_id, permission):
        if isinstance(permission, str):
            permission = Permission(permission)
        return any(permission in ROLE_PERMISSIONS.get(role, []) for role in self.get_roles(principal_id))

    def get_permissions(self, principal_id):
        permissions = set()
        for role in self.get_roles(principal_id):
            permissions.update(ROLE_PERMISSIONS.get(role, []))
        return permissions

    def authorize(self, principal_id, permission):
        if not principal_id:
            raise AuthenticationError("Authentication required.")
        if not self.has_permission(principal_id, permission):
            perm = permission.value if isinstance(permission, Enum) else str(permission)
            logger.warning("Permission %s denied for principal %s", perm, principal_id)
            raise PermissionDenied()


rbac_service = RBACService()

