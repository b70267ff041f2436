from rest_framework import permissions

ROLES = ("super_admin", "admin", "instructor", "commander", "trainee")

# Every capability tag the API checks
ALL_PERMISSIONS = frozenset({
    "users:read", "users:write", "users:delete",
    "courses:read", "courses:write", "courses:delete",
    "exams:read", "exams:write", "exams:delete",
    "sessions:read", "sessions:write", "sessions:delete",
    "reports:read", "reports:write",
    "certificates:read", "certificates:write",
    "audit:read",
    "settings:read", "settings:write",
    "learning:read", "learning:write",
    "files:read", "files:write", "files:upload", "files:delete",
    "notifications:read", "notifications:write",
})

ROLE_PERMISSIONS = {
    "super_admin": ALL_PERMISSIONS,
    "admin": ALL_PERMISSIONS - {"audit:read"},
    "instructor": frozenset({
        "courses:read", "courses:write",
        "exams:read", "exams:write",
        "sessions:read", "sessions:write",
        "reports:read",
        "certificates:read",
        "learning:read", "learning:write",
        "files:read", "files:upload",
        "notifications:read",
    }),
    "commander": frozenset({
        "users:read",
        "courses:read",
        "exams:read",
        "sessions:read",
        "reports:read",
        "certificates:read",
        "learning:read",
        "files:read",
        "notifications:read",
    }),
    "trainee": frozenset({
        "courses:read",
        "exams:read",
        "sessions:read",
        "certificates:read",
        "learning:read", "learning:write",
        "files:read",
        "notifications:read",
    }),
}

def normalize_role(value):
    """'SUPER_ADMIN', 'super-admin' and 'super.admin' all become 'super_admin'."""
    if not value:
        return None
    role = str(value).lower().replace(".", "_").replace("-", "_")
    return role if role in ROLES else None


def has_permission(role, permission):
    return permission in ROLE_PERMISSIONS.get(normalize_role(role), frozenset())


def is_admin_role(role):
    return normalize_role(role) in ("admin", "super_admin")


class HasPermission(permissions.BasePermission):
    """
    Checks request.user.role against the static role table.

    Views declare what they need with `required_permissions`, either a single
    tag list or a dict keyed by viewset action or HTTP method. An action entry
    may itself be a dict keyed by method.
    """
    message = "Insufficient permissions"

    def _required(self, request, view):
        required = getattr(view, "required_permissions", None)
        if isinstance(required, dict):
            action = getattr(view, "action", None)
            if action and action in required:
                required = required[action]
                if not isinstance(required, dict):
                    return required
            return required.get(request.method, required.get("*", []))
        return required or []

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        role = getattr(request.user, "role", None)
        return all(has_permission(role, perm) for perm in self._required(request, view))


class IsAdminRole(permissions.BasePermission):
    message = "Insufficient permissions"

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return is_admin_role(getattr(request.user, "role", None))


class IsTrainee(permissions.BasePermission):
    message = "Only trainees can submit exams"

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return normalize_role(getattr(request.user, "role", None)) == "trainee"
