"""
Static role and permission catalog.

Everything the resolver needs to know about roles lives here: the project
and space roles, the project permissions grouped by category, and the
default grants of every role at both scopes. The options endpoint
serialises this module into a payload and API clients rebuild the same
``RoleCatalog`` from it, so the server table is the only source of truth.
"""
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from django.db import models

from .exceptions import CatalogError


class ProjectRole(models.TextChoices):
    ADMIN = "admin", "Administrator"
    MANAGER = "manager", "Manager"
    EDITOR = "editor", "Editor"
    MEMBER = "member", "Member"
    VIEWER = "viewer", "Viewer"


PROJECT_ROLE_DESCRIPTIONS = {
    ProjectRole.ADMIN: "Full control over the project",
    ProjectRole.MANAGER: "Manages the project and its members",
    ProjectRole.EDITOR: "Edits project content",
    ProjectRole.MEMBER: "Takes an active part in the project",
    ProjectRole.VIEWER: "Read-only access to the project",
}

# higher = more permissions
PROJECT_ROLE_LEVELS = {
    ProjectRole.ADMIN: 100,
    ProjectRole.MANAGER: 80,
    ProjectRole.EDITOR: 60,
    ProjectRole.MEMBER: 40,
    ProjectRole.VIEWER: 20,
}


class SpaceRole(models.TextChoices):
    OWNER = "owner", "Owner"
    ADMIN = "admin", "Administrator"
    MANAGER = "manager", "Manager"
    MEMBER = "member", "Member"
    GUEST = "guest", "Guest"


SPACE_ROLE_DESCRIPTIONS = {
    SpaceRole.OWNER: "Full control of the space, including billing and deletion.",
    SpaceRole.ADMIN: "Administers the space: users, projects and settings.",
    SpaceRole.MANAGER: "Manages projects and tasks, sees statistics.",
    SpaceRole.MEMBER: "Works on assigned tasks and takes part in projects.",
    SpaceRole.GUEST: "Limited, read-only access.",
}

SPACE_ROLE_LEVELS = {
    SpaceRole.OWNER: 5,
    SpaceRole.ADMIN: 4,
    SpaceRole.MANAGER: 3,
    SpaceRole.MEMBER: 2,
    SpaceRole.GUEST: 1,
}


class ProjectPermission(models.TextChoices):
    MANAGE_PROJECT = "can_manage_project", "Manage project"
    MANAGE_MEMBERS = "can_manage_members", "Manage members"
    EDIT_CONTENT = "can_edit_content", "Edit content"
    DELETE_CONTENT = "can_delete_content", "Delete content"
    VIEW_REPORTS = "can_view_reports", "View reports"
    VIEW_BUDGET = "can_view_budget", "View budget"
    EXPORT_DATA = "can_export_data", "Export data"
    TRACK_TIME = "can_track_time", "Track time"
    VIEW_ALL_TIME_ENTRIES = "can_view_all_time_entries", "View all time entries"
    MANAGE_INTEGRATIONS = "can_manage_integrations", "Manage integrations"


PROJECT_PERMISSION_DESCRIPTIONS = {
    ProjectPermission.MANAGE_PROJECT: "Configure project settings, change its status, delete the project",
    ProjectPermission.MANAGE_MEMBERS: "Add and remove members and change their roles",
    ProjectPermission.EDIT_CONTENT: "Create and edit tasks, documents and other content",
    ProjectPermission.DELETE_CONTENT: "Delete tasks, documents and other content",
    ProjectPermission.VIEW_REPORTS: "Access project reports and statistics",
    ProjectPermission.VIEW_BUDGET: "See budget and cost information",
    ProjectPermission.EXPORT_DATA: "Export project data in several formats",
    ProjectPermission.TRACK_TIME: "Log time worked on the project",
    ProjectPermission.VIEW_ALL_TIME_ENTRIES: "See the time entries of every member",
    ProjectPermission.MANAGE_INTEGRATIONS: "Configure and manage external integrations",
}

# Display order of the catalog
PROJECT_PERMISSION_CATEGORIES = {
    "Project management": (
        ProjectPermission.MANAGE_PROJECT,
        ProjectPermission.MANAGE_MEMBERS,
    ),
    "Content management": (
        ProjectPermission.EDIT_CONTENT,
        ProjectPermission.DELETE_CONTENT,
    ),
    "Reports & analytics": (
        ProjectPermission.VIEW_REPORTS,
        ProjectPermission.VIEW_BUDGET,
        ProjectPermission.EXPORT_DATA,
    ),
    "Time tracking": (
        ProjectPermission.TRACK_TIME,
        ProjectPermission.VIEW_ALL_TIME_ENTRIES,
    ),
    "Integrations": (
        ProjectPermission.MANAGE_INTEGRATIONS,
    ),
}

PROJECT_ROLE_DEFAULTS = {
    ProjectRole.ADMIN: frozenset(ProjectPermission.values),
    ProjectRole.MANAGER: frozenset({
        ProjectPermission.MANAGE_PROJECT,
        ProjectPermission.MANAGE_MEMBERS,
        ProjectPermission.EDIT_CONTENT,
        ProjectPermission.DELETE_CONTENT,
        ProjectPermission.VIEW_REPORTS,
        ProjectPermission.VIEW_BUDGET,
        ProjectPermission.EXPORT_DATA,
        ProjectPermission.TRACK_TIME,
        ProjectPermission.VIEW_ALL_TIME_ENTRIES,
    }),
    ProjectRole.EDITOR: frozenset({
        ProjectPermission.EDIT_CONTENT,
        ProjectPermission.VIEW_REPORTS,
        ProjectPermission.TRACK_TIME,
        ProjectPermission.VIEW_ALL_TIME_ENTRIES,
    }),
    ProjectRole.MEMBER: frozenset({
        ProjectPermission.EDIT_CONTENT,
        ProjectPermission.TRACK_TIME,
    }),
    ProjectRole.VIEWER: frozenset(),
}

# What a space role alone grants inside every project of the space
SPACE_ROLE_PROJECT_DEFAULTS = {
    SpaceRole.OWNER: frozenset(ProjectPermission.values),
    SpaceRole.ADMIN: frozenset(ProjectPermission.values),
    SpaceRole.MANAGER: frozenset({
        ProjectPermission.VIEW_REPORTS,
        ProjectPermission.VIEW_BUDGET,
        ProjectPermission.EXPORT_DATA,
        ProjectPermission.VIEW_ALL_TIME_ENTRIES,
    }),
    SpaceRole.MEMBER: frozenset(),
    SpaceRole.GUEST: frozenset(),
}


class SpacePermission(models.TextChoices):
    # Space
    MANAGE_SPACE = "manage_space", "Manage space"
    VIEW_SPACE = "view_space", "View space"
    DELETE_SPACE = "delete_space", "Delete space"
    # Users
    INVITE_USERS = "invite_users", "Invite users"
    REMOVE_USERS = "remove_users", "Remove users"
    MANAGE_USER_ROLES = "manage_user_roles", "Manage user roles"
    # Billing
    MANAGE_BILLING = "manage_billing", "Manage billing"
    VIEW_INVOICES = "view_invoices", "View invoices"
    # Projects
    CREATE_PROJECTS = "create_projects", "Create projects"
    EDIT_PROJECTS = "edit_projects", "Edit projects"
    DELETE_PROJECTS = "delete_projects", "Delete projects"
    VIEW_ALL_PROJECTS = "view_all_projects", "View all projects"
    MANAGE_ALL_PROJECTS = "manage_all_projects", "Manage all projects"
    # Tasks
    CREATE_TASKS = "create_tasks", "Create tasks"
    EDIT_ANY_TASK = "edit_any_task", "Edit any task"
    EDIT_OWN_TASKS = "edit_own_tasks", "Edit own tasks"
    DELETE_ANY_TASK = "delete_any_task", "Delete any task"
    DELETE_OWN_TASKS = "delete_own_tasks", "Delete own tasks"
    VIEW_ALL_TASKS = "view_all_tasks", "View all tasks"
    # Comments
    CREATE_COMMENTS = "create_comments", "Create comments"
    EDIT_ANY_COMMENT = "edit_any_comment", "Edit any comment"
    EDIT_OWN_COMMENTS = "edit_own_comments", "Edit own comments"
    DELETE_ANY_COMMENT = "delete_any_comment", "Delete any comment"
    DELETE_OWN_COMMENTS = "delete_own_comments", "Delete own comments"
    # Tags
    MANAGE_TAGS = "manage_tags", "Manage tags"
    # Statistics
    VIEW_STATISTICS = "view_statistics", "View statistics"


_SPACE_MANAGER_PERMISSIONS = frozenset({
    SpacePermission.VIEW_SPACE,
    SpacePermission.CREATE_PROJECTS,
    SpacePermission.EDIT_PROJECTS,
    SpacePermission.VIEW_ALL_PROJECTS,
    SpacePermission.CREATE_TASKS,
    SpacePermission.EDIT_ANY_TASK,
    SpacePermission.EDIT_OWN_TASKS,
    SpacePermission.DELETE_ANY_TASK,
    SpacePermission.DELETE_OWN_TASKS,
    SpacePermission.VIEW_ALL_TASKS,
    SpacePermission.CREATE_COMMENTS,
    SpacePermission.EDIT_ANY_COMMENT,
    SpacePermission.EDIT_OWN_COMMENTS,
    SpacePermission.DELETE_ANY_COMMENT,
    SpacePermission.DELETE_OWN_COMMENTS,
    SpacePermission.MANAGE_TAGS,
    SpacePermission.VIEW_STATISTICS,
})

SPACE_ROLE_PERMISSIONS = {
    SpaceRole.OWNER: frozenset(SpacePermission.values),
    SpaceRole.ADMIN: _SPACE_MANAGER_PERMISSIONS | {
        SpacePermission.MANAGE_SPACE,
        SpacePermission.INVITE_USERS,
        SpacePermission.REMOVE_USERS,
        SpacePermission.MANAGE_USER_ROLES,
        SpacePermission.VIEW_INVOICES,
        SpacePermission.DELETE_PROJECTS,
        SpacePermission.MANAGE_ALL_PROJECTS,
    },
    SpaceRole.MANAGER: _SPACE_MANAGER_PERMISSIONS,
    SpaceRole.MEMBER: frozenset({
        SpacePermission.VIEW_SPACE,
        SpacePermission.VIEW_ALL_PROJECTS,
        SpacePermission.CREATE_TASKS,
        SpacePermission.EDIT_OWN_TASKS,
        SpacePermission.DELETE_OWN_TASKS,
        SpacePermission.VIEW_ALL_TASKS,
        SpacePermission.CREATE_COMMENTS,
        SpacePermission.EDIT_OWN_COMMENTS,
        SpacePermission.DELETE_OWN_COMMENTS,
    }),
    SpaceRole.GUEST: frozenset({
        SpacePermission.VIEW_SPACE,
        SpacePermission.VIEW_ALL_PROJECTS,
        SpacePermission.VIEW_ALL_TASKS,
        SpacePermission.CREATE_COMMENTS,
        SpacePermission.EDIT_OWN_COMMENTS,
        SpacePermission.DELETE_OWN_COMMENTS,
    }),
}


def space_role_has_permission(role: str, permission: str) -> bool:
    return permission in SPACE_ROLE_PERMISSIONS.get(role, frozenset())


class OverrideAction(models.TextChoices):
    GRANT = "grant", "Grant"
    REVOKE = "revoke", "Revoke"
    RESET = "reset", "Reset"


@dataclass(frozen=True)
class RoleOption:
    value: str
    label: str
    description: str = ""

    def to_dict(self) -> dict:
        return {"value": self.value, "label": self.label, "description": self.description}


@dataclass(frozen=True)
class PermissionOption:
    value: str
    label: str
    description: str
    category: str

    def to_dict(self, with_category: bool = True) -> dict:
        data = {"value": self.value, "label": self.label, "description": self.description}
        if with_category:
            data["category"] = self.category
        return data


@dataclass(frozen=True)
class RoleCatalog:
    """Read-only view of roles, permissions and role defaults."""

    roles: Tuple[RoleOption, ...]
    space_roles: Tuple[RoleOption, ...]
    permissions: Tuple[PermissionOption, ...]
    project_role_defaults: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    space_role_defaults: Mapping[str, FrozenSet[str]] = field(default_factory=dict)

    def get_permission(self, value: str) -> Optional[PermissionOption]:
        for permission in self.permissions:
            if permission.value == value:
                return permission
        return None

    def has_permission(self, value: str) -> bool:
        return self.get_permission(value) is not None

    def get_role(self, value: str) -> Optional[RoleOption]:
        return next((r for r in self.roles if r.value == value), None)

    def get_space_role(self, value: str) -> Optional[RoleOption]:
        return next((r for r in self.space_roles if r.value == value), None)

    def role_label(self, value: str) -> str:
        role = self.get_role(value)
        return role.label if role else value

    def space_role_label(self, value: str) -> str:
        role = self.get_space_role(value)
        return role.label if role else value

    def is_granted_by_role(self, role: Optional[str], permission: str) -> bool:
        if not role:
            return False
        return permission in self.project_role_defaults.get(role, frozenset())

    def is_granted_by_space_role(self, role: Optional[str], permission: str) -> bool:
        if not role:
            return False
        return permission in self.space_role_defaults.get(role, frozenset())

    def categories(self) -> Dict[str, List[PermissionOption]]:
        grouped: Dict[str, List[PermissionOption]] = {}
        for permission in self.permissions:
            grouped.setdefault(permission.category, []).append(permission)
        return grouped

    def to_payload(self) -> dict:
        """Shape returned by the options endpoint."""
        def _defaults(table, roles):
            # keep catalog order so the payload is stable
            order = [p.value for p in self.permissions]
            return {
                r.value: [v for v in order if v in table.get(r.value, frozenset())]
                for r in roles
            }

        return {
            "roles": [r.to_dict() for r in self.roles],
            "space_roles": [r.to_dict() for r in self.space_roles],
            "permissions": {
                category: [p.to_dict(with_category=False) for p in items]
                for category, items in self.categories().items()
            },
            "permission_details": [p.to_dict() for p in self.permissions],
            "role_defaults": {
                "project": _defaults(self.project_role_defaults, self.roles),
                "space": _defaults(self.space_role_defaults, self.space_roles),
            },
        }

    @classmethod
    def from_payload(cls, payload: Mapping) -> "RoleCatalog":
        """Rebuild a catalog from an options payload.

        Role defaults must be part of the payload: there is no client-side
        fallback table. Roles without an entry map to an empty set.
        """
        if not isinstance(payload, Mapping):
            raise CatalogError("Permission options payload must be an object")
        for key in ("roles", "permissions", "role_defaults"):
            if key not in payload:
                raise CatalogError(f"Permission options payload is missing '{key}'")

        try:
            roles = tuple(_role_option(r) for r in payload["roles"])
            space_roles = tuple(_role_option(r) for r in payload.get("space_roles") or [])

            details = {d["value"]: d for d in payload.get("permission_details") or []}
            permissions = []
            for category, items in payload["permissions"].items():
                for item in items:
                    detail = details.get(item["value"], item)
                    permissions.append(PermissionOption(
                        value=item["value"],
                        label=detail.get("label") or item["value"],
                        description=detail.get("description") or "",
                        category=category,
                    ))
        except (KeyError, TypeError, AttributeError) as exc:
            raise CatalogError(f"Malformed permission options payload: {exc}") from exc

        role_defaults = payload["role_defaults"]
        if not isinstance(role_defaults, Mapping) or "project" not in role_defaults:
            raise CatalogError("Permission options payload has no project role defaults")

        known = {p.value for p in permissions}
        return cls(
            roles=roles,
            space_roles=space_roles,
            permissions=tuple(permissions),
            project_role_defaults=_defaults_table(role_defaults["project"], roles, known),
            space_role_defaults=_defaults_table(role_defaults.get("space") or {}, space_roles, known),
        )


def _role_option(data: Mapping) -> RoleOption:
    return RoleOption(value=data["value"], label=data.get("label") or data["value"],
                      description=data.get("description") or "")


def _defaults_table(raw: Mapping, roles, known) -> Dict[str, FrozenSet[str]]:
    if not isinstance(raw, Mapping):
        raise CatalogError("Role defaults must map role values to permission lists")
    table = {r.value: frozenset() for r in roles}
    for role, values in raw.items():
        table[role] = frozenset(v for v in values or () if v in known)
    return table


@lru_cache(maxsize=1)
def build_project_catalog() -> RoleCatalog:
    """The server-side catalog of project permissions."""
    permissions = tuple(
        PermissionOption(
            value=permission.value,
            label=permission.label,
            description=PROJECT_PERMISSION_DESCRIPTIONS[permission],
            category=category,
        )
        for category, members in PROJECT_PERMISSION_CATEGORIES.items()
        for permission in members
    )
    return RoleCatalog(
        roles=tuple(
            RoleOption(role.value, role.label, PROJECT_ROLE_DESCRIPTIONS[role]) for role in ProjectRole
        ),
        space_roles=tuple(
            RoleOption(role.value, role.label, SPACE_ROLE_DESCRIPTIONS[role]) for role in SpaceRole
        ),
        permissions=permissions,
        project_role_defaults={role.value: frozenset(PROJECT_ROLE_DEFAULTS[role]) for role in ProjectRole},
        space_role_defaults={role.value: frozenset(SPACE_ROLE_PROJECT_DEFAULTS[role]) for role in SpaceRole},
    )
