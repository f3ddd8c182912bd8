"""
Effective project permission resolution.

A user's access to one project permission is decided by three layers:

    level 3  explicit override on the (user, project) pair  (grant or revoke)
    level 2  the user's project role
    level 1  the user's space role (and extra space-scope grants)

Explicit overrides always win. Without one, the role layers are OR-ed: a
project role can add to what the space role grants but never take it away.
Permissions missing from the catalog are denied and have no audit trail.

The resolver is a pure computation over already-loaded data; the server
service and the client editing session both build one per request/edit.
"""
import enum
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from .catalog import RoleCatalog


class Override(enum.Enum):
    """Tri-state explicit override for one permission."""

    GRANT = "grant"
    REVOKE = "revoke"
    INHERIT = "inherit"

    @classmethod
    def from_value(cls, value) -> "Override":
        if isinstance(value, Override):
            return value
        if value is None:
            return cls.INHERIT
        # tinyint columns come back as 0/1
        if isinstance(value, bool) or (isinstance(value, int) and value in (0, 1)):
            return cls.GRANT if value else cls.REVOKE
        raise ValueError(f"Invalid override value: {value!r}")

    def as_bool(self) -> Optional[bool]:
        if self is Override.GRANT:
            return True
        if self is Override.REVOKE:
            return False
        return None


def normalize_overrides(overrides: Optional[Mapping]) -> Dict[str, Override]:
    """Convert a wire mapping (bool/None values) to explicit overrides only."""
    result = {}
    for permission, value in (overrides or {}).items():
        override = Override.from_value(value)
        if override is not Override.INHERIT:
            result[permission] = override
    return result


class AuditSourceType(str, enum.Enum):
    SPACE_ROLE = "space_role"
    PROJECT_ROLE = "project_role"
    EXPLICIT_GRANT = "explicit_grant"
    EXPLICIT_REVOKE = "explicit_revoke"


@dataclass(frozen=True)
class AuditSource:
    type: AuditSourceType
    source: str
    level: int
    description: str

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "source": self.source,
            "level": self.level,
            "description": self.description,
        }


@dataclass(frozen=True)
class EffectivePermission:
    value: str
    granted: bool
    override: Override
    inherited_from_role: bool

    @property
    def explicit(self) -> Optional[bool]:
        return self.override.as_bool()

    def to_dict(self) -> dict:
        return {
            "value": self.value,
            "granted": self.granted,
            "explicit": self.explicit,
            "inherited_from_role": self.inherited_from_role,
        }


class PermissionResolver:
    def __init__(
        self,
        catalog: RoleCatalog,
        space_role: Optional[str],
        project_role: Optional[str] = None,
        overrides: Optional[Mapping] = None,
        space_permissions: Optional[Iterable[str]] = None,
    ):
        self.catalog = catalog
        self.space_role = space_role
        self.project_role = project_role or None
        self.overrides = normalize_overrides(overrides)
        self.space_permissions = frozenset(space_permissions or ())

    def _space_grants(self, permission: str) -> bool:
        return (
            permission in self.space_permissions
            or self.catalog.is_granted_by_space_role(self.space_role, permission)
        )

    def _project_grants(self, permission: str) -> bool:
        return self.catalog.is_granted_by_role(self.project_role, permission)

    def resolve(self, permission: str) -> EffectivePermission:
        if not self.catalog.has_permission(permission):
            return EffectivePermission(permission, False, Override.INHERIT, False)

        inherited = self._project_grants(permission) or self._space_grants(permission)
        override = self.overrides.get(permission, Override.INHERIT)
        granted = inherited if override is Override.INHERIT else override is Override.GRANT
        return EffectivePermission(permission, granted, override, inherited)

    def audit_trail(self, permission: str) -> List[AuditSource]:
        """Contributing layers, most authoritative first."""
        if not self.catalog.has_permission(permission):
            return []

        sources = []
        if self._space_grants(permission):
            sources.append(AuditSource(
                type=AuditSourceType.SPACE_ROLE,
                source=f"Space Role: {self.catalog.space_role_label(self.space_role or '')}",
                level=1,
                description="Inherited from the global space role",
            ))
        if self._project_grants(permission):
            sources.append(AuditSource(
                type=AuditSourceType.PROJECT_ROLE,
                source=f"Project Role: {self.catalog.role_label(self.project_role)}",
                level=2,
                description="Granted by the role in this project",
            ))

        override = self.overrides.get(permission, Override.INHERIT)
        if override is Override.GRANT:
            sources.append(AuditSource(
                type=AuditSourceType.EXPLICIT_GRANT,
                source="Explicit Permission",
                level=3,
                description="Granted specifically for this project",
            ))
        elif override is Override.REVOKE:
            sources.append(AuditSource(
                type=AuditSourceType.EXPLICIT_REVOKE,
                source="Explicit Revocation",
                level=3,
                description="Revoked specifically for this project",
            ))

        return sorted(sources, key=lambda s: s.level, reverse=True)

    def resolve_all(self) -> List[EffectivePermission]:
        return [self.resolve(p.value) for p in self.catalog.permissions]

    def granted_values(self) -> List[str]:
        return [p.value for p in self.resolve_all() if p.granted]

    def grouped(self) -> Dict[str, List[EffectivePermission]]:
        return {
            category: [self.resolve(p.value) for p in items]
            for category, items in self.catalog.categories().items()
        }

    def audit(self) -> Dict[str, List[dict]]:
        """Per-category audit rows, as shown in the permission audit view."""
        result = {}
        for category, items in self.catalog.categories().items():
            result[category] = [
                {
                    "permission": p.value,
                    "label": p.label,
                    "description": p.description,
                    "granted": self.resolve(p.value).granted,
                    "sources": [s.to_dict() for s in self.audit_trail(p.value)],
                }
                for p in items
            ]
        return result
