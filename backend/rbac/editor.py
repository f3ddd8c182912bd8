"""
Editing session for one user's permissions in one project.

The session loads the catalog and the user's record, lets the caller change
the role and the explicit overrides locally, previews the effective result
with the shared resolver and saves the difference with the minimum number of
writes: role first, then grant, revoke and reset batches, one after another.

Saving is modelled as a small state machine::

    IDLE -> ROLE_UPDATING -> PERMISSIONS_APPLYING -> DONE
                 |                    |
                 +--------------------+--> PARTIALLY_FAILED

Steps already applied are never rolled back. From PARTIALLY_FAILED the only
way forward is ``resync()``, which reloads the server state.
"""
import enum
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .catalog import OverrideAction, ProjectRole, SpaceRole
from .exceptions import CatalogError, PermissionsAPIError
from .resolver import AuditSource, EffectivePermission, Override, PermissionResolver, normalize_overrides

logger = logging.getLogger(__name__)

DEFAULT_ROLE = ProjectRole.MEMBER
# previews kept per editing session, least recently used dropped first
RESOLVER_CACHE_SIZE = 8


class SaveState(enum.Enum):
    IDLE = "idle"
    ROLE_UPDATING = "role_updating"
    PERMISSIONS_APPLYING = "permissions_applying"
    DONE = "done"
    PARTIALLY_FAILED = "partially_failed"


class InvalidSaveState(RuntimeError):
    pass


@dataclass
class OverrideDiff:
    to_grant: List[str] = field(default_factory=list)
    to_revoke: List[str] = field(default_factory=list)
    to_reset: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.to_grant or self.to_revoke or self.to_reset)

    def batches(self) -> List[Tuple[str, List[str]]]:
        """Non-empty (action, permissions) batches in write order."""
        ordered = (
            (OverrideAction.GRANT, self.to_grant),
            (OverrideAction.REVOKE, self.to_revoke),
            (OverrideAction.RESET, self.to_reset),
        )
        return [(action.value, list(values)) for action, values in ordered if values]


def compute_override_diff(previous: Optional[Mapping], new: Optional[Mapping]) -> OverrideDiff:
    """Minimal writes that turn ``previous`` into ``new``.

    Both maps may hold ``Override`` members or wire values (True/False/None).
    A key missing from a map means INHERIT.
    """
    before = normalize_overrides(previous)
    after = normalize_overrides(new)

    diff = OverrideDiff()
    keys = list(after) + [k for k in before if k not in after]
    for permission in keys:
        old = before.get(permission, Override.INHERIT)
        target = after.get(permission, Override.INHERIT)
        if old is target:
            continue
        if target is Override.GRANT:
            diff.to_grant.append(permission)
        elif target is Override.REVOKE:
            diff.to_revoke.append(permission)
        else:
            diff.to_reset.append(permission)
    return diff


@dataclass
class SaveResult:
    state: SaveState
    completed: List[Tuple[str, object]] = field(default_factory=list)
    error: Optional[PermissionsAPIError] = None

    @property
    def ok(self) -> bool:
        return self.state is SaveState.DONE


class PermissionEditor:
    def __init__(
        self,
        client,
        project_id: int,
        user_id: int,
        catalog=None,
        space_role: str = SpaceRole.MEMBER,
        space_permissions=None,
    ):
        self.client = client
        self.project_id = project_id
        self.user_id = user_id
        self.catalog = catalog
        self.space_role = space_role
        self.space_permissions = tuple(space_permissions or ())

        self.role = DEFAULT_ROLE.value
        self.overrides: Dict[str, Override] = {}
        self.original_role = self.role
        self.original_overrides: Dict[str, Override] = {}
        self.exists = False

        self.state = SaveState.IDLE
        self.is_loading = False
        self.is_saving = False
        self.error: Optional[Exception] = None
        self.last_result: Optional[SaveResult] = None

        self._resolver_cache: "OrderedDict[tuple, PermissionResolver]" = OrderedDict()

    # ---------- loading ----------

    def load(self) -> bool:
        """Fetch the catalog (once) and the user's record.

        A user without a record gets the default role and no overrides.
        Returns False when the server could not be read.
        """
        self.is_loading = True
        self.error = None
        try:
            if self.catalog is None:
                self.catalog = self.client.fetch_options(self.project_id)
            record = self.client.fetch_user_permissions(self.project_id, self.user_id)
        except (PermissionsAPIError, CatalogError) as exc:
            logger.warning(
                "Could not load project permissions project_id=%s user_id=%s error=%s",
                self.project_id, self.user_id, exc,
            )
            self.error = exc
            return False
        finally:
            self.is_loading = False

        if record is None:
            self._reset_to(DEFAULT_ROLE.value, {}, exists=False)
        else:
            self._reset_to(record.role or DEFAULT_ROLE.value, record.overrides, exists=True)
        self.state = SaveState.IDLE
        return True

    def _reset_to(self, role: str, overrides: Mapping, exists: bool) -> None:
        self.role = self.original_role = role
        self.overrides = dict(normalize_overrides(overrides))
        self.original_overrides = dict(self.overrides)
        self.exists = exists
        self.last_result = None

    def resync(self) -> bool:
        return self.load()

    def cancel(self) -> None:
        self.role = self.original_role
        self.overrides = dict(self.original_overrides)
        if self.state is not SaveState.PARTIALLY_FAILED:
            self.state = SaveState.IDLE

    # ---------- editing ----------

    def set_role(self, role: str) -> None:
        if self.catalog is not None and self.catalog.get_role(role) is None:
            raise ValueError(f"Unknown project role: {role!r}")
        self.role = role

    def set_override(self, permission: str, value) -> None:
        override = Override.from_value(value)
        if override is Override.INHERIT:
            self.overrides.pop(permission, None)
        else:
            self.overrides[permission] = override

    @property
    def has_changes(self) -> bool:
        return self.role != self.original_role or self.overrides != self.original_overrides

    @property
    def diff(self) -> OverrideDiff:
        return compute_override_diff(self.original_overrides, self.overrides)

    # ---------- preview ----------

    def resolver(self) -> PermissionResolver:
        if self.catalog is None:
            raise CatalogError("The permission catalog has not been loaded")
        key = (self.role, frozenset(self.overrides.items()))
        resolver = self._resolver_cache.get(key)
        if resolver is not None:
            self._resolver_cache.move_to_end(key)
        else:
            resolver = PermissionResolver(
                self.catalog,
                space_role=self.space_role,
                project_role=self.role,
                overrides=self.overrides,
                space_permissions=self.space_permissions,
            )
            self._resolver_cache[key] = resolver
            if len(self._resolver_cache) > RESOLVER_CACHE_SIZE:
                self._resolver_cache.popitem(last=False)
        return resolver

    def effective_permissions(self) -> List[EffectivePermission]:
        return self.resolver().resolve_all()

    def grouped_permissions(self) -> Dict[str, List[EffectivePermission]]:
        return self.resolver().grouped()

    def audit(self, permission: str) -> List[AuditSource]:
        return self.resolver().audit_trail(permission)

    # ---------- saving ----------

    def save(self) -> SaveResult:
        if self.state is SaveState.PARTIALLY_FAILED:
            raise InvalidSaveState("Previous save partially failed; resync before saving again")

        completed: List[Tuple[str, object]] = []
        role, overrides = self.role, dict(self.overrides)
        diff = compute_override_diff(self.original_overrides, overrides)

        self.is_saving = True
        self.error = None
        try:
            self.state = SaveState.ROLE_UPDATING
            if role != self.original_role or not self.exists:
                self.client.update_role(self.project_id, self.user_id, role)
                completed.append(("role", role))

            self.state = SaveState.PERMISSIONS_APPLYING
            for action, permissions in diff.batches():
                self.client.update_permissions(self.project_id, self.user_id, permissions, action)
                completed.append((action, permissions))
        except PermissionsAPIError as exc:
            logger.warning(
                "Project permission save partially failed project_id=%s user_id=%s state=%s completed=%s error=%s",
                self.project_id, self.user_id, self.state.value, completed, exc,
            )
            self.state = SaveState.PARTIALLY_FAILED
            self.error = exc
            self.last_result = SaveResult(self.state, completed, exc)
            return self.last_result
        finally:
            self.is_saving = False

        self.state = SaveState.DONE
        self.original_role = role
        self.original_overrides = overrides
        self.exists = True
        self.last_result = SaveResult(self.state, completed)
        return self.last_result
