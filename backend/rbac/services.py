"""
Server-side reads and writes of project permission records.

Reads go through a per-(project, user) cache entry that every write clears,
once right away and once more on commit.
Decisions are always taken by ``PermissionResolver`` so the API, the DRF
permission classes and the management command agree with API clients.
"""
import logging
from typing import Iterable, List, Optional, Tuple

from django.conf import settings
from django.core.cache import cache
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from authapp.utils import get_space_member
from .catalog import OverrideAction, ProjectRole, SpaceRole, build_project_catalog
from .models import ProjectMembership
from .resolver import PermissionResolver

logger = logging.getLogger(__name__)

CACHE_KEY = "project_permissions:{project_id}:user:{user_id}"
_MISSING = object()


def get_cache_key(user_id: int, project_id: int) -> str:
    return CACHE_KEY.format(project_id=project_id, user_id=user_id)


def clear_cache(user_id: int, project_id: int) -> None:
    cache.delete(get_cache_key(user_id, project_id))


def invalidate(user_id: int, project_id: int) -> None:
    """Clear now and again once the surrounding transaction commits.

    A reader that misses between the write and the commit still sees the
    old row and caches it; the second clear drops that entry.
    """
    clear_cache(user_id, project_id)
    transaction.on_commit(lambda: clear_cache(user_id, project_id))


def is_super_admin(user) -> bool:
    return bool(settings.PERMISSIONS_SUPERADMIN_BYPASS and getattr(user, "is_super_admin", False))


def has_full_access(user, project) -> bool:
    """Super admins and the owner of the project's space skip every check."""
    return is_super_admin(user) or project.space.owner_id == user.id


def get_active_membership(user, project) -> Optional[ProjectMembership]:
    key = get_cache_key(user.id, project.id)
    membership = cache.get(key, _MISSING)
    if membership is _MISSING:
        now = timezone.now()
        membership = (
            ProjectMembership.objects.filter(project=project, user=user, is_active=True)
            .filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))
            .first()
        )
        cache.set(key, membership, settings.PROJECT_PERMISSIONS_CACHE_TTL)
    return membership


def _valid_role(membership: ProjectMembership) -> Optional[str]:
    if membership.role in ProjectRole.values:
        return membership.role
    logger.warning(
        "Invalid project role user_id=%s project_id=%s role=%r",
        membership.user_id, membership.project_id, membership.role,
    )
    return None


def build_resolver(user, project, catalog=None) -> PermissionResolver:
    catalog = catalog or build_project_catalog()

    if has_full_access(user, project):
        return PermissionResolver(catalog, space_role=SpaceRole.OWNER, project_role=ProjectRole.ADMIN)

    space_member = get_space_member(user, project.space)
    membership = get_active_membership(user, project)
    return PermissionResolver(
        catalog,
        space_role=space_member.role if space_member else None,
        space_permissions=space_member.extra_project_permissions() if space_member else (),
        project_role=_valid_role(membership) if membership else None,
        overrides=membership.override_map() if membership else None,
    )


def user_has_permission(user, project, permission: str) -> bool:
    return build_resolver(user, project).resolve(permission).granted


def user_has_any_permission(user, project, permissions: Iterable[str]) -> bool:
    resolver = build_resolver(user, project)
    return any(resolver.resolve(p).granted for p in permissions)


def user_has_all_permissions(user, project, permissions: Iterable[str]) -> bool:
    resolver = build_resolver(user, project)
    return all(resolver.resolve(p).granted for p in permissions)


def user_can_access_project(user, project) -> bool:
    return has_full_access(user, project) or get_active_membership(user, project) is not None


def get_user_role(user, project) -> Optional[str]:
    if has_full_access(user, project):
        return ProjectRole.ADMIN
    membership = get_active_membership(user, project)
    return _valid_role(membership) if membership else None


def effective_permissions(user, project) -> List[str]:
    return build_resolver(user, project).granted_values()


@transaction.atomic
def update_user_role(user, project, role: str, actor=None) -> ProjectMembership:
    """Set the user's project role, creating the membership when missing."""
    membership = (
        ProjectMembership.objects.select_for_update()
        .filter(project=project, user=user)
        .first()
    )
    if membership is None:
        membership = ProjectMembership.objects.create(
            project=project, user=user, role=role, created_by=actor, updated_by=actor,
        )
    elif membership.role != role:
        membership.role = role
        membership.updated_by = actor
        membership.save(update_fields=["role", "updated_by", "updated_at"])

    invalidate(user.id, project.id)
    logger.info(
        "Project user role updated project_id=%s user_id=%s new_role=%s updated_by=%s",
        project.id, user.id, role, getattr(actor, "id", None),
    )
    return membership


@transaction.atomic
def apply_override_action(user, project, permissions: Iterable[str], action: str, actor=None) -> Tuple[list, list]:
    """Grant, revoke or reset explicit overrides.

    Returns ``(successful, failed)`` lists of per-permission results. All
    permissions fail when the user has no record for the project.
    """
    permissions = list(dict.fromkeys(permissions))
    membership = (
        ProjectMembership.objects.select_for_update()
        .filter(project=project, user=user)
        .first()
    )
    if membership is None:
        failed = [{"permission": p, "action": action, "status": "failed"} for p in permissions]
        return [], failed

    overrides = dict(membership.overrides or {})
    for permission in permissions:
        if action == OverrideAction.GRANT:
            overrides[permission] = True
        elif action == OverrideAction.REVOKE:
            overrides[permission] = False
        else:
            overrides.pop(permission, None)

    membership.overrides = overrides
    membership.updated_by = actor
    membership.save(update_fields=["overrides", "updated_by", "updated_at"])
    invalidate(user.id, project.id)

    successful = [{"permission": p, "action": action, "status": "success"} for p in permissions]
    logger.info(
        "Project permissions updated project_id=%s user_id=%s action=%s permissions=%s updated_by=%s",
        project.id, user.id, action, permissions, getattr(actor, "id", None),
    )
    return successful, []


def add_user(user, project, role: str, actor=None, expires_at=None, notes="") -> ProjectMembership:
    membership = ProjectMembership.objects.create(
        project=project,
        user=user,
        role=role,
        expires_at=expires_at,
        notes=notes or "",
        created_by=actor,
        updated_by=actor,
    )
    invalidate(user.id, project.id)
    logger.info(
        "User added to project project_id=%s user_id=%s role=%s added_by=%s",
        project.id, user.id, role, getattr(actor, "id", None),
    )
    return membership


def remove_user(user, project, actor=None) -> bool:
    deleted, _ = ProjectMembership.objects.filter(project=project, user=user).delete()
    if not deleted:
        return False
    invalidate(user.id, project.id)
    logger.info(
        "User removed from project project_id=%s user_id=%s removed_by=%s",
        project.id, user.id, getattr(actor, "id", None),
    )
    return True
