# authapp/models.py (User model + spaces / tenants)

from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from rbac.catalog import ProjectPermission, SpacePermission, SpaceRole, space_role_has_permission


class User(AbstractUser):
    # bypasses project permission checks when PERMISSIONS_SUPERADMIN_BYPASS is on
    is_super_admin = models.BooleanField(default=False)

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username


class Space(models.Model):
    """A tenant / workspace. The owner always acts with the OWNER role."""

    name = models.CharField(max_length=255)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="owned_spaces",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name


class SpaceMember(models.Model):
    space = models.ForeignKey(Space, on_delete=models.CASCADE, related_name="members")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="space_memberships",
    )
    role = models.CharField(max_length=20, choices=SpaceRole.choices, default=SpaceRole.MEMBER)
    # extra grants on top of the role; may mix space permission values
    # (manage_all_projects, ...) and project permission values (can_*) that
    # apply to every project of the space. The two value sets are disjoint.
    permissions = models.JSONField(default=list, blank=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("space", "user")

    def __str__(self):
        return f"{self.user_id}@{self.space_id} ({self.role})"

    def extra_permissions(self) -> list:
        return [p for p in (self.permissions or []) if isinstance(p, str)]

    def extra_space_permissions(self) -> list:
        known = set(SpacePermission.values)
        return [p for p in self.extra_permissions() if p in known]

    def extra_project_permissions(self) -> list:
        known = set(ProjectPermission.values)
        return [p for p in self.extra_permissions() if p in known]

    def has_permission(self, permission: str) -> bool:
        return space_role_has_permission(self.role, permission) or permission in self.extra_space_permissions()
