# rbac/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone

from .catalog import ProjectPermission, ProjectRole
from .resolver import normalize_overrides


class ProjectMembership(models.Model):
    """
    A user's role in one project plus explicit permission overrides.

    ``overrides`` maps a permission value to True (explicit grant) or False
    (explicit revoke). A permission without a key defers to the roles.
    """
    project = models.ForeignKey("projects.Project", on_delete=models.CASCADE, related_name="memberships")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )
    role = models.CharField(max_length=50, choices=ProjectRole.choices, db_index=True)
    overrides = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=True, db_index=True)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    notes = models.TextField(blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "project_permissions"
        unique_together = ("project", "user")

    def __str__(self):
        return f"{self.user_id} in {self.project_id} ({self.role})"

    def is_current(self, now=None) -> bool:
        now = now or timezone.now()
        return self.is_active and (self.expires_at is None or self.expires_at > now)

    def override_map(self):
        known = set(ProjectPermission.values)
        return {k: v for k, v in normalize_overrides(self.overrides).items() if k in known}

    def explicit_permissions(self) -> dict:
        """Every catalog permission -> True / False / None (inherit)."""
        overrides = self.overrides or {}
        return {value: overrides.get(value) for value in ProjectPermission.values}
