from django.conf import settings
from django.db import models


class Project(models.Model):
    space = models.ForeignKey("authapp.Space", on_delete=models.CASCADE, related_name="projects")

    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True, db_index=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_projects",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [models.Index(fields=["space", "is_active"], name="projects_space_active_idx")]

    def __str__(self):
        return self.name
