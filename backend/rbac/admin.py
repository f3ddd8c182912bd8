from django.contrib import admin

from .models import ProjectMembership


@admin.register(ProjectMembership)
class ProjectMembershipAdmin(admin.ModelAdmin):
    list_display = ["user", "project", "role", "is_active", "expires_at", "updated_at"]
    list_filter = ["role", "is_active"]
    search_fields = ["user__username", "user__email", "project__name"]
    raw_id_fields = ["user", "project", "created_by", "updated_by"]
