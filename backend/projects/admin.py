from django.contrib import admin

from .models import Project


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ["name", "space", "is_active", "created_at"]
    list_filter = ["is_active", "space"]
    search_fields = ["name"]
