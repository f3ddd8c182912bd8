from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import Space, SpaceMember, User


@admin.register(User)
class ChronoUserAdmin(UserAdmin):
    list_display = ["username", "email", "is_staff", "is_super_admin"]
    fieldsets = UserAdmin.fieldsets + (("Permissions bypass", {"fields": ("is_super_admin",)}),)


class SpaceMemberInline(admin.TabularInline):
    model = SpaceMember
    extra = 0


@admin.register(Space)
class SpaceAdmin(admin.ModelAdmin):
    list_display = ["name", "owner", "created_at"]
    search_fields = ["name", "owner__username"]
    inlines = [SpaceMemberInline]
