# rbac/urls.py
from django.urls import path

from . import views

urlpatterns = [
    path("projects/<int:project_id>/permissions/options", views.permission_options, name="permission_options"),
    path("projects/<int:project_id>/permissions/users", views.add_user, name="permission_add_user"),
    path("projects/<int:project_id>/permissions/<int:user_id>", views.user_permissions, name="user_permissions"),
    path("projects/<int:project_id>/permissions/<int:user_id>/role", views.update_role, name="permission_update_role"),
    path(
        "projects/<int:project_id>/permissions/<int:user_id>/permissions",
        views.update_permissions,
        name="permission_update_permissions",
    ),
    path("projects/<int:project_id>/permissions/<int:user_id>/audit", views.permission_audit, name="permission_audit"),
]
