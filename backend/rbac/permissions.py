# rbac/permissions.py
from rest_framework.exceptions import NotFound
from rest_framework.permissions import BasePermission

from authapp.utils import has_space_permission
from projects.models import Project
from . import services


class HasProjectPermission(BasePermission):
    """
    Checks one project permission for the project named in the URL.

    permission = None means "any current member of the project".
    space_permission, when set, lets space-wide managers through as well.
    """
    permission = None
    space_permission = None
    project_kwarg = "project_id"

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        project_id = view.kwargs.get(self.project_kwarg)
        project = Project.objects.select_related("space").filter(pk=project_id).first()
        if project is None:
            raise NotFound("Project not found")

        if self.space_permission and has_space_permission(user, project.space, self.space_permission):
            return True

        if self.permission is None:
            return services.user_can_access_project(user, project)

        return services.user_has_permission(user, project, self.permission)
