from django.contrib.auth import get_user_model
from django.core.cache import cache

from authapp.models import Space, SpaceMember
from projects.models import Project
from rbac.catalog import SpaceRole

User = get_user_model()


class PermissionFixturesMixin:
    """Space owned by ``owner`` with one project; cache cleared per test."""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.owner = self.make_user("owner")
        self.space = Space.objects.create(name="Acme", owner=self.owner)
        self.project = Project.objects.create(space=self.space, name="Website", created_by=self.owner)

    def make_user(self, username, space_role=None, **extra):
        user = User.objects.create_user(
            username=username, email=f"{username}@example.com", password="pass1234", **extra
        )
        if space_role is not None:
            SpaceMember.objects.create(space=self.space, user=user, role=space_role)
        return user

    def make_member(self, username, space_role=SpaceRole.MEMBER, **extra):
        return self.make_user(username, space_role=space_role, **extra)
