from rest_framework import status
from rest_framework.test import APITestCase

from rbac import services
from rbac.catalog import ProjectRole
from rbac.tests.utils import PermissionFixturesMixin


class ProjectMembersApiTests(PermissionFixturesMixin, APITestCase):
    def setUp(self):
        super().setUp()
        self.alice = self.make_member("alice", first_name="Alice", last_name="Doe")
        self.bob = self.make_member("bob")
        services.add_user(self.alice, self.project, ProjectRole.EDITOR)
        services.add_user(self.bob, self.project, ProjectRole.VIEWER)
        self.url = f"/api/projects/{self.project.id}/members"

    def test_member_lists_members(self):
        self.client.force_authenticate(self.bob)

        response = self.client.get(self.url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        members = response.data["data"]["members"]
        self.assertEqual(
            [(m["id"], m["name"], m["role"]) for m in members],
            [(self.alice.id, "Alice Doe", "editor"), (self.bob.id, "bob", "viewer")],
        )
        self.assertEqual(members[0]["email"], "alice@example.com")

    def test_user_outside_space_is_forbidden(self):
        self.client.force_authenticate(self.make_user("stranger"))
        response = self.client.get(self.url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_project(self):
        self.client.force_authenticate(self.alice)
        response = self.client.get("/api/projects/4242/members")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
