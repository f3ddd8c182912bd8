from unittest import mock

from django.test import SimpleTestCase

from rbac.catalog import ProjectPermission, ProjectRole
from rbac.exceptions import ApiError
from rbac.templates import PERMISSION_TEMPLATES, apply_custom_permissions, apply_template, get_template


class TemplateTests(SimpleTestCase):
    def test_known_templates(self):
        self.assertEqual(
            set(PERMISSION_TEMPLATES),
            {"developer", "designer", "client", "accountant", "project_manager"},
        )
        self.assertEqual(get_template("client").role, ProjectRole.VIEWER)
        self.assertIn(ProjectPermission.MANAGE_INTEGRATIONS, get_template("developer").grants)

    def test_unknown_template(self):
        with self.assertRaises(ValueError):
            get_template("intern")


class BatchApplyTests(SimpleTestCase):
    def setUp(self):
        self.client = mock.Mock()

    def test_each_user_gets_role_then_grant(self):
        result = apply_template(self.client, 3, "accountant", [7, 8, 9], max_workers=2)

        self.assertTrue(result.ok)
        self.assertEqual([o.user_id for o in result.outcomes], [7, 8, 9])
        for user_id in (7, 8, 9):
            self.client.update_role.assert_any_call(3, user_id, "viewer")
            self.client.update_permissions.assert_any_call(
                3, user_id, ["can_view_reports", "can_view_budget", "can_export_data"], "grant",
            )
        self.assertEqual(self.client.update_role.call_count, 3)

    def test_role_failure_skips_grant_for_that_user_only(self):
        def update_role(project_id, user_id, role):
            if user_id == 8:
                raise ApiError("boom", 500)

        self.client.update_role.side_effect = update_role

        result = apply_template(self.client, 3, get_template("designer"), [7, 8], max_workers=2)

        self.assertFalse(result.ok)
        self.assertEqual(result.failed_user_ids, [8])
        failed = result.outcomes[1]
        self.assertEqual(failed.completed, [])
        self.assertEqual(failed.error.status_code, 500)
        self.assertEqual(result.outcomes[0].completed, ["role", "grant"])
        granted_users = [c.args[1] for c in self.client.update_permissions.call_args_list]
        self.assertEqual(granted_users, [7])

    def test_custom_permissions_without_grants(self):
        result = apply_custom_permissions(self.client, 3, [7, 7], ProjectRole.EDITOR, [], max_workers=4)

        self.assertTrue(result.ok)
        self.client.update_role.assert_called_once_with(3, 7, "editor")
        self.client.update_permissions.assert_not_called()

    def test_no_users(self):
        result = apply_custom_permissions(self.client, 3, [], ProjectRole.EDITOR)
        self.assertTrue(result.ok)
        self.assertEqual(result.outcomes, [])

    def test_unexpected_error_is_recorded_for_that_user(self):
        def update_permissions(project_id, user_id, permissions, action):
            if user_id == 8:
                raise RuntimeError("connection pool corrupted")

        self.client.update_permissions.side_effect = update_permissions

        with self.assertLogs("rbac.templates", level="ERROR"):
            result = apply_template(self.client, 3, "client", [7, 8, 9], max_workers=3)

        self.assertEqual(result.failed_user_ids, [8])
        failed = result.outcomes[1]
        self.assertIsInstance(failed.error, RuntimeError)
        self.assertEqual(failed.completed, ["role"])
        self.assertEqual([o.completed for o in (result.outcomes[0], result.outcomes[2])], [["role", "grant"]] * 2)
