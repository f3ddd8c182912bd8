from unittest import mock

import requests
from django.test import SimpleTestCase

from rbac.catalog import build_project_catalog
from rbac.client import ProjectPermissionsClient, UserProjectPermissions
from rbac.editor import RESOLVER_CACHE_SIZE, InvalidSaveState, PermissionEditor, SaveState, compute_override_diff
from rbac.exceptions import MalformedResponse, TransportError, ValidationFailed
from rbac.resolver import AuditSourceType, Override


class OverrideDiffTests(SimpleTestCase):
    def test_only_changed_keys_are_written(self):
        diff = compute_override_diff({"a": True}, {"a": True, "b": False})

        self.assertEqual(diff.to_grant, [])
        self.assertEqual(diff.to_revoke, ["b"])
        self.assertEqual(diff.to_reset, [])

    def test_reset_of_missing_override_is_noop(self):
        diff = compute_override_diff({}, {"a": None})
        self.assertTrue(diff.is_empty())

    def test_dropped_and_flipped_overrides(self):
        diff = compute_override_diff(
            {"a": Override.GRANT, "b": Override.REVOKE, "c": Override.GRANT},
            {"a": Override.REVOKE, "c": Override.INHERIT},
        )

        self.assertEqual(diff.to_grant, [])
        self.assertEqual(diff.to_revoke, ["a"])
        self.assertEqual(diff.to_reset, ["b", "c"])

    def test_batches_in_write_order(self):
        diff = compute_override_diff({"x": True}, {"y": True, "z": False})
        self.assertEqual(diff.batches(), [("grant", ["y"]), ("revoke", ["z"]), ("reset", ["x"])])


class PermissionEditorTests(SimpleTestCase):
    def setUp(self):
        self.catalog = build_project_catalog()
        self.client = mock.Mock()
        self.client.fetch_options.return_value = self.catalog

    def make_editor(self, record=None, **kwargs):
        self.client.fetch_user_permissions.return_value = record
        editor = PermissionEditor(self.client, project_id=3, user_id=7, **kwargs)
        self.assertTrue(editor.load())
        return editor

    def record(self, role="viewer", overrides=None):
        return UserProjectPermissions(user_id=7, project_id=3, role=role, overrides=overrides or {})

    def test_missing_record_defaults_to_member(self):
        editor = self.make_editor(None)

        self.assertEqual(editor.role, "member")
        self.assertEqual(editor.overrides, {})
        self.assertFalse(editor.has_changes)
        self.assertFalse(editor.exists)
        self.client.fetch_options.assert_called_once_with(3)

    def test_catalog_is_fetched_once(self):
        editor = self.make_editor(self.record())
        editor.resync()
        self.client.fetch_options.assert_called_once_with(3)

    def test_load_failure_is_reported(self):
        self.client.fetch_user_permissions.side_effect = TransportError()
        editor = PermissionEditor(self.client, project_id=3, user_id=7)

        self.assertFalse(editor.load())
        self.assertIsInstance(editor.error, TransportError)
        self.assertFalse(editor.is_loading)

    def test_preview_uses_local_edits(self):
        editor = self.make_editor(self.record("viewer"))

        editor.set_override("can_view_reports", True)
        result = {p.value: p for p in editor.effective_permissions()}

        self.assertTrue(result["can_view_reports"].granted)
        self.assertIs(result["can_view_reports"].explicit, True)
        self.assertFalse(result["can_view_reports"].inherited_from_role)
        self.assertEqual(editor.audit("can_view_reports")[0].type, AuditSourceType.EXPLICIT_GRANT)
        self.assertTrue(editor.has_changes)

    def test_preview_is_memoised(self):
        editor = self.make_editor(self.record("viewer"))
        first = editor.resolver()
        self.assertIs(editor.resolver(), first)

        editor.set_role("editor")
        self.assertIsNot(editor.resolver(), first)
        self.assertIn("Time tracking", editor.grouped_permissions())

    def test_unknown_role_is_rejected(self):
        editor = self.make_editor(self.record())
        with self.assertRaises(ValueError):
            editor.set_role("owner")

    def test_save_sequence(self):
        editor = self.make_editor(self.record("viewer", {"can_export_data": Override.GRANT}))
        editor.set_role("editor")
        editor.set_override("can_view_budget", True)
        editor.set_override("can_delete_content", False)
        editor.set_override("can_export_data", None)

        result = editor.save()

        self.assertTrue(result.ok)
        self.assertEqual(editor.state, SaveState.DONE)
        self.assertEqual(self.client.method_calls[-4:], [
            mock.call.update_role(3, 7, "editor"),
            mock.call.update_permissions(3, 7, ["can_view_budget"], "grant"),
            mock.call.update_permissions(3, 7, ["can_delete_content"], "revoke"),
            mock.call.update_permissions(3, 7, ["can_export_data"], "reset"),
        ])
        self.assertFalse(editor.has_changes)
        self.assertFalse(editor.is_saving)

    def test_unchanged_role_is_not_written(self):
        editor = self.make_editor(self.record("viewer"))
        editor.set_override("can_view_reports", True)

        editor.save()

        self.client.update_role.assert_not_called()
        self.client.update_permissions.assert_called_once_with(3, 7, ["can_view_reports"], "grant")

    def test_new_record_always_writes_role(self):
        editor = self.make_editor(None)

        result = editor.save()

        self.assertTrue(result.ok)
        self.client.update_role.assert_called_once_with(3, 7, "member")
        self.client.update_permissions.assert_not_called()
        self.assertTrue(editor.exists)

    def test_failure_mid_sequence(self):
        editor = self.make_editor(self.record("viewer"))
        editor.set_role("editor")
        editor.set_override("can_view_budget", True)
        editor.set_override("can_delete_content", False)
        error = ValidationFailed("bad", 422, {"permissions": ["invalid"]})
        self.client.update_permissions.side_effect = [None, error]

        result = editor.save()

        self.assertFalse(result.ok)
        self.assertEqual(editor.state, SaveState.PARTIALLY_FAILED)
        self.assertIs(result.error, error)
        self.assertEqual(result.completed, [("role", "editor"), ("grant", ["can_view_budget"])])
        self.assertFalse(editor.is_saving)
        # local edits are kept so the user can see what was attempted
        self.assertTrue(editor.has_changes)

        with self.assertRaises(InvalidSaveState):
            editor.save()

    def test_resync_after_failure(self):
        editor = self.make_editor(self.record("viewer"))
        editor.set_role("admin")
        self.client.update_role.side_effect = TransportError()
        editor.save()
        self.assertEqual(editor.state, SaveState.PARTIALLY_FAILED)

        self.client.fetch_user_permissions.return_value = self.record("viewer")
        self.assertTrue(editor.resync())

        self.assertEqual(editor.state, SaveState.IDLE)
        self.assertEqual(editor.role, "viewer")
        self.assertFalse(editor.has_changes)

    def test_cancel_discards_edits(self):
        editor = self.make_editor(self.record("viewer", {"can_track_time": Override.GRANT}))
        editor.set_role("admin")
        editor.set_override("can_track_time", None)

        editor.cancel()

        self.assertEqual(editor.role, "viewer")
        self.assertEqual(editor.overrides, {"can_track_time": Override.GRANT})
        self.assertFalse(editor.has_changes)

    def test_preview_cache_is_bounded(self):
        editor = self.make_editor(self.record("viewer"))
        for role in ("viewer", "member", "editor", "manager", "admin"):
            editor.set_role(role)
            for permission in ("can_view_reports", "can_view_budget", "can_export_data"):
                editor.set_override(permission, True)
                editor.resolver()
            editor.overrides = {}

        self.assertEqual(len(editor._resolver_cache), RESOLVER_CACHE_SIZE)
        latest = editor.resolver()
        self.assertIs(editor.resolver(), latest)


class PermissionEditorDecodingTests(SimpleTestCase):
    """Editor driven by the real client over a mocked HTTP session."""

    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.client = ProjectPermissionsClient("https://chrono.test", session=self.session)
        self.options = mock.Mock(status_code=200)
        self.options.json.return_value = {"data": build_project_catalog().to_payload()}

    def respond_with(self, record_payload):
        record = mock.Mock(status_code=200)
        record.json.return_value = record_payload
        self.session.request.side_effect = [self.options, record]

    def test_unexpected_record_is_a_load_error(self):
        self.respond_with({"data": ["unexpected"]})
        editor = PermissionEditor(self.client, project_id=3, user_id=7)

        self.assertFalse(editor.load())
        self.assertIsInstance(editor.error, MalformedResponse)
        self.assertFalse(editor.is_loading)

    def test_tinyint_overrides_load(self):
        self.respond_with({"data": {
            "user_id": 7, "project_id": 3, "role": "viewer",
            "explicit_permissions": {"can_view_reports": 1, "can_track_time": 0},
        }})
        editor = PermissionEditor(self.client, project_id=3, user_id=7)

        self.assertTrue(editor.load())
        self.assertEqual(editor.overrides, {"can_view_reports": Override.GRANT, "can_track_time": Override.REVOKE})
        self.assertFalse(editor.has_changes)
