from django.test import SimpleTestCase

from rbac.catalog import ProjectPermission, ProjectRole, RoleCatalog, SpaceRole, build_project_catalog
from rbac.resolver import AuditSourceType, Override, PermissionResolver, normalize_overrides


class ResolverScenarioTests(SimpleTestCase):
    def setUp(self):
        # same path API clients take: server table -> payload -> catalog
        self.catalog = RoleCatalog.from_payload(build_project_catalog().to_payload())

    def resolver(self, project_role=None, overrides=None, space_role=SpaceRole.MEMBER, space_permissions=None):
        return PermissionResolver(
            self.catalog,
            space_role=space_role,
            project_role=project_role,
            overrides=overrides,
            space_permissions=space_permissions,
        )

    def test_member_role_grants_edit_content(self):
        result = self.resolver(ProjectRole.MEMBER).resolve("can_edit_content")

        self.assertTrue(result.granted)
        self.assertIsNone(result.explicit)
        self.assertTrue(result.inherited_from_role)

    def test_viewer_with_explicit_grant(self):
        resolver = self.resolver(ProjectRole.VIEWER, {"can_view_reports": True})
        result = resolver.resolve("can_view_reports")

        self.assertTrue(result.granted)
        self.assertIs(result.explicit, True)
        self.assertFalse(result.inherited_from_role)
        self.assertEqual(resolver.audit_trail("can_view_reports")[0].type, AuditSourceType.EXPLICIT_GRANT)

    def test_admin_with_explicit_revoke(self):
        resolver = self.resolver(ProjectRole.ADMIN, {"can_delete_content": False})
        result = resolver.resolve("can_delete_content")

        self.assertFalse(result.granted)
        self.assertIs(result.explicit, False)
        self.assertTrue(result.inherited_from_role)
        trail = resolver.audit_trail("can_delete_content")
        self.assertEqual(trail[0].type, AuditSourceType.EXPLICIT_REVOKE)
        self.assertEqual(trail[0].source, "Explicit Revocation")

    def test_space_manager_grant_flows_through_viewer_role(self):
        resolver = self.resolver(ProjectRole.VIEWER, space_role=SpaceRole.MANAGER)
        result = resolver.resolve("can_view_budget")

        self.assertTrue(result.granted)
        self.assertTrue(result.inherited_from_role)
        types = [s.type for s in resolver.audit_trail("can_view_budget")]
        self.assertEqual(types, [AuditSourceType.SPACE_ROLE])

    def test_no_project_role_falls_back_to_space_role(self):
        resolver = self.resolver(None, space_role=SpaceRole.ADMIN)

        self.assertTrue(resolver.resolve("can_manage_integrations").granted)
        self.assertEqual(resolver.audit_trail("can_manage_integrations")[0].source, "Space Role: Administrator")

    def test_extra_space_permissions_count_as_space_layer(self):
        resolver = self.resolver(ProjectRole.VIEWER, space_permissions=["can_export_data"])

        self.assertTrue(resolver.resolve("can_export_data").granted)
        self.assertEqual(resolver.audit_trail("can_export_data")[0].type, AuditSourceType.SPACE_ROLE)


class ResolverPropertyTests(SimpleTestCase):
    def setUp(self):
        self.catalog = build_project_catalog()
        self.all_permissions = ProjectPermission.values

    def test_explicit_override_always_wins(self):
        for role in ProjectRole.values:
            for space_role in SpaceRole.values:
                grant_all = PermissionResolver(self.catalog, space_role, role, {p: True for p in self.all_permissions})
                revoke_all = PermissionResolver(self.catalog, space_role, role, {p: False for p in self.all_permissions})
                for permission in self.all_permissions:
                    self.assertTrue(grant_all.resolve(permission).granted, (role, space_role, permission))
                    self.assertFalse(revoke_all.resolve(permission).granted, (role, space_role, permission))

    def test_without_override_granted_is_role_or_space(self):
        for role in ProjectRole.values:
            for space_role in SpaceRole.values:
                resolver = PermissionResolver(self.catalog, space_role, role)
                for permission in self.all_permissions:
                    expected = (
                        self.catalog.is_granted_by_role(role, permission)
                        or self.catalog.is_granted_by_space_role(space_role, permission)
                    )
                    self.assertEqual(resolver.resolve(permission).granted, expected, (role, space_role, permission))

    def test_audit_trail_sorted_by_level_descending(self):
        resolver = PermissionResolver(
            self.catalog, SpaceRole.ADMIN, ProjectRole.ADMIN, {"can_view_reports": True, "can_manage_project": False},
        )
        for permission in self.all_permissions:
            levels = [s.level for s in resolver.audit_trail(permission)]
            self.assertEqual(levels, sorted(levels, reverse=True))

        trail = resolver.audit_trail("can_view_reports")
        self.assertEqual(
            [s.type for s in trail],
            [AuditSourceType.EXPLICIT_GRANT, AuditSourceType.PROJECT_ROLE, AuditSourceType.SPACE_ROLE],
        )
        self.assertEqual([s.level for s in trail], [3, 2, 1])

    def test_unknown_permission_is_denied_with_empty_trail(self):
        resolver = PermissionResolver(
            self.catalog, SpaceRole.OWNER, ProjectRole.ADMIN, {"nonexistent_permission": True},
        )
        result = resolver.resolve("nonexistent_permission")

        self.assertFalse(result.granted)
        self.assertFalse(result.inherited_from_role)
        self.assertEqual(resolver.audit_trail("nonexistent_permission"), [])

    def test_unknown_role_grants_nothing(self):
        resolver = PermissionResolver(self.catalog, "nobody", "nobody")
        self.assertEqual(resolver.granted_values(), [])

    def test_grouped_and_audit_follow_catalog_order(self):
        resolver = PermissionResolver(self.catalog, SpaceRole.MEMBER, ProjectRole.EDITOR)

        grouped = resolver.grouped()
        self.assertEqual(list(grouped), list(self.catalog.categories()))
        self.assertEqual(
            [p.value for p in grouped["Time tracking"]],
            ["can_track_time", "can_view_all_time_entries"],
        )

        audit = resolver.audit()
        row = audit["Content management"][0]
        self.assertEqual(row["permission"], "can_edit_content")
        self.assertTrue(row["granted"])
        self.assertEqual(row["sources"][0]["type"], "project_role")
        self.assertEqual(row["sources"][0]["source"], "Project Role: Editor")

    def test_granted_values(self):
        resolver = PermissionResolver(self.catalog, SpaceRole.GUEST, ProjectRole.MEMBER, {"can_view_reports": True})
        self.assertEqual(resolver.granted_values(), ["can_edit_content", "can_view_reports", "can_track_time"])


class OverrideTests(SimpleTestCase):
    def test_wire_values(self):
        self.assertIs(Override.from_value(True), Override.GRANT)
        self.assertIs(Override.from_value(False), Override.REVOKE)
        self.assertIs(Override.from_value(None), Override.INHERIT)
        self.assertIsNone(Override.INHERIT.as_bool())

    def test_invalid_value(self):
        with self.assertRaises(ValueError):
            Override.from_value("yes")

    def test_normalize_drops_inherit(self):
        self.assertEqual(
            normalize_overrides({"a": True, "b": None, "c": False}),
            {"a": Override.GRANT, "c": Override.REVOKE},
        )
