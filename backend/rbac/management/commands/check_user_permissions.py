from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError, CommandParser

from authapp.utils import get_space_member
from projects.models import Project
from rbac import services


class Command(BaseCommand):
    help = "Show how a user's project permissions are resolved (space role, project role, overrides)."

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument("project_id", type=int, help="Project ID")
        parser.add_argument("email", type=str, help="User email")

    def handle(self, *args, **options):
        project = Project.objects.select_related("space").filter(pk=options["project_id"]).first()
        if project is None:
            raise CommandError(f"Project not found: {options['project_id']}")

        user = get_user_model().objects.filter(email__iexact=options["email"]).first()
        if user is None:
            raise CommandError(f"User not found: {options['email']}")

        self.stdout.write(self.style.SUCCESS(f"Project: {project.name} (ID: {project.id}), space: {project.space.name}"))
        self.stdout.write(f"User: {user.email} (ID: {user.id})")

        if services.is_super_admin(user):
            self.stdout.write(self.style.WARNING("User is a SUPER ADMIN - has all permissions"))
        elif project.space.owner_id == user.id:
            self.stdout.write(self.style.WARNING("User is the OWNER of this space - has all permissions"))

        space_member = get_space_member(user, project.space)
        if space_member is None:
            self.stdout.write(self.style.WARNING("No space membership found for this user"))
        else:
            self.stdout.write(f"  Space role: {space_member.role}")
            extra = space_member.extra_permissions()
            if extra:
                self.stdout.write(f"  Extra space permissions: {', '.join(extra)}")

        membership = services.get_active_membership(user, project)
        if membership is None:
            self.stdout.write(self.style.WARNING("No active project permission record"))
        else:
            self.stdout.write(f"  Project role: {membership.role}")
            overrides = membership.override_map()
            if overrides:
                self.stdout.write("  Overrides: " + ", ".join(f"{k}={v.value}" for k, v in overrides.items()))

        resolver = services.build_resolver(user, project)
        self.stdout.write("\nEffective permissions:")
        for category, items in resolver.grouped().items():
            self.stdout.write(f"  {category}")
            for item in items:
                trail = resolver.audit_trail(item.value)
                source = trail[0].source if trail else "-"
                mark = "YES" if item.granted else "NO"
                self.stdout.write(f"    {item.value}: {mark} ({source})")
