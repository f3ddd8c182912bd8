# rbac/serializers.py
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from .catalog import OverrideAction, ProjectPermission, ProjectRole
from .models import ProjectMembership

User = get_user_model()


class AddUserSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    role = serializers.ChoiceField(choices=ProjectRole.choices)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500)

    def validate_user_id(self, value):
        if not User.objects.filter(pk=value).exists():
            raise serializers.ValidationError("User does not exist.")
        return value

    def validate_expires_at(self, value):
        if value is not None and value <= timezone.now():
            raise serializers.ValidationError("Expiry date must be in the future.")
        return value


class UpdateRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ProjectRole.choices)


class UpdatePermissionsSerializer(serializers.Serializer):
    permissions = serializers.ListField(
        child=serializers.ChoiceField(choices=ProjectPermission.choices),
        allow_empty=False,
    )
    action = serializers.ChoiceField(choices=OverrideAction.choices)


class ProjectMembershipSerializer(serializers.ModelSerializer):
    """
    Read serializer for one user's record in a project.

    effective_permissions needs the resolver, so the view passes the
    granted values in context["effective_permissions"].
    """
    user_id = serializers.IntegerField(read_only=True)
    user_name = serializers.CharField(source="user.display_name", read_only=True)
    user_email = serializers.EmailField(source="user.email", read_only=True)
    project_id = serializers.IntegerField(read_only=True)
    project_name = serializers.CharField(source="project.name", read_only=True)
    explicit_permissions = serializers.SerializerMethodField()
    effective_permissions = serializers.SerializerMethodField()

    class Meta:
        model = ProjectMembership
        fields = [
            "id",
            "user_id",
            "user_name",
            "user_email",
            "project_id",
            "project_name",
            "role",
            "is_active",
            "expires_at",
            "notes",
            "explicit_permissions",
            "effective_permissions",
            "created_at",
            "updated_at",
        ]

    def get_explicit_permissions(self, obj):
        return obj.explicit_permissions()

    def get_effective_permissions(self, obj):
        return self.context.get("effective_permissions", [])
