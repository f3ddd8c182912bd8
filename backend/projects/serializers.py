from rest_framework import serializers

from rbac.models import ProjectMembership


class ProjectMemberSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source="user_id", read_only=True)
    name = serializers.CharField(source="user.display_name", read_only=True)
    email = serializers.EmailField(source="user.email", read_only=True)

    class Meta:
        model = ProjectMembership
        fields = ["id", "name", "email", "role", "is_active", "expires_at"]
