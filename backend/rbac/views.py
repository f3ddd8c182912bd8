import logging

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from projects.models import Project
from . import services
from .catalog import build_project_catalog
from .models import ProjectMembership
from .rbac_perms import CanManageMembers
from .serializers import (
    AddUserSerializer,
    ProjectMembershipSerializer,
    UpdatePermissionsSerializer,
    UpdateRoleSerializer,
)

logger = logging.getLogger(__name__)
User = get_user_model()


def _load(project_id, user_id):
    project = get_object_or_404(Project.objects.select_related("space"), pk=project_id)
    user = get_object_or_404(User, pk=user_id)
    return project, user


def _membership_data(membership, project, user):
    resolver = services.build_resolver(user, project)
    serializer = ProjectMembershipSerializer(
        membership, context={"effective_permissions": resolver.granted_values()}
    )
    return serializer.data


# ---------- OPTIONS ----------

@api_view(["GET"])
@permission_classes([IsAuthenticated])
def permission_options(request, project_id):
    get_object_or_404(Project, pk=project_id)
    return Response({"data": build_project_catalog().to_payload()})


# ---------- SHOW / REMOVE ----------

@api_view(["GET", "DELETE"])
@permission_classes([IsAuthenticated, CanManageMembers])
def user_permissions(request, project_id, user_id):
    project, user = _load(project_id, user_id)

    if request.method == "DELETE":
        if not services.remove_user(user, project, actor=request.user):
            return Response(
                {"message": "User has no permissions for this project"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response({"message": "User removed from project successfully"})

    membership = (
        ProjectMembership.objects.select_related("user", "project")
        .filter(project=project, user=user)
        .first()
    )
    if membership is None:
        return Response(
            {"message": "User has no permissions for this project"},
            status=status.HTTP_404_NOT_FOUND,
        )
    return Response({"data": _membership_data(membership, project, user)})


# ---------- ADD ----------

@api_view(["POST"])
@permission_classes([IsAuthenticated, CanManageMembers])
def add_user(request, project_id):
    project = get_object_or_404(Project.objects.select_related("space"), pk=project_id)

    serializer = AddUserSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    data = serializer.validated_data
    user = User.objects.get(pk=data["user_id"])

    if ProjectMembership.objects.filter(project=project, user=user).exists():
        return Response(
            {"message": "User already has permissions for this project"},
            status=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )

    membership = services.add_user(
        user,
        project,
        data["role"],
        actor=request.user,
        expires_at=data.get("expires_at"),
        notes=data.get("notes", ""),
    )
    return Response(
        {
            "message": "User added to project successfully",
            "data": _membership_data(membership, project, user),
        },
        status=status.HTTP_201_CREATED,
    )


# ---------- ROLE ----------

@api_view(["PUT"])
@permission_classes([IsAuthenticated, CanManageMembers])
def update_role(request, project_id, user_id):
    project, user = _load(project_id, user_id)

    serializer = UpdateRoleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    role = serializer.validated_data["role"]
    membership = services.update_user_role(user, project, role, actor=request.user)

    return Response({
        "message": "User role updated successfully",
        "data": {
            "user_id": user.id,
            "project_id": project.id,
            "role": membership.role,
        },
    })


# ---------- EXPLICIT PERMISSIONS ----------

@api_view(["PUT"])
@permission_classes([IsAuthenticated, CanManageMembers])
def update_permissions(request, project_id, user_id):
    project, user = _load(project_id, user_id)

    serializer = UpdatePermissionsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_422_UNPROCESSABLE_ENTITY)

    successful, failed = services.apply_override_action(
        user,
        project,
        serializer.validated_data["permissions"],
        serializer.validated_data["action"],
        actor=request.user,
    )

    if failed:
        logger.warning(
            "Some project permissions could not be updated project_id=%s user_id=%s failed=%s",
            project.id, user.id, [f["permission"] for f in failed],
        )

    # 207 Multi-Status when anything failed
    return Response(
        {
            "message": "Some permissions could not be updated" if failed else "Permissions updated successfully",
            "data": {"successful": successful, "failed": failed},
        },
        status=status.HTTP_207_MULTI_STATUS if failed else status.HTTP_200_OK,
    )


# ---------- AUDIT ----------

@api_view(["GET"])
@permission_classes([IsAuthenticated, CanManageMembers])
def permission_audit(request, project_id, user_id):
    project, user = _load(project_id, user_id)
    resolver = services.build_resolver(user, project)
    return Response({
        "data": {
            "user_id": user.id,
            "project_id": project.id,
            "space_role": resolver.space_role,
            "project_role": resolver.project_role,
            "granted": resolver.granted_values(),
            "categories": resolver.audit(),
        }
    })
