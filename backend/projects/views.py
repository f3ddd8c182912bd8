from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from rbac.models import ProjectMembership
from .serializers import ProjectMemberSerializer
from .rbac_perms import CanViewProjectMembers


@api_view(["GET"])
@permission_classes([IsAuthenticated, CanViewProjectMembers])
def project_members(request, project_id: int):
    qs = (
        ProjectMembership.objects.filter(project_id=project_id)
        .select_related("user")
        .order_by("user__username")
    )
    return Response({"data": {"members": ProjectMemberSerializer(qs, many=True).data}})
