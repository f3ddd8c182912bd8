from .catalog import ProjectPermission, SpacePermission
from .permissions import HasProjectPermission


class CanManageMembers(HasProjectPermission):
    permission = ProjectPermission.MANAGE_MEMBERS
    space_permission = SpacePermission.MANAGE_ALL_PROJECTS
