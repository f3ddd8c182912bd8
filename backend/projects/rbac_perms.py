# projects/rbac_perms.py
from rbac.catalog import SpacePermission
from rbac.permissions import HasProjectPermission


class CanViewProjectMembers(HasProjectPermission):
    # any current project member, or anyone who can see every project of the space
    permission = None
    space_permission = SpacePermission.VIEW_ALL_PROJECTS
