from typing import Optional

from rbac.catalog import SpaceRole

from .models import Space, SpaceMember


def get_space_member(user, space: Space) -> Optional[SpaceMember]:
    """
    Space membership rule:
    - space owner: virtual (unsaved) membership with the OWNER role
    - anyone else: their SpaceMember row, or None when not in the space
    """
    if space.owner_id == user.id:
        return SpaceMember(space=space, user=user, role=SpaceRole.OWNER)
    return SpaceMember.objects.filter(space=space, user=user).first()


def has_space_permission(user, space: Space, permission: str) -> bool:
    member = get_space_member(user, space)
    if member is None:
        return False
    return member.has_permission(permission)
