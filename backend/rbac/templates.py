"""
Permission templates and bulk application to several users.

Each user gets one sequential batch (role, then grant). Batches for different
users run in parallel on a thread pool, so their relative order is not
guaranteed. A failed user does not stop the others and nothing is rolled
back.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from django.conf import settings

from .catalog import OverrideAction, ProjectPermission, ProjectRole
from .exceptions import PermissionsAPIError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionTemplate:
    key: str
    name: str
    description: str
    role: str
    grants: Tuple[str, ...] = ()


PERMISSION_TEMPLATES: Dict[str, PermissionTemplate] = {
    t.key: t
    for t in (
        PermissionTemplate(
            key="developer",
            name="Developer",
            description="Edits content, tracks time and manages integrations",
            role=ProjectRole.EDITOR,
            grants=(
                ProjectPermission.EDIT_CONTENT,
                ProjectPermission.VIEW_REPORTS,
                ProjectPermission.TRACK_TIME,
                ProjectPermission.VIEW_ALL_TIME_ENTRIES,
                ProjectPermission.MANAGE_INTEGRATIONS,
            ),
        ),
        PermissionTemplate(
            key="designer",
            name="Designer",
            description="Creates content and tracks time",
            role=ProjectRole.EDITOR,
            grants=(
                ProjectPermission.EDIT_CONTENT,
                ProjectPermission.VIEW_REPORTS,
                ProjectPermission.TRACK_TIME,
            ),
        ),
        PermissionTemplate(
            key="client",
            name="Client",
            description="Read-only access with reports",
            role=ProjectRole.VIEWER,
            grants=(ProjectPermission.VIEW_REPORTS,),
        ),
        PermissionTemplate(
            key="accountant",
            name="Accountant",
            description="Reports, budget and data export",
            role=ProjectRole.VIEWER,
            grants=(
                ProjectPermission.VIEW_REPORTS,
                ProjectPermission.VIEW_BUDGET,
                ProjectPermission.EXPORT_DATA,
            ),
        ),
        PermissionTemplate(
            key="project_manager",
            name="Project Manager",
            description="Runs the project day to day without owning it",
            role=ProjectRole.MANAGER,
            grants=(
                ProjectPermission.MANAGE_MEMBERS,
                ProjectPermission.EDIT_CONTENT,
                ProjectPermission.DELETE_CONTENT,
                ProjectPermission.VIEW_REPORTS,
                ProjectPermission.VIEW_BUDGET,
                ProjectPermission.EXPORT_DATA,
                ProjectPermission.TRACK_TIME,
                ProjectPermission.VIEW_ALL_TIME_ENTRIES,
            ),
        ),
    )
}


def get_template(key: str) -> PermissionTemplate:
    try:
        return PERMISSION_TEMPLATES[key]
    except KeyError:
        raise ValueError(f"Unknown permission template: {key!r}") from None


@dataclass
class UserBatchOutcome:
    user_id: int
    completed: List[str] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    outcomes: List[UserBatchOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def failed_user_ids(self) -> List[int]:
        return [o.user_id for o in self.outcomes if not o.ok]


def _apply_to_user(client, project_id: int, user_id: int, role: str, grants: Tuple[str, ...]) -> UserBatchOutcome:
    outcome = UserBatchOutcome(user_id=user_id)
    try:
        client.update_role(project_id, user_id, role)
        outcome.completed.append("role")
        if grants:
            client.update_permissions(project_id, user_id, list(grants), OverrideAction.GRANT.value)
            outcome.completed.append(OverrideAction.GRANT.value)
    except PermissionsAPIError as exc:
        logger.warning(
            "Permission batch failed project_id=%s user_id=%s completed=%s error=%s",
            project_id, user_id, outcome.completed, exc,
        )
        outcome.error = exc
    except Exception as exc:
        logger.exception(
            "Permission batch crashed project_id=%s user_id=%s completed=%s",
            project_id, user_id, outcome.completed,
        )
        outcome.error = exc
    return outcome


def apply_custom_permissions(
    client,
    project_id: int,
    user_ids: Iterable[int],
    role: str,
    grants: Iterable[str] = (),
    max_workers: Optional[int] = None,
) -> BatchResult:
    user_ids = list(dict.fromkeys(user_ids))
    grants = tuple(str(g) for g in grants)
    if not user_ids:
        return BatchResult()

    max_workers = max_workers or settings.PERMISSIONS_BATCH_MAX_WORKERS
    with ThreadPoolExecutor(max_workers=min(max_workers, len(user_ids))) as executor:
        futures = [
            executor.submit(_apply_to_user, client, project_id, user_id, str(role), grants)
            for user_id in user_ids
        ]
        result = BatchResult(outcomes=[f.result() for f in futures])

    logger.info(
        "Permission batch applied project_id=%s role=%s users=%s failed=%s",
        project_id, role, len(user_ids), result.failed_user_ids,
    )
    return result


def apply_template(client, project_id: int, template, user_ids: Iterable[int], max_workers: Optional[int] = None) -> BatchResult:
    if isinstance(template, str):
        template = get_template(template)
    return apply_custom_permissions(
        client, project_id, user_ids, template.role, template.grants, max_workers=max_workers,
    )
