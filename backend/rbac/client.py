"""
HTTP client for the project permission endpoints.

Every method raises a ``PermissionsAPIError`` subclass on failure; callers
that drive a user action (the editor, the batch applier) catch it at that
boundary. Responses are unwrapped from the ``{"data": ...}`` envelope.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import requests
from django.conf import settings

from .catalog import RoleCatalog
from .exceptions import (
    ApiError,
    MalformedResponse,
    NotFound,
    PartialUpdateError,
    PermissionsAPIError,
    TransportError,
    ValidationFailed,
)
from .resolver import Override, normalize_overrides

logger = logging.getLogger(__name__)


@dataclass
class UserProjectPermissions:
    user_id: int
    project_id: int
    role: str
    overrides: Dict[str, Override] = field(default_factory=dict)
    effective_permissions: List[str] = field(default_factory=list)
    is_active: bool = True
    expires_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: dict) -> "UserProjectPermissions":
        return cls(
            user_id=data.get("user_id"),
            project_id=data.get("project_id"),
            role=data.get("role"),
            overrides=normalize_overrides(data.get("explicit_permissions")),
            effective_permissions=list(data.get("effective_permissions") or []),
            is_active=data.get("is_active", True),
            expires_at=data.get("expires_at"),
        )


@dataclass(frozen=True)
class ProjectMember:
    id: int
    name: str
    email: str
    role: str

    @classmethod
    def from_payload(cls, data: dict) -> "ProjectMember":
        return cls(id=data["id"], name=data.get("name", ""), email=data.get("email", ""), role=data.get("role"))


class ProjectPermissionsClient:
    """
    Safe to share between threads: without an explicit ``session`` every
    thread gets its own ``requests.Session``. A session passed in is used
    as-is by all threads.
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = 10):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        if self._session is not None:
            return self._session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = requests.Session()
        return session

    @classmethod
    def from_settings(cls, session: Optional[requests.Session] = None) -> "ProjectPermissionsClient":
        return cls(settings.PERMISSIONS_API_BASE_URL, session=session, timeout=settings.PERMISSIONS_API_TIMEOUT)

    # ---------- transport ----------

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/{path.lstrip('/')}"

    def _request(self, method: str, path: str, json=None):
        url = self._url(path)
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Permission API unreachable method=%s url=%s error=%s", method, url, exc)
            raise TransportError() from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        status_code = response.status_code
        message = payload.get("message") if isinstance(payload, dict) else None

        if status_code == 404:
            raise NotFound(message or "Not found.", status_code, payload)
        if status_code == 422:
            raise ValidationFailed(message or "The given data was invalid.", status_code, payload)
        if status_code == 207:
            raise PartialUpdateError(message or "Some permissions could not be updated.", status_code, payload)
        if status_code >= 400:
            raise ApiError(message, status_code, payload)

        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    def _decode(self, parse, data, path: str):
        try:
            return parse(data)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Unexpected permission API payload path=%s error=%s", path, exc)
            raise MalformedResponse(payload=data) from exc

    # ---------- reads ----------

    def fetch_options(self, project_id: int) -> RoleCatalog:
        return RoleCatalog.from_payload(self._request("GET", f"projects/{project_id}/permissions/options"))

    def fetch_user_permissions(self, project_id: int, user_id: int) -> Optional[UserProjectPermissions]:
        """None when the user has no record for the project yet."""
        path = f"projects/{project_id}/permissions/{user_id}"
        try:
            data = self._request("GET", path)
        except NotFound:
            return None
        return self._decode(UserProjectPermissions.from_payload, data, path)

    def fetch_members(self, project_id: int) -> List[ProjectMember]:
        path = f"projects/{project_id}/members"
        data = self._request("GET", path)
        return self._decode(
            lambda d: [ProjectMember.from_payload(m) for m in (d or {}).get("members", [])], data, path,
        )

    def fetch_audit(self, project_id: int, user_id: int) -> dict:
        return self._request("GET", f"projects/{project_id}/permissions/{user_id}/audit")

    # ---------- writes ----------

    def add_user(self, project_id: int, user_id: int, role: str, expires_at=None, notes=None) -> dict:
        body = {"user_id": user_id, "role": role}
        if expires_at is not None:
            body["expires_at"] = expires_at
        if notes:
            body["notes"] = notes
        return self._request("POST", f"projects/{project_id}/permissions/users", json=body)

    def update_role(self, project_id: int, user_id: int, role: str) -> dict:
        return self._request("PUT", f"projects/{project_id}/permissions/{user_id}/role", json={"role": role})

    def update_permissions(self, project_id: int, user_id: int, permissions: Iterable[str], action: str) -> dict:
        return self._request(
            "PUT",
            f"projects/{project_id}/permissions/{user_id}/permissions",
            json={"permissions": list(permissions), "action": action},
        )

    def remove_user(self, project_id: int, user_id: int) -> None:
        self._request("DELETE", f"projects/{project_id}/permissions/{user_id}")


__all__ = [
    "ProjectPermissionsClient",
    "ProjectMember",
    "UserProjectPermissions",
    "PermissionsAPIError",
]
