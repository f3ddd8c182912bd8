class PermissionsAPIError(Exception):
    """Base class for everything the permission API client raises."""

    default_message = "The permission service request failed."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class TransportError(PermissionsAPIError):
    """The request never produced an HTTP response (DNS, refused, timeout)."""

    default_message = "Could not reach the permission service."


class ApiError(PermissionsAPIError):
    """The service answered with a non-success status."""

    def __init__(self, message=None, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class MalformedResponse(ApiError):
    """A success response whose body does not have the expected shape."""

    default_message = "The permission service returned an unexpected response."


class NotFound(ApiError):
    pass


class ValidationFailed(ApiError):
    """HTTP 422. ``errors`` holds the field -> messages mapping."""

    @property
    def errors(self):
        if isinstance(self.payload, dict):
            return self.payload.get("errors", self.payload)
        return {}


class PartialUpdateError(ApiError):
    """HTTP 207: some permissions of a batch were applied, some were not."""

    @property
    def failed(self):
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        return (data or {}).get("failed", [])


class CatalogError(ValueError):
    """A permission options payload could not be turned into a catalog."""
