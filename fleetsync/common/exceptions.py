"""
Custom Exception Classes for fleetsync

Hierarchical exception structure shared by hub, relay and leaf.
Each error carries a machine-readable code and the HTTP status the hub
and leaf use when surfacing it.
"""


class FleetSyncError(Exception):
    """Base exception for all fleetsync errors"""

    code = "ERR_INTERNAL"
    http_status = 500

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)

    def to_dict(self) -> dict:
        """Error body used inside the failure envelope"""
        return {"code": self.code, "message": self.message}


class NotFoundError(FleetSyncError):
    """Requested configuration or identity does not exist (yet)"""

    code = "ERR_NOT_FOUND"
    http_status = 404

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found", recoverable=True)


class UnauthorizedError(FleetSyncError):
    """Signature, token or shared-secret mismatch"""

    code = "ERR_UNAUTHORIZED"
    http_status = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, recoverable=False)


class MalformedTokenError(UnauthorizedError):
    """Signed token is structurally invalid (wrong part count, bad encoding)"""

    def __init__(self, message: str = "Invalid signed token format"):
        super().__init__(message)


class ValidationFailedError(FleetSyncError):
    """Input failed validation (interval below floor, missing field)"""

    code = "ERR_VALIDATION"
    http_status = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, recoverable=False)


class TransientError(FleetSyncError):
    """Network timeout or non-2xx response from a dependency"""

    code = "ERR_TRANSIENT"
    http_status = 502

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(message, recoverable=True)


class InternalError(FleetSyncError):
    """Unexpected failure"""

    code = "ERR_INTERNAL"
    http_status = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, recoverable=False)


class CacheError(FleetSyncError):
    """Read-through cache could not serve a value"""

    code = "ERR_CACHE"

    def __init__(self, message: str):
        super().__init__(f"Cache Error: {message}", recoverable=True)
