from typing import Optional, Any, Dict, List


class ForumError(Exception):
    """
    Base exception for the forum application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(ForumError):
    """
    Raised when a requested resource is not found (or is not visible to the caller).
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(ForumError):
    """
    Raised when authentication is required but missing or invalid.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class PermissionDeniedError(ForumError):
    """
    Raised when the user is known but not allowed to perform the action.
    """
    def __init__(self, message: str = "Permission denied", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)


class ClientError(ForumError):
    """
    Raised when a request is well-formed but rejected by a business rule
    (wrong password, expired token, nick taken...).

    `fields` names the inputs to highlight, `extra` is merged into the
    response body (e.g. {"captcha": True} or {"bad_password": True}).
    """
    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[List[str]] = None,
        details: Optional[Any] = None,
        **extra: Any,
    ):
        super().__init__(message or "", code="CLIENT_ERROR", status_code=406, details=details)
        self.fields = fields
        self.extra: Dict[str, Any] = extra


class ConfigError(ForumError):
    """
    Raised when static configuration (uploads, media sizes) is invalid.
    """
    def __init__(self, message: str = "Invalid configuration", details: Optional[Any] = None):
        super().__init__(message, code="CONFIG_ERROR", status_code=500, details=details)


class FileStorageError(ForumError):
    """
    Raised when the file store (GridFS) or image processing fails.
    """
    def __init__(self, message: str = "File storage operation failed", details: Optional[Any] = None):
        super().__init__(message, code="FILE_STORAGE_ERROR", status_code=500, details=details)
