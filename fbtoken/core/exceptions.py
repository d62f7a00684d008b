from fastapi import status
from typing import Optional, Dict, Any


class AppBaseException(Exception):
    """
    Base exception class for all custom application exceptions.
    """
    def __init__(
        self,
        message: str = "An unexpected error occurred",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationException(AppBaseException):
    """
    Exception raised for authentication errors.
    """
    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details
        )


class ValidationException(AppBaseException):
    """
    Exception raised for validation errors.
    """
    def __init__(
        self,
        message: str = "Validation error",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ConfigurationException(AppBaseException):
    """
    Exception raised when a required setting (API key, credentials, service account) is missing.
    """
    def __init__(
        self,
        message: str = "Missing configuration",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


class EnvironmentFileException(AppBaseException):
    """
    Exception raised when a REST-client environment file cannot be read or written.
    """
    def __init__(
        self,
        message: str = "Environment file operation failed",
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}

        if path:
            details["path"] = path

        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class ExternalServiceException(AppBaseException):
    """
    Exception raised for errors in external service calls (Identity Toolkit, Secure Token, etc).
    """
    def __init__(
        self,
        service_name: str,
        message: str = "External service request failed",
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}

        details["service"] = service_name

        super().__init__(
            message=f"{message} ({service_name})",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


# Identity Toolkit / Secure Token error codes and the status we surface them with
IDENTITY_ERROR_STATUS: Dict[str, int] = {
    "EMAIL_EXISTS": status.HTTP_409_CONFLICT,
    "EMAIL_NOT_FOUND": status.HTTP_401_UNAUTHORIZED,
    "INVALID_PASSWORD": status.HTTP_401_UNAUTHORIZED,
    "INVALID_LOGIN_CREDENTIALS": status.HTTP_401_UNAUTHORIZED,
    "INVALID_ID_TOKEN": status.HTTP_401_UNAUTHORIZED,
    "TOKEN_EXPIRED": status.HTTP_401_UNAUTHORIZED,
    "INVALID_REFRESH_TOKEN": status.HTTP_401_UNAUTHORIZED,
    "INVALID_CUSTOM_TOKEN": status.HTTP_401_UNAUTHORIZED,
    "CREDENTIAL_MISMATCH": status.HTTP_401_UNAUTHORIZED,
    "USER_DISABLED": status.HTTP_403_FORBIDDEN,
    "OPERATION_NOT_ALLOWED": status.HTTP_403_FORBIDDEN,
    "USER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "TOO_MANY_ATTEMPTS_TRY_LATER": status.HTTP_429_TOO_MANY_REQUESTS,
    "WEAK_PASSWORD": status.HTTP_400_BAD_REQUEST,
    "INVALID_EMAIL": status.HTTP_400_BAD_REQUEST,
    "MISSING_EMAIL": status.HTTP_400_BAD_REQUEST,
    "MISSING_PASSWORD": status.HTTP_400_BAD_REQUEST,
    "INVALID_GRANT_TYPE": status.HTTP_400_BAD_REQUEST,
    "MISSING_REFRESH_TOKEN": status.HTTP_400_BAD_REQUEST,
    "MISSING_ID_TOKEN": status.HTTP_400_BAD_REQUEST,
    "API_KEY_INVALID": status.HTTP_400_BAD_REQUEST,
}


class IdentityToolkitException(AppBaseException):
    """
    Exception raised when Identity Toolkit or Secure Token rejects a request.

    ``error_code`` is Firebase's machine-readable code (``EMAIL_EXISTS``,
    ``WEAK_PASSWORD``...), ``message`` the human-readable part when Firebase sends one.
    """
    def __init__(
        self,
        error_code: str,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if not details:
            details = {}

        details["error_code"] = error_code
        if upstream_status is not None:
            details["upstream_status"] = upstream_status

        self.error_code = error_code

        super().__init__(
            message=message or error_code.replace("_", " ").capitalize(),
            status_code=IDENTITY_ERROR_STATUS.get(error_code, status.HTTP_502_BAD_GATEWAY),
            details=details
        )

    @classmethod
    def from_response_body(cls, body: Any, upstream_status: Optional[int] = None) -> "IdentityToolkitException":
        """
        Build from ``{"error": {"code": 400, "message": "WEAK_PASSWORD : Password should be..."}}``.

        Secure Token answers with ``{"error": {"message": "INVALID_REFRESH_TOKEN"}}`` too, but
        some proxies return plain strings, so anything unparseable becomes ``UNKNOWN_ERROR``.
        """
        error_code = "UNKNOWN_ERROR"
        description = None

        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            raw = str(error.get("message") or "")
        elif isinstance(error, str):
            raw = error
        else:
            raw = ""

        if raw:
            code, sep, rest = raw.partition(" : ")
            error_code = code.strip() or error_code
            description = rest.strip() if sep else None

        # Google's API-key failures come back as a sentence with the reason in `errors`
        if isinstance(error, dict) and error_code.startswith("API key not valid"):
            error_code = "API_KEY_INVALID"
            description = raw

        return cls(error_code=error_code, message=description, upstream_status=upstream_status)
