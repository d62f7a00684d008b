import re
from typing import Any
from email_validator import validate_email, EmailNotValidError


JWT_SEGMENT = r"[A-Za-z0-9_-]+"
JWT_RE = re.compile(rf"^{JWT_SEGMENT}\.{JWT_SEGMENT}\.[A-Za-z0-9_-]*$")
VARIABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*$")


def is_valid_email(email: str) -> bool:
    """Check if email is valid."""
    try:
        validate_email(email, check_deliverability=False)
        return True
    except EmailNotValidError:
        return False


def looks_like_jwt(value: Any) -> bool:
    """Check if value has the three dot-separated base64url segments of a JWT."""
    return isinstance(value, str) and bool(JWT_RE.match(value))


def is_valid_variable_name(name: Any) -> bool:
    """Check if name can be used as a REST-client environment variable key."""
    return isinstance(name, str) and bool(VARIABLE_NAME_RE.match(name))


def is_non_empty_string(value: Any) -> bool:
    """Check if value is a non-empty string."""
    return isinstance(value, str) and value.strip() != ""
