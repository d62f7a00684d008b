from pydantic import BaseModel, EmailStr, ConfigDict
from typing import Any, Dict, Optional, List
from datetime import datetime, timezone


class Credentials(BaseModel):
    """Email/password sign-in model"""
    email: EmailStr
    password: str


class SignUpRequest(BaseModel):
    """Test user registration model. Omit both email and password for an anonymous user."""
    email: Optional[EmailStr] = None
    password: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return self.email is None and self.password is None


class CustomTokenRequest(BaseModel):
    """Mint a custom token for uid (with optional custom claims) and exchange it"""
    uid: str
    claims: Optional[Dict[str, Any]] = None


class RefreshRequest(BaseModel):
    refresh_token: str


class IdTokenRequest(BaseModel):
    """Model for Firebase ID token from client"""
    id_token: str


def _from_millis(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


class AccountInfo(BaseModel):
    """Account details returned by accounts:lookup"""
    local_id: str
    email: Optional[str] = None
    email_verified: bool = False
    display_name: Optional[str] = None
    disabled: bool = False
    providers: List[str] = []
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "local_id": "tRcfmLH7o2XrNELi1xSvXNz2sR63",
                "email": "tester@example.com",
                "email_verified": False,
                "display_name": None,
                "disabled": False,
                "providers": ["password"],
                "created_at": "2024-01-01T10:00:00Z",
                "last_login_at": "2024-01-02T10:00:00Z"
            }
        }
    )

    @classmethod
    def from_lookup_user(cls, user: Dict[str, Any]) -> "AccountInfo":
        providers = [
            info.get("providerId") for info in user.get("providerUserInfo", []) if info.get("providerId")
        ]
        return cls(
            local_id=user["localId"],
            email=user.get("email"),
            email_verified=bool(user.get("emailVerified", False)),
            display_name=user.get("displayName"),
            disabled=bool(user.get("disabled", False)),
            providers=providers,
            created_at=_from_millis(user.get("createdAt")),
            last_login_at=_from_millis(user.get("lastLoginAt")),
        )
