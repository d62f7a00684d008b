from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthSession(BaseModel):
    """
    A signed-in Firebase user as returned by Identity Toolkit or Secure Token.
    """
    id_token: str
    refresh_token: Optional[str] = None
    expires_in: int = 3600
    local_id: Optional[str] = None
    email: Optional[str] = None
    registered: Optional[bool] = None
    display_name: Optional[str] = None
    obtained_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id_token": "eyJhbGciOiJSUzI1NiIsImtpZCI6...",
                "refresh_token": "AMf-vBx...",
                "expires_in": 3600,
                "local_id": "tRcfmLH7o2XrNELi1xSvXNz2sR63",
                "email": "tester@example.com",
                "registered": True,
                "display_name": None,
                "obtained_at": "2024-01-01T10:00:00Z"
            }
        }
    )

    @property
    def expires_at(self) -> datetime:
        obtained = self.obtained_at
        if obtained.tzinfo is None:
            obtained = obtained.replace(tzinfo=timezone.utc)
        return obtained + timedelta(seconds=self.expires_in)

    def is_expired(self, leeway_seconds: int = 0, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now + timedelta(seconds=leeway_seconds) >= self.expires_at

    @classmethod
    def from_identity_response(cls, data: Dict[str, Any]) -> "AuthSession":
        """accounts:signUp / signInWithPassword / signInWithCustomToken (camelCase)."""
        return cls(
            id_token=data["idToken"],
            refresh_token=data.get("refreshToken"),
            expires_in=int(data.get("expiresIn", 3600)),
            local_id=data.get("localId"),
            email=data.get("email") or None,
            registered=data.get("registered"),
            display_name=data.get("displayName") or None,
        )

    @classmethod
    def from_secure_token_response(cls, data: Dict[str, Any], previous: Optional["AuthSession"] = None) -> "AuthSession":
        """securetoken token endpoint (snake_case). Email is not returned, so keep the previous one."""
        return cls(
            id_token=data["id_token"],
            refresh_token=data.get("refresh_token"),
            expires_in=int(data.get("expires_in", 3600)),
            local_id=data.get("user_id"),
            email=previous.email if previous else None,
            registered=previous.registered if previous else None,
            display_name=previous.display_name if previous else None,
        )

    def to_environment(self, prefix: str = "", token_key: str = "idToken") -> Dict[str, str]:
        """
        Variables to store in a REST-client environment.
        """
        values = {
            token_key: self.id_token,
            "refreshToken": self.refresh_token,
            "localId": self.local_id,
            "email": self.email,
            f"{token_key}ExpiresAt": str(int(self.expires_at.timestamp() * 1000)),
        }
        return {f"{prefix}{key}": value for key, value in values.items() if value is not None}


# Claims every Firebase ID token carries; anything else is a custom claim
REGISTERED_CLAIMS = {
    "iss", "aud", "auth_time", "user_id", "sub", "iat", "exp",
    "email", "email_verified", "phone_number", "name", "picture", "firebase", "uid",
}


class TokenClaims(BaseModel):
    """Decoded payload of a Firebase ID token"""
    uid: str
    email: Optional[str] = None
    email_verified: Optional[bool] = None
    issuer: Optional[str] = None
    audience: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    auth_time: Optional[datetime] = None
    sign_in_provider: Optional[str] = None
    custom_claims: Dict[str, Any] = {}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenClaims":
        def ts(key: str) -> Optional[datetime]:
            value = payload.get(key)
            if value is None:
                return None
            return datetime.fromtimestamp(int(value), tz=timezone.utc)

        firebase = payload.get("firebase") or {}
        return cls(
            uid=payload.get("user_id") or payload.get("sub") or payload.get("uid") or "",
            email=payload.get("email"),
            email_verified=payload.get("email_verified"),
            issuer=payload.get("iss"),
            audience=payload.get("aud"),
            issued_at=ts("iat"),
            expires_at=ts("exp"),
            auth_time=ts("auth_time"),
            sign_in_provider=firebase.get("sign_in_provider") if isinstance(firebase, dict) else None,
            custom_claims={k: v for k, v in payload.items() if k not in REGISTERED_CLAIMS},
        )
