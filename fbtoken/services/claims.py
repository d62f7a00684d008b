# fbtoken/services/claims.py
from datetime import datetime, timezone
from typing import Optional

import jwt
from firebase_admin import auth as firebase_auth

from fbtoken.core.exceptions import AuthenticationException
from fbtoken.core.logging import get_logger
from fbtoken.core.validators import looks_like_jwt
from fbtoken.domain.models.token import TokenClaims
from fbtoken.services.admin import init_firebase

logger = get_logger("claims")


def decode_claims(id_token: str) -> TokenClaims:
    """
    Read the payload of an ID token without checking its signature.
    Good for inspecting what a REST client is about to send, not for trusting it.
    """
    if not looks_like_jwt(id_token):
        raise AuthenticationException("Malformed ID token")
    try:
        payload = jwt.decode(
            id_token,
            options={"verify_signature": False, "verify_exp": False, "verify_aud": False},
        )
    except jwt.PyJWTError as e:
        raise AuthenticationException("Malformed ID token", details={"error": str(e)}) from e
    return TokenClaims.from_payload(payload)


def verify_claims(id_token: str) -> TokenClaims:
    """
    Verify signature, audience and expiry through the Admin SDK.
    """
    app = init_firebase()
    try:
        payload = firebase_auth.verify_id_token(id_token, app=app)
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
            firebase_auth.RevokedIdTokenError, firebase_auth.CertificateFetchError) as e:
        logger.warning(f"Firebase token verification error: {type(e).__name__}")
        raise AuthenticationException(
            "Invalid authentication credentials", details={"error": type(e).__name__}
        ) from e
    return TokenClaims.from_payload(payload)


def seconds_until_expiry(claims: TokenClaims, now: Optional[datetime] = None) -> Optional[int]:
    if claims.expires_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    return int((claims.expires_at - now).total_seconds())
