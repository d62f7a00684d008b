# fbtoken/services/token_cache.py
"""
Local cache of the last session, so repeated runs reuse a valid ID token
instead of signing in again.
"""
import os
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from fbtoken.core.config import settings
from fbtoken.core.exceptions import ConfigurationException, IdentityToolkitException
from fbtoken.core.logging import get_logger
from fbtoken.domain.models.token import AuthSession

logger = get_logger("token_cache")


class TokenCache:
    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path or settings.TOKEN_CACHE_PATH).expanduser()

    def load(self) -> Optional[AuthSession]:
        if not self.path.exists():
            return None
        try:
            return AuthSession.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token cache {self.path}: {type(e).__name__}")
            return None

    def save(self, session: AuthSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Holds a refresh token: owner-only from creation on
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(session.model_dump_json(indent=2))
        # os.open keeps the mode of a file that already existed
        os.chmod(self.path, 0o600)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class TokenManager:
    """
    Hands out a valid session for the test user: cached, refreshed, or freshly signed in.
    """
    def __init__(
        self,
        client,
        cache: Optional[TokenCache] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        leeway_seconds: Optional[int] = None,
    ):
        self.client = client
        self.cache = cache or TokenCache()
        self.email = email if email is not None else settings.TEST_USER_EMAIL
        self.password = password if password is not None else settings.TEST_USER_PASSWORD
        self.leeway_seconds = (
            leeway_seconds if leeway_seconds is not None else settings.TOKEN_EXPIRY_LEEWAY_SECONDS
        )

    def get_session(self, force: bool = False) -> AuthSession:
        cached = self.cache.load()

        if cached and not force and not cached.is_expired(self.leeway_seconds):
            return cached

        if cached and cached.refresh_token:
            try:
                session = self.client.refresh(cached.refresh_token, previous=cached)
                self.cache.save(session)
                logger.info("Refreshed cached session")
                return session
            except IdentityToolkitException as e:
                logger.warning(f"Refresh failed ({e.error_code}), signing in again")

        if not self.email or not self.password:
            raise ConfigurationException(
                "No valid cached session and TEST_USER_EMAIL/TEST_USER_PASSWORD are not set"
            )

        session = self.client.sign_in_with_password(self.email, self.password)
        self.cache.save(session)
        return session
