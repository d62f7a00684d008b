# fbtoken/services/identity_toolkit.py
"""
Thin client for the Firebase Auth REST API (Identity Toolkit v1 and Secure Token v1).

Every call is a single POST; errors are raised as IdentityToolkitException and
network failures as ExternalServiceException. Nothing is retried.
"""
import time
from typing import Any, Dict, Optional, Tuple

import requests

from fbtoken.core.config import settings
from fbtoken.core.exceptions import (
    ConfigurationException,
    ExternalServiceException,
    IdentityToolkitException,
    ValidationException,
)
from fbtoken.core.logging import get_logger
from fbtoken.core.metrics import record_identity_call
from fbtoken.core.validators import is_non_empty_string, is_valid_email
from fbtoken.domain.models.account import AccountInfo
from fbtoken.domain.models.token import AuthSession

logger = get_logger("identity_toolkit")


class IdentityToolkitClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        identity_url: Optional[str] = None,
        secure_token_url: Optional[str] = None,
        timeout: Optional[Tuple[float, float]] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.effective_api_key()
        self.session = session or requests.Session()
        self.identity_url = (identity_url or settings.identity_toolkit_base_url()).rstrip("/")
        self.secure_token_url = (secure_token_url or settings.secure_token_base_url()).rstrip("/")
        self.timeout = timeout or (settings.REQUEST_CONNECT_TIMEOUT, settings.REQUEST_READ_TIMEOUT)

    def _post(self, operation: str, url: str, json: Optional[Dict[str, Any]] = None,
              data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationException(
                "FIREBASE_API_KEY is not set",
                details={"operation": operation}
            )

        service = "securetoken" if url.startswith(self.secure_token_url) else "identitytoolkit"
        start = time.time()
        try:
            response = self.session.post(
                url,
                params={"key": self.api_key},
                json=json,
                data=data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            record_identity_call(operation, "network_error", time.time() - start)
            logger.error(f"{operation} failed: {type(e).__name__}", extra={"operation": operation})
            # The exception text carries the request URL, API key included
            raise ExternalServiceException(service, details={"operation": operation, "error": type(e).__name__}) from e

        elapsed = time.time() - start

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.ok:
            record_identity_call(operation, "rejected", elapsed)
            exc = IdentityToolkitException.from_response_body(body, upstream_status=response.status_code)
            logger.warning(
                f"{operation} rejected: {exc.error_code}",
                extra={"operation": operation, "upstream_status": response.status_code}
            )
            raise exc

        if not isinstance(body, dict):
            record_identity_call(operation, "invalid_response", elapsed)
            raise ExternalServiceException(
                service,
                message="Unexpected non-JSON response",
                details={"operation": operation, "upstream_status": response.status_code}
            )

        record_identity_call(operation, "success", elapsed)
        logger.info(f"{operation} succeeded", extra={"operation": operation, "elapsed_ms": int(elapsed * 1000)})
        return body

    def _accounts_url(self, method: str) -> str:
        return f"{self.identity_url}/accounts:{method}"

    @staticmethod
    def _check_credentials(email: str, password: str) -> None:
        if not is_non_empty_string(email) or not is_valid_email(email):
            raise ValidationException("Invalid email address", details={"email": email})
        if not is_non_empty_string(password):
            raise ValidationException("Password must not be empty")

    def sign_up(self, email: str, password: str) -> AuthSession:
        """Create an email/password user and return its first session."""
        self._check_credentials(email, password)
        body = self._post("sign_up", self._accounts_url("signUp"), json={
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return AuthSession.from_identity_response(body)

    def sign_up_anonymous(self) -> AuthSession:
        body = self._post("sign_up_anonymous", self._accounts_url("signUp"), json={
            "returnSecureToken": True,
        })
        return AuthSession.from_identity_response(body)

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self._check_credentials(email, password)
        body = self._post("sign_in_with_password", self._accounts_url("signInWithPassword"), json={
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })
        return AuthSession.from_identity_response(body)

    def sign_in_with_custom_token(self, custom_token: str) -> AuthSession:
        if not is_non_empty_string(custom_token):
            raise ValidationException("Custom token must not be empty")
        body = self._post("sign_in_with_custom_token", self._accounts_url("signInWithCustomToken"), json={
            "token": custom_token,
            "returnSecureToken": True,
        })
        return AuthSession.from_identity_response(body)

    def refresh(self, refresh_token: str, previous: Optional[AuthSession] = None) -> AuthSession:
        """Exchange a refresh token for a new ID token (form-encoded, snake_case response)."""
        if not is_non_empty_string(refresh_token):
            raise ValidationException("Refresh token must not be empty")
        body = self._post("refresh", f"{self.secure_token_url}/token", data={
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        })
        return AuthSession.from_secure_token_response(body, previous=previous)

    def lookup(self, id_token: str) -> AccountInfo:
        body = self._post("lookup", self._accounts_url("lookup"), json={"idToken": id_token})
        users = body.get("users") or []
        if not users:
            raise IdentityToolkitException("USER_NOT_FOUND", "No account matches this ID token")
        return AccountInfo.from_lookup_user(users[0])

    def delete_account(self, id_token: str) -> None:
        """Delete the account the ID token belongs to."""
        self._post("delete_account", self._accounts_url("delete"), json={"idToken": id_token})
