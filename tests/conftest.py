import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Settings are read at import time, so pin them before anything imports fbtoken
os.environ["FIREBASE_API_KEY"] = "test-api-key"
os.environ["FIREBASE_AUTH_EMULATOR_HOST"] = ""
os.environ["LOG_TO_FILE"] = "False"
os.environ["TEST_USER_EMAIL"] = ""
os.environ["TEST_USER_PASSWORD"] = ""

import time
import jwt
import pytest

from fbtoken.core.config import settings
from fbtoken.services.identity_toolkit import IdentityToolkitClient
from fbtoken.services.token_cache import TokenCache


def make_id_token(uid="uid-123", email="tester@example.com", expires_in=3600, **extra):
    """HS256-signed stand-in for a Firebase ID token (same claim layout)."""
    now = int(time.time())
    payload = {
        "iss": "https://securetoken.google.com/demo-project",
        "aud": "demo-project",
        "auth_time": now,
        "user_id": uid,
        "sub": uid,
        "iat": now,
        "exp": now + expires_in,
        "email": email,
        "email_verified": False,
        "firebase": {"identities": {"email": [email]}, "sign_in_provider": "password"},
    }
    payload.update(extra)
    return jwt.encode(payload, "not-a-google-key", algorithm="HS256")


def sign_in_body(uid="uid-123", email="tester@example.com", registered=True):
    return {
        "kind": "identitytoolkit#VerifyPasswordResponse",
        "localId": uid,
        "email": email,
        "displayName": "",
        "idToken": make_id_token(uid, email),
        "registered": registered,
        "refreshToken": f"refresh-{uid}",
        "expiresIn": "3600",
    }


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    """
    Stands in for requests.Session: responses are queued per URL suffix
    (``accounts:signUp``, ``/token``...) and every call is recorded.
    """
    def __init__(self):
        self.responses = {}
        self.calls = []

    def add(self, suffix, body=None, status_code=200, exc=None):
        self.responses.setdefault(suffix, []).append((status_code, body, exc))
        return self

    def post(self, url, params=None, json=None, data=None, timeout=None):
        self.calls.append({"url": url, "params": params, "json": json, "data": data, "timeout": timeout})
        for suffix, queue in self.responses.items():
            if url.endswith(suffix) and queue:
                status_code, body, exc = queue.pop(0)
                if exc is not None:
                    raise exc
                return FakeResponse(status_code, body)
        raise AssertionError(f"Unexpected request to {url}")


def error_body(message, code=400):
    return {"error": {"code": code, "message": message, "errors": [{"message": message, "domain": "global", "reason": "invalid"}]}}


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def identity_client(fake_session):
    return IdentityToolkitClient(
        api_key="test-api-key",
        session=fake_session,
        identity_url="https://identitytoolkit.googleapis.com/v1",
        secure_token_url="https://securetoken.googleapis.com/v1",
    )


@pytest.fixture
def token_cache(tmp_path):
    return TokenCache(tmp_path / "session.json")


@pytest.fixture
def test_user(monkeypatch):
    monkeypatch.setattr(settings, "TEST_USER_EMAIL", "tester@example.com")
    monkeypatch.setattr(settings, "TEST_USER_PASSWORD", "568303")
    return "tester@example.com", "568303"
