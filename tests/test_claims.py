import pytest

from conftest import make_id_token, sign_in_body
from fbtoken.core.exceptions import AuthenticationException, ConfigurationException, ValidationException
from fbtoken.core.config import settings
from fbtoken.services import admin, claims


def test_decode_claims_reads_firebase_layout():
    token = make_id_token(uid="uid-42", email="qa@example.com", role="admin")

    decoded = claims.decode_claims(token)

    assert decoded.uid == "uid-42"
    assert decoded.email == "qa@example.com"
    assert decoded.audience == "demo-project"
    assert decoded.sign_in_provider == "password"
    assert decoded.custom_claims == {"role": "admin"}
    assert 3500 < claims.seconds_until_expiry(decoded) <= 3600


def test_decode_claims_does_not_reject_expired_tokens():
    decoded = claims.decode_claims(make_id_token(expires_in=-60))
    assert claims.seconds_until_expiry(decoded) < 0


@pytest.mark.parametrize("value", ["", "not-a-jwt", "a.b", "eyJhbGciOiJIUzI1NiJ9.!!!.sig"])
def test_decode_claims_malformed(value):
    with pytest.raises(AuthenticationException):
        claims.decode_claims(value)


def test_verify_claims_uses_admin_sdk(monkeypatch):
    monkeypatch.setattr(claims, "init_firebase", lambda: object())
    monkeypatch.setattr(
        claims.firebase_auth, "verify_id_token",
        lambda token, app=None: {"uid": "uid-7", "user_id": "uid-7", "exp": 2000000000, "tier": "gold"},
    )

    decoded = claims.verify_claims("a.b.c")

    assert decoded.uid == "uid-7"
    assert decoded.custom_claims == {"tier": "gold"}


def test_verify_claims_invalid_token(monkeypatch):
    def reject(token, app=None):
        raise ValueError("Illegal ID token provided")

    monkeypatch.setattr(claims, "init_firebase", lambda: object())
    monkeypatch.setattr(claims.firebase_auth, "verify_id_token", reject)

    with pytest.raises(AuthenticationException):
        claims.verify_claims("a.b.c")


def test_init_firebase_requires_service_account(monkeypatch):
    monkeypatch.setattr(admin, "firebase_app", None)
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_B64", "")
    monkeypatch.setattr(settings, "FIREBASE_AUTH_EMULATOR_HOST", "")

    with pytest.raises(ConfigurationException):
        admin.init_firebase()


def test_init_firebase_against_emulator_needs_no_credential(monkeypatch):
    calls = []

    def fake_initialize_app(credential=None, options=None, name="[DEFAULT]"):
        calls.append({"credential": credential, "options": options})
        return "emulator-app"

    monkeypatch.setattr(admin, "firebase_app", None)
    monkeypatch.setattr(settings, "FIREBASE_SERVICE_ACCOUNT_B64", "")
    monkeypatch.setattr(settings, "FIREBASE_AUTH_EMULATOR_HOST", "localhost:9099")
    monkeypatch.setattr(settings, "FIREBASE_PROJECT_ID", "demo-qa")
    monkeypatch.setattr(admin.firebase_admin, "initialize_app", fake_initialize_app)

    assert admin.init_firebase() == "emulator-app"
    assert admin.init_firebase() == "emulator-app"
    assert calls == [{"credential": None, "options": {"projectId": "demo-qa"}}]


def test_mint_session_exchanges_custom_token(monkeypatch, identity_client, fake_session):
    monkeypatch.setattr(admin, "init_firebase", lambda: object())
    monkeypatch.setattr(
        admin.firebase_auth, "create_custom_token",
        lambda uid, claims=None, app=None: f"custom-{uid}".encode("utf-8"),
    )
    fake_session.add("accounts:signInWithCustomToken", sign_in_body(uid="svc-user"))

    session = admin.mint_session(identity_client, "svc-user", {"role": "admin"})

    assert fake_session.calls[0]["json"]["token"] == "custom-svc-user"
    assert session.local_id == "svc-user"


def test_create_custom_token_bad_uid(monkeypatch):
    def reject(uid, claims=None, app=None):
        raise ValueError("uid must be a string between 1 and 128 characters")

    monkeypatch.setattr(admin, "init_firebase", lambda: object())
    monkeypatch.setattr(admin.firebase_auth, "create_custom_token", reject)

    with pytest.raises(ValidationException):
        admin.create_custom_token("")
