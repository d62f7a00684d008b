import json

import pytest
import requests
from typer.testing import CliRunner

from conftest import error_body, make_id_token, sign_in_body
from fbtoken import cli
from fbtoken.domain.models.token import AuthSession
from fbtoken.services.token_cache import TokenCache

runner = CliRunner()


@pytest.fixture
def cache_path(tmp_path):
    return tmp_path / "session.json"


@pytest.fixture(autouse=True)
def fake_client(monkeypatch, identity_client):
    monkeypatch.setattr(cli, "get_identity_client", lambda: identity_client)
    return identity_client


def invoke(cache_path, *args, **kwargs):
    return runner.invoke(cli.app, ["--cache-path", str(cache_path), *args], **kwargs)


def test_sign_in_prints_token_and_caches(fake_session, cache_path):
    body = sign_in_body()
    fake_session.add("accounts:signInWithPassword", body)

    result = invoke(cache_path, "sign-in", "--email", "tester@example.com", "--password", "568303")

    assert result.exit_code == 0
    assert result.stdout.strip() == body["idToken"]
    assert TokenCache(cache_path).load().id_token == body["idToken"]


def test_sign_in_prompts_for_missing_options(fake_session, cache_path):
    fake_session.add("accounts:signInWithPassword", sign_in_body())

    result = invoke(cache_path, "sign-in", "--json", input="tester@example.com\n568303\n")

    assert result.exit_code == 0
    assert fake_session.calls[0]["json"]["password"] == "568303"
    assert '"local_id": "uid-123"' in result.stdout


def test_sign_in_failure_exits_with_error(fake_session, cache_path):
    fake_session.add("accounts:signInWithPassword", error_body("INVALID_LOGIN_CREDENTIALS"), status_code=400)

    result = invoke(cache_path, "sign-in", "--email", "tester@example.com", "--password", "wrong")

    assert result.exit_code == 1
    assert not cache_path.exists()


def test_sign_up_anonymous_without_cache(fake_session, cache_path):
    fake_session.add("accounts:signUp", sign_in_body(uid="anon"))

    result = invoke(cache_path, "sign-up", "--anonymous", "--no-cache")

    assert result.exit_code == 0
    assert not cache_path.exists()


def test_refresh_uses_cached_refresh_token(fake_session, cache_path):
    TokenCache(cache_path).save(AuthSession(id_token="o.l.d", refresh_token="r1", email="tester@example.com"))
    fake_session.add("/token", {"id_token": "n.e.w", "refresh_token": "r2", "expires_in": "3600", "user_id": "uid-123"})

    result = invoke(cache_path, "refresh")

    assert result.exit_code == 0
    assert result.stdout.strip() == "n.e.w"
    assert fake_session.calls[0]["data"]["refresh_token"] == "r1"
    assert TokenCache(cache_path).load().email == "tester@example.com"


def test_refresh_without_any_token(cache_path):
    result = invoke(cache_path, "refresh")
    assert result.exit_code == 1


def test_claims_of_cached_token(cache_path):
    TokenCache(cache_path).save(AuthSession(id_token=make_id_token(uid="uid-5")))

    result = invoke(cache_path, "claims")

    assert result.exit_code == 0
    assert '"uid": "uid-5"' in result.stdout


def test_delete_clears_cache(fake_session, cache_path):
    TokenCache(cache_path).save(AuthSession(id_token="a.b.c"))
    fake_session.add("accounts:delete", {})

    result = invoke(cache_path, "delete", "--yes")

    assert result.exit_code == 0
    assert not cache_path.exists()


def test_delete_aborted_without_confirmation(fake_session, cache_path):
    TokenCache(cache_path).save(AuthSession(id_token="a.b.c"))

    result = invoke(cache_path, "delete", input="n\n")

    assert result.exit_code != 0
    assert fake_session.calls == []
    assert cache_path.exists()


def test_export_postman(fake_session, cache_path, tmp_path, test_user):
    fake_session.add("accounts:signInWithPassword", sign_in_body())
    env_path = tmp_path / "firebase.postman_environment.json"

    result = invoke(cache_path, "export", "postman", str(env_path), "--name", "QA")

    assert result.exit_code == 0
    data = json.loads(env_path.read_text())
    assert data["name"] == "QA"
    values = {v["key"]: v for v in data["values"]}
    assert "idToken" in values
    assert values["firebaseApiKey"] == {"key": "firebaseApiKey", "value": "test-api-key", "type": "secret", "enabled": True}
    assert values["password"]["type"] == "secret"
    assert values["email"]["value"] == "tester@example.com"


def test_export_postman_covers_collection_variables(fake_session, cache_path, tmp_path, test_user):
    """Every {{variable}} the generated collection reads is present in the exported environment."""
    fake_session.add("accounts:signInWithPassword", sign_in_body())
    env_path = tmp_path / "env.json"
    collection_path = tmp_path / "collection.json"

    assert invoke(cache_path, "collection", str(collection_path)).exit_code == 0
    assert invoke(cache_path, "export", "postman", str(env_path)).exit_code == 0

    collection_text = collection_path.read_text()
    keys = {v["key"] for v in json.loads(env_path.read_text())["values"]}
    for key in ("firebaseApiKey", "email", "password", "idToken", "idTokenExpiresAt"):
        assert key in keys
        assert key in collection_text


def test_export_unknown_target(cache_path, tmp_path):
    TokenCache(cache_path).save(AuthSession(id_token="a.b.c"))

    result = invoke(cache_path, "export", "insomnia", str(tmp_path / "x.json"))

    assert result.exit_code == 1


def test_collection_written(cache_path, tmp_path):
    path = tmp_path / "collection.json"

    result = invoke(cache_path, "collection", str(path), "--name", "QA")

    assert result.exit_code == 0
    assert json.loads(path.read_text())["info"]["name"] == "QA"


def test_custom_token_parses_claims(monkeypatch, fake_session, cache_path):
    captured = {}

    def fake_mint(client, uid, claims=None):
        captured.update(uid=uid, claims=claims)
        return AuthSession(id_token="c.u.s", local_id=uid)

    monkeypatch.setattr(cli.admin, "mint_session", fake_mint)

    result = invoke(cache_path, "custom-token", "--uid", "svc", "--claim", "role=admin", "--claim", "level=3")

    assert result.exit_code == 0
    assert captured == {"uid": "svc", "claims": {"role": "admin", "level": 3}}
    assert result.stdout.strip() == "c.u.s"


def test_token_signs_in_once_then_uses_cache(fake_session, cache_path, test_user):
    fake_session.add("accounts:signInWithPassword", sign_in_body())

    first = invoke(cache_path, "token")
    second = invoke(cache_path, "token")

    assert first.exit_code == second.exit_code == 0
    assert first.stdout.strip() == second.stdout.strip()
    assert len(fake_session.calls) == 1


def test_token_without_test_user(cache_path):
    result = invoke(cache_path, "token")
    assert result.exit_code == 1


def test_lookup_of_cached_token(fake_session, cache_path):
    TokenCache(cache_path).save(AuthSession(id_token="a.b.c"))
    fake_session.add("accounts:lookup", {"users": [{"localId": "uid-123", "email": "tester@example.com"}]})

    result = invoke(cache_path, "lookup")

    assert result.exit_code == 0
    assert fake_session.calls[0]["json"] == {"idToken": "a.b.c"}
    assert '"local_id": "uid-123"' in result.stdout


def test_lookup_network_error_hides_api_key(fake_session, cache_path):
    TokenCache(cache_path).save(AuthSession(id_token="a.b.c"))
    fake_session.add(
        "accounts:lookup",
        exc=requests.ConnectionError("Max retries exceeded with url: /v1/accounts:lookup?key=test-api-key"),
    )

    result = invoke(cache_path, "lookup")

    assert result.exit_code == 1
    assert "test-api-key" not in result.output
