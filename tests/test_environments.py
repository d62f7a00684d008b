import json
from datetime import datetime, timezone

import pytest
from dotenv import dotenv_values

from fbtoken.core.config import settings
from fbtoken.core.exceptions import EnvironmentFileException, ValidationException
from fbtoken.domain.models.token import AuthSession
from fbtoken.services.environments import (
    REST_CLIENT_SETTINGS_KEY,
    export_session,
    postman_variables,
    write_dotenv,
    write_postman_environment,
    write_rest_client_environment,
)


@pytest.fixture
def session():
    return AuthSession(
        id_token="header.payload.signature",
        refresh_token="refresh-1",
        expires_in=3600,
        local_id="uid-123",
        email="tester@example.com",
        obtained_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def test_postman_environment_created_with_secret_tokens(tmp_path, session):
    path = tmp_path / "firebase.postman_environment.json"

    export_session("postman", path, session, name="Staging")

    data = json.loads(path.read_text())
    assert data["name"] == "Staging"
    assert data["_postman_variable_scope"] == "environment"
    assert data["_postman_exported_using"] == "fbtoken"
    values = {v["key"]: v for v in data["values"]}
    assert values["idToken"]["value"] == "header.payload.signature"
    assert values["idToken"]["type"] == "secret"
    assert values["refreshToken"]["type"] == "secret"
    assert values["localId"]["type"] == "default"
    assert values["idTokenExpiresAt"]["value"] == str(int(datetime(2024, 1, 1, 1, tzinfo=timezone.utc).timestamp() * 1000))


def test_postman_environment_keeps_other_variables(tmp_path):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({
        "id": "5f1c",
        "name": "Local",
        "values": [
            {"key": "baseUrl", "value": "http://localhost:8000", "type": "default", "enabled": True},
            {"key": "idToken", "value": "old", "type": "default", "enabled": False},
        ],
        "_postman_variable_scope": "environment",
    }))

    write_postman_environment(path, {"idToken": "new.token.value"})

    data = json.loads(path.read_text())
    assert data["id"] == "5f1c"
    assert data["name"] == "Local"
    assert [v["key"] for v in data["values"]] == ["baseUrl", "idToken"]
    assert data["values"][1] == {"key": "idToken", "value": "new.token.value", "type": "secret", "enabled": True}


def test_postman_environment_rejects_other_json(tmp_path):
    path = tmp_path / "env.json"
    path.write_text(json.dumps({"values": "nope"}))
    with pytest.raises(EnvironmentFileException):
        write_postman_environment(path, {"idToken": "x"})


def test_rest_client_settings_upserts_environment(tmp_path, session):
    path = tmp_path / ".vscode" / "settings.json"
    path.parent.mkdir()
    path.write_text(json.dumps({
        "editor.tabSize": 4,
        REST_CLIENT_SETTINGS_KEY: {"$shared": {"baseUrl": "http://localhost"}, "dev": {"idToken": "old"}},
    }))

    export_session("rest-client", path, session, name="dev")

    data = json.loads(path.read_text())
    assert data["editor.tabSize"] == 4
    environments = data[REST_CLIENT_SETTINGS_KEY]
    assert environments["$shared"] == {"baseUrl": "http://localhost"}
    assert environments["dev"]["idToken"] == "header.payload.signature"
    assert environments["dev"]["localId"] == "uid-123"


def test_rest_client_settings_invalid_json(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{ // comments are not JSON\n}")
    with pytest.raises(EnvironmentFileException) as exc_info:
        write_rest_client_environment(path, "dev", {"idToken": "x"})
    assert exc_info.value.details["path"] == str(path)


def test_dotenv_written_and_updated(tmp_path):
    path = tmp_path / ".env"
    path.write_text("BASE_URL=http://localhost\nFIREBASE_ID_TOKEN=old\n")

    write_dotenv(path, {"FIREBASE_ID_TOKEN": "new.token.value", "FIREBASE_UID": "uid-123"})

    values = dotenv_values(path)
    assert values["BASE_URL"] == "http://localhost"
    assert values["FIREBASE_ID_TOKEN"] == "new.token.value"
    assert values["FIREBASE_UID"] == "uid-123"


def test_export_with_prefix_to_new_dotenv(tmp_path, session):
    path = tmp_path / "nested" / "test.env"

    written = export_session("dotenv", path, session, key_prefix="FB_")

    assert set(written) == {"FB_idToken", "FB_refreshToken", "FB_localId", "FB_email", "FB_idTokenExpiresAt"}
    assert dotenv_values(path)["FB_idToken"] == "header.payload.signature"


def test_unknown_target(tmp_path, session):
    with pytest.raises(ValidationException):
        export_session("insomnia", tmp_path / "x.json", session)


def test_invalid_variable_name(tmp_path):
    with pytest.raises(ValidationException):
        write_dotenv(tmp_path / ".env", {"bad key": "x"})


def test_postman_export_carries_api_key_and_test_user(tmp_path, session, test_user):
    path = tmp_path / "env.json"

    written = export_session("postman", path, session, key_prefix="dev_")

    values = {v["key"]: v for v in json.loads(path.read_text())["values"]}
    assert set(written) == set(values)
    assert values["dev_firebaseApiKey"]["value"] == "test-api-key"
    assert values["dev_firebaseApiKey"]["type"] == "secret"
    assert values["dev_password"]["type"] == "secret"
    assert values["dev_email"]["type"] == "default"


def test_postman_variables_without_test_user(session, monkeypatch):
    monkeypatch.setattr(settings, "FIREBASE_API_KEY", "")
    monkeypatch.setattr(settings, "FIREBASE_AUTH_EMULATOR_HOST", "localhost:9099")

    variables = postman_variables(session)

    assert variables["firebaseApiKey"] == "fake-api-key"
    assert "password" not in variables
    # the session's own email is kept
    assert variables["email"] == "tester@example.com"


def test_rest_client_export_has_no_api_key(tmp_path, session):
    path = tmp_path / "settings.json"
    written = export_session("rest-client", path, session, name="dev")
    assert "firebaseApiKey" not in written
