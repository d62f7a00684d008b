# fbtoken/services/postman_collection.py
"""
Postman collection with the sign-up / sign-in / refresh / lookup / delete requests
and the scripts that copy the returned tokens into the active environment.
"""
import uuid
from string import Template
from typing import Any, Dict, List, Optional

from fbtoken.core.config import settings
from fbtoken.core.exceptions import ValidationException
from fbtoken.core.validators import is_valid_variable_name

POSTMAN_SCHEMA = "https://schema.getpostman.com/json/collection/v2.1.0/collection.json"

_SIGN_IN_TEST = Template("""\
const body = pm.response.json();
if (pm.response.code === 200 && body.idToken) {
    pm.environment.set("$token_key", body.idToken);
    pm.environment.set("refreshToken", body.refreshToken);
    pm.environment.set("localId", body.localId);
    pm.environment.set("${token_key}ExpiresAt", String(Date.now() + Number(body.expiresIn) * 1000));
}
pm.test("token issued", function () {
    pm.expect(body.idToken, JSON.stringify(body.error || {})).to.be.a("string");
});
""")

_REFRESH_TEST = Template("""\
const body = pm.response.json();
if (pm.response.code === 200 && body.id_token) {
    pm.environment.set("$token_key", body.id_token);
    pm.environment.set("refreshToken", body.refresh_token);
    pm.environment.set("${token_key}ExpiresAt", String(Date.now() + Number(body.expires_in) * 1000));
}
""")

_DELETE_TEST = Template("""\
if (pm.response.code === 200) {
    pm.environment.unset("$token_key");
    pm.environment.unset("refreshToken");
    pm.environment.unset("localId");
    pm.environment.unset("${token_key}ExpiresAt");
}
""")

_PRE_REQUEST = Template("""\
const url = pm.request.url.toString();
const isAuthCall = url.indexOf("identitytoolkit") !== -1 || url.indexOf("securetoken") !== -1;
const expiresAt = Number(pm.environment.get("${token_key}ExpiresAt") || 0);
const stale = !pm.environment.get("$token_key") || Date.now() > expiresAt - $leeway_ms;
if (!isAuthCall && stale) {
    pm.sendRequest({
        url: pm.collectionVariables.get("identityToolkitUrl") + "/accounts:signInWithPassword?key=" + pm.environment.get("firebaseApiKey"),
        method: "POST",
        header: { "Content-Type": "application/json" },
        body: {
            mode: "raw",
            raw: JSON.stringify({
                email: pm.environment.get("email"),
                password: pm.environment.get("password"),
                returnSecureToken: true
            })
        }
    }, function (err, res) {
        if (err || res.code !== 200) {
            console.error("Firebase sign-in failed", err || res.json());
            return;
        }
        const body = res.json();
        pm.environment.set("$token_key", body.idToken);
        pm.environment.set("refreshToken", body.refreshToken);
        pm.environment.set("localId", body.localId);
        pm.environment.set("${token_key}ExpiresAt", String(Date.now() + Number(body.expiresIn) * 1000));
    });
}
""")


def _check_token_key(token_key: str) -> None:
    if not is_valid_variable_name(token_key):
        raise ValidationException("Invalid environment variable name", details={"keys": [token_key]})


def sign_in_test_script(token_key: str = "idToken") -> str:
    """Postman "Tests" hook storing the ID token returned by signUp/signInWithPassword."""
    _check_token_key(token_key)
    return _SIGN_IN_TEST.substitute(token_key=token_key)


def refresh_test_script(token_key: str = "idToken") -> str:
    _check_token_key(token_key)
    return _REFRESH_TEST.substitute(token_key=token_key)


def delete_test_script(token_key: str = "idToken") -> str:
    _check_token_key(token_key)
    return _DELETE_TEST.substitute(token_key=token_key)


def pre_request_script(token_key: str = "idToken", leeway_seconds: Optional[int] = None) -> str:
    """
    Collection-level pre-request hook: signs in with {{email}}/{{password}} when the
    stored token is missing or about to expire.
    """
    _check_token_key(token_key)
    if leeway_seconds is None:
        leeway_seconds = settings.TOKEN_EXPIRY_LEEWAY_SECONDS
    return _PRE_REQUEST.substitute(token_key=token_key, leeway_ms=int(leeway_seconds) * 1000)


def _event(listen: str, script: str) -> Dict[str, Any]:
    return {
        "listen": listen,
        "script": {"type": "text/javascript", "exec": script.splitlines()},
    }


def _json_request(name: str, url_var: str, path: str, raw: str, events: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "name": name,
        "event": events,
        "request": {
            "auth": {"type": "noauth"},
            "method": "POST",
            "header": [{"key": "Content-Type", "value": "application/json"}],
            "body": {"mode": "raw", "raw": raw, "options": {"raw": {"language": "json"}}},
            "url": {
                "raw": f"{{{{{url_var}}}}}{path}?key={{{{firebaseApiKey}}}}",
                "host": [f"{{{{{url_var}}}}}"],
                "path": [path.lstrip("/")],
                "query": [{"key": "key", "value": "{{firebaseApiKey}}"}],
            },
        },
    }


def build_collection(name: str = "Firebase Auth", token_key: str = "idToken") -> Dict[str, Any]:
    """
    Postman v2.1 collection. Requests inside it authenticate with ``Bearer {{<token_key>}}``.
    """
    sign_in_test = sign_in_test_script(token_key)
    credentials_body = '{\n    "email": "{{email}}",\n    "password": "{{password}}",\n    "returnSecureToken": true\n}'
    id_token_body = '{\n    "idToken": "{{%s}}"\n}' % token_key

    refresh = {
        "name": "Refresh token",
        "event": [_event("test", refresh_test_script(token_key))],
        "request": {
            "auth": {"type": "noauth"},
            "method": "POST",
            "header": [{"key": "Content-Type", "value": "application/x-www-form-urlencoded"}],
            "body": {
                "mode": "urlencoded",
                "urlencoded": [
                    {"key": "grant_type", "value": "refresh_token"},
                    {"key": "refresh_token", "value": "{{refreshToken}}"},
                ],
            },
            "url": {
                "raw": "{{secureTokenUrl}}/token?key={{firebaseApiKey}}",
                "host": ["{{secureTokenUrl}}"],
                "path": ["token"],
                "query": [{"key": "key", "value": "{{firebaseApiKey}}"}],
            },
        },
    }

    return {
        "info": {
            "_postman_id": str(uuid.uuid4()),
            "name": name,
            "description": "Obtain Firebase ID tokens for API testing.",
            "schema": POSTMAN_SCHEMA,
        },
        "auth": {
            "type": "bearer",
            "bearer": [{"key": "token", "value": f"{{{{{token_key}}}}}", "type": "string"}],
        },
        "event": [_event("prerequest", pre_request_script(token_key))],
        "variable": [
            {"key": "identityToolkitUrl", "value": settings.identity_toolkit_base_url()},
            {"key": "secureTokenUrl", "value": settings.secure_token_base_url()},
        ],
        "item": [
            _json_request("Sign up", "identityToolkitUrl", "/accounts:signUp", credentials_body,
                          [_event("test", sign_in_test)]),
            _json_request("Sign in", "identityToolkitUrl", "/accounts:signInWithPassword", credentials_body,
                          [_event("test", sign_in_test)]),
            refresh,
            _json_request("Lookup account", "identityToolkitUrl", "/accounts:lookup", id_token_body, []),
            _json_request("Delete account", "identityToolkitUrl", "/accounts:delete", id_token_body,
                          [_event("test", delete_test_script(token_key))]),
        ],
    }
