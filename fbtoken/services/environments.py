# fbtoken/services/environments.py
"""
Write session values into REST-client environments: a Postman environment file,
the VS Code REST Client settings, or a dotenv file. Existing entries are kept,
ours are inserted or overwritten.
"""
import json
from pathlib import Path
from typing import Dict, Union

from dotenv import set_key
from pydantic import ValidationError

from fbtoken.core.config import settings
from fbtoken.core.exceptions import EnvironmentFileException, ValidationException
from fbtoken.core.logging import get_logger
from fbtoken.core.validators import is_valid_variable_name
from fbtoken.domain.models.environment import PostmanEnvironment
from fbtoken.domain.models.token import AuthSession

logger = get_logger("environments")

REST_CLIENT_SETTINGS_KEY = "rest-client.environmentVariables"
SECRET_KEY_MARKERS = ("token", "apikey", "password")
TARGETS = ("postman", "rest-client", "dotenv")

PathLike = Union[str, Path]


def _check_variables(variables: Dict[str, str]) -> None:
    invalid = [key for key in variables if not is_valid_variable_name(key)]
    if invalid:
        raise ValidationException("Invalid environment variable name", details={"keys": invalid})


def is_secret_key(key: str) -> bool:
    return any(marker in key.lower() for marker in SECRET_KEY_MARKERS) and not key.endswith("ExpiresAt")


def load_postman_environment(path: PathLike) -> PostmanEnvironment:
    path = Path(path)
    try:
        return PostmanEnvironment.model_validate_json(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise EnvironmentFileException(f"Cannot read Postman environment: {e.strerror}", path=str(path)) from e
    except ValidationError as e:
        raise EnvironmentFileException("Not a Postman environment file", path=str(path),
                                       details={"errors": e.error_count()}) from e


def save_postman_environment(path: PathLike, environment: PostmanEnvironment) -> None:
    path = Path(path)
    environment.touch()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(environment.model_dump(by_alias=True, exclude_none=True), indent="\t"),
        encoding="utf-8",
    )


def write_postman_environment(path: PathLike, variables: Dict[str, str], name: str = None) -> PostmanEnvironment:
    """Upsert variables into a Postman environment file, creating it when missing."""
    _check_variables(variables)
    path = Path(path)
    if path.exists():
        environment = load_postman_environment(path)
        if name:
            environment.name = name
    else:
        environment = PostmanEnvironment(name=name or settings.ENVIRONMENT_NAME)

    for key, value in variables.items():
        environment.set(key, value, secret=is_secret_key(key))

    save_postman_environment(path, environment)
    logger.info(f"Wrote {len(variables)} variables to Postman environment {path}")
    return environment


def write_rest_client_environment(settings_path: PathLike, environment: str, variables: Dict[str, str]) -> dict:
    """
    Upsert variables under ``rest-client.environmentVariables.<environment>``
    in a VS Code settings.json.
    """
    _check_variables(variables)
    path = Path(settings_path)
    data = {}
    if path.exists():
        raw = path.read_text(encoding="utf-8")
        if raw.strip():
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise EnvironmentFileException(
                    f"settings.json is not valid JSON (line {e.lineno})", path=str(path)
                ) from e
        if not isinstance(data, dict):
            raise EnvironmentFileException("settings.json must contain a JSON object", path=str(path))

    environments = data.setdefault(REST_CLIENT_SETTINGS_KEY, {})
    if not isinstance(environments, dict):
        raise EnvironmentFileException(f"'{REST_CLIENT_SETTINGS_KEY}' must be an object", path=str(path))
    environments.setdefault(environment, {}).update(variables)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=4), encoding="utf-8")
    logger.info(f"Wrote {len(variables)} variables to REST Client environment '{environment}' in {path}")
    return data


def write_dotenv(path: PathLike, variables: Dict[str, str]) -> None:
    _check_variables(variables)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.touch(exist_ok=True)
    for key, value in variables.items():
        success, _, _ = set_key(str(path), key, value, quote_mode="never")
        if not success:
            raise EnvironmentFileException(f"Could not write {key}", path=str(path))
    logger.info(f"Wrote {len(variables)} variables to {path}")


def postman_variables(session: AuthSession, key_prefix: str = "", token_key: str = None) -> Dict[str, str]:
    """
    Session variables plus what the generated collection reads besides them:
    `firebaseApiKey`, and the test user's `email`/`password` for its pre-request sign-in.
    """
    variables = {}
    api_key = settings.effective_api_key()
    if api_key:
        variables[f"{key_prefix}firebaseApiKey"] = api_key
    if settings.TEST_USER_EMAIL:
        variables[f"{key_prefix}email"] = settings.TEST_USER_EMAIL
    if settings.TEST_USER_PASSWORD:
        variables[f"{key_prefix}password"] = settings.TEST_USER_PASSWORD
    variables.update(
        session.to_environment(prefix=key_prefix, token_key=token_key or settings.ENVIRONMENT_TOKEN_KEY)
    )
    return variables


def export_session(
    target: str,
    path: PathLike,
    session: AuthSession,
    name: str = None,
    key_prefix: str = "",
    token_key: str = None,
) -> Dict[str, str]:
    """
    Store the session in the given REST-client environment and return what was written.
    """
    variables = session.to_environment(prefix=key_prefix, token_key=token_key or settings.ENVIRONMENT_TOKEN_KEY)

    if target == "postman":
        variables = postman_variables(session, key_prefix=key_prefix, token_key=token_key)
        write_postman_environment(path, variables, name=name)
    elif target == "rest-client":
        write_rest_client_environment(path, name or settings.ENVIRONMENT_NAME, variables)
    elif target == "dotenv":
        write_dotenv(path, variables)
    else:
        raise ValidationException(
            f"Unknown environment target '{target}'", details={"supported": list(TARGETS)}
        )
    return variables
