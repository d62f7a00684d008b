from fastapi import APIRouter, Depends
from typing import Optional

from fbtoken.core.config import settings
from fbtoken.domain.models.environment import PostmanEnvironment
from fbtoken.services.environments import is_secret_key, postman_variables
from fbtoken.services.postman_collection import build_collection
from fbtoken.services.providers import get_token_manager

router = APIRouter()


@router.get("/collection")
def get_collection(name: str = "Firebase Auth", token_key: Optional[str] = None):
    """
    Postman collection with the sign-up, sign-in, refresh, lookup and delete requests.
    """
    return build_collection(name=name, token_key=token_key or settings.ENVIRONMENT_TOKEN_KEY)


@router.post("/environments/postman")
def get_postman_environment(
    name: Optional[str] = None,
    prefix: str = "",
    force: bool = False,
    manager=Depends(get_token_manager),
):
    """
    Postman environment holding the test user's current token, ready to import.
    """
    session = manager.get_session(force=force)
    environment = PostmanEnvironment(name=name or settings.ENVIRONMENT_NAME)
    for key, value in postman_variables(session, key_prefix=prefix).items():
        environment.set(key, value, secret=is_secret_key(key))
    environment.touch()
    return environment.model_dump(by_alias=True, exclude_none=True)
