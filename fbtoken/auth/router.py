from fastapi import APIRouter, Depends, Response, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from fbtoken.core.exceptions import AuthenticationException, ValidationException
from fbtoken.core.logging import get_logger
from fbtoken.domain.models.account import (
    AccountInfo,
    Credentials,
    CustomTokenRequest,
    IdTokenRequest,
    RefreshRequest,
    SignUpRequest,
)
from fbtoken.domain.models.token import AuthSession, TokenClaims
from fbtoken.services import admin, claims as claims_service
from fbtoken.services.providers import get_identity_client, get_token_manager

router = APIRouter()
oauth2_scheme = HTTPBearer(auto_error=False)
logger = get_logger("auth")


def get_bearer_token(
    token: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme),
) -> str:
    """
    Firebase ID token from the ``Authorization: Bearer`` header.
    """
    if not token or not token.credentials:
        raise AuthenticationException("Missing bearer token")
    return token.credentials


@router.post("/sign-up", response_model=AuthSession, status_code=status.HTTP_201_CREATED)
def sign_up(body: SignUpRequest, client=Depends(get_identity_client)):
    """
    Create a test user (email/password, or anonymous when neither email nor password is given).
    """
    if body.is_anonymous:
        return client.sign_up_anonymous()
    if not body.email or not body.password:
        raise ValidationException("Email and password are both required, or neither for an anonymous user")
    return client.sign_up(body.email, body.password)


@router.post("/sign-in", response_model=AuthSession)
def sign_in(body: Credentials, client=Depends(get_identity_client)):
    return client.sign_in_with_password(body.email, body.password)


@router.post("/custom-token", response_model=AuthSession)
def custom_token(body: CustomTokenRequest, client=Depends(get_identity_client)):
    """
    Sign in as any uid through a custom token minted with the service account.
    """
    return admin.mint_session(client, body.uid, body.claims)


@router.post("/refresh", response_model=AuthSession)
def refresh(body: RefreshRequest, client=Depends(get_identity_client)):
    return client.refresh(body.refresh_token)


@router.post("/lookup", response_model=AccountInfo)
def lookup(body: IdTokenRequest, client=Depends(get_identity_client)):
    return client.lookup(body.id_token)


@router.delete("/account", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(id_token: str = Depends(get_bearer_token), client=Depends(get_identity_client)):
    """
    Delete the account owning the bearer token.
    """
    client.delete_account(id_token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/claims", response_model=TokenClaims)
def get_claims(verify: bool = False, id_token: str = Depends(get_bearer_token)):
    """
    Decode the bearer token. With ``verify=true`` the signature is checked by the Admin SDK.
    """
    if verify:
        return claims_service.verify_claims(id_token)
    return claims_service.decode_claims(id_token)


@router.get("/test-token", response_model=AuthSession)
def get_test_token(force: bool = False, manager=Depends(get_token_manager)):
    """
    Session of the configured test user, from cache when still valid.
    """
    return manager.get_session(force=force)
