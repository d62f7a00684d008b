# fbtoken/services/admin.py
"""
Firebase Admin SDK access: custom tokens and ID token verification.
"""
from typing import Any, Dict, Optional

import firebase_admin
from firebase_admin import credentials, auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions

from fbtoken.core.config import settings
from fbtoken.core.exceptions import ConfigurationException, ExternalServiceException, ValidationException
from fbtoken.core.logging import get_logger
from fbtoken.domain.models.token import AuthSession

logger = get_logger("admin")

firebase_app = None


def init_firebase():
    """
    Initialize the default Firebase app once. Without a service account this only
    works against the Auth emulator, which needs a project id and no credential.
    """
    global firebase_app
    if firebase_app is not None:
        return firebase_app

    cred_dict = settings.get_firebase_credential_dict()
    if cred_dict:
        cred = credentials.Certificate(cred_dict)
        firebase_app = firebase_admin.initialize_app(cred)
    elif settings.uses_emulator():
        project_id = settings.FIREBASE_PROJECT_ID or "demo-fbtoken"
        firebase_app = firebase_admin.initialize_app(options={"projectId": project_id})
    else:
        raise ConfigurationException(
            "FIREBASE_SERVICE_ACCOUNT_B64 is required for custom tokens and verification"
        )

    logger.info("Firebase Admin initialized")
    return firebase_app


def create_custom_token(uid: str, claims: Optional[Dict[str, Any]] = None) -> str:
    app = init_firebase()
    try:
        token = firebase_auth.create_custom_token(uid, claims or None, app=app)
    except ValueError as e:
        # Bad uid or reserved claim names
        raise ValidationException(str(e), details={"uid": uid}) from e
    except firebase_exceptions.FirebaseError as e:
        raise ExternalServiceException("firebase-admin", details={"error": str(e)}) from e

    if isinstance(token, bytes):
        token = token.decode("utf-8")
    return token


def mint_session(client, uid: str, claims: Optional[Dict[str, Any]] = None) -> AuthSession:
    """
    Sign in as uid without a password: mint a custom token and exchange it for an ID token.
    """
    custom_token = create_custom_token(uid, claims)
    return client.sign_in_with_custom_token(custom_token)
