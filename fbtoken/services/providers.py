# fbtoken/services/providers.py
"""
Service provider module for dependency injection.
"""
from typing import Optional

from fbtoken.services.identity_toolkit import IdentityToolkitClient
from fbtoken.services.token_cache import TokenCache, TokenManager

_client: Optional[IdentityToolkitClient] = None


def get_identity_client() -> IdentityToolkitClient:
    global _client
    if _client is None:
        _client = IdentityToolkitClient()
    return _client


def get_token_cache() -> TokenCache:
    return TokenCache()


def get_token_manager() -> TokenManager:
    return TokenManager(get_identity_client(), get_token_cache())
