import os
from pydantic_settings import BaseSettings
from typing import Optional
from dotenv import load_dotenv
import base64
import json

# Load environment variables
load_dotenv()

DEFAULT_IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
DEFAULT_SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1"
EMULATOR_API_KEY = "fake-api-key"


class Settings(BaseSettings):
    # App settings
    APP_NAME: str = os.getenv("APP_NAME", "Firebase Test Token Service")
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    API_PREFIX: str = os.getenv("API_PREFIX", "/api")
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "2508"))

    # CORS settings
    CORS_ORIGINS: Optional[str] = os.getenv("CORS_ORIGINS")

    # Firebase REST settings
    FIREBASE_API_KEY: str = os.getenv("FIREBASE_API_KEY", "")
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_AUTH_EMULATOR_HOST: str = os.getenv("FIREBASE_AUTH_EMULATOR_HOST", "")
    IDENTITY_TOOLKIT_URL: str = os.getenv("IDENTITY_TOOLKIT_URL", DEFAULT_IDENTITY_TOOLKIT_URL)
    SECURE_TOKEN_URL: str = os.getenv("SECURE_TOKEN_URL", DEFAULT_SECURE_TOKEN_URL)
    REQUEST_CONNECT_TIMEOUT: float = float(os.getenv("REQUEST_CONNECT_TIMEOUT", "3"))
    REQUEST_READ_TIMEOUT: float = float(os.getenv("REQUEST_READ_TIMEOUT", "10"))

    # Firebase Admin settings (custom tokens, verification)
    FIREBASE_SERVICE_ACCOUNT_B64: str = os.getenv("FIREBASE_SERVICE_ACCOUNT_B64", "")

    def get_firebase_credential_dict(self):
        if not self.FIREBASE_SERVICE_ACCOUNT_B64:
            return None
        decoded = base64.b64decode(self.FIREBASE_SERVICE_ACCOUNT_B64)
        return json.loads(decoded)

    # Test user
    TEST_USER_EMAIL: str = os.getenv("TEST_USER_EMAIL", "")
    TEST_USER_PASSWORD: str = os.getenv("TEST_USER_PASSWORD", "")

    # Token cache
    TOKEN_CACHE_PATH: str = os.getenv(
        "TOKEN_CACHE_PATH", os.path.join(os.path.expanduser("~"), ".fbtoken", "session.json")
    )
    TOKEN_EXPIRY_LEEWAY_SECONDS: int = int(os.getenv("TOKEN_EXPIRY_LEEWAY_SECONDS", "60"))

    # REST-client environments
    ENVIRONMENT_TOKEN_KEY: str = os.getenv("ENVIRONMENT_TOKEN_KEY", "idToken")
    ENVIRONMENT_NAME: str = os.getenv("ENVIRONMENT_NAME", "Firebase")

    # Logging settings
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_TO_FILE: bool = os.getenv("LOG_TO_FILE", "False").lower() == "true"
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")

    def uses_emulator(self) -> bool:
        return bool(self.FIREBASE_AUTH_EMULATOR_HOST)

    def identity_toolkit_base_url(self) -> str:
        """
        Base URL for accounts:* calls, routed through the Auth emulator when configured.
        """
        if self.uses_emulator():
            return f"http://{self.FIREBASE_AUTH_EMULATOR_HOST}/identitytoolkit.googleapis.com/v1"
        return self.IDENTITY_TOOLKIT_URL.rstrip("/")

    def secure_token_base_url(self) -> str:
        if self.uses_emulator():
            return f"http://{self.FIREBASE_AUTH_EMULATOR_HOST}/securetoken.googleapis.com/v1"
        return self.SECURE_TOKEN_URL.rstrip("/")

    def effective_api_key(self) -> str:
        """
        The emulator accepts any key, so fall back to a placeholder there.
        """
        if not self.FIREBASE_API_KEY and self.uses_emulator():
            return EMULATOR_API_KEY
        return self.FIREBASE_API_KEY

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }

settings = Settings()
