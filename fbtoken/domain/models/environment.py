from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime, timezone
import uuid

EXPORTED_USING = "fbtoken"


class PostmanVariable(BaseModel):
    """One key/value entry of a Postman environment"""
    key: str
    value: str = ""
    type: Literal["default", "secret", "any", "text"] = "default"
    enabled: bool = True

    model_config = ConfigDict(extra="allow")


class PostmanEnvironment(BaseModel):
    """
    Postman environment file (the JSON Postman imports/exports).
    Unknown keys are kept so round-tripping a user's file doesn't drop anything.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Firebase"
    values: List[PostmanVariable] = []
    variable_scope: str = Field("environment", alias="_postman_variable_scope")
    exported_at: Optional[str] = Field(None, alias="_postman_exported_at")
    exported_using: Optional[str] = Field(None, alias="_postman_exported_using")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def get(self, key: str) -> Optional[str]:
        for variable in self.values:
            if variable.key == key:
                return variable.value
        return None

    def set(self, key: str, value: str, secret: bool = False) -> None:
        """Insert or update key, keeping its position when it already exists."""
        var_type = "secret" if secret else "default"
        for variable in self.values:
            if variable.key == key:
                variable.value = value
                variable.type = var_type
                variable.enabled = True
                return
        self.values.append(PostmanVariable(key=key, value=value, type=var_type))

    def touch(self) -> None:
        self.exported_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self.exported_using = EXPORTED_USING
