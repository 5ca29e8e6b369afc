"""
Server records.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_SSH_PORT = 22


class AuthMethod(str, Enum):
    """How a session authenticates."""

    PASSWORD = "password"
    KEY = "key"


class ServerEntry(BaseModel):
    """A saved server, addressed by its alias.

    Unknown keys from older or hand-edited records are kept and written
    back unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    host: str
    user: str
    port: int = Field(default=DEFAULT_SSH_PORT, ge=1, le=65535)
    auth_method: AuthMethod = Field(default=AuthMethod.PASSWORD, alias="authMethod")
    key_path: str | None = Field(default=None, alias="keyPath")

    @model_validator(mode="before")
    @classmethod
    def _infer_auth_method(cls, data: Any) -> Any:
        # Entries written before authMethod existed only carry keyPath.
        if isinstance(data, dict) and "authMethod" not in data and "auth_method" not in data:
            data = dict(data)
            has_key = bool(data.get("keyPath") or data.get("key_path"))
            data["authMethod"] = AuthMethod.KEY if has_key else AuthMethod.PASSWORD
        if isinstance(data, dict) and data.get("port") in ("", None):
            data = dict(data)
            data.pop("port", None)
        return data

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("alias must not be empty")
        if os.sep in value or (os.altsep and os.altsep in value) or value in (".", ".."):
            raise ValueError("alias must not contain path separators")
        return value

    @property
    def target(self) -> str:
        """``user@host`` as passed to ssh."""
        return f"{self.user}@{self.host}"

    @property
    def uses_key(self) -> bool:
        return self.auth_method is AuthMethod.KEY

    def to_record(self) -> dict[str, Any]:
        """Serialize with the on-disk camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.target}:{self.port})"
