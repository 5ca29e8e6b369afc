"""
Credential records and key-file results.

Secrets are stored as a tagged union keyed by alias. Older stores kept a
bare password string per alias; ``CredentialStore`` upgrades those once at
load time, so everything past the store sees tagged records only.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

# Markers required before key material is trusted for file regeneration.
KEY_ENVELOPE_MARKERS = ("BEGIN", "PRIVATE KEY")


class PasswordCredential(BaseModel):
    """A stored login password."""

    type: Literal["password"] = "password"
    value: str

    def __repr__(self) -> str:
        return "PasswordCredential(value=**********)"


class KeyCredential(BaseModel):
    """Raw private-key material."""

    type: Literal["key"] = "key"
    value: str

    @property
    def has_envelope(self) -> bool:
        return has_key_envelope(self.value)

    def __repr__(self) -> str:
        return "KeyCredential(value=**********)"


CredentialRecord = Annotated[
    Union[PasswordCredential, KeyCredential],
    Field(discriminator="type"),
]

credential_adapter: TypeAdapter[PasswordCredential | KeyCredential] = TypeAdapter(CredentialRecord)


def has_key_envelope(content: str) -> bool:
    """Check that ``content`` looks like a PEM/OpenSSH private key."""
    return all(marker in content for marker in KEY_ENVELOPE_MARKERS)


class KeyFileStatus(BaseModel):
    """Outcome of writing one key file.

    ``permissions_restricted`` is False when chmod failed; the file is
    still usable, so this is reported instead of raised.
    """

    path: Path
    permissions_restricted: bool = True
    warning: str | None = None


class KeyRegenResult(BaseModel):
    """Per-alias result of a bulk key-file regeneration."""

    alias: str
    status: Literal["success", "failed"]
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "success"
