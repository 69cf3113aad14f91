"""
Key store adapter — an immutable, in-memory map of trusted public keys.

Implements the KeyStore port. Keys are SubjectPublicKeyInfo DER blobs
loaded with cryptography's `load_der_public_key`. A key file the caller
already has on disk can be read with `from_file`; its layout is a JSON
array, one object per signer:

    [
      {"kid": "<base64 key identifier>", "publicKey": "<base64 SPKI DER>"},
      ...
    ]

Nothing here downloads, refreshes or persists keys.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any

import structlog
from cryptography.hazmat.primitives.serialization import load_der_public_key
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from railway import ErrorCode
from railway.result import Result

from dcc_verifier.domain.models import ResolvedKey

log = structlog.get_logger()


class KeyFileEntry(BaseModel):
    """One signer record of a key file."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    kid: bytes = Field(description="Key identifier (base64 in the file)")
    public_key: bytes = Field(alias="publicKey", description="SPKI DER (base64 in the file)")

    @field_validator("kid", "public_key", mode="before")
    @classmethod
    def decode_base64(cls, value: Any) -> bytes:
        if isinstance(value, bytes):
            return value
        if not isinstance(value, str):
            raise ValueError("expected a base64 string")
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64: {e}") from e


_KEY_FILE = TypeAdapter(list[KeyFileEntry])


class InMemoryKeyStore:
    """
    KeyStore backed by a frozen kid → public key mapping.

    Safe to share between threads: the mapping is never mutated after
    construction.
    """

    def __init__(self, keys: Mapping[bytes, Any]) -> None:
        self._keys: Mapping[bytes, Any] = MappingProxyType(dict(keys))

    def __len__(self) -> int:
        return len(self._keys)

    def lookup(self, kid: bytes) -> Result[ResolvedKey]:
        public_key = self._keys.get(kid)
        if public_key is None:
            return Result.failure(ErrorCode.NOT_FOUND, f"no trusted key for kid {kid.hex()}")
        return Result.success(ResolvedKey(kid=kid, public_key=public_key))

    def list_identifiers(self) -> list[bytes]:
        return sorted(self._keys)

    # ─────────────────────── Construction ───────────────────────

    @classmethod
    def from_der(cls, keys: Mapping[bytes, bytes]) -> InMemoryKeyStore:
        """
        Build a store from kid → SPKI DER bytes.

        Raises ValueError when a blob is not a parsable public key.
        """
        loaded: dict[bytes, Any] = {}
        for kid, der in keys.items():
            try:
                loaded[kid] = load_der_public_key(der)
            except (ValueError, TypeError) as e:
                raise ValueError(f"kid {kid.hex()}: unreadable public key ({e})") from e
        return cls(loaded)

    @classmethod
    def from_json(cls, document: str | bytes) -> Result[InMemoryKeyStore]:
        """Parse a key file document; any problem is a CONFIGURATION_ERROR."""
        try:
            entries = _KEY_FILE.validate_json(document)
        except ValidationError as e:
            return Result.failure(
                ErrorCode.CONFIGURATION_ERROR,
                f"invalid key file: {e.error_count()} error(s)",
                e,
            )

        duplicates = {entry.kid for entry in entries if sum(e.kid == entry.kid for e in entries) > 1}
        if duplicates:
            log.warning("keys.duplicate_kid", kids=sorted(kid.hex() for kid in duplicates))

        try:
            store = cls.from_der({entry.kid: entry.public_key for entry in entries})
        except ValueError as e:
            return Result.failure(ErrorCode.CONFIGURATION_ERROR, str(e), e)

        log.info("keys.loaded", count=len(store))
        return Result.success(store)

    @classmethod
    def from_file(cls, path: str | Path) -> Result[InMemoryKeyStore]:
        """Read a key file from local disk."""
        try:
            document = Path(path).read_bytes()
        except OSError as e:
            return Result.failure(
                ErrorCode.CONFIGURATION_ERROR,
                f"cannot read key file {path}: {e.strerror}",
                e,
            )
        return cls.from_json(document).peek_failure(
            lambda failure: log.error("keys.load_failed", path=str(path), reason=failure.message)
        )
