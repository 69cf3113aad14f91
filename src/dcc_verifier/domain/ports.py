"""
Ports — Protocol-based interfaces for the collaborators the core consumes.

The core never fetches, stores or refreshes keys. It is handed a key store
and only asks it for one key at a time. Adapters satisfy these contracts
structurally, without inheritance:

  Domain ← Ports (protocols) ← Adapters (implementations)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from railway.result import Result

from dcc_verifier.domain.models import ResolvedKey


@runtime_checkable
class KeyStore(Protocol):
    """
    Port: trusted public keys indexed by key identifier (kid).

    lookup() returns Result.failure(NOT_FOUND, ...) for an unknown kid.
    list_identifiers() is for display and diagnostics only; the decode and
    verify pipeline never calls it.
    """

    def lookup(self, kid: bytes) -> Result[ResolvedKey]: ...

    def list_identifiers(self) -> list[bytes]: ...
