"""Key resolution — map an envelope's key identifier to a trusted key."""

from __future__ import annotations

import structlog
from railway import ErrorCode
from railway.result import Result

from dcc_verifier.domain.models import ResolvedKey
from dcc_verifier.domain.ports import KeyStore

log = structlog.get_logger()


def resolve_key(kid: bytes | None, store: KeyStore) -> Result[ResolvedKey]:
    """
    Look up the signer's public key.

    An envelope without a kid cannot name its signer, so the store is not
    consulted at all in that case.
    """
    if kid is None:
        log.info("signature.no_kid")
        return Result.failure(ErrorCode.NOT_FOUND, "envelope carries no key identifier")
    return store.lookup(kid).peek_failure(
        lambda failure: log.info("signature.key_not_found", kid=kid.hex())
    )
