"""
COSE adapter — single-signer envelope parsing and signature verification.

Adapter layer, built on:
  - cbor2: COSE_Sign1 structure and header decoding
  - cryptography (PyCA): ECDSA verification

Envelope layout (RFC 8152, tag 18):

    COSE_Sign1 = [
        protected:   bstr .cbor header_map   (1: alg, 4: kid)
        unprotected: header_map
        payload:     bstr                    (CWT claims, see cbor_document)
        signature:   bstr                    (raw r || s)
    ]

The signing input is rebuilt from the protected header bytes exactly as
received, never from a re-serialized header map:

    Sig_structure = ["Signature1", protected, external_aad = b"", payload]
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import cbor2
import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature
from railway.result import Result

from dcc_verifier.domain.errors import EnvelopeFormatError, UnsupportedAlgorithmError, capture
from dcc_verifier.domain.models import ResolvedKey, SignedEnvelope

log = structlog.get_logger()

COSE_SIGN1_TAG = 18
COSE_SIGN_TAG = 98
CWT_TAG = 61

HEADER_ALGORITHM = 1
HEADER_KID = 4


@dataclass(frozen=True, slots=True)
class _EcAlgorithm:
    name: str
    hash_type: type[hashes.HashAlgorithm]
    curve_type: type[ec.EllipticCurve]
    coordinate_size: int


# Elliptic-curve profiles deployed by the certificate scheme.
ALGORITHMS: dict[int, _EcAlgorithm] = {
    -7: _EcAlgorithm("ES256", hashes.SHA256, ec.SECP256R1, 32),
    -35: _EcAlgorithm("ES384", hashes.SHA384, ec.SECP384R1, 48),
    -36: _EcAlgorithm("ES512", hashes.SHA512, ec.SECP521R1, 66),
}


# ─────────────────────── Envelope parsing ───────────────────────


def _is_array(item: Any) -> bool:
    return isinstance(item, Sequence) and not isinstance(item, (str, bytes, bytearray))


def _unwrap(item: Any) -> Sequence[Any]:
    """
    Accept tag 18 (optionally inside a CWT tag 61) or an untagged array.

    Recent cbor2 releases decode tagged content as immutable containers
    (tuple, frozendict), so arrays and maps are checked by ABC.
    """
    if isinstance(item, cbor2.CBORTag) and item.tag == CWT_TAG:
        item = item.value
    if isinstance(item, cbor2.CBORTag):
        if item.tag == COSE_SIGN_TAG:
            raise EnvelopeFormatError("multi-signer COSE_Sign messages are not supported")
        if item.tag != COSE_SIGN1_TAG:
            raise EnvelopeFormatError(f"unexpected CBOR tag {item.tag}")
        item = item.value
    if not _is_array(item) or len(item) != 4:
        raise EnvelopeFormatError("COSE_Sign1 must be a 4-element array")
    return item


def _decode_protected(protected: bytes) -> Mapping[Any, Any]:
    if not protected:
        return {}
    try:
        header = cbor2.loads(protected)
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise EnvelopeFormatError(f"undecodable protected header: {e}") from e
    if not isinstance(header, Mapping):
        raise EnvelopeFormatError("protected header is not a map")
    return header


def _parse(data: bytes) -> SignedEnvelope:
    try:
        item = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise EnvelopeFormatError(f"not a CBOR message: {e}") from e

    protected, unprotected, payload, signature = _unwrap(item)
    if not isinstance(protected, bytes):
        raise EnvelopeFormatError("protected header must be a byte string")
    if not isinstance(unprotected, Mapping):
        raise EnvelopeFormatError("unprotected header must be a map")
    if payload is None:
        raise EnvelopeFormatError("detached payloads are not supported")
    if not isinstance(payload, bytes):
        raise EnvelopeFormatError("payload must be a byte string")
    if not isinstance(signature, bytes):
        raise EnvelopeFormatError("signature must be a byte string")

    header = _decode_protected(protected)
    algorithm = header.get(HEADER_ALGORITHM)
    if algorithm is not None and not isinstance(algorithm, int):
        raise EnvelopeFormatError(f"algorithm identifier must be an integer, got {algorithm!r}")

    kid = header.get(HEADER_KID)
    if kid is None:
        kid = unprotected.get(HEADER_KID)
        if kid is not None:
            log.debug("envelope.kid_unprotected")
    if kid is not None and not isinstance(kid, bytes):
        raise EnvelopeFormatError("key identifier must be a byte string")

    log.debug(
        "envelope.parsed",
        algorithm=algorithm,
        kid=kid.hex() if kid else None,
        payload_bytes=len(payload),
    )
    return SignedEnvelope(
        protected_header=protected,
        payload=payload,
        signature=signature,
        algorithm=algorithm,
        kid=kid,
    )


def parse_envelope(data: bytes) -> Result[SignedEnvelope]:
    """
    Decode a COSE_Sign1 message.

    Returns Result.failure(VALIDATION_ERROR, ...) carrying an
    EnvelopeFormatError when the bytes are not a single-signer envelope.
    """
    return capture(lambda: _parse(data), "envelope parsing")


# ─────────────────────── Signature verification ───────────────────────


def signing_input(envelope: SignedEnvelope) -> bytes:
    """Canonical Sig_structure bytes the issuer signed."""
    return cbor2.dumps(
        ["Signature1", envelope.protected_header, b"", envelope.payload],
        canonical=True,
    )


def _verify(envelope: SignedEnvelope, key: ResolvedKey) -> bool:
    algorithm = ALGORITHMS.get(envelope.algorithm) if envelope.algorithm is not None else None
    if algorithm is None:
        raise UnsupportedAlgorithmError(f"unsupported signature algorithm {envelope.algorithm}")

    public_key = key.public_key
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise UnsupportedAlgorithmError(
            f"{algorithm.name} needs an EC key, got {type(public_key).__name__}"
        )
    if not isinstance(public_key.curve, algorithm.curve_type):
        raise UnsupportedAlgorithmError(
            f"{algorithm.name} needs curve {algorithm.curve_type.name}, key is on {public_key.curve.name}"
        )

    size = algorithm.coordinate_size
    if len(envelope.signature) != 2 * size:
        log.info("signature.bad_length", expected=2 * size, actual=len(envelope.signature))
        return False

    r = int.from_bytes(envelope.signature[:size], "big")
    s = int.from_bytes(envelope.signature[size:], "big")
    try:
        public_key.verify(
            encode_dss_signature(r, s),
            signing_input(envelope),
            ec.ECDSA(algorithm.hash_type()),
        )
    except InvalidSignature:
        log.info("signature.mismatch", kid=key.kid.hex(), algorithm=algorithm.name)
        return False

    log.info("signature.verified", kid=key.kid.hex(), algorithm=algorithm.name)
    return True


def verify_signature(envelope: SignedEnvelope, key: ResolvedKey) -> Result[bool]:
    """
    Check the envelope signature against a resolved public key.

    Success(True) / Success(False) report whether the signature matches.
    A failure carrying UnsupportedAlgorithmError means the check could not
    be attempted (unknown algorithm, or key and algorithm do not fit).
    """
    return capture(lambda: _verify(envelope, key), "signature verification")
