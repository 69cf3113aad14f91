"""
Text decoder adapter — scheme prefix handling and base45 decoding.

Uses the `base45` package (RFC 9285 alphabet "0-9A-Z $%*+-./:").
A QR payload looks like:

    HC1:NCFOXN%TS3DH3ZSUZK+.V0ETD%65NL-AH...
    └──┘└────────────── base45 ───────────────┘
    prefix

Every violation (missing prefix, foreign character, dangling single
character, group overflow) surfaces as a DecodeError.
"""

from __future__ import annotations

import base45
from railway.result import Result

from dcc_verifier.domain.errors import DecodeError, capture

SCHEME_PREFIX = "HC1:"


def _strip(raw_text: str, prefix: str) -> str:
    if not raw_text.startswith(prefix):
        raise DecodeError(f"missing scheme prefix {prefix!r}")
    return raw_text[len(prefix):]


def _decode(text: str) -> bytes:
    for position, char in enumerate(text):
        if char not in base45.BASE45_CHARSET:
            raise DecodeError(f"invalid base45 text: character outside the alphabet at position {position}")
    try:
        return base45.b45decode(text)
    except (ValueError, KeyError, IndexError) as e:
        raise DecodeError(f"invalid base45 text: {e}") from e


def strip_scheme_prefix(raw_text: str, prefix: str = SCHEME_PREFIX) -> Result[str]:
    """Remove the scheme prefix, failing with DecodeError when it is absent."""
    return capture(lambda: _strip(raw_text, prefix), "text decoding")


def decode_text(text: str) -> Result[bytes]:
    """Decode base45 text into the raw (compressed) bytes."""
    return capture(lambda: _decode(text), "text decoding")


def encode_text(data: bytes) -> str:
    """Inverse of decode_text; used to produce QR payloads."""
    return base45.b45encode(data).decode("ascii")
