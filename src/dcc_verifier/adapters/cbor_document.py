"""
Claims document adapter — CBOR payload → StructuredNode tree.

Uses cbor2 for the wire decoding, then converts the native result into
the domain's StructuredNode, which only knows six kinds:

    map, array, text string, integer, byte string, null

Anything else (floats, booleans, undefined, tagged items including the
date-time tags 0 and 1) is a DocumentFormatError, as are truncated
input, bytes left over after the top-level item, and two keys that
collide once normalized to text (e.g. 1 and "1").
"""

from __future__ import annotations

import io
from collections.abc import Mapping, Sequence
from typing import Any

import cbor2
import structlog
from railway.result import Result

from dcc_verifier.domain.document import StructuredNode
from dcc_verifier.domain.errors import DocumentFormatError, capture

log = structlog.get_logger()


def _convert(item: Any, path: str) -> StructuredNode:
    # bool is an int subclass; reject it before the integer branch
    if isinstance(item, bool):
        raise DocumentFormatError(f"{path}: unsupported item type bool")
    if isinstance(item, Mapping):
        entries: dict[str, StructuredNode] = {}
        for key, value in item.items():
            if isinstance(key, bool) or not isinstance(key, (int, str)):
                raise DocumentFormatError(f"{path}: unsupported map key {key!r}")
            name = str(key)
            if name in entries:
                raise DocumentFormatError(f"{path}: duplicate key {name!r}")
            entries[name] = _convert(value, f"{path}.{name}" if path else name)
        return StructuredNode.of_map(entries)
    if isinstance(item, (str, bytes)):
        return StructuredNode.of_text(item) if isinstance(item, str) else StructuredNode.of_bytes(item)
    if isinstance(item, Sequence):
        return StructuredNode.of_array(
            [_convert(element, f"{path}[{index}]") for index, element in enumerate(item)]
        )
    if isinstance(item, int):
        return StructuredNode.of_int(item)
    if item is None:
        return StructuredNode.null()
    raise DocumentFormatError(f"{path or '<root>'}: unsupported item type {type(item).__name__}")


def _decode(payload: bytes) -> StructuredNode:
    stream = io.BytesIO(payload)
    try:
        item = cbor2.CBORDecoder(stream).decode()
    except (cbor2.CBORDecodeError, ValueError) as e:
        raise DocumentFormatError(f"malformed CBOR: {e}") from e

    leftover = len(payload) - stream.tell()
    if leftover:
        raise DocumentFormatError(f"{leftover} trailing bytes after the claims map")

    root = _convert(item, "")
    log.debug("document.decoded", kind=root.kind.value, payload_bytes=len(payload))
    return root


def decode_document(payload: bytes) -> Result[StructuredNode]:
    """Decode the envelope payload into a StructuredNode tree."""
    return capture(lambda: _decode(payload), "document decoding")
