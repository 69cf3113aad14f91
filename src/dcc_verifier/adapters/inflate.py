"""
Payload inflator adapter — streaming zlib/deflate decompression.

The decompressor is drained in bounded chunks into a growable buffer,
so payloads of any size are recovered without a single-shot call.
A stream that is corrupt, or ends before the deflate end-of-stream
marker, is a DecompressionError.
"""

from __future__ import annotations

import zlib

import structlog
from railway.result import Result

from dcc_verifier.domain.errors import DecompressionError, capture

log = structlog.get_logger()

CHUNK_SIZE = 1024


def _drain(data: bytes, chunk_size: int) -> bytes:
    decompressor = zlib.decompressobj()
    output = bytearray()
    pending = data
    try:
        while True:
            chunk = decompressor.decompress(pending, chunk_size)
            output += chunk
            pending = decompressor.unconsumed_tail
            if not chunk and not pending:
                break
        output += decompressor.flush()
    except zlib.error as e:
        raise DecompressionError(f"corrupt deflate stream: {e}") from e

    if not decompressor.eof:
        raise DecompressionError("truncated deflate stream")
    if decompressor.unused_data:
        log.warning("inflate.trailing_bytes", count=len(decompressor.unused_data))
    return bytes(output)


def inflate(data: bytes, chunk_size: int = CHUNK_SIZE) -> Result[bytes]:
    """Decompress a zlib-wrapped deflate stream."""
    return capture(lambda: _drain(data, chunk_size), "decompression")
