"""
StructuredNode — a generic, typed tree mirroring the decoded CBOR claims.

Exists only between the envelope payload and the typed certificate model.
Map keys are normalized to text, so integer CBOR keys such as -260 or 1
are addressed as "-260" and "1", the same way the textual keys "ver" or
"nam" are.

Accessors never raise. They return Result values:
  - NOT_FOUND          the key / index is absent
  - VALIDATION_ERROR   the node is of another kind than requested
so the model builder can turn every absence into a named field error.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, unique
from types import MappingProxyType
from typing import Any

from railway import ErrorCode
from railway.result import Result


@unique
class NodeKind(Enum):
    MAP = "map"
    ARRAY = "array"
    TEXT = "text"
    INTEGER = "integer"
    BYTES = "bytes"
    NULL = "null"


@dataclass(frozen=True, slots=True)
class StructuredNode:
    """One node of the document tree; `value` depends on `kind`."""

    kind: NodeKind
    value: Any = None

    # ─────────────────────── Construction ───────────────────────

    @staticmethod
    def of_map(entries: Mapping[str, StructuredNode]) -> StructuredNode:
        return StructuredNode(NodeKind.MAP, MappingProxyType(dict(entries)))

    @staticmethod
    def of_array(items: list[StructuredNode]) -> StructuredNode:
        return StructuredNode(NodeKind.ARRAY, tuple(items))

    @staticmethod
    def of_text(text: str) -> StructuredNode:
        return StructuredNode(NodeKind.TEXT, text)

    @staticmethod
    def of_int(number: int) -> StructuredNode:
        return StructuredNode(NodeKind.INTEGER, number)

    @staticmethod
    def of_bytes(data: bytes) -> StructuredNode:
        return StructuredNode(NodeKind.BYTES, bytes(data))

    @staticmethod
    def null() -> StructuredNode:
        return StructuredNode(NodeKind.NULL)

    # ─────────────────────── Typed access ───────────────────────

    def has(self, key: str | int) -> bool:
        return self.kind is NodeKind.MAP and str(key) in self.value

    def get(self, key: str | int) -> Result[StructuredNode]:
        """Child of a map node by textual or integer key."""
        if self.kind is not NodeKind.MAP:
            return self._mismatch(NodeKind.MAP)
        child = self.value.get(str(key))
        if child is None:
            return Result.failure(ErrorCode.NOT_FOUND, f"missing key {str(key)!r}")
        return Result.success(child)

    def at(self, index: int) -> Result[StructuredNode]:
        """Element of an array node."""
        if self.kind is not NodeKind.ARRAY:
            return self._mismatch(NodeKind.ARRAY)
        if not 0 <= index < len(self.value):
            return Result.failure(ErrorCode.NOT_FOUND, f"missing element [{index}]")
        return Result.success(self.value[index])

    def first(self) -> Result[StructuredNode]:
        return self.at(0)

    def as_list(self) -> Result[tuple[StructuredNode, ...]]:
        if self.kind is not NodeKind.ARRAY:
            return self._mismatch(NodeKind.ARRAY)
        return Result.success(self.value)

    def as_text(self) -> Result[str]:
        if self.kind is not NodeKind.TEXT:
            return self._mismatch(NodeKind.TEXT)
        return Result.success(self.value)

    def as_int(self) -> Result[int]:
        if self.kind is not NodeKind.INTEGER:
            return self._mismatch(NodeKind.INTEGER)
        return Result.success(self.value)

    def _mismatch(self, expected: NodeKind) -> Result[Any]:
        return Result.failure(
            ErrorCode.VALIDATION_ERROR,
            f"expected {expected.value}, found {self.kind.value}",
        )

    # ─────────────────────── Conversion ───────────────────────

    def to_native(self) -> Any:
        """Plain Python structure (dict / list / scalars), e.g. for JSON dumps."""
        match self.kind:
            case NodeKind.MAP:
                return {key: child.to_native() for key, child in self.value.items()}
            case NodeKind.ARRAY:
                return [child.to_native() for child in self.value]
            case NodeKind.BYTES:
                return self.value.hex()
        return self.value
