"""Join key extraction and ordering.

Keys compare byte-wise, field by field, in the configured key order. A key
position that points past the end of a record holds ``MISSING_KEY``, which
never matches anything (not even another ``MISSING_KEY``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Sequence, Tuple, Union

from mergejoin.lib.records import MISSING, Record

__all__ = [
    "MISSING_KEY",
    "Key",
    "Ordering",
    "Comparator",
    "BytewiseComparator",
    "IgnoreCaseComparator",
    "get_comparator",
    "extract",
    "order",
    "compare",
    "keys_match",
]


class _MissingKey:
    _instance = None

    def __new__(cls) -> "_MissingKey":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING_KEY"


MISSING_KEY = _MissingKey()

KeyPart = Union[bytes, _MissingKey]


class Ordering(IntEnum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


@dataclass(frozen=True)
class Key:
    """Ordered tuple of normalized key components."""

    parts: Tuple[KeyPart, ...]

    def __len__(self) -> int:
        return len(self.parts)

    @property
    def complete(self) -> bool:
        """False when any component came from a missing field."""
        return all(part is not MISSING_KEY for part in self.parts)

    def __str__(self) -> str:
        return ",".join(
            "<missing>" if part is MISSING_KEY
            else part.decode("utf-8", "backslashreplace")  # type: ignore[union-attr]
            for part in self.parts
        )


class Comparator:
    """Turns field text into the bytes that keys compare on.

    Subclasses change collation without touching the engine.
    """

    name = "bytewise"

    def normalize(self, value: str) -> bytes:
        return value.encode("utf-8", "surrogateescape")


class BytewiseComparator(Comparator):
    name = "bytewise"


class IgnoreCaseComparator(Comparator):
    """ASCII case-insensitive comparison (``join -i``)."""

    name = "ignore-case"

    def normalize(self, value: str) -> bytes:
        return value.encode("utf-8", "surrogateescape").lower()


_COMPARATORS: Dict[str, Comparator] = {
    BytewiseComparator.name: BytewiseComparator(),
    IgnoreCaseComparator.name: IgnoreCaseComparator(),
}

BYTEWISE = _COMPARATORS["bytewise"]


def get_comparator(name: str) -> Comparator:
    """Look up a comparator strategy by name."""
    try:
        return _COMPARATORS[name]
    except KeyError:
        valid = ", ".join(sorted(_COMPARATORS))
        raise ValueError(f"Unknown comparator '{name}' (expected one of: {valid})")


def extract(
    record: Record, key_indices: Sequence[int], comparator: Comparator = BYTEWISE
) -> Key:
    """Build the key of ``record`` from 0-based field indices."""
    parts = []
    for i in key_indices:
        value = record.field(i)
        if value is MISSING:
            parts.append(MISSING_KEY)
        else:
            parts.append(comparator.normalize(value))  # type: ignore[arg-type]
    return Key(tuple(parts))


def order(a: Key, b: Key) -> Ordering:
    """Total preorder used to check that a side is sorted.

    Missing components sort before any present value and tie with each
    other; a key that is a prefix of a longer one sorts first.
    """
    for x, y in zip(a.parts, b.parts):
        if x is MISSING_KEY or y is MISSING_KEY:
            if x is y:
                continue
            return Ordering.LESS if x is MISSING_KEY else Ordering.GREATER
        if x < y:  # type: ignore[operator]
            return Ordering.LESS
        if x > y:  # type: ignore[operator]
            return Ordering.GREATER
    if len(a) != len(b):
        return Ordering.LESS if len(a) < len(b) else Ordering.GREATER
    return Ordering.EQUAL


def compare(a: Key, b: Key) -> Ordering:
    """Compare a left key with a right key for merging.

    Same as :func:`order`, except that keys which only tie because of
    missing components are reported as LESS so they never pair.
    """
    result = order(a, b)
    if result is Ordering.EQUAL and not (a.complete and b.complete):
        return Ordering.LESS
    return result


def keys_match(a: Key, b: Key) -> bool:
    return compare(a, b) is Ordering.EQUAL
