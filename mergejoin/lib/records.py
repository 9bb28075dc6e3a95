"""Record model and delimited-line tokenizer.

A present field is a plain ``str`` (possibly empty). A field the record does
not have is ``MISSING``. The two are never coalesced.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Tuple, Union

__all__ = [
    "MISSING",
    "Field",
    "Side",
    "Record",
    "split_line",
    "decode_line",
    "DEFAULT_DELIMITER",
]

DEFAULT_DELIMITER = "\t"


class _Missing:
    """Singleton marking a field absent from a short record."""

    _instance = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "MISSING"


MISSING = _Missing()

Field = Union[str, _Missing]


class Side(Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def other(self) -> "Side":
        return Side.RIGHT if self is Side.LEFT else Side.LEFT

    @property
    def file_number(self) -> int:
        """1 for LEFT, 2 for RIGHT, as in join's ``-a``/``-o`` syntax."""
        return 1 if self is Side.LEFT else 2


@dataclass(frozen=True)
class Record:
    """One tokenized input line.

    ``position`` is opaque to everything except the cursor that produced the
    record. ``index`` is the 0-based ordinal of the record in its stream.
    """

    fields: Tuple[Field, ...]
    side: Side
    index: int
    position: Any = None

    @classmethod
    def of(
        cls, values: Iterable[Field], side: Side, index: int, position: Any = None
    ) -> "Record":
        return cls(tuple(values), side, index, position)

    def __len__(self) -> int:
        return len(self.fields)

    def field(self, i: int) -> Field:
        """Return field ``i`` (0-based), or ``MISSING`` past the end."""
        if 0 <= i < len(self.fields):
            return self.fields[i]
        return MISSING

    def padded(self, width: int) -> Tuple[Field, ...]:
        """Fields extended with ``MISSING`` up to ``width``."""
        if len(self.fields) >= width:
            return self.fields
        return self.fields + (MISSING,) * (width - len(self.fields))


def decode_line(raw: bytes) -> str:
    # surrogateescape keeps undecodable bytes so they compare and write back unchanged
    return raw.decode("utf-8", "surrogateescape")


def split_line(line: str, delimiter: str = DEFAULT_DELIMITER) -> Tuple[str, ...]:
    """Split one input line into fields.

    Strips a single trailing newline (``\\n`` or ``\\r\\n``). An empty line
    has no fields at all, while a line holding only a delimiter has two empty
    fields.

    Example:
        >>> split_line("a\\t\\n")
        ('a', '')
        >>> split_line("\\n")
        ()
    """
    if line.endswith("\n"):
        line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
    if not line:
        return ()
    return tuple(line.split(delimiter))
