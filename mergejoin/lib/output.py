"""Output row assembly and writers.

Missing fields become their side's placeholder; present fields, empty ones
included, are written as they are.
"""

from __future__ import annotations

import io
import logging
from typing import IO, Any, Dict, List, Optional, Sequence

import pandas as pd

from mergejoin.lib.config import JoinConfig, OutputField
from mergejoin.lib.cursor import GroupCursor
from mergejoin.lib.engine import JoinedRow, RowKind
from mergejoin.lib.records import MISSING, Field, Record, Side

logger = logging.getLogger(__name__)

__all__ = [
    "OutputAssembler",
    "DelimitedWriter",
    "FrameCollector",
    "DEFAULT_SUFFIXES",
]

DEFAULT_SUFFIXES = ("", "_right")


class OutputAssembler:
    """Turns joined rows into lists of output strings.

    Each side pads its records to a field count so unmatched rows line up.
    The count comes from the config, or from the first record of the side
    (see :meth:`learn_widths`), or is 0 for an empty side.
    """

    def __init__(self, config: JoinConfig) -> None:
        self.config = config
        self._widths: Dict[Side, Optional[int]] = {
            side: config.width_for(side) for side in Side
        }

    def width(self, side: Side) -> int:
        return self._widths[side] or 0

    def learn_widths(self, left: GroupCursor, right: GroupCursor) -> None:
        """Take unset field counts from the first record of each cursor."""
        for side, cursor in ((Side.LEFT, left), (Side.RIGHT, right)):
            if self._widths[side] is not None:
                continue
            record = cursor.peek()
            self._widths[side] = len(record) if record is not None else 0
            logger.debug("%s field count: %d", side.value, self._widths[side])

    def observe(self, record: Record) -> None:
        if self._widths[record.side] is None:
            self._widths[record.side] = len(record)

    def render(self, side: Side, value: Field) -> str:
        if value is MISSING:
            return self.config.placeholder_for(side)
        return value  # type: ignore[return-value]

    def _side_fields(self, side: Side, record: Optional[Record]) -> List[str]:
        width = self.width(side)
        fields = (MISSING,) * width if record is None else record.padded(width)
        return [self.render(side, f) for f in fields]

    def _key_fields(self, row: JoinedRow) -> List[str]:
        side = Side.LEFT if row.left is not None else Side.RIGHT
        record = row.left if row.left is not None else row.right
        return [
            self.render(side, record.field(i) if record is not None else MISSING)
            for i in self.config.keys_for(side)
        ]

    def _selected(self, row: JoinedRow, spec: OutputField) -> List[str]:
        if spec.is_key:
            return self._key_fields(row)
        side = spec.side
        record = row.left if side is Side.LEFT else row.right
        value = record.field(spec.index) if record is not None else MISSING
        return [self.render(side, value)]  # type: ignore[arg-type]

    def assemble(self, row: JoinedRow) -> List[str]:
        """Build the output fields for one joined row."""
        for record in (row.left, row.right):
            if record is not None:
                self.observe(record)
        if self.config.output_fields is None:
            return self._side_fields(Side.LEFT, row.left) + self._side_fields(
                Side.RIGHT, row.right
            )
        out: List[str] = []
        for spec in self.config.output_fields:
            out.extend(self._selected(row, spec))
        return out

    def header(self, left: Optional[Record], right: Optional[Record]) -> List[str]:
        """Assemble the header line pair as if the two lines matched."""
        return self.assemble(JoinedRow(RowKind.MATCH, left, right))

    def column_names(self, left: Sequence[Any], right: Sequence[Any]) -> List[str]:
        """Output column names for named inputs (DataFrames).

        Right-hand names that clash with left-hand names get ``_right``.
        """
        left_names = [f"{name}{DEFAULT_SUFFIXES[0]}" for name in left]
        right_names = [
            f"{name}{DEFAULT_SUFFIXES[1]}" if name in left else str(name) for name in right
        ]
        if self.config.output_fields is None:
            return left_names + right_names
        names: List[str] = []
        for spec in self.config.output_fields:
            if spec.is_key:
                names.extend(left_names[i] for i in self.config.left_keys)
            elif spec.side is Side.LEFT:
                names.append(left_names[spec.index])
            else:
                names.append(right_names[spec.index])
        return names


class DelimitedWriter:
    """Writes rows as delimiter-joined lines to a text or binary stream."""

    def __init__(self, stream: IO[Any], delimiter: str = "\t") -> None:
        self.stream = stream
        self.delimiter = delimiter
        self.rows_written = 0
        self._binary = isinstance(stream, (io.RawIOBase, io.BufferedIOBase)) or "b" in str(
            getattr(stream, "mode", "")
        )

    def write_row(self, fields: Sequence[str]) -> None:
        line = self.delimiter.join(fields) + "\n"
        if self._binary:
            self.stream.write(line.encode("utf-8", "surrogateescape"))
        else:
            self.stream.write(line)
        self.rows_written += 1

    def flush(self) -> None:
        self.stream.flush()


class FrameCollector:
    """Collects rows into a pandas DataFrame."""

    def __init__(self, columns: Optional[Sequence[str]] = None) -> None:
        self.columns = list(columns) if columns is not None else None
        self.rows: List[List[str]] = []
        self.rows_written = 0

    def write_row(self, fields: Sequence[str]) -> None:
        self.rows.append(list(fields))
        self.rows_written += 1

    def flush(self) -> None:
        pass

    def to_frame(self) -> pd.DataFrame:
        if self.columns is not None:
            return pd.DataFrame(self.rows, columns=self.columns)
        return pd.DataFrame(self.rows)
