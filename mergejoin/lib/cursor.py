"""Rewindable record cursors.

A cursor hands out one record at a time and can replay the span between
``mark()`` and its current position. The engine relies on this to build
many-to-many cross products without holding a whole key group in memory.

Implementations:
    ListCursor    -- in-memory rows (tests, small inputs)
    FileCursor    -- seekable binary file; the mark is a byte offset
    StreamCursor  -- non-seekable stream; replay comes from a spill file
    FrameCursor   -- pandas DataFrame, positional
"""

from __future__ import annotations

import logging
import tempfile
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import IO, Any, Optional, Sequence, Tuple, Union

import pandas as pd

from mergejoin.lib.errors import JoinError, SourceReadFailure, UnsupportedCrossJoin
from mergejoin.lib.records import (
    DEFAULT_DELIMITER,
    MISSING,
    Field,
    Record,
    Side,
    decode_line,
    split_line,
)

logger = logging.getLogger(__name__)

__all__ = [
    "GroupCursor",
    "ListCursor",
    "FileCursor",
    "StreamCursor",
    "FrameCursor",
]


class GroupCursor(ABC):
    """Contract every record source must satisfy.

    ``peek()`` returns the current record (``None`` once exhausted) without
    consuming it. ``advance()`` consumes it. ``mark()`` remembers the position
    of the current record and ``rewind_to_mark()`` returns there, so the
    following ``peek``/``advance`` calls reproduce the same records in the
    same order.

    Instrumentation:
        resident: records currently materialized by the cursor
        peak_resident: highest value ``resident`` reached
        reads: records produced, replays included
        rewinds: number of ``rewind_to_mark()`` calls
    """

    def __init__(self, side: Side, name: Optional[str] = None) -> None:
        self.side = side
        self.name = name or side.value
        self.resident = 0
        self.peak_resident = 0
        self.reads = 0
        self.rewinds = 0

    @abstractmethod
    def peek(self) -> Optional[Record]:
        """Return the current record without consuming it."""

    @abstractmethod
    def advance(self) -> None:
        """Move past the current record."""

    @abstractmethod
    def mark(self) -> None:
        """Remember the current position."""

    @abstractmethod
    def rewind_to_mark(self) -> None:
        """Return to the position saved by ``mark()``."""

    def release_mark(self) -> None:
        """Forget the mark; the cursor may drop any replay state."""

    @property
    def position_index(self) -> int:
        """0-based index of the next record this cursor will produce."""
        return 0

    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "GroupCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class _SingleRecordCursor(GroupCursor):
    """Shared peek/advance logic for cursors that hold one record at a time.

    Subclasses implement ``_fetch`` (read the record at the read position and
    move past it), ``_tell``/``_seek`` (save and restore the read position).
    """

    def __init__(self, side: Side, name: Optional[str] = None) -> None:
        super().__init__(side, name)
        self._current: Optional[Record] = None
        self._loaded = False
        self._next_index = 0
        self._mark: Optional[Tuple[Any, int]] = None

    @abstractmethod
    def _fetch(self, index: int) -> Optional[Record]:
        ...

    @abstractmethod
    def _tell(self) -> Any:
        ...

    @abstractmethod
    def _seek(self, position: Any) -> None:
        ...

    @property
    def position_index(self) -> int:
        if self._loaded and self._current is not None:
            return self._current.index
        return self._next_index

    def _set_current(self, record: Optional[Record]) -> None:
        self._current = record
        self.resident = 0 if record is None else 1
        if self.resident > self.peak_resident:
            self.peak_resident = self.resident

    def peek(self) -> Optional[Record]:
        if not self._loaded:
            try:
                record = self._fetch(self._next_index)
            except JoinError:
                raise
            except Exception as exc:
                raise SourceReadFailure(
                    f"Failed to read from {self.name}",
                    side=self.side.value,
                    index=self._next_index,
                    cause=exc,
                ) from exc
            if record is not None:
                self._next_index = record.index + 1
                self.reads += 1
            self._set_current(record)
            self._loaded = True
        return self._current

    def advance(self) -> None:
        if not self._loaded:
            self.peek()
        self._set_current(None)
        self._loaded = False

    def mark(self) -> None:
        record = self.peek()
        if record is not None:
            self._mark = (record.position, record.index)
        else:
            self._mark = (self._tell(), self._next_index)

    def rewind_to_mark(self) -> None:
        if self._mark is None:
            raise RuntimeError(f"rewind_to_mark() on {self.name} without mark()")
        position, index = self._mark
        self._seek(position)
        self._next_index = index
        self._set_current(None)
        self._loaded = False
        self.rewinds += 1

    def release_mark(self) -> None:
        self._mark = None


class ListCursor(_SingleRecordCursor):
    """Cursor over rows already held in memory.

    Example:
        >>> cursor = ListCursor([["1", "a"], ["2", "b"]], Side.LEFT)
        >>> cursor.peek().fields
        ('1', 'a')
    """

    def __init__(
        self,
        rows: Sequence[Sequence[Field]],
        side: Side = Side.LEFT,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(side, name)
        self._rows = rows
        self._pos = 0

    def _fetch(self, index: int) -> Optional[Record]:
        if self._pos >= len(self._rows):
            return None
        record = Record.of(self._rows[self._pos], self.side, self._pos, self._pos)
        self._pos += 1
        return record

    def _tell(self) -> int:
        return self._pos

    def _seek(self, position: int) -> None:
        self._pos = position


class FileCursor(_SingleRecordCursor):
    """Cursor over a seekable binary file.

    The replay position of each record is the byte offset of its line, so a
    group of any size costs nothing to revisit beyond re-reading it.
    """

    def __init__(
        self,
        handle: IO[bytes],
        side: Side = Side.LEFT,
        delimiter: str = DEFAULT_DELIMITER,
        name: Optional[str] = None,
        owns_handle: bool = False,
    ) -> None:
        super().__init__(side, name or getattr(handle, "name", None))
        if not handle.seekable():
            raise ValueError(
                f"{self.name} is not seekable; use StreamCursor for pipes"
            )
        self._handle = handle
        self._delimiter = delimiter
        self._owns_handle = owns_handle

    @classmethod
    def open(
        cls,
        path: Union[str, Path],
        side: Side = Side.LEFT,
        delimiter: str = DEFAULT_DELIMITER,
    ) -> "FileCursor":
        handle = open(path, "rb")
        return cls(handle, side, delimiter, name=str(path), owns_handle=True)

    def _fetch(self, index: int) -> Optional[Record]:
        offset = self._handle.tell()
        raw = self._handle.readline()
        if not raw:
            return None
        fields = split_line(decode_line(raw), self._delimiter)
        return Record(fields, self.side, index, offset)

    def _tell(self) -> int:
        return self._handle.tell()

    def _seek(self, position: int) -> None:
        self._handle.seek(position)

    def close(self) -> None:
        if self._owns_handle:
            self._handle.close()


class StreamCursor(_SingleRecordCursor):
    """Cursor over a forward-only stream such as a pipe or stdin.

    While a mark is held, every line read from the stream is appended to a
    temporary spill file. Rewinding reads the span back from that file before
    continuing with the stream, so memory stays at one record however large
    the group. ``max_replay`` caps how many records a replayed group may
    hold; when a group outgrows it the spill is abandoned and
    ``rewind_to_mark()`` raises :class:`UnsupportedCrossJoin`.

    A cursor created with ``replayable=False`` (the left input, which the
    engine never rewinds) keeps marks as bare indices and spills nothing.
    """

    def __init__(
        self,
        handle: IO[bytes],
        side: Side = Side.RIGHT,
        delimiter: str = DEFAULT_DELIMITER,
        name: Optional[str] = None,
        max_replay: Optional[int] = None,
        spill_dir: Optional[Union[str, Path]] = None,
        owns_handle: bool = False,
        replayable: bool = True,
    ) -> None:
        super().__init__(side, name or getattr(handle, "name", None))
        self._handle = handle
        self._delimiter = delimiter
        self._owns_handle = owns_handle
        self.max_replay = max_replay
        self.replayable = replayable
        self._spill_dir = str(spill_dir) if spill_dir else None
        self._spill: Optional[IO[bytes]] = None
        self._spill_end = 0
        self._read_offset = 0
        self._recording = False
        self._overflowed = False
        self._spilled = 0

    @property
    def spilled(self) -> int:
        """Records currently held in the spill file."""
        return self._spilled

    def _spill_file(self) -> IO[bytes]:
        if self._spill is None:
            self._spill = tempfile.TemporaryFile(
                mode="w+b", prefix="mergejoin-", dir=self._spill_dir
            )
        return self._spill

    def _reset_spill(self) -> None:
        if self._spill is not None:
            self._spill.seek(0)
            self._spill.truncate()
        self._spill_end = 0
        self._read_offset = 0
        self._spilled = 0
        # the current record can no longer be replayed from the spill
        if self._current is not None and self._current.position is not None:
            self._current = replace(self._current, position=None)

    def _append(self, raw: bytes) -> Optional[int]:
        # a group of max_replay records still needs the record that ends it
        if self.max_replay is not None and self._spilled > self.max_replay:
            if not self._overflowed:
                logger.debug(
                    "%s: replay span exceeds %d records, dropping spill",
                    self.name,
                    self.max_replay,
                )
            self._overflowed = True
            self._recording = False
            self._reset_spill()
            return None
        spill = self._spill_file()
        spill.seek(self._spill_end)
        spill.write(raw if raw.endswith(b"\n") else raw + b"\n")
        offset = self._spill_end
        self._spill_end = spill.tell()
        self._read_offset = self._spill_end
        self._spilled += 1
        return offset

    def _fetch(self, index: int) -> Optional[Record]:
        if self._read_offset < self._spill_end:
            spill = self._spill_file()
            spill.seek(self._read_offset)
            raw = spill.readline()
            offset: Optional[int] = self._read_offset
            self._read_offset = spill.tell()
            if self._read_offset >= self._spill_end and not self._recording:
                self._reset_spill()
                offset = None
            fields = split_line(decode_line(raw), self._delimiter)
            return Record(fields, self.side, index, offset)

        raw = self._handle.readline()
        if not raw:
            return None
        offset = self._append(raw) if self._recording else None
        fields = split_line(decode_line(raw), self._delimiter)
        return Record(fields, self.side, index, offset)

    def _tell(self) -> int:
        return self._read_offset

    def _seek(self, position: int) -> None:
        self._read_offset = position

    def mark(self) -> None:
        record = self.peek()
        self._overflowed = False
        if not self.replayable:
            self._mark = (None, self.position_index)
            return
        if record is None:
            self._mark = (self._spill_end, self._next_index)
        elif record.position is not None:
            # already replayable from the spill
            self._mark = (record.position, record.index)
        else:
            try:
                self._reset_spill()
                line = self._delimiter.join(record.fields)  # type: ignore[arg-type]
                offset = self._append(line.encode("utf-8", "surrogateescape"))
            except OSError as exc:
                raise SourceReadFailure(
                    f"Failed to spill {self.name} for replay",
                    side=self.side.value,
                    index=record.index,
                    cause=exc,
                ) from exc
            self._current = Record(record.fields, record.side, record.index, offset)
            self._mark = (offset, record.index)
        self._recording = True

    def _replay_span(self) -> int:
        return self.position_index - (self._mark[1] if self._mark else 0)

    def rewind_to_mark(self) -> None:
        if not self.replayable:
            raise UnsupportedCrossJoin(
                f"{self.name} was opened without replay support",
                side=self.side.value,
                index=self._mark[1] if self._mark else self._next_index,
                suggestion="Pass the input that has repeated keys on the right.",
            )
        if self._overflowed or (
            self.max_replay is not None and self._replay_span() > self.max_replay
        ):
            raise UnsupportedCrossJoin(
                f"Key group in {self.name} is larger than the replay limit",
                side=self.side.value,
                index=self._mark[1] if self._mark else self._next_index,
                max_replay=self.max_replay,
            )
        super().rewind_to_mark()

    def release_mark(self) -> None:
        super().release_mark()
        self._recording = False
        self._overflowed = False
        if self._read_offset >= self._spill_end:
            self._reset_spill()

    def close(self) -> None:
        if self._spill is not None:
            self._spill.close()
            self._spill = None
        if self._owns_handle:
            self._handle.close()


class FrameCursor(_SingleRecordCursor):
    """Cursor over the rows of a pandas DataFrame.

    Cells that are null (``None``/``NaN``) become ``MISSING``; everything else
    is rendered with ``str()``. The frame must already be sorted on the join
    columns.
    """

    def __init__(
        self,
        df: pd.DataFrame,
        side: Side = Side.LEFT,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(side, name)
        self._df = df
        self._pos = 0

    @property
    def columns(self) -> list:
        return list(self._df.columns)

    @staticmethod
    def _to_field(value: Any) -> Field:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return MISSING
        return value if isinstance(value, str) else str(value)

    def _fetch(self, index: int) -> Optional[Record]:
        if self._pos >= len(self._df):
            return None
        # per cell, so each value keeps its column dtype (iloc rows upcast)
        values = [self._df.iat[self._pos, j] for j in range(self._df.shape[1])]
        record = Record.of(
            (self._to_field(v) for v in values), self.side, self._pos, self._pos
        )
        self._pos += 1
        return record

    def _tell(self) -> int:
        return self._pos

    def _seek(self, position: int) -> None:
        self._pos = position
