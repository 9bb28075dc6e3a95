"""Run a join end to end: cursors in, rows out.

``JoinRunner`` wires an engine, an assembler and a writer together. The
helpers below cover the common cases: two files, two DataFrames, or two
in-memory row lists.
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import IO, Any, Dict, List, Optional, Protocol, Sequence, Union

import pandas as pd

from mergejoin.lib.config import JoinConfig
from mergejoin.lib.cursor import FrameCursor, GroupCursor, ListCursor
from mergejoin.lib.engine import JoinStats, MergeJoinEngine
from mergejoin.lib.errors import JoinError
from mergejoin.lib.logging import get_join_logger
from mergejoin.lib.output import DelimitedWriter, FrameCollector, OutputAssembler
from mergejoin.lib.records import Field, Side
from mergejoin.lib.sources import open_sources

logger = get_join_logger(__name__)

__all__ = [
    "RowWriter",
    "JoinResult",
    "JoinRunner",
    "run_join",
    "join_frames",
    "join_rows",
]


class RowWriter(Protocol):
    rows_written: int

    def write_row(self, fields: Sequence[str]) -> None:
        ...

    def flush(self) -> None:
        ...


@dataclass
class JoinResult:
    stats: JoinStats
    rows_written: int
    duration_seconds: float
    header: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stats": self.stats.to_dict(),
            "rows_written": self.rows_written,
            "duration_seconds": round(self.duration_seconds, 3),
            "header": self.header,
        }


class JoinRunner:
    """Runs one join from two cursors into a writer."""

    def __init__(
        self,
        config: JoinConfig,
        left: GroupCursor,
        right: GroupCursor,
        writer: RowWriter,
    ) -> None:
        self.config = config
        self.left = left
        self.right = right
        self.writer = writer
        self.assembler = OutputAssembler(config)
        self.engine = MergeJoinEngine(left, right, config)

    def _write_header(self) -> List[str]:
        left = self.left.peek()
        right = self.right.peek()
        header = self.assembler.header(left, right)
        self.writer.write_row(header)
        self.left.advance()
        self.right.advance()
        return header

    def run(self) -> JoinResult:
        logger.bind(self.left.name, self.right.name)
        try:
            return self._run()
        finally:
            logger.unbind()

    def _run(self) -> JoinResult:
        logger.info(
            "Joining %s with %s (mode=%s, keys=%s/%s)",
            self.left.name,
            self.right.name,
            self.config.mode.value,
            [i + 1 for i in self.config.left_keys],
            [i + 1 for i in self.config.right_keys],
        )
        started = time.perf_counter()

        self.assembler.learn_widths(self.left, self.right)
        header = self._write_header() if self.config.header else None

        try:
            for row in self.engine:
                self.writer.write_row(self.assembler.assemble(row))
        except JoinError as exc:
            logger.failure(exc, self.writer.rows_written)
            raise
        finally:
            self.writer.flush()

        result = JoinResult(
            stats=self.engine.stats,
            rows_written=self.writer.rows_written,
            duration_seconds=time.perf_counter() - started,
            header=header,
        )
        stats = result.stats.to_dict()
        stats["rows_written"] = result.rows_written
        stats["duration_seconds"] = round(result.duration_seconds, 3)
        logger.stats(stats)
        logger.info(
            "Join complete: %d rows written (%d groups)",
            result.rows_written,
            result.stats.groups,
        )
        return result


def run_join(
    left: Union[str, Path],
    right: Union[str, Path],
    config: JoinConfig,
    output: Optional[IO[Any]] = None,
    stdin: Optional[IO[bytes]] = None,
) -> JoinResult:
    """Join two delimited files (``-`` for stdin) and write the rows to ``output``."""
    stream = output if output is not None else sys.stdout.buffer
    writer = DelimitedWriter(stream, config.out_delimiter)
    left_cursor, right_cursor = open_sources(left, right, config, stdin)
    with left_cursor, right_cursor:
        return JoinRunner(config, left_cursor, right_cursor, writer).run()


def join_frames(
    left: pd.DataFrame, right: pd.DataFrame, config: Optional[JoinConfig] = None
) -> pd.DataFrame:
    """Merge-join two DataFrames already sorted on their key columns.

    Key and output field indices refer to column positions. Column names
    come from the inputs; clashing right-hand names get a ``_right`` suffix.

    Example:
        >>> left = pd.DataFrame({"id": ["1", "2"], "name": ["a", "b"]})
        >>> right = pd.DataFrame({"id": ["1"], "amount": ["10"]})
        >>> join_frames(left, right, JoinConfig(mode="inner")).values.tolist()
        [['1', 'a', '1', '10']]
    """
    config = config or JoinConfig()
    if config.header:
        config = replace(config, header=False)
    if config.left_width is None or config.right_width is None:
        config = replace(
            config,
            left_width=config.left_width if config.left_width is not None else len(left.columns),
            right_width=config.right_width if config.right_width is not None else len(right.columns),
        )
    left_cursor = FrameCursor(left, Side.LEFT, name="left_frame")
    right_cursor = FrameCursor(right, Side.RIGHT, name="right_frame")
    assembler = OutputAssembler(config)
    collector = FrameCollector(assembler.column_names(list(left.columns), list(right.columns)))
    JoinRunner(config, left_cursor, right_cursor, collector).run()
    return collector.to_frame()


def join_rows(
    left: Sequence[Sequence[Field]],
    right: Sequence[Sequence[Field]],
    config: Optional[JoinConfig] = None,
) -> List[List[str]]:
    """Join two in-memory row lists and return the output rows."""
    config = config or JoinConfig()
    collector = FrameCollector()
    JoinRunner(
        config,
        ListCursor(left, Side.LEFT, name="left_rows"),
        ListCursor(right, Side.RIGHT, name="right_rows"),
        collector,
    ).run()
    return collector.rows
