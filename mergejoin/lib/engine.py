"""Sort-merge join engine.

The engine pulls records from two cursors whose inputs are sorted on the
join key and yields :class:`JoinedRow` values in merge order. Matching key
groups are cross-producted by rewinding the right cursor once per left
record, so neither group is ever held in memory.

Example:
    >>> left = ListCursor([["1", "L1"], ["2", "L2"]], Side.LEFT)
    >>> right = ListCursor([["1", "R1"]], Side.RIGHT)
    >>> engine = MergeJoinEngine(left, right, JoinConfig())
    >>> [row.kind.value for row in engine]
    ['match', 'left_only']
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple

from mergejoin.lib.config import JoinConfig
from mergejoin.lib.cursor import GroupCursor
from mergejoin.lib.errors import JoinError, OrderingViolation
from mergejoin.lib.keys import Key, Ordering, compare, extract, keys_match, order
from mergejoin.lib.records import Record, Side

logger = logging.getLogger(__name__)

__all__ = [
    "JoinState",
    "RowKind",
    "JoinedRow",
    "JoinStats",
    "MergeJoinEngine",
]


class JoinState(Enum):
    ADVANCE = "advance"
    IN_GROUP_MATCH = "in_group_match"
    DONE = "done"
    ERROR = "error"


class RowKind(Enum):
    MATCH = "match"
    LEFT_ONLY = "left_only"
    RIGHT_ONLY = "right_only"


@dataclass(frozen=True)
class JoinedRow:
    """A matched pair, or one unmatched record with the other side empty."""

    kind: RowKind
    left: Optional[Record]
    right: Optional[Record]

    @classmethod
    def unmatched(cls, record: Record) -> "JoinedRow":
        if record.side is Side.LEFT:
            return cls(RowKind.LEFT_ONLY, record, None)
        return cls(RowKind.RIGHT_ONLY, None, record)


@dataclass
class JoinStats:
    matched_rows: int = 0
    left_only_rows: int = 0
    right_only_rows: int = 0
    groups: int = 0
    largest_group: int = 0
    left_reads: int = 0
    right_reads: int = 0
    right_rewinds: int = 0

    @property
    def total_rows(self) -> int:
        return self.matched_rows + self.left_only_rows + self.right_only_rows

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_rows"] = self.total_rows
        return data


class MergeJoinEngine:
    """Drives two sorted cursors through the merge.

    States move ADVANCE -> IN_GROUP_MATCH -> ADVANCE ... -> DONE, or to ERROR
    when a join error escapes. Iterating the engine is the only way to make
    progress; stopping iteration stops reading.

    Args:
        left: cursor over the left input
        right: cursor over the right input; the one that gets rewound
        config: join settings
    """

    def __init__(
        self, left: GroupCursor, right: GroupCursor, config: JoinConfig
    ) -> None:
        self.left = left
        self.right = right
        self.config = config
        self.state = JoinState.ADVANCE
        self.stats = JoinStats()
        self._comparator = config.get_comparator()
        self._last_key: Dict[Side, Optional[Key]] = {Side.LEFT: None, Side.RIGHT: None}
        self._checked: Dict[Side, int] = {Side.LEFT: -1, Side.RIGHT: -1}
        self._key_cache: Dict[Side, Tuple[int, Key]] = {}

    def __iter__(self) -> Iterator[JoinedRow]:
        return self.rows()

    def rows(self) -> Iterator[JoinedRow]:
        if self.state in (JoinState.DONE, JoinState.ERROR):
            return
        try:
            for row in self._merge():
                self._count(row)
                yield row
        except JoinError:
            self.state = JoinState.ERROR
            raise
        finally:
            self.stats.left_reads = self.left.reads
            self.stats.right_reads = self.right.reads
            self.stats.right_rewinds = self.right.rewinds
        self.state = JoinState.DONE
        logger.debug("Merge finished: %s", self.stats.to_dict())

    def _count(self, row: JoinedRow) -> None:
        if row.kind is RowKind.MATCH:
            self.stats.matched_rows += 1
        elif row.kind is RowKind.LEFT_ONLY:
            self.stats.left_only_rows += 1
        else:
            self.stats.right_only_rows += 1

    def _side_of(self, cursor: GroupCursor) -> Side:
        return Side.LEFT if cursor is self.left else Side.RIGHT

    def _key(self, side: Side, record: Record) -> Key:
        cached = self._key_cache.get(side)
        if cached is not None and cached[0] == record.index:
            return cached[1]
        key = extract(record, self.config.keys_for(side), self._comparator)
        self._key_cache[side] = (record.index, key)
        return key

    def _check_order(self, side: Side, record: Record, key: Key) -> None:
        previous = self._last_key[side]
        if previous is not None and order(previous, key) is Ordering.GREATER:
            raise OrderingViolation(
                f"{side.value} input is not sorted on the join key",
                side=side.value,
                index=record.index,
                previous_key=str(previous),
                key=str(key),
            )
        self._last_key[side] = key
        self._checked[side] = record.index

    def _current(self, cursor: GroupCursor) -> Optional[Tuple[Record, Key]]:
        """Peek a cursor and return its record with its key.

        Records seen for the first time are checked against the previous key
        of their side; replayed records were checked already.
        """
        record = cursor.peek()
        if record is None:
            return None
        side = self._side_of(cursor)
        key = self._key(side, record)
        if record.index > self._checked[side]:
            self._check_order(side, record, key)
        return record, key

    def _merge(self) -> Iterator[JoinedRow]:
        mode = self.config.mode
        while True:
            left = self._current(self.left)
            right = self._current(self.right)

            if left is None and right is None:
                return

            if right is None:
                if not mode.keeps_left:
                    return
                yield JoinedRow.unmatched(left[0])  # type: ignore[index]
                self.left.advance()
                continue

            if left is None:
                if not mode.keeps_right:
                    return
                yield JoinedRow.unmatched(right[0])
                self.right.advance()
                continue

            result = compare(left[1], right[1])
            if result is Ordering.LESS:
                if mode.keeps_left:
                    yield JoinedRow.unmatched(left[0])
                self.left.advance()
            elif result is Ordering.GREATER:
                if mode.keeps_right:
                    yield JoinedRow.unmatched(right[0])
                self.right.advance()
            elif self.config.unpaired_only:
                self._skip_group(left[1])
            else:
                yield from self._match_group(left[1])

    def _match_group(self, group_key: Key) -> Iterator[JoinedRow]:
        self.state = JoinState.IN_GROUP_MATCH
        self.left.mark()
        self.right.mark()

        left_count = 0
        right_count = 0
        while True:
            left = self._current(self.left)
            if left is None or not keys_match(left[1], group_key):
                break
            if left_count:
                self.right.rewind_to_mark()
            right_count = 0
            while True:
                right = self._current(self.right)
                if right is None or not keys_match(left[1], right[1]):
                    break
                yield JoinedRow(RowKind.MATCH, left[0], right[0])
                self.right.advance()
                right_count += 1
            self.left.advance()
            left_count += 1

        self.left.release_mark()
        self.right.release_mark()
        self.stats.groups += 1
        self.stats.largest_group = max(self.stats.largest_group, left_count * right_count)
        logger.debug(
            "Joined key group %s: %d left x %d right", group_key, left_count, right_count
        )
        self.state = JoinState.ADVANCE

    def _skip_group(self, group_key: Key) -> None:
        """Walk past a matched group on both sides without pairing it."""
        for cursor in (self.left, self.right):
            while True:
                current = self._current(cursor)
                if current is None or not keys_match(current[1], group_key):
                    break
                cursor.advance()
        self.stats.groups += 1
