"""Join library modules.

Records and keys at the bottom, cursors and the engine in the middle, the
assembler, sources and runner on top.
"""

from mergejoin.lib.config import (
    JoinConfig,
    JoinJob,
    JoinMode,
    OutputField,
    config_from_dict,
    load_join_config,
)
from mergejoin.lib.cursor import FileCursor, FrameCursor, GroupCursor, ListCursor, StreamCursor
from mergejoin.lib.engine import JoinedRow, JoinState, JoinStats, MergeJoinEngine, RowKind
from mergejoin.lib.errors import (
    ArityMismatch,
    ConfigurationError,
    JoinError,
    OrderingViolation,
    SourceReadFailure,
    UnsupportedCrossJoin,
)
from mergejoin.lib.keys import (
    MISSING_KEY,
    BytewiseComparator,
    Comparator,
    IgnoreCaseComparator,
    Key,
    Ordering,
    compare,
    extract,
    get_comparator,
    order,
)
from mergejoin.lib.output import DelimitedWriter, FrameCollector, OutputAssembler
from mergejoin.lib.records import MISSING, Record, Side, split_line
from mergejoin.lib.runner import JoinResult, JoinRunner, join_frames, join_rows, run_join
from mergejoin.lib.sources import open_source, open_sources

__all__ = [
    # Config
    "JoinConfig",
    "JoinJob",
    "JoinMode",
    "OutputField",
    "config_from_dict",
    "load_join_config",
    # Cursors
    "GroupCursor",
    "ListCursor",
    "FileCursor",
    "StreamCursor",
    "FrameCursor",
    # Engine
    "MergeJoinEngine",
    "JoinedRow",
    "JoinState",
    "JoinStats",
    "RowKind",
    # Errors
    "JoinError",
    "OrderingViolation",
    "ArityMismatch",
    "SourceReadFailure",
    "UnsupportedCrossJoin",
    "ConfigurationError",
    # Keys
    "MISSING_KEY",
    "Key",
    "Ordering",
    "Comparator",
    "BytewiseComparator",
    "IgnoreCaseComparator",
    "get_comparator",
    "extract",
    "compare",
    "order",
    # Output
    "OutputAssembler",
    "DelimitedWriter",
    "FrameCollector",
    # Records
    "MISSING",
    "Record",
    "Side",
    "split_line",
    # Running
    "JoinRunner",
    "JoinResult",
    "run_join",
    "join_frames",
    "join_rows",
    "open_source",
    "open_sources",
]
