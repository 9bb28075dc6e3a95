"""Streaming sort-merge joins over delimited record streams.

Both inputs must already be sorted on their join keys. Matching key groups
are cross-producted by replaying the right input, so memory use stays at one
record per side however large the groups are.

Usage:
    python -m mergejoin -1 1 -2 2 -a 1 customers.tsv orders.tsv
"""

__version__ = "1.0.0"

from mergejoin.lib.config import JoinConfig, JoinMode, OutputField, load_join_config
from mergejoin.lib.engine import JoinedRow, MergeJoinEngine, RowKind
from mergejoin.lib.errors import (
    ArityMismatch,
    ConfigurationError,
    JoinError,
    OrderingViolation,
    SourceReadFailure,
    UnsupportedCrossJoin,
)
from mergejoin.lib.runner import join_frames, join_rows, run_join

__all__ = [
    "__version__",
    "JoinConfig",
    "JoinMode",
    "OutputField",
    "load_join_config",
    "JoinedRow",
    "MergeJoinEngine",
    "RowKind",
    "JoinError",
    "OrderingViolation",
    "ArityMismatch",
    "SourceReadFailure",
    "UnsupportedCrossJoin",
    "ConfigurationError",
    "join_frames",
    "join_rows",
    "run_join",
]
