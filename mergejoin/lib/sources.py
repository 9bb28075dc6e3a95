"""Opening join inputs as cursors.

Regular files become :class:`FileCursor` (rewound by seeking). Pipes and
stdin become :class:`StreamCursor` (rewound from a spill file; only the
right side is ever rewound, so a left stream never spills). Opening is
retried on transient OS errors; reading during the join is not.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Optional, Tuple, Union

import tenacity

from mergejoin.lib.config import JoinConfig
from mergejoin.lib.cursor import FileCursor, GroupCursor, StreamCursor
from mergejoin.lib.errors import SourceReadFailure
from mergejoin.lib.records import Side

logger = logging.getLogger(__name__)

__all__ = ["open_source", "open_sources", "STDIN"]

STDIN = "-"

OPEN_ATTEMPTS = 3
OPEN_BACKOFF_SECONDS = 0.5

# Errors that will not go away by trying again
_PERMANENT_ERRORS = (FileNotFoundError, IsADirectoryError, NotADirectoryError, PermissionError)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, OSError) and not isinstance(exc, _PERMANENT_ERRORS)


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Attempt %d/%d to open input failed: %s. Retrying in %.1fs...",
        retry_state.attempt_number,
        OPEN_ATTEMPTS,
        exception,
        retry_state.next_action.sleep if retry_state.next_action else 0,
    )


@tenacity.retry(
    stop=tenacity.stop_after_attempt(OPEN_ATTEMPTS),
    wait=tenacity.wait_exponential(multiplier=OPEN_BACKOFF_SECONDS, min=OPEN_BACKOFF_SECONDS),
    retry=tenacity.retry_if_exception(_is_transient),
    before_sleep=_log_retry,
    reraise=True,
)
def _open_binary(path: str) -> IO[bytes]:
    return open(path, "rb")


def _seekable(handle: IO[bytes]) -> bool:
    try:
        return handle.seekable()
    except (OSError, ValueError):
        return False


def open_source(
    path: Union[str, Path],
    side: Side,
    config: JoinConfig,
    stdin: Optional[IO[bytes]] = None,
) -> GroupCursor:
    """Open one join input.

    Args:
        path: file path, or ``-`` for standard input
        side: which side of the join the input feeds
        config: join settings (delimiter, replay limit, spill directory)
        stdin: binary stream to use for ``-`` (defaults to ``sys.stdin.buffer``)

    Raises:
        SourceReadFailure: the input could not be opened
    """
    path = str(path)
    if path == STDIN:
        handle = stdin if stdin is not None else sys.stdin.buffer
        logger.debug("Reading %s input from stdin", side.value)
        return StreamCursor(
            handle,
            side,
            config.delimiter,
            name="stdin",
            max_replay=config.max_replay,
            spill_dir=config.spill_dir,
            replayable=side is Side.RIGHT,
        )

    try:
        handle = _open_binary(path)
    except OSError as exc:
        suggestion = None
        if isinstance(exc, FileNotFoundError):
            suggestion = "Check the path; use - to read from standard input."
        raise SourceReadFailure(
            f"Cannot open {side.value} input {path}",
            side=side.value,
            cause=exc,
            suggestion=suggestion,
        ) from exc

    if _seekable(handle):
        return FileCursor(handle, side, config.delimiter, name=path, owns_handle=True)

    logger.info("%s input %s is not seekable; reading it as a stream", side.value, path)
    return StreamCursor(
        handle,
        side,
        config.delimiter,
        name=path,
        max_replay=config.max_replay,
        spill_dir=config.spill_dir,
        owns_handle=True,
        replayable=side is Side.RIGHT,
    )


def open_sources(
    left: Union[str, Path],
    right: Union[str, Path],
    config: JoinConfig,
    stdin: Optional[IO[bytes]] = None,
) -> Tuple[GroupCursor, GroupCursor]:
    """Open both inputs; closes the left one again if the right one fails."""
    if str(left) == STDIN and str(right) == STDIN:
        raise SourceReadFailure(
            "Only one input can be read from standard input",
            suggestion="Write one of the inputs to a file first.",
        )
    left_cursor = open_source(left, Side.LEFT, config, stdin)
    try:
        right_cursor = open_source(right, Side.RIGHT, config, stdin)
    except Exception:
        left_cursor.close()
        raise
    return left_cursor, right_cursor
