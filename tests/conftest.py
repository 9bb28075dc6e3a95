"""Pytest configuration and fixtures."""

import logging
import sys
from pathlib import Path
from typing import Callable, List, Sequence

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def write_tsv(tmp_path: Path) -> Callable[..., Path]:
    """Write rows as a tab-separated file and return its path."""

    def _write(name: str, rows: Sequence[Sequence[str]], delimiter: str = "\t") -> Path:
        path = tmp_path / name
        text = "".join(delimiter.join(row) + "\n" for row in rows)
        path.write_bytes(text.encode("utf-8"))
        return path

    return _write


@pytest.fixture
def end_to_end_inputs() -> tuple:
    """Left/right rows whose full-outer join exercises every row kind."""
    left: List[List[str]] = [["1", "L1"], ["1", "L2"], ["2", "L3"]]
    right: List[List[str]] = [["1", "R1"], ["3", "R4"]]
    return left, right


@pytest.fixture
def restore_logging():
    """Undo handler changes made by setup_logging()."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
