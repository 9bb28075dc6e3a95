"""Join configuration.

``JoinConfig`` is an immutable value handed to the engine at construction.
Field numbers are 0-based inside ``JoinConfig`` and 1-based everywhere a
person types them (YAML files, the command line), as with POSIX ``join``.

Example YAML (customers_orders.yaml):
    join:
      left: ./customers.tsv
      right: ./orders.tsv
      left_keys: [1]
      right_keys: [2]
      mode: left-outer
      right_placeholder: "NULL"
      output: "0,1.2,2.1,2.3"

Usage:
    from mergejoin.lib.config import load_join_config
    job = load_join_config("./customers_orders.yaml")
    job.config.left_keys  # (0,)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import yaml

from mergejoin.lib.errors import ArityMismatch, ConfigurationError
from mergejoin.lib.keys import Comparator, get_comparator
from mergejoin.lib.records import DEFAULT_DELIMITER, Side

logger = logging.getLogger(__name__)

__all__ = [
    "JoinMode",
    "OutputField",
    "JoinConfig",
    "JoinJob",
    "parse_field_list",
    "parse_output_fields",
    "config_from_dict",
    "load_join_section",
    "load_join_config",
]


class JoinMode(str, Enum):
    INNER = "inner"
    LEFT_OUTER = "left-outer"
    RIGHT_OUTER = "right-outer"
    FULL_OUTER = "full-outer"

    @property
    def keeps_left(self) -> bool:
        """Whether unmatched left records are emitted."""
        return self in (JoinMode.LEFT_OUTER, JoinMode.FULL_OUTER)

    @property
    def keeps_right(self) -> bool:
        return self in (JoinMode.RIGHT_OUTER, JoinMode.FULL_OUTER)

    def keeps(self, side: Side) -> bool:
        return self.keeps_left if side is Side.LEFT else self.keeps_right

    @classmethod
    def from_flags(cls, left: bool, right: bool) -> "JoinMode":
        if left and right:
            return cls.FULL_OUTER
        if left:
            return cls.LEFT_OUTER
        if right:
            return cls.RIGHT_OUTER
        return cls.INNER

    @classmethod
    def normalize(cls, value: Union[str, "JoinMode"]) -> "JoinMode":
        if isinstance(value, JoinMode):
            return value
        key = str(value).strip().lower().replace("_", "-")
        try:
            return JOIN_MODE_MAP[key]
        except KeyError:
            raise ConfigurationError(
                f"Unknown join mode '{value}'",
                field="mode",
                value=value,
                suggestion=f"Use one of: {', '.join(sorted(JOIN_MODE_MAP))}",
            )


JOIN_MODE_MAP = {
    "inner": JoinMode.INNER,
    "left": JoinMode.LEFT_OUTER,
    "left-outer": JoinMode.LEFT_OUTER,
    "right": JoinMode.RIGHT_OUTER,
    "right-outer": JoinMode.RIGHT_OUTER,
    "outer": JoinMode.FULL_OUTER,
    "full": JoinMode.FULL_OUTER,
    "full-outer": JoinMode.FULL_OUTER,
}

_OUTPUT_SPEC = re.compile(r"^(0)$|^([12])\.(\d+)$")


@dataclass(frozen=True)
class OutputField:
    """One entry of an output field list.

    ``side`` is ``None`` for the join key (``0``); otherwise ``index`` is the
    0-based field of that side's record.
    """

    side: Optional[Side]
    index: int = 0

    @property
    def is_key(self) -> bool:
        return self.side is None

    @classmethod
    def parse(cls, spec: str) -> "OutputField":
        match = _OUTPUT_SPEC.match(spec.strip())
        if not match:
            raise ConfigurationError(
                f"Invalid output field spec '{spec}'",
                field="output",
                value=spec,
                suggestion="Use 0 for the join key or FILE.FIELD such as 1.2 or 2.3",
            )
        if match.group(1):
            return cls(None)
        number = int(match.group(3))
        if number == 0:
            raise ConfigurationError(
                "Field numbers start at 1", field="output", value=spec
            )
        side = Side.LEFT if match.group(2) == "1" else Side.RIGHT
        return cls(side, number - 1)

    def __str__(self) -> str:
        if self.side is None:
            return "0"
        return f"{self.side.file_number}.{self.index + 1}"


def parse_output_fields(
    value: Union[str, Sequence[Any], None],
) -> Optional[Tuple[OutputField, ...]]:
    """Parse ``"0,1.2 2.1"`` or ``["0", "1.2"]`` into output fields."""
    if value is None:
        return None
    if isinstance(value, str):
        specs = [s for s in re.split(r"[\s,]+", value) if s]
    else:
        specs = [str(s) for s in value]
    if not specs:
        raise ConfigurationError("Output field list is empty", field="output")
    return tuple(OutputField.parse(spec) for spec in specs)


def parse_field_list(value: Union[str, int, Iterable[Any]], name: str) -> Tuple[int, ...]:
    """Turn 1-based field numbers (``"1,3"``, ``2`` or ``[1, 3]``) into 0-based indices."""
    if isinstance(value, int):
        items: List[Any] = [value]
    elif isinstance(value, str):
        items = [s for s in re.split(r"[\s,]+", value) if s]
    else:
        items = list(value)
    if not items:
        raise ConfigurationError(f"{name} must list at least one field", field=name)

    indices = []
    for item in items:
        try:
            number = int(item)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Invalid field number '{item}'", field=name, value=item
            )
        if number < 1:
            raise ConfigurationError(
                "Field numbers start at 1", field=name, value=item
            )
        indices.append(number - 1)
    return tuple(indices)


@dataclass(frozen=True)
class JoinConfig:
    """Immutable settings for one join.

    Attributes:
        left_keys: 0-based key field indices on the left
        right_keys: 0-based key field indices on the right (same length)
        left_placeholder: written for missing left fields
        right_placeholder: written for missing right fields
        mode: which unmatched records are emitted
        unpaired_only: emit unmatched records only (``join -v``)
        output_fields: explicit output layout, ``None`` for all fields
        left_width: left field count for padding, learned when ``None``
        right_width: right field count for padding, learned when ``None``
        comparator: comparator strategy name
        delimiter: input field delimiter
        output_delimiter: output field delimiter, defaults to ``delimiter``
        header: first line of each input is a header
        max_replay: most records a stream cursor may spill for replay
        spill_dir: directory for spill files
    """

    left_keys: Tuple[int, ...] = (0,)
    right_keys: Tuple[int, ...] = (0,)
    left_placeholder: str = ""
    right_placeholder: str = ""
    mode: JoinMode = JoinMode.FULL_OUTER
    unpaired_only: bool = False
    output_fields: Optional[Tuple[OutputField, ...]] = None
    left_width: Optional[int] = None
    right_width: Optional[int] = None
    comparator: str = "bytewise"
    delimiter: str = DEFAULT_DELIMITER
    output_delimiter: Optional[str] = None
    header: bool = False
    max_replay: Optional[int] = None
    spill_dir: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "left_keys", tuple(self.left_keys))
        object.__setattr__(self, "right_keys", tuple(self.right_keys))
        object.__setattr__(self, "mode", JoinMode.normalize(self.mode))
        if self.output_fields is not None:
            object.__setattr__(self, "output_fields", tuple(self.output_fields))
        self.validate()

    def validate(self) -> None:
        if len(self.left_keys) != len(self.right_keys):
            raise ArityMismatch(
                "Left and right key field lists differ in length",
                left_arity=len(self.left_keys),
                right_arity=len(self.right_keys),
                suggestion="Give -1 and -2 the same number of fields",
            )
        if not self.left_keys:
            raise ConfigurationError("At least one key field is required", field="keys")
        for name, keys in (("left_keys", self.left_keys), ("right_keys", self.right_keys)):
            if any(i < 0 for i in keys):
                raise ConfigurationError(
                    "Key field indices must be non-negative", field=name, value=keys
                )
        for name, width in (("left_width", self.left_width), ("right_width", self.right_width)):
            if width is not None and width < 0:
                raise ConfigurationError(
                    "Field counts must be non-negative", field=name, value=width
                )
        if not self.delimiter:
            raise ConfigurationError("Delimiter must not be empty", field="delimiter")
        if "\n" in self.delimiter:
            raise ConfigurationError(
                "Delimiter must not contain a newline", field="delimiter"
            )
        if self.max_replay is not None and self.max_replay < 0:
            raise ConfigurationError(
                "max_replay must be non-negative", field="max_replay", value=self.max_replay
            )
        try:
            get_comparator(self.comparator)
        except ValueError as exc:
            raise ConfigurationError(str(exc), field="comparator", value=self.comparator)

    def keys_for(self, side: Side) -> Tuple[int, ...]:
        return self.left_keys if side is Side.LEFT else self.right_keys

    def placeholder_for(self, side: Side) -> str:
        return self.left_placeholder if side is Side.LEFT else self.right_placeholder

    def width_for(self, side: Side) -> Optional[int]:
        return self.left_width if side is Side.LEFT else self.right_width

    @property
    def out_delimiter(self) -> str:
        return self.output_delimiter if self.output_delimiter is not None else self.delimiter

    def get_comparator(self) -> Comparator:
        return get_comparator(self.comparator)


@dataclass(frozen=True)
class JoinJob:
    """A configuration plus the inputs it applies to."""

    config: JoinConfig
    left: Optional[str] = None
    right: Optional[str] = None


# Keys accepted in the ``join`` section of a YAML file
_ALLOWED_KEYS = {
    "left",
    "right",
    "keys",
    "left_keys",
    "right_keys",
    "placeholder",
    "left_placeholder",
    "right_placeholder",
    "mode",
    "unpaired_only",
    "output",
    "left_width",
    "right_width",
    "ignore_case",
    "comparator",
    "delimiter",
    "output_delimiter",
    "header",
    "max_replay",
    "spill_dir",
}


def _optional_int(data: Dict[str, Any], name: str) -> Optional[int]:
    value = data.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer", field=name, value=value)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _resolve_path(path: Optional[str], config_dir: Optional[Path]) -> Optional[str]:
    """Resolve ``./`` and ``../`` paths relative to the config file."""
    if not path or config_dir is None or path == "-":
        return path
    if path.startswith("./") or path.startswith("../"):
        return str(config_dir / path)
    return path


def config_from_dict(
    data: Dict[str, Any], config_dir: Optional[Path] = None
) -> JoinJob:
    """Build a :class:`JoinJob` from a ``join`` mapping.

    Field numbers in ``data`` are 1-based.
    """
    unknown = sorted(set(data) - _ALLOWED_KEYS)
    if unknown:
        raise ConfigurationError(
            f"Unknown join settings: {', '.join(unknown)}",
            field="join",
            suggestion=f"Valid settings: {', '.join(sorted(_ALLOWED_KEYS))}",
        )

    shared_keys = data.get("keys")
    left_keys = data.get("left_keys", shared_keys)
    right_keys = data.get("right_keys", shared_keys)
    placeholder = data.get("placeholder")

    comparator = data.get("comparator")
    if comparator is None:
        comparator = "ignore-case" if data.get("ignore_case") else "bytewise"

    kwargs: Dict[str, Any] = {
        "left_keys": parse_field_list(left_keys, "left_keys") if left_keys is not None else (0,),
        "right_keys": parse_field_list(right_keys, "right_keys") if right_keys is not None else (0,),
        "left_placeholder": _text(data.get("left_placeholder", placeholder)),
        "right_placeholder": _text(data.get("right_placeholder", placeholder)),
        "mode": JoinMode.normalize(data.get("mode", JoinMode.FULL_OUTER)),
        "unpaired_only": bool(data.get("unpaired_only", False)),
        "output_fields": parse_output_fields(data.get("output")),
        "left_width": _optional_int(data, "left_width"),
        "right_width": _optional_int(data, "right_width"),
        "comparator": comparator,
        "delimiter": data.get("delimiter", DEFAULT_DELIMITER),
        "output_delimiter": data.get("output_delimiter"),
        "header": bool(data.get("header", False)),
        "max_replay": _optional_int(data, "max_replay"),
        "spill_dir": _resolve_path(data.get("spill_dir"), config_dir),
    }
    config = JoinConfig(**kwargs)
    return JoinJob(
        config=config,
        left=_resolve_path(data.get("left"), config_dir),
        right=_resolve_path(data.get("right"), config_dir),
    )


def load_join_section(path: Union[str, Path]) -> Dict[str, Any]:
    """Read the raw ``join`` mapping of a YAML config file."""
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Config file not found: {path}", field="config", value=str(path)
        )
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Invalid YAML in {path}: {exc}", field="config", value=str(path)
        ) from exc
    if not isinstance(data, dict) or "join" not in data:
        raise ConfigurationError(
            "Config must include a 'join' section", field="join", value=str(path)
        )
    section = data["join"] or {}
    if not isinstance(section, dict):
        raise ConfigurationError("'join' section must be a mapping", field="join")
    logger.debug("Loaded join config from %s", path)
    return dict(section)


def load_join_config(path: Union[str, Path]) -> JoinJob:
    """Load a join job from a YAML file with a top-level ``join`` section."""
    path = Path(path)
    return config_from_dict(load_join_section(path), config_dir=path.parent)
