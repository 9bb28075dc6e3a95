"""CLI entry point for merge joins.

Usage:
    python -m mergejoin customers.tsv orders.tsv
    python -m mergejoin -1 1 -2 3 -a 1 -e NULL customers.tsv orders.tsv
    python -m mergejoin -t , -j 1,2 -o 0,1.3,2.3 left.csv right.csv
    sort -k1,1 orders.tsv | python -m mergejoin customers.tsv -
    python -m mergejoin --config customers_orders.yaml

Both inputs must be sorted on their join fields with byte ordering
(``LC_ALL=C sort``). Field numbers start at 1.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from mergejoin import __version__
from mergejoin.lib.config import JoinMode, config_from_dict, load_join_section
from mergejoin.lib.errors import ConfigurationError, JoinError
from mergejoin.lib.logging import setup_logging
from mergejoin.lib.runner import run_join

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_JOIN_ERROR = 1
EXIT_USAGE = 2


def _delimiter(value: str) -> str:
    if value == "\\t":
        return "\t"
    if not value:
        raise argparse.ArgumentTypeError("delimiter must not be empty")
    return value


def _file_number(value: str) -> int:
    if value not in ("1", "2"):
        raise argparse.ArgumentTypeError(f"expected 1 or 2, got '{value}'")
    return int(value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="merge-join",
        description="Join two sorted delimited files on one or more key fields.",
    )
    parser.add_argument("left", nargs="?", help="Left input file, or - for stdin")
    parser.add_argument("right", nargs="?", help="Right input file, or - for stdin")
    parser.add_argument("-1", dest="left_keys", metavar="FIELDS", help="Join on these left fields (e.g. 1 or 1,3)")
    parser.add_argument("-2", dest="right_keys", metavar="FIELDS", help="Join on these right fields")
    parser.add_argument("-j", dest="keys", metavar="FIELDS", help="Join on these fields in both inputs")
    parser.add_argument("-t", dest="delimiter", type=_delimiter, metavar="CHAR", help="Field delimiter (default: tab)")
    parser.add_argument(
        "-a",
        dest="all",
        action="append",
        type=_file_number,
        metavar="FILENUM",
        help="Also print unpairable lines from file 1 or 2 (repeatable)",
    )
    parser.add_argument(
        "-v",
        dest="only",
        action="append",
        type=_file_number,
        metavar="FILENUM",
        help="Print only unpairable lines from file 1 or 2 (repeatable)",
    )
    parser.add_argument("-e", dest="placeholder", metavar="STRING", help="Replace missing fields with STRING")
    parser.add_argument("--empty-left", metavar="STRING", help="Replacement for missing left fields")
    parser.add_argument("--empty-right", metavar="STRING", help="Replacement for missing right fields")
    parser.add_argument("-o", dest="output", metavar="LIST", help="Output fields, e.g. 0,1.2,2.3")
    parser.add_argument("-i", "--ignore-case", action="store_true", default=None, help="Compare keys ignoring ASCII case")
    parser.add_argument("--header", action="store_true", default=None, help="Treat the first line of each input as a header")
    parser.add_argument("--output-delimiter", type=_delimiter, metavar="CHAR", help="Output delimiter (default: input delimiter)")
    parser.add_argument(
        "--max-replay",
        type=int,
        metavar="N",
        help="Fail instead of spilling more than N records when replaying a piped input",
    )
    parser.add_argument("--spill-dir", metavar="DIR", help="Directory for replay spill files")
    parser.add_argument("--config", metavar="FILE", help="YAML file with a 'join' section")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--log-format", choices=["human", "json"], default="human", help="Log output format")
    parser.add_argument("--log-file", metavar="FILE", help="Also write logs to FILE")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_settings(args: argparse.Namespace, base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Merge command-line options over the settings of a config file."""
    settings: Dict[str, Any] = dict(base or {})

    overrides = {
        "left": args.left,
        "right": args.right,
        "delimiter": args.delimiter,
        "output_delimiter": args.output_delimiter,
        "output": args.output,
        "max_replay": args.max_replay,
        "spill_dir": args.spill_dir,
        "header": args.header,
        "ignore_case": args.ignore_case,
    }
    if args.keys is not None:
        settings.pop("left_keys", None)
        settings.pop("right_keys", None)
        overrides["keys"] = args.keys
    overrides["left_keys"] = args.left_keys
    overrides["right_keys"] = args.right_keys

    if args.placeholder is not None:
        settings.pop("left_placeholder", None)
        settings.pop("right_placeholder", None)
        overrides["placeholder"] = args.placeholder
    overrides["left_placeholder"] = args.empty_left
    overrides["right_placeholder"] = args.empty_right

    if args.ignore_case:
        settings.pop("comparator", None)

    for key, value in overrides.items():
        if value is not None:
            settings[key] = value

    if args.all or args.only:
        files = set(args.all or []) | set(args.only or [])
        settings["mode"] = JoinMode.from_flags(1 in files, 2 in files).value
        settings["unpaired_only"] = bool(args.only)
    elif "mode" not in settings:
        # plain join(1) behaviour: paired lines only
        settings["mode"] = JoinMode.INNER.value
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.all and args.only:
        parser.error("-a and -v cannot be combined")

    setup_logging(
        verbose=args.verbose,
        json_format=args.log_format == "json",
        log_file=args.log_file,
        quiet=args.quiet,
    )

    try:
        base = load_join_section(args.config) if args.config else None
        config_dir = Path(args.config).parent if args.config else None
        job = config_from_dict(build_settings(args, base), config_dir=config_dir)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_USAGE
    except JoinError as exc:
        logger.error("%s: %s", exc.kind, exc)
        return EXIT_JOIN_ERROR

    if not job.left or not job.right:
        parser.error("two inputs are required (as arguments or in --config)")

    try:
        result = run_join(job.left, job.right, job.config)
    except JoinError as exc:
        logger.error("%s: %s", exc.kind, exc)
        return EXIT_JOIN_ERROR

    logger.debug("Run summary: %s", result.to_dict())
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
