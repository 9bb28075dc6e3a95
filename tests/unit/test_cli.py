"""Tests for the merge-join command line.

Covers:
- join(1)-style flags (-1/-2/-j, -a, -v, -e, -o, -t, -i)
- --config YAML files and command-line overrides
- exit codes for usage errors and join errors
"""

import subprocess
import sys
from pathlib import Path

import pytest

from mergejoin.__main__ import EXIT_JOIN_ERROR, EXIT_OK, EXIT_USAGE, build_parser, build_settings, main

PROJECT_ROOT = Path(__file__).resolve().parents[2]


@pytest.fixture
def files(write_tsv):
    left = write_tsv("left.tsv", [["1", "a"], ["2", "b"]])
    right = write_tsv("right.tsv", [["1", "x"], ["3", "y"]])
    return str(left), str(right)


def _run(capsysbinary, *argv):
    code = main(["-q", *argv])
    out = capsysbinary.readouterr()
    return code, out.out.decode(), out.err.decode()


class TestCLIHelp:
    """Tests for CLI help and basic invocation."""

    def test_help_flag(self):
        """--help should show usage information."""
        result = subprocess.run(
            [sys.executable, "-m", "mergejoin", "--help"],
            capture_output=True,
            text=True,
            cwd=PROJECT_ROOT,
        )

        assert result.returncode == 0
        assert "usage" in result.stdout.lower()

    def test_version(self, capsys):
        """--version should print the version and exit 0."""
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "merge-join" in capsys.readouterr().out


class TestCLIJoin:
    """Tests for joining files from the command line."""

    def test_inner_by_default(self, files, capsysbinary, restore_logging):
        """A plain invocation prints paired lines only."""
        code, out, _ = _run(capsysbinary, *files)
        assert code == EXIT_OK
        assert out == "1\ta\t1\tx\n"

    def test_unpaired_left(self, files, capsysbinary, restore_logging):
        """-a 1 adds unpaired left lines."""
        code, out, _ = _run(capsysbinary, "-a", "1", "-e", "NULL", *files)
        assert code == EXIT_OK
        assert out == "1\ta\t1\tx\n2\tb\tNULL\tNULL\n"

    def test_unpaired_both(self, files, capsysbinary, restore_logging):
        """-a 1 -a 2 is a full outer join."""
        _, out, _ = _run(capsysbinary, "-a", "1", "-a", "2", "-e", "-", *files)
        assert out.splitlines() == [
            "1\ta\t1\tx",
            "2\tb\t-\t-",
            "-\t-\t3\ty",
        ]

    def test_only_unpaired(self, files, capsysbinary, restore_logging):
        """-v 2 prints only the unpaired right lines."""
        _, out, _ = _run(capsysbinary, "-v", "2", *files)
        assert out == "\t\t3\ty\n"

    def test_output_fields(self, files, capsysbinary, restore_logging):
        """-o selects and orders output fields."""
        _, out, _ = _run(capsysbinary, "-a", "2", "-o", "0,2.2,1.2", "-e", "?", *files)
        assert out.splitlines() == ["1\tx\ta", "3\ty\t?"]

    def test_delimiter_and_key_fields(self, write_tsv, capsysbinary, restore_logging):
        """-t and -1/-2 pick the delimiter and join fields."""
        left = write_tsv("left.csv", [["a", "1"], ["b", "2"]], delimiter=",")
        right = write_tsv("right.csv", [["2", "x"]], delimiter=",")
        _, out, _ = _run(capsysbinary, "-t", ",", "-1", "2", "-2", "1", str(left), str(right))
        assert out == "b,2,2,x\n"

    def test_ignore_case(self, write_tsv, capsysbinary, restore_logging):
        """-i compares keys without regard to ASCII case."""
        left = write_tsv("left.tsv", [["ABC", "a"]])
        right = write_tsv("right.tsv", [["abc", "x"]])
        _, out, _ = _run(capsysbinary, "-i", str(left), str(right))
        assert out == "ABC\ta\tabc\tx\n"

    def test_tab_escape(self, files, capsysbinary, restore_logging):
        """-t '\\t' means a tab."""
        code, out, _ = _run(capsysbinary, "-t", "\\t", *files)
        assert code == EXIT_OK
        assert out == "1\ta\t1\tx\n"


class TestCLIConfig:
    """Tests for --config files."""

    def test_config_file(self, files, tmp_path, capsysbinary, restore_logging):
        """Inputs and settings can come from YAML."""
        left, right = files
        config = tmp_path / "job.yaml"
        config.write_text(
            f"join:\n  left: {left}\n  right: {right}\n  mode: full-outer\n  placeholder: NA\n"
        )
        code, out, _ = _run(capsysbinary, "--config", str(config))
        assert code == EXIT_OK
        assert out.splitlines() == ["1\ta\t1\tx", "2\tb\tNA\tNA", "NA\tNA\t3\ty"]

    def test_command_line_overrides_config(self, files, tmp_path, capsysbinary, restore_logging):
        """Flags win over the config file."""
        left, right = files
        config = tmp_path / "job.yaml"
        config.write_text(f"join:\n  left: {left}\n  right: {right}\n  mode: full-outer\n")
        _, out, _ = _run(capsysbinary, "--config", str(config), "-v", "1")
        assert out == "2\tb\t\t\n"

    def test_invalid_config(self, tmp_path, capsysbinary, restore_logging):
        """An invalid config exits with the usage code."""
        config = tmp_path / "job.yaml"
        config.write_text("join:\n  mode: sideways\n")
        code, _, err = _run(capsysbinary, "--config", str(config))
        assert code == EXIT_USAGE
        assert "Unknown join mode" in err


class TestCLIErrors:
    """Tests for exit codes."""

    def test_unsorted_input(self, write_tsv, capsysbinary, restore_logging):
        """An ordering violation exits 1 after printing earlier rows."""
        left = write_tsv("left.tsv", [["1", "a"], ["0", "b"]])
        right = write_tsv("right.tsv", [["1", "x"]])
        code, out, err = _run(capsysbinary, str(left), str(right))
        assert code == EXIT_JOIN_ERROR
        assert out == "1\ta\t1\tx\n"
        assert "OrderingViolation" in err

    def test_missing_input_file(self, files, tmp_path, capsysbinary, restore_logging):
        """An unreadable input exits 1."""
        code, _, err = _run(capsysbinary, files[0], str(tmp_path / "nope.tsv"))
        assert code == EXIT_JOIN_ERROR
        assert "SourceReadFailure" in err

    def test_key_arity_mismatch(self, files, capsysbinary, restore_logging):
        """Key lists of different lengths exit 1."""
        code, _, err = _run(capsysbinary, "-1", "1,2", "-2", "1", *files)
        assert code == EXIT_JOIN_ERROR
        assert "ArityMismatch" in err

    def test_bad_field_number(self, files, capsysbinary, restore_logging):
        """Field number 0 is a usage error."""
        code, _, _ = _run(capsysbinary, "-j", "0", *files)
        assert code == EXIT_USAGE

    def test_a_and_v_conflict(self, files, capsysbinary, restore_logging):
        """-a and -v cannot be combined."""
        with pytest.raises(SystemExit) as exc_info:
            main(["-a", "1", "-v", "2", *files])
        assert exc_info.value.code == EXIT_USAGE

    def test_missing_inputs(self, capsysbinary, restore_logging):
        """Two inputs are required."""
        with pytest.raises(SystemExit) as exc_info:
            main(["-q"])
        assert exc_info.value.code == EXIT_USAGE

    def test_bad_file_number(self, files, capsysbinary):
        """-a only accepts 1 or 2."""
        with pytest.raises(SystemExit):
            main(["-a", "3", *files])


class TestBuildSettings:
    """Tests for merging flags into settings."""

    def test_defaults_to_inner(self):
        args = build_parser().parse_args(["l.tsv", "r.tsv"])
        settings = build_settings(args)
        assert settings["mode"] == "inner"
        assert settings["left"] == "l.tsv"

    def test_config_mode_kept(self):
        args = build_parser().parse_args([])
        assert build_settings(args, {"mode": "left"})["mode"] == "left"

    def test_flags_override_config_mode(self):
        args = build_parser().parse_args(["-a", "2"])
        assert build_settings(args, {"mode": "inner"})["mode"] == "right-outer"

    def test_only_sets_unpaired(self):
        args = build_parser().parse_args(["-v", "1", "-v", "2"])
        settings = build_settings(args)
        assert settings["mode"] == "full-outer"
        assert settings["unpaired_only"] is True

    def test_shared_keys_replace_side_keys(self):
        args = build_parser().parse_args(["-j", "2"])
        settings = build_settings(args, {"left_keys": [1], "right_keys": [3]})
        assert settings["keys"] == "2"
        assert "left_keys" not in settings
        assert "right_keys" not in settings

    def test_placeholder_replaces_side_placeholders(self):
        args = build_parser().parse_args(["-e", "NULL"])
        settings = build_settings(args, {"left_placeholder": "L"})
        assert settings["placeholder"] == "NULL"
        assert "left_placeholder" not in settings
