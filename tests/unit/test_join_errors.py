"""Tests for mergejoin/lib/errors.py - structured join errors."""

import pytest

from mergejoin.lib.errors import (
    ArityMismatch,
    ConfigurationError,
    JoinError,
    OrderingViolation,
    SourceReadFailure,
    UnsupportedCrossJoin,
)


class TestJoinError:
    """Tests for the base JoinError."""

    def test_plain_message(self):
        error = JoinError("something broke")
        assert str(error) == "something broke"
        assert error.message == "something broke"

    def test_location_prefix(self):
        error = JoinError("bad record", side="left", index=7)
        assert str(error).startswith("[left record 7]")

    def test_side_without_index(self):
        error = JoinError("bad input", side="right")
        assert str(error).startswith("[right]")

    def test_details_and_suggestion(self):
        error = JoinError("oops", details={"path": "a.tsv"}, suggestion="Try again")
        text = str(error)
        assert "Details:" in text
        assert "path: a.tsv" in text
        assert "Suggestion: Try again" in text

    def test_to_dict(self):
        error = JoinError("oops", side="left", index=1, details={"k": "v"})
        assert error.to_dict() == {
            "error_type": "JoinError",
            "message": "oops",
            "side": "left",
            "index": 1,
            "details": {"k": "v"},
            "suggestion": None,
        }

    def test_all_errors_are_join_errors(self):
        for cls in (
            OrderingViolation,
            ArityMismatch,
            SourceReadFailure,
            UnsupportedCrossJoin,
            ConfigurationError,
        ):
            assert issubclass(cls, JoinError)


class TestSubclasses:
    """Tests for the specific error types."""

    def test_ordering_violation(self):
        error = OrderingViolation(
            "not sorted", side="left", index=2, previous_key="3", key="2"
        )
        assert error.kind == "OrderingViolation"
        assert error.details == {"previous_key": "3", "key": "2"}
        assert "LC_ALL=C sort" in error.suggestion

    def test_arity_mismatch(self):
        error = ArityMismatch("differ", left_arity=2, right_arity=1)
        assert error.details == {"left_arity": 2, "right_arity": 1}

    def test_source_read_failure_records_cause(self):
        cause = OSError("disk gone")
        error = SourceReadFailure("read failed", side="right", index=4, cause=cause)
        assert error.cause is cause
        assert error.details["cause"] == "disk gone"
        assert error.details["cause_type"] == "OSError"

    def test_unsupported_cross_join(self):
        error = UnsupportedCrossJoin("too big", max_replay=10)
        assert error.details["max_replay"] == 10
        assert "--max-replay" in error.suggestion

    def test_custom_suggestion_kept(self):
        error = UnsupportedCrossJoin("too big", suggestion="Use a file")
        assert error.suggestion == "Use a file"

    def test_configuration_error(self):
        error = ConfigurationError("bad mode", field="mode", value="sideways")
        assert error.details == {"field": "mode", "value": "sideways"}

    def test_catchable_as_base(self):
        with pytest.raises(JoinError, match="bad mode"):
            raise ConfigurationError("bad mode")
