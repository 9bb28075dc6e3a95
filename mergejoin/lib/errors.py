"""Structured exception hierarchy for merge joins.

Every failure is fatal and carries enough context (side, record index,
offending values) to locate the problem in the input.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "JoinError",
    "OrderingViolation",
    "ArityMismatch",
    "SourceReadFailure",
    "UnsupportedCrossJoin",
    "ConfigurationError",
]


class JoinError(Exception):
    """Base exception for all join errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        side: Optional[str] = None,
        index: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.side = side
        self.index = index
        self.details = details or {}
        self.suggestion = suggestion

        parts = [message]

        if side is not None:
            location = side if index is None else f"{side} record {index}"
            parts.insert(0, f"[{location}]")

        if self.details:
            detail_lines = [f"  {k}: {v}" for k, v in self.details.items()]
            parts.append("\nDetails:")
            parts.extend(detail_lines)

        if suggestion:
            parts.append(f"\nSuggestion: {suggestion}")

        super().__init__("\n".join(parts) if len(parts) > 1 else message)
        self.message = message

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.kind,
            "message": self.message,
            "side": self.side,
            "index": self.index,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class OrderingViolation(JoinError):
    """A side's key sequence decreased.

    Raised the first time an out-of-order record is peeked, before any row
    derived from that comparison is produced.
    """

    def __init__(
        self,
        message: str,
        *,
        previous_key: Any = None,
        key: Any = None,
        **kwargs: Any,
    ) -> None:
        self.previous_key = previous_key
        self.key = key

        details = kwargs.pop("details", {})
        if previous_key is not None:
            details["previous_key"] = previous_key
        if key is not None:
            details["key"] = key

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Sort both inputs on the join fields with byte ordering "
                "(e.g. LC_ALL=C sort) before joining."
            )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class ArityMismatch(JoinError):
    """Left and right key-field lists have different lengths."""

    def __init__(
        self,
        message: str,
        *,
        left_arity: Optional[int] = None,
        right_arity: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        self.left_arity = left_arity
        self.right_arity = right_arity

        details = kwargs.pop("details", {})
        if left_arity is not None:
            details["left_arity"] = left_arity
        if right_arity is not None:
            details["right_arity"] = right_arity

        super().__init__(message, details=details, **kwargs)


class SourceReadFailure(JoinError):
    """A record source failed to produce its next record."""

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.cause = cause

        details = kwargs.pop("details", {})
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class UnsupportedCrossJoin(JoinError):
    """A matched group cannot be replayed by its cursor.

    Raised instead of emitting a truncated cross product.
    """

    def __init__(
        self,
        message: str,
        *,
        max_replay: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        self.max_replay = max_replay

        details = kwargs.pop("details", {})
        if max_replay is not None:
            details["max_replay"] = max_replay

        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Pass the input as a regular file instead of a pipe, swap the "
                "inputs so the large group is on the left, or raise --max-replay."
            )

        super().__init__(message, details=details, suggestion=suggestion, **kwargs)


class ConfigurationError(JoinError):
    """Invalid join configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.value = value

        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)
