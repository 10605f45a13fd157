"""Unified error model for datamask."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from datamask.namespaces import Namespace


class DatamaskError(Exception):
    """Base class for all errors surfaced to callers."""

    code: Optional[str] = None
    hint: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if hint is not None:
            self.hint = hint

    def format(self) -> str:
        components = [self.message]
        if self.code:
            components[-1] = f"{components[-1]} ({self.code})"
        if self.hint:
            components.append(f"Hint: {self.hint}")
        return " ".join(part for part in components if part)


class NameNotFoundError(DatamaskError, LookupError):
    """Raised when an identifier is absent from every namespace searched."""

    code = "DM_NOT_FOUND"

    def __init__(
        self,
        identifier: object,
        namespaces_searched: Iterable["Namespace"],
        *,
        hint: Optional[str] = None,
    ) -> None:
        self.identifier = identifier
        self.namespaces_searched: Tuple["Namespace", ...] = tuple(namespaces_searched)
        searched = " or ".join(namespace.value for namespace in self.namespaces_searched)
        super().__init__(f"Name {identifier!r} was not found in the {searched} namespace", hint=hint)


class AmbiguousNameError(DatamaskError):
    """Raised in strict mode when a bare name exists in both namespaces."""

    code = "DM_AMBIGUOUS"

    def __init__(self, identifier: str, *, data_pronoun: str = "_data", env_pronoun: str = "_env") -> None:
        self.identifier = identifier
        super().__init__(
            f"Name {identifier!r} is defined both as a dataset column and in scope",
            hint=f"Write {data_pronoun}.{identifier} or {env_pronoun}.{identifier}",
        )


class ExpressionError(DatamaskError):
    """Raised when an expression is malformed or violates the sandbox."""

    code = "DM_EXPRESSION"


class EvaluationError(ExpressionError):
    """Raised when a well-formed expression fails on the values it reads."""

    code = "DM_EVALUATION"


class FrameOperationError(DatamaskError):
    """Raised when a frame verb is invalid."""

    code = "DM_FRAME_OP"


class DatasetLoadError(DatamaskError):
    """Raised when a dataset source cannot be read."""

    code = "DM_LOAD"


class ConfigError(DatamaskError):
    """Raised when configuration values are invalid."""

    code = "DM_CONFIG"


__all__ = [
    "DatamaskError",
    "NameNotFoundError",
    "AmbiguousNameError",
    "ExpressionError",
    "EvaluationError",
    "FrameOperationError",
    "DatasetLoadError",
    "ConfigError",
]
