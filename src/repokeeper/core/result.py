"""
Result values and the repokeeper error hierarchy.

Remote and engine operations return ``Ok(value)`` or ``Err(error)`` instead of
raising; the CLI layer unwraps them, which re-raises the error for
``handle_exceptions`` to report.

Usage:
    from repokeeper.core.result import Ok, Err, Result, RemoteError

    async def create(...) -> Result[str, RemoteError]:
        if response.is_error:
            return Err(RemoteError("GitHub API Error: 422 - ...", status_code=422))
        return Ok(payload["sha"])

    match await create(...):
        case Ok(sha):
            ...
        case Err(err):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, NoReturn, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful outcome."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed outcome. ``unwrap`` re-raises the carried exception."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        raise self.error


Result = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Domain-specific error hierarchy
# ---------------------------------------------------------------------------


class RepoKeeperError(Exception):
    """Root of every error repokeeper reports.

    ``context`` holds small key/value details that are appended to the message.
    """

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            details = ", ".join(f"{key}={value}" for key, value in self.context.items())
            return f"{self.message} [{details}]"
        return self.message


class ConfigurationError(RepoKeeperError):
    """Settings are missing or unusable, e.g. no GitHub token for a rewrite."""


class ValidationError(RepoKeeperError):
    """User input was rejected before anything was sent to GitHub.

    Malformed commit identifiers, blank messages, an empty fix list and
    window sizes outside 1..100 all end up here.
    """


class RemoteError(RepoKeeperError):
    """Raised when a call against the remote object store fails.

    Covers network failures, authentication, rate limiting and conflicts.
    ``transient`` marks failures a caller may retry by restarting the whole
    fetch-resolve-replay-update sequence.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        transient: bool = False,
        context: dict | None = None,
    ) -> None:
        super().__init__(message, context=context)
        self.status_code = status_code
        self.transient = transient


class RewriteTimeoutError(RemoteError):
    """Raised when the replay loop exceeds its deadline. The ref is never updated."""

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        super().__init__(message, transient=True, context=context)


class TargetNotFoundError(RepoKeeperError):
    """Raised when requested commits are not inside the fetched history window.

    The commit may be older than the lookback limit.
    """


class AmbiguousTargetError(RepoKeeperError):
    """Raised when an identifier matches several commits, or several identifiers one commit."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def try_result(fn: Callable[[], T], error_type: type[E] = RepoKeeperError) -> Result[T, E]:
    """Call ``fn``; an ``error_type`` exception becomes ``Err`` instead of propagating."""
    try:
        value = fn()
    except error_type as exc:
        return Err(exc)
    return Ok(value)


def collect_results(results: list[Result[T, E]]) -> Result[list[T], E]:
    """Turn a list of results into one: the first ``Err``, or ``Ok`` of all values."""
    values: list[T] = []
    for result in results:
        match result:
            case Err(_):
                return result
            case Ok(value):
                values.append(value)
    return Ok(values)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "RepoKeeperError",
    "ConfigurationError",
    "ValidationError",
    "RemoteError",
    "RewriteTimeoutError",
    "TargetNotFoundError",
    "AmbiguousTargetError",
    "try_result",
    "collect_results",
]
