"""Locate fix targets inside a history window.

Identifiers may be full or abbreviated shas. Resolution refuses to guess:
an identifier matching several commits, or several identifiers landing on the
same commit, is an ``AmbiguousTargetError``.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from repokeeper.core.console import get_logger
from repokeeper.core.result import (
    AmbiguousTargetError,
    Err,
    Ok,
    RepoKeeperError,
    Result,
    TargetNotFoundError,
    ValidationError,
)

from .models import FixRequest, HistoryWindow, RewritePlan

logger = get_logger(__name__)

_SHA_PATTERN = re.compile(r"[0-9a-f]{4,40}")


def normalize_identifier(identifier: str) -> Result[str, ValidationError]:
    """Lower-case and validate a full or abbreviated sha."""
    cleaned = identifier.strip().lower()
    if not _SHA_PATTERN.fullmatch(cleaned):
        return Err(
            ValidationError(
                "Commit identifier must be 4 to 40 hex characters",
                context={"identifier": identifier},
            )
        )
    return Ok(cleaned)


def _matching_indices(window: HistoryWindow, identifier: str) -> list[int]:
    return [
        index
        for index, commit in enumerate(window)
        if commit.sha.lower() == identifier or commit.sha.lower().startswith(identifier)
    ]


def resolve_targets(
    window: HistoryWindow, requests: Sequence[FixRequest]
) -> Result[RewritePlan, RepoKeeperError]:
    """Resolve every request to a window position and plan the rewrite from the oldest one."""
    if not requests:
        return Err(ValidationError("At least one fix request is required"))

    resolved: dict[int, FixRequest] = {}
    missing: list[str] = []

    for request in requests:
        if not request.message.strip():
            return Err(
                ValidationError("Replacement message is empty", context={"target": request.target})
            )
        match normalize_identifier(request.target):
            case Err(err):
                return Err(err)
            case Ok(identifier):
                pass

        indices = _matching_indices(window, identifier)
        if not indices:
            missing.append(request.target)
            continue
        if len(indices) > 1:
            return Err(
                AmbiguousTargetError(
                    f"Identifier {request.target} matches {len(indices)} commits",
                    context={"matches": ", ".join(window[i].sha[:12] for i in indices)},
                )
            )

        index = indices[0]
        if index in resolved:
            return Err(
                AmbiguousTargetError(
                    f"Identifiers {resolved[index].target} and {request.target} "
                    "target the same commit",
                    context={"sha": window[index].sha},
                )
            )
        resolved[index] = request

    if missing:
        return Err(
            TargetNotFoundError(
                f"Commit not found in the last {len(window)} commits; "
                "it may be older than the lookback limit",
                context={"missing": ", ".join(missing)},
            )
        )

    deepest_index = max(resolved)
    deepest = window[deepest_index]
    # Root commits anchor on an explicit empty parent list.
    anchor_parents = deepest.parent_shas[:1]
    targets = {window[index].sha: request.message for index, request in resolved.items()}

    logger.debug(
        "Resolved %d targets; rewriting from index %d (%s)",
        len(targets),
        deepest_index,
        deepest.sha[:7],
    )
    return Ok(
        RewritePlan(
            window=window,
            deepest_index=deepest_index,
            anchor_parents=anchor_parents,
            targets=targets,
        )
    )
