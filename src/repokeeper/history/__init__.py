"""Commit history linearization and replay.

This package rewrites commit messages on a remote branch:
    - Fetch a bounded history window
    - Resolve full or abbreviated target shas
    - Replay the chain from the oldest target to the tip
    - Force-move the branch ref once, last
"""

from __future__ import annotations

from .messages import MessageResolutionMap
from .models import FixRequest, HistoryWindow, RewritePlan, RewriteResult
from .replay import replay_chain
from .rewrite import (
    bulk_fix,
    execute_plan,
    plan_rewrite,
    resolve_branch,
    single_fix,
    update_branch_ref,
)
from .targets import normalize_identifier, resolve_targets
from .window import DEFAULT_WINDOW_SIZE, fetch_history_window

__all__ = [
    "DEFAULT_WINDOW_SIZE",
    "FixRequest",
    "HistoryWindow",
    "MessageResolutionMap",
    "RewritePlan",
    "RewriteResult",
    "bulk_fix",
    "execute_plan",
    "fetch_history_window",
    "normalize_identifier",
    "plan_rewrite",
    "replay_chain",
    "resolve_branch",
    "resolve_targets",
    "single_fix",
    "update_branch_ref",
]
