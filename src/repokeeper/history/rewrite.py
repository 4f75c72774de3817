"""High-level history rewrite operations.

Provides the entry points used by the CLI:
    - plan_rewrite: fetch the window and resolve targets, no writes
    - execute_plan: replay the chain and move the branch ref
    - single_fix / bulk_fix: plan and execute in one call
    - update_branch_ref: the one irreversible step, always last

Several fixes in one window are folded into a single fetch, a single replay and
a single ref update.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from repokeeper.core.console import get_logger
from repokeeper.core.result import (
    Err,
    Ok,
    RemoteError,
    RepoKeeperError,
    Result,
    RewriteTimeoutError,
    TargetNotFoundError,
)
from repokeeper.github.client import ObjectStore

from .messages import MessageResolutionMap
from .models import FixRequest, RewritePlan, RewriteResult
from .replay import replay_chain
from .targets import resolve_targets
from .window import DEFAULT_WINDOW_SIZE, fetch_history_window

logger = get_logger(__name__)

DEFAULT_REWRITE_TIMEOUT = 120.0


async def resolve_branch(
    store: ObjectStore, repo: str, branch: str | None
) -> Result[str, RemoteError]:
    """Return ``branch`` or, when it is not given, the repository's default branch."""
    if branch:
        return Ok(branch)
    return await store.get_default_branch(repo)


async def plan_rewrite(
    store: ObjectStore,
    repo: str,
    branch: str,
    requests: Sequence[FixRequest],
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> Result[RewritePlan, RepoKeeperError]:
    """Fetch the history window and resolve every request against it."""
    match await fetch_history_window(store, repo, branch, window_size):
        case Err(err):
            return Err(err)
        case Ok(window):
            pass

    if not window:
        return Err(
            TargetNotFoundError(
                f"Branch {branch} has no commits", context={"repo": repo, "branch": branch}
            )
        )

    return resolve_targets(window, requests)


async def update_branch_ref(
    store: ObjectStore, repo: str, branch: str, sha: str
) -> Result[None, RemoteError]:
    """Force-move ``branch`` to ``sha``."""
    match await store.update_ref(repo, branch, sha, force=True):
        case Err(err):
            return Err(err)
        case Ok(_):
            logger.info("Moved %s@%s to %s", repo, branch, sha[:7])
            return Ok(None)


async def _ensure_ref_unmoved(
    store: ObjectStore, repo: str, branch: str, expected: str
) -> Result[None, RemoteError]:
    match await store.get_ref(repo, branch):
        case Err(err):
            return Err(err)
        case Ok(current) if current != expected:
            return Err(
                RemoteError(
                    f"Branch {branch} moved during the rewrite; nothing was changed",
                    status_code=409,
                    context={"expected": expected[:7], "current": current[:7]},
                )
            )
        case Ok(_):
            return Ok(None)


async def execute_plan(
    store: ObjectStore,
    repo: str,
    branch: str,
    plan: RewritePlan,
    *,
    timeout: float = DEFAULT_REWRITE_TIMEOUT,
) -> Result[RewriteResult, RepoKeeperError]:
    """Replay ``plan`` and move the branch to the new tip.

    The branch ref is only written after the whole chain has been created, and
    only if it still points at the tip the plan was built from. Any failure
    before that leaves the branch exactly as it was.
    """
    old_tip = plan.window[0].sha
    messages = MessageResolutionMap(plan.targets)
    logger.debug(
        "Replaying %d commits of %s@%s onto %s",
        plan.deepest_index + 1,
        repo,
        branch,
        plan.anchor_parents[0][:7] if plan.anchor_parents else "(root)",
    )

    try:
        replayed = await asyncio.wait_for(replay_chain(store, repo, plan, messages), timeout)
    except TimeoutError:
        return Err(
            RewriteTimeoutError(
                f"Replay did not finish within {timeout:g}s; branch left unchanged",
                context={"repo": repo, "branch": branch},
            )
        )

    match replayed:
        case Err(err):
            return Err(err)
        case Ok(rewritten):
            pass

    new_tip = rewritten[-1][1]

    match await _ensure_ref_unmoved(store, repo, branch, old_tip):
        case Err(err):
            return Err(err)
        case Ok(_):
            pass

    match await update_branch_ref(store, repo, branch, new_tip):
        case Err(err):
            return Err(err)
        case Ok(_):
            pass

    return Ok(
        RewriteResult(branch=branch, old_tip=old_tip, new_tip=new_tip, rewritten=tuple(rewritten))
    )


async def bulk_fix(
    store: ObjectStore,
    repo: str,
    branch: str,
    requests: Sequence[FixRequest],
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    timeout: float = DEFAULT_REWRITE_TIMEOUT,
) -> Result[RewriteResult, RepoKeeperError]:
    """Rewrite the messages of every requested commit in one pass."""
    match await plan_rewrite(store, repo, branch, requests, window_size=window_size):
        case Err(err):
            return Err(err)
        case Ok(plan):
            return await execute_plan(store, repo, branch, plan, timeout=timeout)


async def single_fix(
    store: ObjectStore,
    repo: str,
    branch: str,
    target: str,
    message: str,
    *,
    window_size: int = DEFAULT_WINDOW_SIZE,
    timeout: float = DEFAULT_REWRITE_TIMEOUT,
) -> Result[RewriteResult, RepoKeeperError]:
    """Replace one commit message; see ``bulk_fix``."""
    return await bulk_fix(
        store,
        repo,
        branch,
        [FixRequest(target=target, message=message)],
        window_size=window_size,
        timeout=timeout,
    )
