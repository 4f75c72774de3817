"""Chain replay: rebuild history from the oldest target up to the tip.

Every commit from ``plan.deepest_index`` to index 0 gets a new object, even
when its message is unchanged, because its parent link changes. New commits
keep the original tree and get exactly one parent (none for a root): the
replayed range is chained in window order, as the remote listed it. Merge
parents are dropped, and side-branch commits that the listing interleaved into
the window become part of the single line.

Replay never touches refs. When a create fails, the objects made so far are
left dangling and unreferenced.
"""

from __future__ import annotations

from repokeeper.core.console import get_logger
from repokeeper.core.result import Err, Ok, RepoKeeperError, Result
from repokeeper.github.client import ObjectStore

from .messages import MessageResolutionMap
from .models import RewritePlan

logger = get_logger(__name__)


async def replay_chain(
    store: ObjectStore,
    repo: str,
    plan: RewritePlan,
    messages: MessageResolutionMap,
) -> Result[list[tuple[str, str]], RepoKeeperError]:
    """Create the replacement chain and return ``(original, new)`` sha pairs, oldest first.

    The last pair's new sha is the new tip. Messages are resolved before the
    first create, so an ambiguous message map writes nothing.
    """
    replay_range = [plan.window[index] for index in range(plan.deepest_index, -1, -1)]
    resolved: list[str] = []
    for commit in replay_range:
        match messages.resolve(commit):
            case Err(err):
                return Err(err)
            case Ok(message):
                resolved.append(message)

    previous: str | None = plan.anchor_parents[0] if plan.anchor_parents else None
    rewritten: list[tuple[str, str]] = []

    # Oldest first: a child can only be created once its new parent exists.
    for commit, message in zip(replay_range, resolved, strict=True):
        if commit.is_merge:
            logger.warning(
                "Commit %s is a merge; replay chains it linearly in window order "
                "and drops its other parents",
                commit.sha[:7],
            )

        parents = [previous] if previous is not None else []
        match await store.create_commit(repo, message, commit.tree_sha, parents):
            case Err(err):
                logger.debug(
                    "Replay aborted at %s after %d new objects", commit.sha[:7], len(rewritten)
                )
                return Err(err)
            case Ok(new_sha):
                logger.debug("Replayed %s -> %s", commit.sha[:7], new_sha[:7])
                rewritten.append((commit.sha, new_sha))
                previous = new_sha

    return Ok(rewritten)
