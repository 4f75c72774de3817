from __future__ import annotations

from repokeeper.core.config import MAX_WINDOW_SIZE
from repokeeper.core.console import get_logger
from repokeeper.core.result import Err, Ok, RemoteError, Result, ValidationError
from repokeeper.github.client import CommitRecord, ObjectStore

logger = get_logger(__name__)

DEFAULT_WINDOW_SIZE = 50


async def fetch_history_window(
    store: ObjectStore,
    repo: str,
    branch: str,
    limit: int = DEFAULT_WINDOW_SIZE,
) -> Result[list[CommitRecord], RemoteError | ValidationError]:
    """Return up to ``limit`` commits reachable from ``branch``, newest first.

    Commits older than the window are out of reach; there is no
    pagination. An unborn branch yields an empty list, not an error.
    """
    if not 1 <= limit <= MAX_WINDOW_SIZE:
        return Err(
            ValidationError(
                f"History window must hold between 1 and {MAX_WINDOW_SIZE} commits",
                context={"limit": limit},
            )
        )

    match await store.get_commits(repo, branch, limit):
        case Err(err):
            return Err(err)
        case Ok(commits):
            logger.debug("Fetched %d commits from %s@%s", len(commits), repo, branch)
            return Ok(list(commits[:limit]))
