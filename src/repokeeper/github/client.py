from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from repokeeper.core.config import GitHubConfig
from repokeeper.core.console import get_logger
from repokeeper.core.result import Err, Ok, RemoteError, Result

logger = get_logger(__name__)

_EMPTY_REPOSITORY = "Git Repository is empty"


@dataclass(frozen=True)
class CommitRecord:
    """Immutable snapshot of one commit as reported by the remote."""

    sha: str
    message: str
    tree_sha: str
    parent_shas: tuple[str, ...] = ()

    @property
    def summary(self) -> str:
        return self.message.split("\n", 1)[0]

    @property
    def is_root(self) -> bool:
        return not self.parent_shas

    @property
    def is_merge(self) -> bool:
        return len(self.parent_shas) > 1


class ObjectStore(Protocol):
    """Content-addressed commit graph with named, force-movable branch refs."""

    async def get_commits(
        self, repo: str, branch: str, limit: int
    ) -> Result[list[CommitRecord], RemoteError]: ...

    async def get_commit(self, repo: str, sha: str) -> Result[CommitRecord, RemoteError]: ...

    async def create_commit(
        self, repo: str, message: str, tree_sha: str, parent_shas: Sequence[str]
    ) -> Result[str, RemoteError]: ...

    async def get_ref(self, repo: str, branch: str) -> Result[str, RemoteError]: ...

    async def update_ref(
        self, repo: str, branch: str, sha: str, force: bool = True
    ) -> Result[None, RemoteError]: ...

    async def get_default_branch(self, repo: str) -> Result[str, RemoteError]: ...


def _parse_commit_listing(item: Mapping[str, Any]) -> CommitRecord:
    """Parse an entry of ``GET /repos/{repo}/commits``."""
    commit = item["commit"]
    return CommitRecord(
        sha=item["sha"],
        message=commit["message"],
        tree_sha=commit["tree"]["sha"],
        parent_shas=tuple(parent["sha"] for parent in item.get("parents") or []),
    )


def _parse_git_commit(payload: Mapping[str, Any]) -> CommitRecord:
    """Parse a Git Data API commit object."""
    return CommitRecord(
        sha=payload["sha"],
        message=payload["message"],
        tree_sha=payload["tree"]["sha"],
        parent_shas=tuple(parent["sha"] for parent in payload.get("parents") or []),
    )


def _is_transient(response: httpx.Response) -> bool:
    if response.status_code >= 500 or response.status_code == 429:
        return True
    return response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"


def _ref_path(repo: str, branch: str) -> str:
    return f"/repos/{repo}/git/refs/heads/{quote(branch, safe='/')}"


class GitHubClient:
    """Object store client backed by the GitHub REST and Git Data APIs.

    Every method returns a ``Result``; nothing is retried here. Use as an async
    context manager, or call ``aclose()`` when done.
    """

    def __init__(
        self,
        config: GitHubConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._session: httpx.AsyncClient | None = None

    @property
    def session(self) -> httpx.AsyncClient:
        if self._session is None or self._session.is_closed:
            headers = {
                "User-Agent": self.config.user_agent,
                "Accept": "application/vnd.github.v3+json",
            }
            if self.config.token is not None:
                headers["Authorization"] = f"token {self.config.token.get_secret_value()}"
            self._session = httpx.AsyncClient(
                base_url=self.config.api_url,
                headers=headers,
                timeout=self.config.timeout,
                transport=self._transport,
            )
        return self._session

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.aclose()
            self._session = None

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> Result[Any, RemoteError]:
        """Send one request and decode the JSON body; ``None`` for empty bodies."""
        try:
            response = await self.session.request(method, path, params=params, json=body)
        except httpx.HTTPError as exc:
            return Err(
                RemoteError(
                    f"GitHub request failed: {exc}",
                    transient=True,
                    context={"method": method, "path": path},
                )
            )

        if not response.is_success:
            return Err(
                RemoteError(
                    f"GitHub API Error: {response.status_code} - {response.text}",
                    status_code=response.status_code,
                    transient=_is_transient(response),
                    context={"method": method, "path": path},
                )
            )

        if not response.content:
            return Ok(None)
        try:
            return Ok(response.json())
        except ValueError:
            # 204-style replies occasionally carry a non-JSON body.
            return Ok(None)

    async def get_commits(
        self, repo: str, branch: str, limit: int
    ) -> Result[list[CommitRecord], RemoteError]:
        match await self.request(
            "GET", f"/repos/{repo}/commits", params={"sha": branch, "per_page": limit}
        ):
            case Err(err) if err.status_code == 409 and _EMPTY_REPOSITORY in err.message:
                logger.debug("%s has no commits yet", repo)
                return Ok([])
            case Err(err):
                return Err(err)
            case Ok(payload):
                pass

        try:
            return Ok([_parse_commit_listing(item) for item in payload or []][:limit])
        except (KeyError, TypeError) as exc:
            return Err(RemoteError(f"Unexpected commit listing payload: {exc}", context={"repo": repo}))

    async def get_commit(self, repo: str, sha: str) -> Result[CommitRecord, RemoteError]:
        match await self.request("GET", f"/repos/{repo}/git/commits/{sha}"):
            case Err(err):
                return Err(err)
            case Ok(payload):
                pass

        try:
            return Ok(_parse_git_commit(payload))
        except (KeyError, TypeError) as exc:
            return Err(RemoteError(f"Unexpected commit payload: {exc}", context={"sha": sha}))

    async def create_commit(
        self, repo: str, message: str, tree_sha: str, parent_shas: Sequence[str]
    ) -> Result[str, RemoteError]:
        body = {"message": message, "tree": tree_sha, "parents": list(parent_shas)}
        match await self.request("POST", f"/repos/{repo}/git/commits", body=body):
            case Err(err):
                return Err(err)
            case Ok(payload):
                pass

        sha = (payload or {}).get("sha")
        if not isinstance(sha, str):
            return Err(RemoteError("Commit creation returned no sha", context={"repo": repo}))
        return Ok(sha)

    async def get_ref(self, repo: str, branch: str) -> Result[str, RemoteError]:
        path = f"/repos/{repo}/git/ref/heads/{quote(branch, safe='/')}"
        match await self.request("GET", path):
            case Err(err):
                return Err(err)
            case Ok(payload):
                pass

        try:
            return Ok(payload["object"]["sha"])
        except (KeyError, TypeError) as exc:
            return Err(RemoteError(f"Unexpected ref payload: {exc}", context={"branch": branch}))

    async def update_ref(
        self, repo: str, branch: str, sha: str, force: bool = True
    ) -> Result[None, RemoteError]:
        match await self.request("PATCH", _ref_path(repo, branch), body={"sha": sha, "force": force}):
            case Err(err):
                return Err(err)
            case Ok(_):
                return Ok(None)

    async def get_default_branch(self, repo: str) -> Result[str, RemoteError]:
        match await self.request("GET", f"/repos/{repo}"):
            case Err(err):
                return Err(err)
            case Ok(payload):
                pass

        branch = (payload or {}).get("default_branch")
        if not isinstance(branch, str) or not branch:
            return Err(RemoteError("Repository has no default branch", context={"repo": repo}))
        return Ok(branch)
