from __future__ import annotations

from collections.abc import Iterable, Mapping

from repokeeper.core.result import AmbiguousTargetError, Err, Ok, Result
from repokeeper.github.client import CommitRecord

from .models import FixRequest


class MessageResolutionMap:
    """Replacement message lookup keyed by commit sha.

    Lookup tries the exact sha first, then either key or sha being a prefix of
    the other. Prefix keys that match one commit with different messages are an
    ``AmbiguousTargetError``. Commits without an entry keep their original
    message.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = {
            key.strip().lower(): message
            for key, message in (entries or {}).items()
            if key.strip()
        }

    @classmethod
    def from_requests(cls, requests: Iterable[FixRequest]) -> MessageResolutionMap:
        return cls({request.target: request.message for request in requests})

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, sha: str) -> Result[str | None, AmbiguousTargetError]:
        sha = sha.lower()
        if sha in self._entries:
            return Ok(self._entries[sha])

        hits = {
            key: message
            for key, message in self._entries.items()
            if sha.startswith(key) or key.startswith(sha)
        }
        if len(set(hits.values())) > 1:
            return Err(
                AmbiguousTargetError(
                    f"Several replacement messages match commit {sha[:12]}",
                    context={"keys": ", ".join(sorted(hits))},
                )
            )
        return Ok(next(iter(hits.values()), None))

    def resolve(self, commit: CommitRecord) -> Result[str, AmbiguousTargetError]:
        match self.lookup(commit.sha):
            case Err(err):
                return Err(err)
            case Ok(replacement):
                return Ok(commit.message if replacement is None else replacement)
