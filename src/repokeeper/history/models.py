from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from repokeeper.github.client import CommitRecord

# Index 0 is the branch tip; larger indices are older.
HistoryWindow = Sequence[CommitRecord]


@dataclass(frozen=True)
class FixRequest:
    """Replace the message of the commit identified by ``target`` (full or abbreviated sha)."""

    target: str
    message: str


@dataclass(frozen=True)
class RewritePlan:
    """Where a rewrite starts and what it changes.

    ``deepest_index`` is the oldest targeted position in ``window``. Replay
    anchors on ``anchor_parents``, the original first parent of that commit, or
    an empty tuple when it is a root commit.
    """

    window: HistoryWindow
    deepest_index: int
    anchor_parents: tuple[str, ...]
    targets: Mapping[str, str] = field(default_factory=dict)

    @property
    def replay_range(self) -> HistoryWindow:
        """Commits that get new objects, tip first."""
        return self.window[: self.deepest_index + 1]


@dataclass(frozen=True)
class RewriteResult:
    branch: str
    old_tip: str
    new_tip: str
    # (original sha, replacement sha), oldest first
    rewritten: tuple[tuple[str, str], ...] = ()
