"""GitHub object store access.

This package provides the async REST client used by the history engine:
    - GitHubClient: commit objects, commit listings and branch refs
    - CommitRecord: immutable commit snapshot
    - ObjectStore: the protocol the history engine depends on
"""

from __future__ import annotations

from .client import CommitRecord, GitHubClient, ObjectStore

__all__ = [
    "CommitRecord",
    "GitHubClient",
    "ObjectStore",
]
