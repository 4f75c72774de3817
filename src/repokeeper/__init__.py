"""repokeeper - GitHub repository housekeeping from the command line.

This package provides the `repokeeper` command-line tool, whose core is a
commit history rewrite engine that repairs commit messages on a remote branch
through the GitHub Git Data API.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.3.0"
