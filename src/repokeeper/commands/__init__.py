"""CLI command modules for repokeeper.

This package contains the user-facing CLI commands organized by domain:
    - history: inspect a branch's recent commits and rewrite commit messages
"""
