"""Core shared infrastructure for repokeeper.

This package contains foundational utilities:
    - config: Application configuration management
    - console: Rich console output and logging
    - result: Result types and the error hierarchy
    - decorators: CLI error presentation
    - registry: Command discovery
"""
