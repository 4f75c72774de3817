from __future__ import annotations

import asyncio
import json
import re
import tomllib
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import typer
from pydantic import SecretStr
from rich import box
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from repokeeper.core.config import AppConfig
from repokeeper.core.console import console
from repokeeper.core.decorators import handle_exceptions
from repokeeper.core.result import (
    ConfigurationError,
    Err,
    Ok,
    Result,
    ValidationError,
    collect_results,
    try_result,
)
from repokeeper.github.client import CommitRecord, GitHubClient
from repokeeper.history import (
    FixRequest,
    RewritePlan,
    RewriteResult,
    execute_plan,
    fetch_history_window,
    plan_rewrite,
    resolve_branch,
)

_REPO_PATTERN = re.compile(r"[\w.-]+/[\w.-]+")
_SUMMARY_WIDTH = 50


def _make_store(config: AppConfig, token: str | None, *, require_token: bool) -> GitHubClient:
    github = config.github
    if token:
        github = github.model_copy(update={"token": SecretStr(token)})
    if require_token and github.token is None:
        raise ConfigurationError(
            "A GitHub token is required. Pass --token, set GITHUB_TOKEN, "
            "or set github.token in the config file."
        )
    return GitHubClient(github)


def _validate_repo(full_name: str) -> str:
    if not _REPO_PATTERN.fullmatch(full_name):
        raise ValidationError("Repository must be given as OWNER/NAME", context={"repo": full_name})
    return full_name


def _truncate(text: str, width: int = _SUMMARY_WIDTH) -> str:
    return text if len(text) <= width else text[: width - 1] + "…"


def parse_fix_option(value: str) -> Result[FixRequest, ValidationError]:
    """Parse a ``SHA=MESSAGE`` command-line fix."""
    target, sep, message = value.partition("=")
    if not sep or not target.strip():
        return Err(ValidationError("Fixes must look like SHA=MESSAGE", context={"fix": value}))
    return Ok(FixRequest(target=target.strip(), message=message))


def _parse_fix_entry(entry: Any) -> Result[FixRequest, ValidationError]:
    if not isinstance(entry, dict):
        return Err(ValidationError("Fix entries must be tables with sha and message"))
    target = entry.get("sha") or entry.get("target")
    message = entry.get("message")
    if not isinstance(target, str) or not isinstance(message, str):
        return Err(
            ValidationError("Fix entries need string sha and message fields", context={"entry": entry})
        )
    return Ok(FixRequest(target=target, message=message))


def load_fix_file(path: Path) -> Result[list[FixRequest], ValidationError]:
    """Read fixes from JSON (a list of objects) or TOML (``[[fix]]`` tables)."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        return Err(ValidationError(f"Cannot read fix file: {exc}", context={"path": str(path)}))

    is_json = path.suffix.lower() == ".json"
    parser = json.loads if is_json else tomllib.loads
    match try_result(lambda: parser(raw), ValueError):
        case Err(err):
            return Err(ValidationError(f"Syntax error in {path}: {err}"))
        case Ok(data):
            pass

    entries = data if is_json else data.get("fix", [])
    if not isinstance(entries, list):
        return Err(ValidationError(f"{path} must contain a list of fixes"))
    return collect_results([_parse_fix_entry(entry) for entry in entries])


def _render_window(repo: str, branch: str, window: Sequence[CommitRecord]) -> Table:
    table = Table(
        title=f"{repo}@{branch} (last {len(window)} commits)", box=box.SIMPLE_HEAVY, expand=True
    )
    table.add_column("#", style="dim", no_wrap=True, justify="right")
    table.add_column("SHA", style="cyan", no_wrap=True)
    table.add_column("Message", style="white")
    table.add_column("Parents", style="white", no_wrap=True)

    for index, commit in enumerate(window):
        parents = str(len(commit.parent_shas)) if not commit.is_root else "root"
        style = "yellow" if commit.is_merge else None
        table.add_row(
            str(index), commit.sha[:7], escape(_truncate(commit.summary)), parents, style=style
        )
    return table


def _render_plan(repo: str, branch: str, plan: RewritePlan) -> Table:
    table = Table(
        title=f"Rewrite plan for {repo}@{branch}", box=box.SIMPLE_HEAVY, expand=True
    )
    table.add_column("SHA", style="cyan", no_wrap=True)
    table.add_column("Action", style="white", no_wrap=True)
    table.add_column("Message", style="white")

    for commit in plan.replay_range:
        if commit.sha in plan.targets:
            new_summary = plan.targets[commit.sha].split("\n", 1)[0]
            table.add_row(commit.sha[:7], "[green]reword[/]", escape(_truncate(new_summary)))
        else:
            table.add_row(commit.sha[:7], "[dim]replay[/]", escape(_truncate(commit.summary)))
    return table


def _render_result(repo: str, result: RewriteResult) -> Table:
    table = Table(title=f"Rewritten commits in {repo}", box=box.SIMPLE, expand=True)
    table.add_column("Old", style="red", no_wrap=True)
    table.add_column("New", style="green", no_wrap=True)
    for old, new in result.rewritten:
        table.add_row(old[:7], new[:7])
    return table


async def _plan(
    config: AppConfig,
    repo: str,
    branch: str | None,
    requests: Sequence[FixRequest],
    *,
    token: str | None,
    dry_run: bool,
) -> tuple[str, RewritePlan]:
    async with _make_store(config, token, require_token=not dry_run) as store:
        target_branch = (await resolve_branch(store, repo, branch)).unwrap()
        plan = (
            await plan_rewrite(
                store, repo, target_branch, requests, window_size=config.history.window_size
            )
        ).unwrap()
    return target_branch, plan


async def _execute(
    config: AppConfig, repo: str, target_branch: str, plan: RewritePlan, *, token: str | None
) -> RewriteResult:
    async with _make_store(config, token, require_token=True) as store:
        return (
            await execute_plan(
                store, repo, target_branch, plan, timeout=config.history.rewrite_timeout
            )
        ).unwrap()


def _rewrite(
    config: AppConfig,
    repo: str,
    branch: str | None,
    requests: Sequence[FixRequest],
    *,
    token: str | None,
    yes: bool,
    dry_run: bool,
) -> RewriteResult | None:
    target_branch, plan = asyncio.run(
        _plan(config, repo, branch, requests, token=token, dry_run=dry_run)
    )

    console.print(_render_plan(repo, target_branch, plan))
    if dry_run:
        console.print("[yellow]Dry run: no commits created, branch unchanged.[/yellow]")
        return None

    # Prompt with no event loop running and no session open.
    if config.user.confirm and not yes:
        typer.confirm(
            f"Recreate {plan.deepest_index + 1} commits and force-update {target_branch}?",
            abort=True,
        )

    return asyncio.run(_execute(config, repo, target_branch, plan, token=token))


def _report(repo: str, result: RewriteResult | None) -> None:
    if result is None:
        return
    console.print(_render_result(repo, result))
    console.print(
        Panel.fit(
            f"{result.branch}: {result.old_tip[:7]} -> {result.new_tip[:7]}\n"
            "Local clones must reset to the new history.",
            title="Branch updated",
            style="green",
        )
    )


_TOKEN_OPTION = typer.Option(
    None, "--token", envvar="GITHUB_TOKEN", help="GitHub token (defaults to config)."
)
_BRANCH_OPTION = typer.Option(
    None, "--branch", "-b", help="Branch to operate on (defaults to the repository default)."
)


@handle_exceptions
def show_log(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository as OWNER/NAME."),
    branch: str | None = _BRANCH_OPTION,
    limit: int | None = typer.Option(
        None, "--limit", "-n", help="Number of commits to show (defaults to the history window)."
    ),
    token: str | None = _TOKEN_OPTION,
) -> None:
    """Show the recent commits a fix can reach."""
    state = ctx.obj
    repo = _validate_repo(repo)
    window_size = limit if limit is not None else state.config.history.window_size

    async def _collect() -> tuple[str, list[CommitRecord]]:
        async with _make_store(state.config, token, require_token=False) as store:
            target_branch = (await resolve_branch(store, repo, branch)).unwrap()
            window = (await fetch_history_window(store, repo, target_branch, window_size)).unwrap()
            return target_branch, window

    target_branch, window = asyncio.run(_collect())
    if not window:
        console.print(f"[yellow]{repo}@{target_branch} has no commits.[/yellow]")
        return
    console.print(_render_window(repo, target_branch, window))


@handle_exceptions
def fix(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository as OWNER/NAME."),
    sha: str = typer.Argument(..., help="Full or abbreviated sha of the commit to reword."),
    message: str = typer.Argument(..., help="Replacement commit message."),
    branch: str | None = _BRANCH_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before force-updating."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan only."),
    token: str | None = _TOKEN_OPTION,
) -> None:
    """Reword one commit and replay everything after it."""
    state = ctx.obj
    repo = _validate_repo(repo)
    state.logger.debug("Fixing %s in %s", sha, repo)

    result = _rewrite(
        state.config,
        repo,
        branch,
        [FixRequest(target=sha, message=message)],
        token=token,
        yes=yes,
        dry_run=dry_run or state.config.user.dry_run,
    )
    _report(repo, result)


@handle_exceptions
def fix_bulk(
    ctx: typer.Context,
    repo: str = typer.Argument(..., help="Repository as OWNER/NAME."),
    fixes: list[str] | None = typer.Option(
        None, "--fix", "-f", help="A SHA=MESSAGE pair; repeat for several commits."
    ),
    from_file: Path | None = typer.Option(
        None, "--from-file", help="JSON or TOML file listing fixes (sha, message)."
    ),
    branch: str | None = _BRANCH_OPTION,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before force-updating."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan only."),
    token: str | None = _TOKEN_OPTION,
) -> None:
    """Reword several commits in a single rewrite."""
    state = ctx.obj
    repo = _validate_repo(repo)

    requests = collect_results([parse_fix_option(value) for value in fixes or []]).unwrap()
    if from_file is not None:
        requests.extend(load_fix_file(from_file.expanduser()).unwrap())
    if not requests:
        raise ValidationError("Nothing to fix. Use --fix SHA=MESSAGE or --from-file.")

    state.logger.debug("Fixing %d commits in %s", len(requests), repo)
    result = _rewrite(
        state.config,
        repo,
        branch,
        requests,
        token=token,
        yes=yes,
        dry_run=dry_run or state.config.user.dry_run,
    )
    _report(repo, result)
