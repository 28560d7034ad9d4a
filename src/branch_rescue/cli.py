"""CLI entry point for Branch Rescue."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from branch_rescue.config import (
    Config,
    ConfigFileError,
    find_config_path,
    load_config,
    read_config_file,
    save_config,
)
from branch_rescue.core.errors import BranchRescueError
from branch_rescue.core.interaction import ConsoleInteraction
from branch_rescue.core.preview import Choice
from branch_rescue.core.retention import MAX_RETENTION_DAYS, MIN_RETENTION_DAYS, count_expired
from branch_rescue.core.runner import resolve_repository
from branch_rescue.core.service import BranchRescueService
from branch_rescue.models.deletion import DeletionRecord, DeletionSource, utc_now
from branch_rescue.models.history import ImportStrategy

console = Console()


def format_age(when: Optional[datetime], now: Optional[datetime] = None) -> str:
    """Human-friendly age such as '3 days ago' or 'just now'."""
    if when is None:
        return "unknown"

    seconds = ((now or utc_now()) - when).total_seconds()
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        count = int(seconds // size)
        if count > 0:
            return f"{count} {unit}{'s' if count > 1 else ''} ago"

    return "just now"


def source_label(source: DeletionSource) -> str:
    return {
        DeletionSource.USER_INITIATED: "[green]branch-rescue[/green]",
        DeletionSource.REFLOG_DISCOVERED: "[yellow]reflog[/yellow]",
    }.get(source, str(source))


def get_service(ctx: click.Context) -> BranchRescueService:
    """
    Get the BranchRescueService for this invocation, loading the ledger once.

    Raises:
        click.ClickException: If the ledger cannot be set up.
    """
    obj = ctx.ensure_object(dict)
    if "service" not in obj:
        config = obj.get("config") or load_config(obj.get("config_path"))
        obj["service"] = BranchRescueService.from_config(
            config,
            interaction_factory=lambda runner: ConsoleInteraction(runner, console),
        )
    return obj["service"]


def get_repo_path(ctx: click.Context) -> str:
    """
    Resolve the working copy this command operates on.

    Raises:
        click.ClickException: If not in a git repository.
    """
    obj = ctx.ensure_object(dict)
    try:
        return resolve_repository(obj.get("repo"))
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.version_option(package_name="branch-rescue")
@click.option(
    "-r",
    "--repo",
    type=click.Path(path_type=Path, file_okay=False),
    help="Repository to operate on (default: current directory).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    help="Path to a configuration file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, repo: Optional[Path], config_path: Optional[str], verbose: bool) -> None:
    """Branch Rescue - track, find and restore deleted git branches.

    Branches deleted through this tool are remembered with the commit they
    pointed to, so they can be recreated later.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )

    obj = ctx.ensure_object(dict)
    obj["repo"] = repo
    obj["config_path"] = config_path


@main.command("delete")
@click.argument("branch")
@click.option(
    "-f",
    "--force",
    is_flag=True,
    help="Delete even if the branch is not fully merged.",
)
@click.option(
    "-y",
    "--yes",
    is_flag=True,
    help="Skip confirmation prompt.",
)
@click.pass_context
def delete_branch(ctx: click.Context, branch: str, force: bool, yes: bool) -> None:
    """Delete BRANCH and remember it for later restoration.

    Example:
        branch-rescue delete feature/old-feature
        branch-rescue delete spike/experiment --force -y
    """
    repo_path = get_repo_path(ctx)

    if not yes and not click.confirm(f"Delete branch '{branch}'?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    service = get_service(ctx)
    try:
        with console.status(f"[bold red]Deleting branch '{branch}'..."):
            record = service.delete_branch(repo_path, branch, force=force)
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e

    console.print(f"[bold green]Branch deleted:[/bold green] {record.branch_name} ({record.short_hash})")
    console.print(f"[dim]Restore with: branch-rescue restore {record.branch_name}[/dim]")

    if service.ledger.session_only:
        console.print("[yellow]Warning: history could not be saved; tracking for this session only.[/yellow]")


@main.command("list")
@click.option(
    "-a",
    "--all-repos",
    is_flag=True,
    help="Show deleted branches for every tracked repository.",
)
@click.pass_context
def list_deleted(ctx: click.Context, all_repos: bool) -> None:
    """List tracked deleted branches, most recent first.

    Example:
        branch-rescue list
        branch-rescue list --all-repos
    """
    service = get_service(ctx)
    repos = service.ledger.repositories() if all_repos else [get_repo_path(ctx)]
    records_by_repo = {repo: service.list_deletions(repo) for repo in repos}
    records_by_repo = {repo: records for repo, records in records_by_repo.items() if records}

    if not records_by_repo:
        console.print("[yellow]No deleted branches tracked.[/yellow]")
        console.print("[dim]Delete branches with 'branch-rescue delete', or run 'branch-rescue scan' to search the reflog.[/dim]")
        return

    for repo, records in records_by_repo.items():
        count = len(records)
        table = Table(
            title=f"{Path(repo).name} ({count} deleted branch{'es' if count > 1 else ''})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Branch", style="bold")
        table.add_column("Commit", style="dim")
        table.add_column("Deleted")
        table.add_column("Source", justify="center")

        for record in records:
            table.add_row(
                record.branch_name,
                record.short_hash,
                format_age(record.deleted_at),
                source_label(record.source),
            )

        console.print()
        console.print(table)

    console.print()


@main.command("show")
@click.argument("branch")
@click.option("--commit", "commit_hash", help="Select a specific deletion by commit.")
@click.pass_context
def show_deleted(ctx: click.Context, branch: str, commit_hash: Optional[str]) -> None:
    """Show details of a tracked deleted BRANCH."""
    service = get_service(ctx)
    repo_path = get_repo_path(ctx)
    record = service.ledger.find(repo_path, branch, commit_hash)

    if record is None:
        raise click.ClickException(f"No tracked deletion for '{branch}' in {repo_path}")

    _print_record_detail(record, repo_path)


@main.command("restore")
@click.argument("branch")
@click.option("--commit", "commit_hash", help="Restore a specific deletion by commit.")
@click.option(
    "--preview/--no-preview",
    default=None,
    help="Show the files that differ before restoring (default: from config).",
)
@click.pass_context
def restore_branch(
    ctx: click.Context,
    branch: str,
    commit_hash: Optional[str],
    preview: Optional[bool],
) -> None:
    """Recreate a deleted BRANCH from the tracked history.

    Example:
        branch-rescue restore feature/old-feature
        branch-rescue restore feature/old-feature --commit 1a2b3c4
    """
    service = get_service(ctx)
    repo_path = get_repo_path(ctx)

    try:
        outcome = service.restore_from_history(repo_path, branch, commit_hash, preview=preview)
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e

    _print_outcome(outcome)


@main.command("scan")
@click.option(
    "-t",
    "--track",
    is_flag=True,
    help="Add the deletions found to the tracked history.",
)
@click.pass_context
def scan_reflog(ctx: click.Context, track: bool) -> None:
    """Search the reflog for branches deleted outside this tool.

    Example:
        branch-rescue scan
        branch-rescue scan --track
    """
    service = get_service(ctx)
    repo_path = get_repo_path(ctx)

    try:
        with console.status("[bold blue]Scanning reflog..."):
            candidates = service.scan_reflog(repo_path)
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e

    if not candidates:
        console.print("[yellow]No deleted branches found in the reflog.[/yellow]")
        return

    table = Table(title="Deleted branches in reflog", show_header=True, header_style="bold cyan")
    table.add_column("Branch", style="bold")
    table.add_column("Commit", style="dim")
    table.add_column("Deleted")
    table.add_column("Kind")

    for candidate in candidates:
        table.add_row(
            candidate.branch_name,
            candidate.short_hash,
            format_age(candidate.deleted_at),
            candidate.matcher,
        )

    console.print()
    console.print(table)
    console.print()

    if track:
        added = service.track_candidates(repo_path, candidates)
        console.print(f"[green]Tracked {len(added)} new deletion(s).[/green]")
        console.print("[dim]Restore with: branch-rescue restore <branch>[/dim]")
    else:
        console.print("[dim]Restore with: branch-rescue restore-reflog <branch>[/dim]")


@main.command("restore-reflog")
@click.argument("branch", required=False)
@click.option(
    "--preview/--no-preview",
    default=None,
    help="Show the files that differ before restoring (default: from config).",
)
@click.pass_context
def restore_from_reflog(ctx: click.Context, branch: Optional[str], preview: Optional[bool]) -> None:
    """Recreate a branch found in the reflog.

    Without BRANCH, pick one of the deletions found in the reflog.
    """
    service = get_service(ctx)
    repo_path = get_repo_path(ctx)

    try:
        candidates = service.scan_reflog(repo_path)
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e

    if branch:
        candidates = [c for c in candidates if c.branch_name == branch]

    if not candidates:
        console.print("[yellow]No deleted branches found in the reflog.[/yellow]")
        return

    if len(candidates) == 1 and branch:
        candidate = candidates[0]
    else:
        choice = service.interaction.choose(
            "Select a branch to restore",
            [
                Choice(
                    label=f"{c.branch_name} ({c.short_hash})",
                    value=c,
                    description=format_age(c.deleted_at),
                )
                for c in candidates
            ],
        )
        if choice is None:
            console.print("[yellow]Aborted.[/yellow]")
            return
        candidate = choice.value

    try:
        outcome = service.restore_from_reflog(repo_path, candidate, preview=preview)
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e

    _print_outcome(outcome)


@main.command("forget")
@click.argument("branch")
@click.option("--commit", "commit_hash", help="Forget a specific deletion by commit.")
@click.pass_context
def forget_deleted(ctx: click.Context, branch: str, commit_hash: Optional[str]) -> None:
    """Remove a deleted BRANCH from the history without restoring it."""
    service = get_service(ctx)
    repo_path = get_repo_path(ctx)

    if not service.ledger.remove(repo_path, branch, commit_hash):
        raise click.ClickException(f"No tracked deletion for '{branch}' in {repo_path}")

    console.print(f"[green]Removed from history:[/green] {branch}")


@main.command("clear")
@click.option(
    "-a",
    "--all-repos",
    is_flag=True,
    help="Clear the history of every repository.",
)
@click.option(
    "-y",
    "--yes",
    is_flag=True,
    help="Skip confirmation prompt.",
)
@click.pass_context
def clear_history(ctx: click.Context, all_repos: bool, yes: bool) -> None:
    """Clear the deletion history of this repository (or all of them)."""
    service = get_service(ctx)
    scope = "all repositories" if all_repos else get_repo_path(ctx)

    if not yes and not click.confirm(f"Clear deletion history for {scope}?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    removed = service.ledger.clear_all() if all_repos else service.ledger.clear(scope)
    console.print(f"[green]Cleared {removed} deletion record(s).[/green]")


@main.command("prune")
@click.option(
    "-d",
    "--days",
    type=click.IntRange(MIN_RETENTION_DAYS, MAX_RETENTION_DAYS),
    help="Retention horizon in days (default: from config).",
)
@click.option(
    "-n",
    "--dry-run",
    is_flag=True,
    help="Only report how many records would be dropped.",
)
@click.pass_context
def prune_history(ctx: click.Context, days: Optional[int], dry_run: bool) -> None:
    """Drop deletion records older than the retention horizon.

    Example:
        branch-rescue prune --days 30 --dry-run
    """
    service = get_service(ctx)
    horizon = days or service.ledger.retention_days

    if dry_run:
        expired = count_expired(service.ledger.snapshot(), horizon)
        console.print(f"[cyan]Would prune {expired} record(s) older than {horizon} days.[/cyan]")
        return

    removed = service.ledger.prune(days)
    console.print(f"[green]Pruned {removed} record(s) older than {horizon} days.[/green]")


@main.command("set-retention")
@click.argument("days", type=click.IntRange(MIN_RETENTION_DAYS, MAX_RETENTION_DAYS))
@click.pass_context
def set_retention(ctx: click.Context, days: int) -> None:
    """Set how many DAYS deleted branches are remembered, then prune."""
    obj = ctx.ensure_object(dict)
    service = get_service(ctx)

    config_file = find_config_path(obj.get("config_path"))
    try:
        config = read_config_file(config_file) if config_file.exists() else Config()
    except ConfigFileError as e:
        raise click.ClickException(
            f"Refusing to overwrite invalid config file {config_file}: {e}"
        ) from e

    config.history.retention_days = days
    save_config(config, config_file)

    removed = service.apply_retention(days)
    console.print(f"[green]Retention set to {days} days[/green] [dim]({config_file})[/dim]")
    if removed:
        console.print(f"[green]Pruned {removed} record(s).[/green]")


@main.command("export")
@click.argument("file", type=click.Path(path_type=Path, dir_okay=False))
@click.pass_context
def export_history(ctx: click.Context, file: Path) -> None:
    """Export the deletion history of every repository to FILE."""
    service = get_service(ctx)
    try:
        count = service.export_history(file)
    except OSError as e:
        raise click.ClickException(f"export history failed for {file}: {e}") from e

    console.print(f"[green]Exported {count} deletion record(s) to {file}[/green]")


@main.command("import")
@click.argument("file", type=click.Path(path_type=Path, exists=True, dir_okay=False))
@click.option(
    "-s",
    "--strategy",
    type=click.Choice([s.value for s in ImportStrategy]),
    help="merge: add new records; replace: discard the current history.",
)
@click.pass_context
def import_history(ctx: click.Context, file: Path, strategy: Optional[str]) -> None:
    """Import a deletion history exported with 'branch-rescue export'."""
    service = get_service(ctx)
    try:
        result = service.import_history(
            file,
            ImportStrategy(strategy) if strategy else None,
        )
    except BranchRescueError as e:
        raise click.ClickException(str(e)) from e

    if result is None:
        console.print("[yellow]Aborted.[/yellow]")
        return

    console.print(
        f"[green]Imported {result.added_count} deletion record(s) "
        f"({result.strategy.value}).[/green]"
    )


def _print_outcome(outcome) -> None:
    if outcome.restored:
        console.print(f"[bold green]{outcome.message}[/bold green]")
    else:
        console.print(f"[yellow]{outcome.message}[/yellow]")


def _print_record_detail(record: DeletionRecord, repo_path: str) -> None:
    """Print details for a single tracked deletion."""
    console.print()
    console.print(f"[bold]Branch:[/bold]      {record.branch_name}")
    console.print(f"[bold]Commit:[/bold]      {record.commit_hash}")
    console.print(
        f"[bold]Deleted:[/bold]     {record.deleted_at.astimezone().strftime('%Y-%m-%d %H:%M')} "
        f"[dim]({format_age(record.deleted_at)})[/dim]"
    )
    console.print(f"[bold]Source:[/bold]      {source_label(record.source)}")
    console.print(f"[bold]Repository:[/bold]  {repo_path}")
    console.print()


if __name__ == "__main__":
    main()
