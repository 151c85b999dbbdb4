"""Main CLI interface for safe-modify."""

import json
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from safe_modify.core.orchestrator import ModificationOrchestrator
from safe_modify.errors import SafeModifyError
from safe_modify.logging_config import setup_logging
from safe_modify.models.modification import ModificationRequest, ModificationResult
from safe_modify.models.suggestion import CodeSuggestion

console = Console()

project_path_option = click.option(
    "--project-path",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Path to project directory",
)


def _get_orchestrator(project_path: str) -> ModificationOrchestrator:
    return ModificationOrchestrator.for_project(Path(project_path).resolve())


def _read_text_option(
    value: Optional[str], file_value: Optional[str], name: str
) -> str:
    """Return inline text or the contents of a file; exactly one must be set."""
    if value is not None and file_value is not None:
        raise click.UsageError(f"Use either --{name} or --{name}-file, not both")
    if file_value is not None:
        return Path(file_value).read_text(encoding="utf-8")
    if value is None:
        raise click.UsageError(f"Missing --{name} or --{name}-file")
    return value


def _print_result(result: ModificationResult) -> None:
    if result.success:
        console.print(f"[green]✅ Modified {result.file_path}[/green]")
        if result.backup_id:
            console.print(f"   [dim]Backup: {result.backup_id}[/dim]")
        if result.commit_hash:
            console.print(f"   [dim]Commit: {result.commit_hash[:8]}[/dim]")
        if result.commit_error:
            console.print(f"   [yellow]⚠️  {result.commit_error}[/yellow]")
    else:
        console.print(
            f"[red]❌ {result.file_path}: {result.error.message} "
            f"({result.error.kind.value})[/red]"
        )
        for issue in result.validation.syntax_errors:
            console.print(f"   [red]{issue.message}[/red]")
        for issue in result.validation.safety_issues:
            console.print(f"   [red]{issue}[/red]")

    for warning in result.validation.warnings:
        console.print(f"   [yellow]{warning}[/yellow]")
    if result.history_id:
        console.print(f"   [dim]History id: {result.history_id}[/dim]")


@click.group()
@click.version_option(package_name="safe-modify")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr")
def main(verbose: bool):
    """safe-modify - Validated, backed-up source file modifications."""
    if verbose:
        setup_logging(level="DEBUG", force=True)


@main.command()
@project_path_option
@click.option("--file", "file_path", required=True, help="File to modify, relative to the project")
@click.option("--original", help="Exact code to replace")
@click.option("--original-file", type=click.Path(exists=True), help="Read code to replace from a file")
@click.option("--modified", help="Replacement code")
@click.option("--modified-file", type=click.Path(exists=True), help="Read replacement from a file")
@click.option("--message", "-m", help="Commit message")
@click.option("--branch", help="Create and check out this branch first")
def apply(
    project_path: str,
    file_path: str,
    original: Optional[str],
    original_file: Optional[str],
    modified: Optional[str],
    modified_file: Optional[str],
    message: Optional[str],
    branch: Optional[str],
):
    """Replace a block of code in a project file."""
    request = ModificationRequest(
        file_path=file_path,
        original_code=_read_text_option(original, original_file, "original"),
        modified_code=_read_text_option(modified, modified_file, "modified"),
        commit_message=message,
        create_branch=branch is not None,
        branch_name=branch,
    )
    result = _get_orchestrator(project_path).apply_modification(request)
    _print_result(result)
    if not result.success:
        raise SystemExit(1)


@main.command()
@project_path_option
@click.option("--file", "file_path", required=True, help="File to modify, relative to the project")
@click.argument("suggestions_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--message", "-m", help="Commit message")
@click.option("--branch", help="Create and check out this branch first")
def batch(
    project_path: str,
    file_path: str,
    suggestions_file: str,
    message: Optional[str],
    branch: Optional[str],
):
    """Apply a JSON list of suggestions to one file in a single write."""
    try:
        raw = json.loads(Path(suggestions_file).read_text(encoding="utf-8"))
        suggestions = [CodeSuggestion.model_validate(item) for item in raw]
    except (ValueError, TypeError) as e:
        # ValidationError is a ValueError
        console.print(f"[red]Error: invalid suggestions file: {e}[/red]")
        raise click.Abort() from e

    results = _get_orchestrator(project_path).apply_multiple_suggestions(
        file_path,
        suggestions,
        create_branch=branch is not None,
        branch_name=branch,
        commit_message=message,
    )

    table = Table(title=f"Suggestions for {file_path}")
    table.add_column("Suggestion", style="cyan", no_wrap=True)
    table.add_column("Result", style="green")
    table.add_column("Detail", style="yellow")
    for result in results:
        if result.success:
            status, detail = "✅ Applied", result.commit_hash[:8] if result.commit_hash else ""
        else:
            status, detail = f"❌ {result.error.kind.value}", result.error.message
        table.add_row(result.suggestion_id or "", status, detail)
    console.print(table)

    if not any(r.success for r in results):
        raise SystemExit(1)


@main.command()
@click.option("--file", "file_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--original", help="Exact code to replace")
@click.option("--original-file", type=click.Path(exists=True), help="Read code to replace from a file")
@click.option("--modified", help="Replacement code")
@click.option("--modified-file", type=click.Path(exists=True), help="Read replacement from a file")
def preview(
    file_path: str,
    original: Optional[str],
    original_file: Optional[str],
    modified: Optional[str],
    modified_file: Optional[str],
):
    """Show what a modification would produce without writing anything."""
    current = Path(file_path).read_text(encoding="utf-8")
    result = ModificationOrchestrator.preview_modification(
        current,
        _read_text_option(original, original_file, "original"),
        _read_text_option(modified, modified_file, "modified"),
    )
    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        raise SystemExit(1)

    lexer = Syntax.guess_lexer(file_path, code=result.preview)
    syntax = Syntax(result.preview, lexer, theme="monokai", line_numbers=True)
    console.print(Panel(syntax, title=file_path, border_style="blue", padding=(0, 1)))


@main.command()
@project_path_option
@click.option("--file", "file_path", help="Only show backups of this file")
def backups(project_path: str, file_path: Optional[str]):
    """List backups, newest first."""
    entries = _get_orchestrator(project_path).get_backups(file_path)
    if not entries:
        console.print("[yellow]No backups found[/yellow]")
        return

    table = Table(title="Backups")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("File", style="green")
    table.add_column("Time", style="magenta")
    table.add_column("Reason", style="yellow")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.file_path,
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.reason,
        )
    console.print(table)


@main.command()
@project_path_option
@click.argument("backup_id")
def restore(project_path: str, backup_id: str):
    """Restore a file from a backup."""
    outcome = _get_orchestrator(project_path).restore_backup(backup_id)
    if outcome.success:
        console.print(f"[green]✅ Restored backup {backup_id}[/green]")
    else:
        console.print(f"[red]❌ {outcome.error}[/red]")
        raise SystemExit(1)


@main.command("verify-backups")
@project_path_option
def verify_backups(project_path: str):
    """Check the backup manifest against the backup directory."""
    report = _get_orchestrator(project_path).backup_store.verify_integrity()
    if report.valid:
        console.print("[green]✅ Backups are consistent[/green]")
        return
    for issue in report.issues:
        console.print(f"[yellow]⚠️  {issue}[/yellow]")
    raise SystemExit(1)


@main.command("backup-stats")
@project_path_option
def backup_stats(project_path: str):
    """Show backup statistics."""
    stats = _get_orchestrator(project_path).backup_store.get_statistics()
    console.print(f"[bold]Backups:[/bold] {stats.total_backups}")
    console.print(f"[bold]Files covered:[/bold] {stats.files_covered}")
    console.print(f"[bold]Total size:[/bold] {stats.total_size} bytes")
    if stats.oldest_backup:
        console.print(f"[bold]Oldest:[/bold] {stats.oldest_backup:%Y-%m-%d %H:%M:%S}")
        console.print(f"[bold]Newest:[/bold] {stats.newest_backup:%Y-%m-%d %H:%M:%S}")


@main.command("cleanup-backups")
@project_path_option
@click.option("--older-than", "days", default=30, show_default=True, help="Age in days")
def cleanup_backups(project_path: str, days: int):
    """Delete backups older than a number of days."""
    try:
        removed = _get_orchestrator(project_path).backup_store.cleanup_old_backups(days)
    except SafeModifyError as e:
        console.print(f"[red]❌ {e.message}[/red]")
        raise SystemExit(1)
    console.print(f"[green]Removed {removed} backup(s)[/green]")


@main.command()
@project_path_option
def status(project_path: str):
    """Show repository status."""
    repo_status = _get_orchestrator(project_path).vcs.get_status()
    if not repo_status.is_repo:
        console.print("[red]Error: Not a git repository[/red]")
        raise SystemExit(1)

    console.print(f"[bold]Branch:[/bold] {repo_status.branch}")
    if repo_status.ahead or repo_status.behind:
        console.print(
            f"[bold]Ahead/behind:[/bold] {repo_status.ahead}/{repo_status.behind}"
        )
    if repo_status.is_clean:
        console.print("[green]Working tree clean[/green]")
        return

    for label, files, color in (
        ("Staged", repo_status.staged, "green"),
        ("Unstaged", repo_status.unstaged, "yellow"),
        ("Untracked", repo_status.untracked, "red"),
        ("Conflicted", repo_status.conflicted, "bold red"),
    ):
        if files:
            console.print(f"[bold]{label}:[/bold]")
            for name in files:
                console.print(f"  [{color}]{name}[/{color}]")


@main.command()
@project_path_option
@click.option("--limit", default=10, help="Number of commits to show")
@click.option("--file", "file_path", help="Only commits touching this file")
def log(project_path: str, limit: int, file_path: Optional[str]):
    """Show recent commits."""
    commits = _get_orchestrator(project_path).vcs.get_history(limit, file_path)
    if not commits:
        console.print("[yellow]No commits found[/yellow]")
        return

    table = Table(title="Commits")
    table.add_column("Hash", style="cyan", no_wrap=True)
    table.add_column("Date", style="magenta")
    table.add_column("Author", style="blue")
    table.add_column("Message", style="green")
    table.add_column("Files", style="yellow")
    for commit in commits:
        table.add_row(
            commit.hash[:8],
            commit.date.strftime("%Y-%m-%d %H:%M"),
            commit.author,
            commit.message.split("\n")[0],
            str(len(commit.files)),
        )
    console.print(table)


@main.command()
@project_path_option
@click.argument("file_path")
def diff(project_path: str, file_path: str):
    """Show uncommitted changes to a file."""
    vcs = _get_orchestrator(project_path).vcs
    file_diff = vcs.get_file_diff(file_path)
    if file_diff is None:
        console.print(f"[yellow]No changes in {file_path}[/yellow]")
        return

    console.print(
        f"[bold]{file_diff.file_path}[/bold] "
        f"[green]+{file_diff.additions}[/green] [red]-{file_diff.deletions}[/red]"
    )
    diff_text = "\n".join(hunk.content for hunk in file_diff.hunks)
    syntax = Syntax(diff_text, "diff", theme="monokai", word_wrap=True)
    console.print(Panel(syntax, border_style="blue", padding=(0, 1)))


@main.command()
@project_path_option
@click.argument("name")
@click.option("--no-checkout", is_flag=True, help="Create the branch without switching to it")
def branch(project_path: str, name: str, no_checkout: bool):
    """Create a branch with the configured prefix."""
    orchestrator = _get_orchestrator(project_path)
    result = orchestrator.vcs.create_branch(name, checkout=not no_checkout)
    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise SystemExit(1)
    console.print(
        f"[green]✅ Created {orchestrator.config.git.branch_prefix}{name}[/green]"
    )


@main.command()
@project_path_option
@click.option("--message", "-m", required=True, help="Commit message")
@click.argument("files", nargs=-1)
def commit(project_path: str, message: str, files: List[str]):
    """Commit files (or whatever is staged) with the configured prefix."""
    result = _get_orchestrator(project_path).vcs.commit(message, list(files) or None)
    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise SystemExit(1)
    console.print(f"[green]✅ Committed {result.hash[:8]}[/green]")


@main.command("revert-commit")
@project_path_option
@click.argument("commit_hash")
def revert_commit(project_path: str, commit_hash: str):
    """Revert a commit into the working tree without committing."""
    result = _get_orchestrator(project_path).vcs.revert_commit(commit_hash)
    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise SystemExit(1)
    console.print(f"[green]✅ Reverted {commit_hash[:8]} (not committed)[/green]")


@main.command("reset-file")
@project_path_option
@click.argument("file_path")
def reset_file(project_path: str, file_path: str):
    """Discard local changes to a file."""
    result = _get_orchestrator(project_path).vcs.reset_file(file_path)
    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise SystemExit(1)
    console.print(f"[green]✅ Reset {file_path}[/green]")


@main.command()
@project_path_option
@click.option("--message", "-m", help="Stash message")
def stash(project_path: str, message: Optional[str]):
    """Stash uncommitted changes."""
    result = _get_orchestrator(project_path).vcs.stash(message)
    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise SystemExit(1)
    console.print("[green]✅ Changes stashed[/green]")


@main.command("stash-pop")
@project_path_option
def stash_pop(project_path: str):
    """Re-apply the most recent stash."""
    result = _get_orchestrator(project_path).vcs.stash_pop()
    if not result.success:
        console.print(f"[red]❌ {result.error}[/red]")
        raise SystemExit(1)
    console.print("[green]✅ Stash applied[/green]")


@main.command()
@project_path_option
@click.argument("file_path")
def uncommitted(project_path: str, file_path: str):
    """Exit non-zero if a file has uncommitted changes."""
    if _get_orchestrator(project_path).vcs.has_uncommitted_changes(file_path):
        console.print(f"[yellow]{file_path} has uncommitted changes[/yellow]")
        raise SystemExit(1)
    console.print(f"[green]{file_path} is clean[/green]")


if __name__ == "__main__":
    main()
