"""CLI application for depbump."""

import asyncio
import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from core.cache import ResolutionCache
from core.check import DependencyChecker
from core.config import Settings
from core.constraints import bump_token
from core.detect import find_manifest, get_dialect, identify
from core.errors import DepBumpError, ManifestNotFoundError, ManifestParseError
from core.models import ChangeKind, CheckResult, OutdatedDependency
from core.registry import RegistryVersionSource
from core.rewrite import apply_updates, select_for_update

VERSION = "0.1.0"

console = Console()
err_console = Console(stderr=True)

CHANGE_STYLES = {
    ChangeKind.MAJOR: "red",
    ChangeKind.MINOR: "yellow",
    ChangeKind.PATCH: "green",
}


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )


def load_manifest(path: Path) -> tuple[Path, str, str]:
    """Find and read the manifest at path (a file, or a directory to search).

    Returns:
        Tuple of (manifest path, ecosystem, content)
    """
    if path.is_dir():
        path, ecosystem = find_manifest(path)
        return path, ecosystem, read_manifest(path)
    if path.is_file():
        content = read_manifest(path)
        return path, identify(content, path.name), content
    raise ManifestNotFoundError(f"File {path} not found")


def read_manifest(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"failed to read {path}: {e}") from e


def new_constraint(item: OutdatedDependency) -> str:
    """The constraint as it will be written, keeping the original prefix."""
    return bump_token(item.dependency.raw_constraint, item.latest_version) or item.latest_version


def format_table(result: CheckResult) -> Table:
    """Table of outdated dependencies, latest version coloured by change size."""
    table = Table(box=None, show_header=True, header_style="bold")
    table.add_column("Package", style="cyan")
    table.add_column("Section")
    table.add_column("Current", justify="right")
    table.add_column("", justify="center", style="blue")
    table.add_column("Latest", justify="right")

    for item in sorted(result.outdated, key=lambda outdated: (outdated.name, outdated.dependency.anchor.line)):
        table.add_row(
            escape(item.name),
            item.dependency.section.value,
            escape(item.dependency.raw_constraint),
            "→",
            f"[{CHANGE_STYLES[item.change]}]{escape(new_constraint(item))}[/]",
        )
    return table


def format_json_output(result: CheckResult) -> str:
    """Format JSON output."""
    return json.dumps(
        {
            "outdated": [
                {
                    "name": item.name,
                    "section": item.dependency.section.value,
                    "line": item.dependency.anchor.line,
                    "current_version": item.dependency.raw_constraint,
                    "latest_version": new_constraint(item),
                    "change": item.change.value,
                }
                for item in result.outdated
            ],
            "semver_skipped": [
                {
                    "name": skipped.name,
                    "current_version": skipped.original_version,
                    "latest_version": skipped.latest_version,
                    "reason": skipped.reason.value,
                }
                for skipped in result.semver_skipped
            ],
            "errors": [{"name": error.name, "error": error.message} for error in result.errors],
        },
        indent=2,
    )


def print_report(result: CheckResult, verbose: bool) -> None:
    if result.outdated:
        console.print(format_table(result))
    else:
        console.print("All dependencies are up to date!", style="green")

    if result.semver_skipped:
        console.print(f"\n{len(result.semver_skipped)} dependencies held back by their constraints:")
        for skipped in sorted(result.semver_skipped, key=lambda item: item.name):
            latest = f" → {escape(skipped.latest_version)}" if skipped.latest_version else ""
            console.print(
                f"  [cyan]{escape(skipped.name)}[/] {escape(skipped.original_version)}{latest} ({skipped.reason.value})",
                style="dim",
            )

    if result.errors:
        console.print(f"\n{len(result.errors)} dependencies could not be checked", style="red")
        if verbose:
            for error in result.errors:
                console.print(f"  {escape(error.name)}: {escape(error.message)}", style="red")
        else:
            console.print("Run with --verbose for details.", style="dim")


def version_callback(value: bool) -> None:
    if value:
        console.print(f"depbump version {VERSION}")
        raise typer.Exit()


app = typer.Typer(
    name="depbump",
    help="depbump - Check package.json and pubspec.yaml dependencies for newer versions",
    add_completion=False,
)


@app.command()
def bump(
    path: str = typer.Argument(".", help="Manifest file (package.json, pubspec.yaml) or directory to search"),
    update: bool = typer.Option(False, "--update", "-u", help="Update the manifest in place"),
    semver: bool = typer.Option(False, "--semver", "-s", help="Only take versions allowed by each constraint"),
    include_peer: bool = typer.Option(False, "--include-peer", help="Also update peer dependencies"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Do not read or write the resolution cache"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    version: bool | None = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True, help="Show version information"
    ),
) -> None:
    """Check dependencies for newer versions and optionally update the manifest."""
    configure_logging(verbose)
    logger = logging.getLogger(__name__)
    quiet = format_type == "json"

    try:
        settings = Settings()
    except ValidationError as e:
        console.print(f"Error: invalid configuration: {escape(str(e))}", style="red")
        raise typer.Exit(1)

    try:
        manifest_path, ecosystem, content = load_manifest(Path(path))
        dialect = get_dialect(ecosystem)
        manifest = dialect.parse(content)
    except (DepBumpError, ValueError) as e:
        console.print(f"Error: {escape(str(e))}", style="red")
        raise typer.Exit(1)

    logger.debug("Found %s file: %s", ecosystem, manifest_path)
    if not manifest.dependencies:
        console.print("No dependencies found to check")
        raise typer.Exit(0)

    cache = ResolutionCache(settings.cache_file if settings.use_cache and not no_cache else None)
    cache.load()
    source = RegistryVersionSource(timeout=settings.timeout, project_dir=manifest_path.resolve().parent)

    total = len(manifest.dependencies)
    if not quiet:
        err_console.print(f"Checking {total} dependencies from {manifest_path.name}...")
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=err_console,
        transient=True,
        disable=quiet,
    ) as progress:
        task = progress.add_task("Checking", total=total)
        checker = DependencyChecker(
            source,
            cache,
            semver=semver,
            cache_ttl=settings.cache_ttl,
            max_concurrency=settings.max_concurrency,
            progress=lambda done, _: progress.update(task, completed=done),
        )
        result = asyncio.run(checker.check(manifest))

    try:
        cache.persist()
    except OSError as e:
        logger.warning("Could not save cache file %s: %s", cache.path, e)

    if quiet:
        typer.echo(format_json_output(result))
    else:
        print_report(result, verbose)

    if not update:
        if result.outdated and not quiet:
            console.print("\nRun 'depbump --update' to update dependencies.")
        return

    to_update = select_for_update(result.outdated, include_peer=include_peer)
    if not to_update:
        return

    try:
        updated_content = apply_updates(content, to_update, dialect)
        manifest_path.write_bytes(updated_content.encode("utf-8"))
    except DepBumpError as e:
        console.print(f"Error updating dependencies: {escape(str(e))}", style="red")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"Error writing {manifest_path}: {escape(str(e))}", style="red")
        raise typer.Exit(1)

    if not quiet:
        console.print(f"Updated {len(to_update)} dependencies in {manifest_path.name}", style="green")


if __name__ == "__main__":
    app()
