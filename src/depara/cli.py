"""Command line interface for DePara."""

from __future__ import annotations

import difflib
import time
import uuid
from typing import Any, Iterable, NoReturn

import click
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from depara.batch import BatchSummary
from depara.config import (
    ConfigError,
    ConfigManager,
    DeParaConfig,
    merge_dotted,
    resolve_with_precedence,
)
from depara.errors import DeParaError, error_code
from depara.manager import FileOperationsManager
from depara.operations import ACTIONS, Action, OperationResult
from depara.oplog import configure_logging

console = Console()
log_console = Console(stderr=True)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error class (``bad_request``, ``not_found`` ...).
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(f"[{code}] {message}") from original


def _fail(exc: Exception, *, json_output: bool) -> NoReturn:
    code = "config_error" if isinstance(exc, ConfigError) else error_code(exc)
    _handle_cli_error(
        str(exc),
        code=code,
        json_output=json_output,
        details={"exception": type(exc).__name__},
        original=exc,
    )


def _load_manager(json_output: bool) -> FileOperationsManager:
    """Load the effective configuration and build an engine for one command."""
    try:
        config = ConfigManager().load()
    except ConfigError as exc:
        _fail(exc, json_output=json_output)
    configure_logging(config.logging, console=log_console)
    return FileOperationsManager(config)


def _options(**values: Any) -> dict[str, Any]:
    """Drop unset CLI options so model defaults apply."""
    return {
        key: value
        for key, value in values.items()
        if value is not None and value is not False and value != ()
    }


def _render_result(result: OperationResult, *, json_output: bool) -> None:
    if json_output:
        console.print_json(data=result.to_payload())
        return
    line = f"[green]{result.action.capitalize()} completed:[/green] {result.source}"
    if result.target:
        line += f" -> {result.target}"
    line += f" ({result.file_size} bytes, {result.duration_ms:.1f} ms)"
    console.print(line)
    if result.backup_path:
        console.print(f"[cyan]Backup saved to {result.backup_path}[/cyan]")


def _render_summary(summary: BatchSummary, *, json_output: bool) -> None:
    if json_output:
        console.print_json(data=summary.to_payload())
        return
    table = Table(title=f"Batch {summary.operation_id}")
    for column in ("Action", "Total", "Processed", "Errors", "Skipped", "Duration (ms)"):
        table.add_column(column)
    table.add_row(
        summary.action,
        str(summary.total),
        str(summary.processed),
        str(summary.errors),
        str(summary.skipped),
        f"{summary.duration_ms:.1f}",
    )
    console.print(table)
    colour = "yellow" if summary.errors or summary.cancelled else "green"
    console.print(f"[{colour}]{summary.message}.[/{colour}]")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="depara")
def cli() -> None:
    """DePara moves, copies, and deletes files on demand or on a schedule."""


@cli.command()
@click.argument("source")
@click.argument("target")
@click.option("--backup", "backup_before_move", is_flag=True, help="Back up the source first.")
@click.option("--no-overwrite", is_flag=True, help="Fail when the target already exists.")
@click.option("--timestamp", "add_timestamp", is_flag=True, help="Timestamp the file name.")
@click.option("--suffix", type=str, help="Text inserted before the file extension.")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
def move(
    source: str,
    target: str,
    backup_before_move: bool,
    no_overwrite: bool,
    add_timestamp: bool,
    suffix: str | None,
    json_output: bool,
) -> None:
    """Move SOURCE to TARGET (a file path or an existing directory)."""
    manager = _load_manager(json_output)
    options = _options(
        backup_before_move=backup_before_move, add_timestamp=add_timestamp, suffix=suffix
    )
    if no_overwrite:
        options["overwrite"] = False
    try:
        result = manager.move_file(source, target, options)
    except DeParaError as exc:
        _fail(exc, json_output=json_output)
    _render_result(result, json_output=json_output)


@cli.command()
@click.argument("source")
@click.argument("target")
@click.option("--no-overwrite", is_flag=True, help="Fail when the target already exists.")
@click.option("--timestamp", "add_timestamp", is_flag=True, help="Timestamp the file name.")
@click.option("--suffix", type=str, help="Text inserted before the file extension.")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
def copy(
    source: str,
    target: str,
    no_overwrite: bool,
    add_timestamp: bool,
    suffix: str | None,
    json_output: bool,
) -> None:
    """Copy SOURCE to TARGET (a file path or an existing directory)."""
    manager = _load_manager(json_output)
    options = _options(add_timestamp=add_timestamp, suffix=suffix)
    if no_overwrite:
        options["overwrite"] = False
    try:
        result = manager.copy_file(source, target, options)
    except DeParaError as exc:
        _fail(exc, json_output=json_output)
    _render_result(result, json_output=json_output)


@cli.command()
@click.argument("path")
@click.option("--force-backup", is_flag=True, help="Back up even when backups are disabled.")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
def delete(path: str, force_backup: bool, json_output: bool) -> None:
    """Delete the file at PATH, backing it up first when backups are enabled."""
    manager = _load_manager(json_output)
    try:
        result = manager.delete_file(path, _options(force_backup=force_backup))
    except DeParaError as exc:
        _fail(exc, json_output=json_output)
    _render_result(result, json_output=json_output)


@cli.command()
@click.argument("action", type=click.Choice(ACTIONS))
@click.argument("source_dir")
@click.argument("target_dir", required=False)
@click.option("--preserve-structure", is_flag=True, help="Mirror sub-directories under TARGET.")
@click.option("--ext", "extensions", multiple=True, help="Only process these extensions.")
@click.option("--pattern", type=str, help="Only process names matching this regex.")
@click.option("--min-size", type=int, help="Minimum file size in bytes.")
@click.option("--max-size", type=int, help="Maximum file size in bytes.")
@click.option("--min-age", type=float, help="Minimum seconds since last modification.")
@click.option("--backup", "backup_before_move", is_flag=True, help="Back up files before moving.")
@click.option("--force-backup", is_flag=True, help="Back up deleted files unconditionally.")
@click.option("--timestamp", "add_timestamp", is_flag=True, help="Timestamp file names.")
@click.option("--suffix", type=str, help="Text inserted before file extensions.")
@click.option("--json", "json_output", is_flag=True, help="Emit the summary as JSON.")
def batch(
    action: Action,
    source_dir: str,
    target_dir: str | None,
    preserve_structure: bool,
    extensions: tuple[str, ...],
    pattern: str | None,
    min_size: int | None,
    max_size: int | None,
    min_age: float | None,
    backup_before_move: bool,
    force_backup: bool,
    add_timestamp: bool,
    suffix: str | None,
    json_output: bool,
) -> None:
    """Apply ACTION to every file below SOURCE_DIR."""
    manager = _load_manager(json_output)
    options = _options(
        batch=True,
        preserve_structure=preserve_structure,
        backup_before_move=backup_before_move,
        force_backup=force_backup,
        add_timestamp=add_timestamp,
        suffix=suffix,
        filters=_options(
            extensions=list(extensions),
            pattern=pattern,
            min_size=min_size,
            max_size=max_size,
            min_age=min_age,
        ),
    )
    operation_id = f"batch_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
    try:
        summary = manager.run_batch(operation_id, action, source_dir, target_dir, options)
    except DeParaError as exc:
        _fail(exc, json_output=json_output)
    _render_summary(summary, json_output=json_output)


@cli.command()
@click.argument("folder")
@click.option("--max-depth", type=int, help="Deepest sub-directory level to scan.")
@click.option("--ext", "extensions", multiple=True, help="Image extensions to include.")
@click.option("--json", "json_output", is_flag=True, help="Emit the listing as JSON.")
def images(
    folder: str, max_depth: int | None, extensions: tuple[str, ...], json_output: bool
) -> None:
    """List images below FOLDER, most recently modified first."""
    manager = _load_manager(json_output)
    try:
        found = manager.list_images_recursive(
            folder, max_depth=max_depth, extensions=list(extensions) or None
        )
    except DeParaError as exc:
        _fail(exc, json_output=json_output)

    if json_output:
        console.print_json(data={"images": [image.to_payload() for image in found]})
        return
    if not found:
        console.print(f"[yellow]No images found under {folder}.[/yellow]")
        return
    table = Table(title=f"Images in {folder}")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for image in found:
        table.add_row(
            image.relative_path or str(image.path),
            str(image.size),
            image.modified_time.isoformat(timespec="seconds"),
        )
    console.print(table)


@cli.command()
@click.argument("names", nargs=-1, required=True)
@click.option("--json", "json_output", is_flag=True, help="Emit the verdicts as JSON.")
def ignored(names: Iterable[str], json_output: bool) -> None:
    """Report whether each of NAMES (file names or paths) matches an ignore pattern."""
    manager = _load_manager(json_output)
    verdicts = {name: manager.should_ignore_file(name) for name in names}
    if json_output:
        console.print_json(data={"ignored": verdicts})
        return
    for name, verdict in verdicts.items():
        label = "[yellow]ignored[/yellow]" if verdict else "[green]not ignored[/green]"
        console.print(f"{name}: {label}")


@cli.group()
def backups() -> None:
    """Inspect and maintain the backup directory."""


@backups.command("cleanup")
@click.option("--retention-days", type=int, help="Override the configured retention.")
@click.option("--json", "json_output", is_flag=True, help="Emit removed paths as JSON.")
def backups_cleanup(retention_days: int | None, json_output: bool) -> None:
    """Delete backups older than the retention window."""
    manager = _load_manager(json_output)
    removed = manager.cleanup_backups(retention_days)
    if json_output:
        console.print_json(data={"removed": [str(path) for path in removed]})
        return
    console.print(
        f"[green]Removed {len(removed)} expired backup(s) from {manager.vault.backup_dir}.[/green]"
    )


@cli.command()
@click.option(
    "--duration",
    type=float,
    help="Stop after this many seconds instead of waiting for Ctrl+C.",
)
def serve(duration: float | None) -> None:
    """Run the schedules listed in the configuration until interrupted."""
    manager = _load_manager(False)
    try:
        count = manager.start_configured_schedules()
    except DeParaError as exc:
        manager.shutdown()
        _fail(exc, json_output=False)

    console.print(f"[green]Running {count} scheduled operation(s). Press Ctrl+C to stop.[/green]")
    deadline = None if duration is None else time.monotonic() + duration
    try:
        while deadline is None or time.monotonic() < deadline:
            time.sleep(0.2)
    except KeyboardInterrupt:
        console.print("[yellow]Stopping scheduler...[/yellow]")
    finally:
        manager.shutdown()
    stats = manager.get_stats()
    console.print(f"[green]Scheduler stopped ({stats.total_operations} definition(s)).[/green]")


@cli.group()
def config() -> None:
    """Manage DePara configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        effective = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path such as ``backup.retention_days``.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()
    before = manager.read_text().splitlines()

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        current = manager.load_file_overrides()
        file_data = merge_dotted(current, key, parsed_value)
        resolve_with_precedence(defaults=DeParaConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if file_data == current:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    manager.save(file_data)
    after = manager.read_text().splitlines()
    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if "# Last updated:" not in line
    ]

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an editor and validate the result.

    Raises:
        click.ClickException: If edited content is invalid.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")
    if edited is None or edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc
    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=DeParaConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
