"""Typer application for the ``skillsync`` command."""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape

from skillsync.cli.formatting import (
    error_payload,
    format_error_lines,
    install_payload,
    validate_payload,
)
from skillsync.config import Settings, load_settings
from skillsync.core.logging.logger import configure_logging, get_logger
from skillsync.errors import SkillSyncError, ValidationError
from skillsync.skills.engine import InstallEngine
from skillsync.skills.manifest import validate_skill_dir
from skillsync.skills.transaction import scan_for_symlinks
from skillsync.ui.agent_picker import run_agent_picker

logger = get_logger(__name__)

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

app = typer.Typer(
    help="Install agent skills into a managed repository and link them for each agent.",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass
class CliOptions:
    config_path: Path | None = None
    json_output: bool = False
    quiet: bool = False


def _options(ctx: typer.Context) -> CliOptions:
    if isinstance(ctx.obj, CliOptions):
        return ctx.obj
    return CliOptions()


def _emit_json(payload: dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(options: CliOptions, error: SkillSyncError) -> NoReturn:
    if options.json_output:
        _emit_json(error_payload(error))
    else:
        for index, line in enumerate(format_error_lines(error)):
            style = "bold red" if index == 0 else "red"
            err_console.print(escape(line), style=style)
    raise typer.Exit(1)


def _load_settings(options: CliOptions) -> Settings:
    try:
        return load_settings(options.config_path)
    except SkillSyncError as exc:
        _fail(options, exc)


def _is_interactive() -> bool:
    return sys.stdin.isatty() and sys.stdout.isatty()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option("--config", help="Path to the YAML configuration file."),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Print a single JSON object instead of text."),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    quiet: Annotated[bool, typer.Option("--quiet", "-q", help="Only log errors.")] = False,
) -> None:
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = CliOptions(config_path=config, json_output=json_output, quiet=quiet)


@app.command()
def install(
    ctx: typer.Context,
    source: Annotated[
        str,
        typer.Argument(help="Local directory, owner/repo[/path], or https://github.com URL."),
    ],
    to: Annotated[
        str | None,
        typer.Option(
            "--to",
            "-t",
            help="Comma-separated agent ids, or 'all'. Prompts when omitted on a terminal.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Replace existing entries in agent skill directories."),
    ] = False,
    workspace: Annotated[
        bool,
        typer.Option("--workspace", "-w", help="Link into workspace skill directories."),
    ] = False,
    repo: Annotated[
        Path | None,
        typer.Option("--repo", help="Managed repository root (overrides configuration)."),
    ] = None,
) -> None:
    """Install a skill and link it for the selected agents."""
    options = _options(ctx)
    settings = _load_settings(options)
    prompt = run_agent_picker if to is None and _is_interactive() else None

    engine = InstallEngine(
        settings.agents,
        repo_root=repo or settings.repo_root,
        prompt=prompt,
        depth=settings.clone_depth,
        git_timeout=settings.git_timeout,
    )
    try:
        result = engine.install(
            source,
            agents=to,
            force=force,
            scope="workspace" if workspace else "global",
        )
    except SkillSyncError as exc:
        _fail(options, exc)

    if options.json_output:
        _emit_json(install_payload(result))
        return
    if options.quiet:
        return

    console.print(f"[green]Installed[/green] {escape(result.name)} → {escape(str(result.repo_path))}")
    for link in result.receipt.links:
        note = " [yellow](replaced existing entry)[/yellow]" if link.replaced else ""
        console.print(f"  [cyan]{escape(link.agent_id)}[/cyan]: {escape(str(link.link_path))}{note}")


@app.command()
def validate(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Skill directory to check.")],
) -> None:
    """Check a skill directory without installing it."""
    options = _options(ctx)
    directory = path.expanduser()
    try:
        if not directory.is_dir():
            raise ValidationError(f"not a directory: {directory}", kind="not_a_directory")
        skill = validate_skill_dir(directory)
        scan_for_symlinks(directory)
    except SkillSyncError as exc:
        _fail(options, exc)

    if options.json_output:
        _emit_json(validate_payload(skill))
        return

    console.print(f"[green]Valid[/green] {escape(skill.name)} ({escape(str(directory))})")
    if skill.description and not options.quiet:
        console.print(f"  {escape(skill.description)}")
