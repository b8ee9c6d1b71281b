"""
Command line interface: ``agent-flow run <file>``.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import click

from config import env

from agent_flow import __version__
from agent_flow.events import encode_done, encode_log
from agent_flow.exceptions import WorkflowDefinitionError
from agent_flow.loader import load_definition_file
from agent_flow.runner import WorkflowRunner
from agent_flow.sessions import FileSystemSessionStore, SessionRecorder
from agent_flow.types import LogEntry, LogLevel, WorkflowResult


def setup_logging(verbose: bool) -> None:
    # No-op when the root logger already has handlers
    level = logging.DEBUG if verbose else env.get_setting("workflow_log_level", "INFO")
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def format_entry(entry: LogEntry) -> str:
    """Human-readable line for a log entry, always newline-terminated"""
    prefix = f"[{entry.step}] " if entry.step else ""
    line = f"{prefix}{entry.message}"
    return line if line.endswith("\n") else line + "\n"


def print_entry(entry: LogEntry) -> None:
    out = format_entry(entry)
    if entry.level in (LogLevel.ERROR, LogLevel.STDERR):
        click.secho(out, fg="red", nl=False, err=True)
    elif entry.level == LogLevel.TOOL_USE:
        click.secho(f"⚙ {out}", fg="yellow", nl=False)
    elif entry.level == LogLevel.TOOL_RESULT:
        click.secho(out, fg="cyan", nl=False)
    else:
        click.echo(out, nl=False)


def parse_env_pairs(pairs: Tuple[str, ...]) -> Dict[str, str]:
    result = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--env")
        key, value = pair.split("=", 1)
        result[key] = value
    return result


@click.group()
@click.version_option(__version__, prog_name="agent-flow")
def main() -> None:
    """Local AI workflow engine."""


@main.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--cwd", type=click.Path(file_okay=False, path_type=Path), help="Working directory for steps")
@click.option("--env", "env_pairs", multiple=True, metavar="KEY=VALUE", help="Extra environment variable for steps")
@click.option("--record/--no-record", default=None, help="Save a session transcript of the run")
@click.option("--sessions-dir", type=click.Path(file_okay=False, path_type=Path), help="Where transcripts are saved")
@click.option("--json", "as_json", is_flag=True, help="Print events as newline-delimited JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def run(
    file: Path,
    cwd: Optional[Path],
    env_pairs: Tuple[str, ...],
    record: Optional[bool],
    sessions_dir: Optional[Path],
    as_json: bool,
    verbose: bool,
) -> None:
    """Run a workflow YAML file."""
    env.load()
    setup_logging(verbose)

    try:
        definition = load_definition_file(file)
    except (WorkflowDefinitionError, OSError) as e:
        click.secho(f"Fatal error: {e}", fg="red", err=True)
        sys.exit(1)

    runner = WorkflowRunner(env=parse_env_pairs(env_pairs), cwd=cwd)
    if as_json:
        runner.on("log", lambda entry: click.echo(encode_log(entry), nl=False))
        runner.on("done", lambda result: click.echo(encode_done(result), nl=False))
    else:
        runner.on("log", print_entry)

    if record is None:
        record = env.get_setting("workflow_record_sessions", True)
    recorder = None
    if record:
        store = FileSystemSessionStore(
            sessions_dir or env.get_setting("workflow_sessions_dir")
        )
        recorder = SessionRecorder(store, file.name, workflow_name=definition.name)
        recorder.attach(runner)

    result: WorkflowResult = asyncio.run(runner.run(definition))

    if recorder is not None and recorder.record is not None and not as_json:
        click.echo(f"Session saved: {recorder.record.id}", err=True)

    sys.exit(0 if result.success else 1)


if __name__ == "__main__":
    main()
