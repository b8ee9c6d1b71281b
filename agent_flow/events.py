"""
Newline-delimited JSON encoding of runner events.

A run is serialized as one line per log entry followed by exactly one
terminal line, either ``{"type": "done", ...}`` or, when the workflow could
not be loaded, ``{"type": "error", "message": ...}``.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from agent_flow.exceptions import WorkflowDefinitionError
from agent_flow.runner import WorkflowRunner
from agent_flow.types import LogEntry, WorkflowDefinition, WorkflowResult

logger = logging.getLogger(__name__)


def _line(payload) -> str:
    return json.dumps(payload, ensure_ascii=False) + "\n"


def encode_log(entry: LogEntry) -> str:
    return _line(entry.to_dict())


def encode_done(result: WorkflowResult) -> str:
    return _line({"type": "done", **result.to_dict()})


def encode_error(message: str) -> str:
    return _line({"type": "error", "message": message})


def _report_orphaned_run(task: "asyncio.Task") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Workflow run failed after its event stream was closed: {error!r}")


async def stream_workflow(
    runner: WorkflowRunner,
    source: Union[WorkflowDefinition, str, Path],
) -> AsyncIterator[str]:
    """Run a workflow and yield its events as NDJSON lines as they happen.

    Args:
        runner: Runner to execute with; listeners are added for the run
        source: A definition, or the path of a YAML workflow file

    Yields:
        Encoded log lines in production order, then one done or error line
    """
    queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()

    def on_log(entry: LogEntry) -> None:
        queue.put_nowait(encode_log(entry))

    def on_done(result: WorkflowResult) -> None:
        queue.put_nowait(encode_done(result))

    async def drive() -> None:
        try:
            if isinstance(source, WorkflowDefinition):
                await runner.run(source)
            else:
                await runner.run_file(source)
        except (WorkflowDefinitionError, OSError) as e:
            logger.error(f"Workflow could not be started: {e}")
            queue.put_nowait(encode_error(str(e)))
        finally:
            queue.put_nowait(None)

    runner.on("log", on_log)
    runner.on("done", on_done)
    task = asyncio.create_task(drive())
    try:
        while True:
            line = await queue.get()
            if line is None:
                break
            yield line
        await task
    finally:
        runner.off("log", on_log)
        runner.off("done", on_done)
        if not task.done():
            # Consumer stopped early; the current step finishes in the
            # background and the remaining steps are skipped
            runner.abort()
            task.add_done_callback(_report_orphaned_run)
