"""
Asynchronous process spawning for workflow steps.

A step process owns two byte streams (stdout, stderr) and one exit code.
Both streams are drained concurrently and every decoded chunk is handed to
a callback in the order it was read, without any line buffering.
"""

import asyncio
import codecs
import contextlib
import json
import logging
from datetime import datetime, UTC
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# Largest single read from a pipe
READ_CHUNK_SIZE = 64 * 1024

ChunkCallback = Callable[[str], None]
SpawnCallback = Callable[[asyncio.subprocess.Process], None]


def _log_with_context(log_level: int, msg: str, context: Dict[str, Any] = None) -> None:
    """Helper function for structured logging with context

    Args:
        log_level: The logging level to use
        msg: The message to log
        context: Optional dictionary of contextual information
    """
    if context is None:
        context = {}

    context["timestamp"] = datetime.now(UTC).isoformat()

    structured_msg = f"{msg} | Context: {json.dumps(context, default=str)}"
    logger.log(log_level, structured_msg)


async def _pump(stream: asyncio.StreamReader, callback: ChunkCallback) -> None:
    """Forward decoded chunks from ``stream`` until EOF"""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        text = decoder.decode(chunk)
        if text:
            callback(text)

    tail = decoder.decode(b"", final=True)
    if tail:
        callback(tail)


async def run_process(
    argv: List[str],
    *,
    env: Optional[Dict[str, str]] = None,
    cwd: Optional[str] = None,
    on_stdout: ChunkCallback,
    on_stderr: ChunkCallback,
    on_spawn: Optional[SpawnCallback] = None,
) -> Optional[int]:
    """Run ``argv`` to completion while streaming its output.

    Args:
        argv: Executable and arguments (no shell interpretation)
        env: Full environment for the child
        cwd: Working directory for the child
        on_stdout: Receives decoded stdout chunks in arrival order
        on_stderr: Receives decoded stderr chunks in arrival order
        on_spawn: Called with the process handle once it has started

    Returns:
        The exit code, or None when the process was terminated by a signal

    Raises:
        OSError: If the process could not be started (missing executable,
            permission denied, missing working directory)
    """
    process = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
        cwd=cwd,
    )

    _log_with_context(
        logging.DEBUG,
        "Spawned step process",
        {"pid": process.pid, "executable": argv[0], "cwd": cwd},
    )

    if on_spawn is not None:
        on_spawn(process)

    try:
        await asyncio.gather(
            _pump(process.stdout, on_stdout),
            _pump(process.stderr, on_stderr),
        )
        return_code = await process.wait()
    except BaseException:
        # Output consumer failed or the awaiting task was cancelled
        if process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
        raise

    _log_with_context(
        logging.DEBUG,
        "Step process exited",
        {"pid": process.pid, "return_code": return_code},
    )

    # Negative return codes mean the child was killed by a signal
    if return_code is not None and return_code < 0:
        return None
    return return_code
