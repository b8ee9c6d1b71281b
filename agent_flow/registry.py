"""
Registry of running workflow runners, keyed by session id.

Lets a caller that did not start a run (for example a stop request arriving
over HTTP) find the runner and abort it.
"""

import asyncio
import logging
import threading
import time
from typing import Dict, List, Optional

import psutil

from agent_flow.runner import WorkflowRunner

logger = logging.getLogger(__name__)


def _wait_exited(process: psutil.Process, timeout: float) -> bool:
    """Poll until ``process`` has exited (or is a zombie awaiting reaping)"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if process.status() == psutil.STATUS_ZOMBIE:
                return True
        except psutil.NoSuchProcess:
            return True
        time.sleep(0.05)
    return False


def terminate_process_tree(pid: int, timeout: float = 3.0) -> int:
    """Terminate a process and all of its children.

    Processes that do not exit within ``timeout`` seconds are killed. The
    top process is never waited on with waitpid, so whoever spawned it still
    collects its exit status.

    Returns:
        Number of processes signalled
    """
    try:
        parent = psutil.Process(pid)
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        return 0

    processes = [parent] + children
    for process in processes:
        try:
            process.terminate()
        except psutil.NoSuchProcess:
            pass

    _, alive = psutil.wait_procs(children, timeout=timeout)
    if not _wait_exited(parent, timeout):
        alive.append(parent)
    for process in alive:
        try:
            process.kill()
        except psutil.NoSuchProcess:
            pass

    logger.info(f"Terminated process tree of pid {pid} ({len(processes)} processes)")
    return len(processes)


class RunnerRegistry:
    """Maps session ids to the runners executing them"""

    def __init__(self):
        self._runners: Dict[str, WorkflowRunner] = {}
        self._lock = threading.Lock()

    def register(self, session_id: str, runner: WorkflowRunner) -> None:
        with self._lock:
            self._runners[session_id] = runner

    def unregister(self, session_id: str) -> Optional[WorkflowRunner]:
        with self._lock:
            return self._runners.pop(session_id, None)

    def get(self, session_id: str) -> Optional[WorkflowRunner]:
        with self._lock:
            return self._runners.get(session_id)

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._runners)

    def stop(self, session_id: str, terminate: bool = False) -> bool:
        """Abort the runner for ``session_id`` and forget it.

        Args:
            session_id: Session to stop
            terminate: Also terminate the step process that is running now.
                Without it the current step runs to completion and only the
                remaining steps are skipped.
                Waiting for the processes to exit blocks for up to a few
                seconds; use ``stop_async`` from a running event loop.

        Returns:
            False if no runner is registered under ``session_id``
        """
        runner = self.unregister(session_id)
        if runner is None:
            logger.debug(f"No runner registered for session {session_id}")
            return False

        runner.abort()
        if terminate:
            pid = runner.active_pid
            if pid is not None:
                terminate_process_tree(pid)
        logger.info(f"Stopped workflow session {session_id}")
        return True

    async def stop_async(self, session_id: str, terminate: bool = False) -> bool:
        """``stop`` run in a worker thread so the event loop keeps going"""
        return await asyncio.to_thread(self.stop, session_id, terminate)


# Process-wide registry
runner_registry = RunnerRegistry()
