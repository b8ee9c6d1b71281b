"""
Sequential workflow runner.

Example:
    runner = WorkflowRunner(cwd="/path/to/project")
    runner.on("log", lambda entry: print(entry.message))
    result = await runner.run_file("deploy.yaml")

    # From another task, skip every step after the current one
    runner.abort()
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from config import env_manager

from agent_flow.cli_executor import AgentCLIConfig, build_agent_command
from agent_flow.exceptions import RunnerBusyError
from agent_flow.loader import load_definition_file
from agent_flow.process import run_process
from agent_flow.stream_parser import AgentEventHandler, StreamJsonDecoder
from agent_flow.types import (
    AgentStep,
    LogEntry,
    LogLevel,
    SessionMode,
    ShellStep,
    StepResult,
    WorkflowDefinition,
    WorkflowResult,
    WorkflowStep,
)

logger = logging.getLogger(__name__)

LogListener = Callable[[LogEntry], None]
DoneListener = Callable[[WorkflowResult], None]

EVENTS = ("log", "done")


class WorkflowRunner:
    """Runs workflow steps one at a time and reports what happens.

    Observers subscribe with ``on("log", ...)`` and ``on("done", ...)``.
    Log entries are delivered synchronously in the order they are produced;
    ``done`` is delivered exactly once per run, after the final log entry.

    Args:
        env: Variables merged over the host environment for step processes
        cwd: Working directory for step processes
        agent_cli_path: Agent CLI executable (default from configuration)
        shell: Shell used for shell steps (default from configuration)
    """

    def __init__(
        self,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[Union[str, Path]] = None,
        agent_cli_path: Optional[str] = None,
        shell: Optional[str] = None,
    ):
        settings = env_manager.load().get_workflow_settings()

        self.spawn_env: Dict[str, str] = env_manager.spawn_env.merged_over(dict(os.environ))
        self.spawn_env.update(env or {})
        configured_cwd = cwd if cwd is not None else settings.workflow_cwd
        self.cwd: Optional[str] = str(configured_cwd) if configured_cwd else None
        self.agent_cli_path = agent_cli_path or settings.agent_cli_path
        self.shell = shell or settings.agent_shell

        self._listeners: Dict[str, List[Callable]] = {event: [] for event in EVENTS}
        self._aborted = False
        self._running = False
        self._active_process: Optional[asyncio.subprocess.Process] = None

        # Per-run session continuity, reset by run()
        self._session_mode = SessionMode.ISOLATED
        self._last_agent_session_id: Optional[str] = None

    # Observers

    def on(self, event: str, listener: Union[LogListener, DoneListener]) -> "WorkflowRunner":
        """Register a listener for ``log`` or ``done``"""
        self._check_event(event)
        self._listeners[event].append(listener)
        return self

    def off(self, event: str, listener: Union[LogListener, DoneListener]) -> "WorkflowRunner":
        """Remove a previously registered listener"""
        self._check_event(event)
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)
        return self

    def _check_event(self, event: str) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown runner event: {event!r}")

    def _emit(self, event: str, payload) -> None:
        for listener in list(self._listeners[event]):
            listener(payload)

    def _log(self, level: LogLevel, message: str, step: Optional[str] = None) -> None:
        self._emit("log", LogEntry(level=level, message=message, step=step))

    # Control

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def running(self) -> bool:
        return self._running

    @property
    def active_pid(self) -> Optional[int]:
        """Pid of the step process currently running, if any"""
        process = self._active_process
        if process is None or process.returncode is not None:
            return None
        return process.pid

    def abort(self) -> None:
        """Skip every step that has not started yet.

        A step process that is already running is left to finish. The flag
        holds until the current (or next) run ends.
        """
        if not self._aborted:
            logger.info("Workflow runner abort requested")
        self._aborted = True

    # Running

    async def run_file(self, path: Union[str, Path]) -> WorkflowResult:
        """Load a YAML workflow file and run it"""
        definition = load_definition_file(path)
        return await self.run(definition)

    async def run(self, definition: WorkflowDefinition) -> WorkflowResult:
        """Run every step in order, stopping at the first failure"""
        if self._running:
            raise RunnerBusyError("This runner is already running a workflow")
        self._running = True
        try:
            return await self._run(definition)
        finally:
            self._running = False
            self._active_process = None
            self._aborted = False

    async def _run(self, definition: WorkflowDefinition) -> WorkflowResult:
        self._session_mode = definition.session_mode or SessionMode.ISOLATED
        self._last_agent_session_id = None

        logger.info(
            f"Starting workflow '{definition.name}' with {len(definition.steps)} steps"
        )
        self._log(LogLevel.INFO, f"Starting workflow: {definition.name}")
        step_results: List[StepResult] = []

        for step in definition.steps:
            if self._aborted:
                logger.info(f"Workflow '{definition.name}' aborted before step '{step.name}'")
                break

            result = await self._run_step(step)
            step_results.append(result)
            if not result.success:
                self._log(LogLevel.ERROR, f"Step failed: {step.name}", step.name)
                break

        success = all(result.success for result in step_results) and not self._aborted
        workflow_result = WorkflowResult(success=success, steps=step_results)

        outcome = "completed" if success else "failed"
        logger.info(f"Workflow '{definition.name}' {outcome}")
        self._log(LogLevel.INFO, f"Workflow {outcome}: {definition.name}")
        self._emit("done", workflow_result)
        return workflow_result

    async def _run_step(self, step: WorkflowStep) -> StepResult:
        if isinstance(step, AgentStep) and step.prompt:
            return await self._run_agent_step(step)
        if isinstance(step, ShellStep) and step.command:
            return await self._run_shell_step(step)
        logger.warning(f"Step '{step.name}' has no runnable command or prompt")
        return StepResult(name=step.name, success=False, exit_code=None)

    def _track_process(self, process: asyncio.subprocess.Process) -> None:
        self._active_process = process

    async def _run_shell_step(self, step: ShellStep) -> StepResult:
        self._log(LogLevel.INFO, f"Running: {step.command}", step.name)

        try:
            exit_code = await run_process(
                [self.shell, "-c", step.command],
                env=self.spawn_env,
                cwd=self.cwd,
                on_stdout=lambda text: self._log(LogLevel.STDOUT, text, step.name),
                on_stderr=lambda text: self._log(LogLevel.STDERR, text, step.name),
                on_spawn=self._track_process,
            )
        except OSError as e:
            logger.error(f"Could not start shell for step '{step.name}': {e}")
            self._log(LogLevel.ERROR, f"Spawn error: {e}", step.name)
            return StepResult(name=step.name, success=False, exit_code=None)
        finally:
            self._active_process = None

        return StepResult(name=step.name, success=exit_code == 0, exit_code=exit_code)

    async def _run_agent_step(self, step: AgentStep) -> StepResult:
        self._log(LogLevel.INFO, f"Running agent: {step.name}", step.name)

        resume_session_id = None
        if self._session_mode == SessionMode.SHARED and self._last_agent_session_id:
            resume_session_id = self._last_agent_session_id
            self._log(LogLevel.INFO, f"Resuming agent session: {resume_session_id}", step.name)

        cli_config = AgentCLIConfig(
            cli_path=self.agent_cli_path,
            skip_permissions=step.skip_permission_check,
            resume_session_id=resume_session_id,
        )
        argv = build_agent_command(cli_config, step.prompt)

        decoder = StreamJsonDecoder()
        handler = AgentEventHandler(
            emit=lambda level, message: self._log(level, message, step.name),
            session_id=self._last_agent_session_id,
        )

        try:
            exit_code = await run_process(
                argv,
                env=self.spawn_env,
                cwd=self.cwd,
                on_stdout=lambda text: handler.handle_all(decoder.feed(text)),
                on_stderr=lambda text: self._log(LogLevel.STDERR, text, step.name),
                on_spawn=self._track_process,
            )
        except OSError as e:
            logger.error(f"Could not start agent CLI for step '{step.name}': {e}")
            self._log(LogLevel.ERROR, f"Agent spawn error: {e}", step.name)
            return StepResult(name=step.name, success=False, exit_code=None)
        finally:
            self._active_process = None

        # Stream ended without a trailing newline
        handler.handle_all(decoder.flush())

        if (
            self._session_mode == SessionMode.SHARED
            and handler.session_id
            and exit_code == 0
        ):
            self._last_agent_session_id = handler.session_id

        return StepResult(name=step.name, success=exit_code == 0, exit_code=exit_code)
