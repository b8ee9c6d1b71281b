"""
Session transcripts for workflow runs.

Each run can be recorded as one JSON file holding every log entry and the
final result, grouped by the workflow file that was run::

    <base_dir>/<workflow file name>/<session id>.json
"""

import json
import logging
import re
import time
import uuid
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from agent_flow.runner import WorkflowRunner
from agent_flow.types import LogEntry, WorkflowResult

logger = logging.getLogger(__name__)


class SessionTrigger(str, Enum):
    """What started a run"""

    MANUAL = "manual"
    API = "api"


class SessionSummary(BaseModel):
    """Listing view of a recorded run"""

    id: str
    started_at: int
    ended_at: int
    duration_ms: int
    success: bool


class SessionRecord(BaseModel):
    """Full transcript of a recorded run"""

    id: str
    workflow_file: str
    workflow_name: str
    started_at: int
    ended_at: int
    duration_ms: int
    success: bool
    trigger: SessionTrigger = SessionTrigger.MANUAL
    logs: List[LogEntry] = Field(default_factory=list)
    result: WorkflowResult

    def summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.id,
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration_ms=self.duration_ms,
            success=self.success,
        )


def generate_session_id() -> str:
    return str(uuid.uuid4())


def _now_ms() -> int:
    return int(time.time() * 1000)


def _sanitize_name(value: str) -> str:
    # Keep the base name only, so no path separators survive
    return re.sub(r"[^a-zA-Z0-9._-]", "_", Path(value).name)


def _sanitize_id(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9-]", "", value)


class FileSystemSessionStore:
    """Stores session records as JSON files under ``base_dir``"""

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)

    def _sessions_dir(self, workflow_file: str) -> Path:
        return self.base_dir / _sanitize_name(workflow_file)

    def _session_path(self, workflow_file: str, session_id: str) -> Path:
        return self._sessions_dir(workflow_file) / f"{_sanitize_id(session_id)}.json"

    def write(self, record: SessionRecord) -> Path:
        """Save a record, replacing any previous record with the same id"""
        session_dir = self._sessions_dir(record.workflow_file)
        session_dir.mkdir(parents=True, exist_ok=True)

        path = self._session_path(record.workflow_file, record.id)
        path.write_text(
            json.dumps(record.model_dump(mode="json"), indent=2), encoding="utf-8"
        )
        logger.debug(f"Wrote session {record.id} to {path}")
        return path

    def _read(self, path: Path) -> SessionRecord:
        return SessionRecord.model_validate_json(path.read_text(encoding="utf-8"))

    def list(self, workflow_file: str) -> List[SessionSummary]:
        """Summaries of every recorded run of ``workflow_file``, newest first"""
        session_dir = self._sessions_dir(workflow_file)
        if not session_dir.is_dir():
            return []

        summaries = []
        for path in session_dir.glob("*.json"):
            try:
                summaries.append(self._read(path).summary())
            except (OSError, ValueError, ValidationError):
                logger.warning(f"Skipping corrupted session file: {path.name}")

        return sorted(summaries, key=lambda s: s.started_at, reverse=True)

    def get(self, workflow_file: str, session_id: str) -> Optional[SessionRecord]:
        path = self._session_path(workflow_file, session_id)
        if not path.is_file():
            return None
        try:
            return self._read(path)
        except (OSError, ValueError, ValidationError):
            logger.warning(f"Could not read session file: {path}")
            return None

    def delete(self, workflow_file: str, session_id: str) -> bool:
        path = self._session_path(workflow_file, session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        return True


class SessionRecorder:
    """Collects a runner's events and writes the transcript when it finishes.

    Example:
        recorder = SessionRecorder(store, "deploy.yaml")
        recorder.attach(runner)
        await runner.run_file("deploy.yaml")
        print(recorder.record.id)
    """

    def __init__(
        self,
        store: FileSystemSessionStore,
        workflow_file: str,
        workflow_name: Optional[str] = None,
        trigger: SessionTrigger = SessionTrigger.MANUAL,
        session_id: Optional[str] = None,
    ):
        self.store = store
        self.workflow_file = workflow_file
        self.workflow_name = workflow_name
        self.trigger = trigger
        self.session_id = session_id or generate_session_id()
        self.logs: List[LogEntry] = []
        self.record: Optional[SessionRecord] = None
        self._started_at: Optional[int] = None

    def attach(self, runner: WorkflowRunner) -> "SessionRecorder":
        runner.on("log", self._on_log)
        runner.on("done", self._on_done)
        return self

    def _on_log(self, entry: LogEntry) -> None:
        if self._started_at is None:
            self._started_at = entry.timestamp
        self.logs.append(entry)

    def _on_done(self, result: WorkflowResult) -> None:
        ended_at = _now_ms()
        started_at = self._started_at if self._started_at is not None else ended_at

        self.record = SessionRecord(
            id=self.session_id,
            workflow_file=self.workflow_file,
            workflow_name=self.workflow_name or Path(self.workflow_file).stem,
            started_at=started_at,
            ended_at=ended_at,
            duration_ms=ended_at - started_at,
            success=result.success,
            trigger=self.trigger,
            logs=list(self.logs),
            result=result,
        )
        self.store.write(self.record)
