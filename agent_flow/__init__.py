"""
agent-flow: a local workflow engine running shell commands and agent CLI
prompts one step at a time.
"""

__version__ = "0.1.0"

from agent_flow.exceptions import AgentFlowError, RunnerBusyError, WorkflowDefinitionError
from agent_flow.types import (
    AgentStep,
    LogEntry,
    LogLevel,
    SessionMode,
    ShellStep,
    StepResult,
    UnrecognizedStep,
    WorkflowDefinition,
    WorkflowResult,
    WorkflowStep,
    parse_step,
)
from agent_flow.loader import load_definition_file, load_definition_text
from agent_flow.runner import WorkflowRunner
from agent_flow.registry import RunnerRegistry, runner_registry
from agent_flow.sessions import (
    FileSystemSessionStore,
    SessionRecord,
    SessionRecorder,
    SessionSummary,
    SessionTrigger,
    generate_session_id,
)
from agent_flow.events import encode_done, encode_error, encode_log, stream_workflow

__all__ = [
    "__version__",
    # Errors
    "AgentFlowError",
    "RunnerBusyError",
    "WorkflowDefinitionError",
    # Data model
    "AgentStep",
    "LogEntry",
    "LogLevel",
    "SessionMode",
    "ShellStep",
    "StepResult",
    "UnrecognizedStep",
    "WorkflowDefinition",
    "WorkflowResult",
    "WorkflowStep",
    "parse_step",
    # Loading and running
    "load_definition_file",
    "load_definition_text",
    "WorkflowRunner",
    "RunnerRegistry",
    "runner_registry",
    # Session transcripts
    "FileSystemSessionStore",
    "SessionRecord",
    "SessionRecorder",
    "SessionSummary",
    "SessionTrigger",
    "generate_session_id",
    # Event streaming
    "encode_done",
    "encode_error",
    "encode_log",
    "stream_workflow",
]
