import time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from agent_flow.exceptions import WorkflowDefinitionError

# Value of the ``agent`` key that marks a step as an agent step
AGENT_MARKER = "claude"


class SessionMode(str, Enum):
    """How consecutive agent steps share a conversation"""

    ISOLATED = "isolated"
    SHARED = "shared"


class LogLevel(str, Enum):
    """Level of a workflow log entry"""

    INFO = "info"
    ERROR = "error"
    STDOUT = "stdout"
    STDERR = "stderr"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"


class ShellStep(BaseModel):
    """A step that runs a command line through the shell"""

    kind: Literal["shell"] = "shell"
    name: str
    command: str


class AgentStep(BaseModel):
    """A step that hands a prompt to the agent CLI"""

    kind: Literal["agent"] = "agent"
    name: str
    prompt: str = ""
    skip_permission_check: bool = False
    agent: str = AGENT_MARKER


class UnrecognizedStep(BaseModel):
    """A step matching no known shape; it always fails when reached"""

    kind: Literal["unrecognized"] = "unrecognized"
    name: str
    raw: Dict[str, Any] = Field(default_factory=dict)


WorkflowStep = Union[ShellStep, AgentStep, UnrecognizedStep]


def parse_step(data: Dict[str, Any], index: int = 0) -> WorkflowStep:
    """Build the step variant described by one ``workflow`` list item.

    Args:
        data: Mapping as found in the YAML document
        index: Zero-based position, used for the fallback step name

    Returns:
        ShellStep, AgentStep or UnrecognizedStep
    """
    if not isinstance(data, dict):
        raise WorkflowDefinitionError(
            f"Step {index + 1} must be a mapping, got {type(data).__name__}"
        )

    name = data.get("name")
    name = str(name) if name is not None else f"step-{index + 1}"

    if data.get("agent") == AGENT_MARKER:
        prompt = data.get("prompt")
        skip_permission = data.get("skip_permission")
        if skip_permission is None:
            skip_permission = False
        if not isinstance(skip_permission, bool):
            raise WorkflowDefinitionError(
                f"Step '{name}': skip_permission must be true or false, "
                f"got {skip_permission!r}"
            )
        return AgentStep(
            name=name,
            prompt=prompt if isinstance(prompt, str) else "",
            skip_permission_check=skip_permission,
            agent=AGENT_MARKER,
        )

    command = data.get("run")
    if isinstance(command, str) and command:
        return ShellStep(name=name, command=command)

    return UnrecognizedStep(name=name, raw=dict(data))


class WorkflowDefinition(BaseModel):
    """A named, ordered list of steps"""

    name: str
    session_mode: SessionMode = SessionMode.ISOLATED
    steps: List[WorkflowStep] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowDefinition":
        """Create a definition from the document shape

        Recognized keys: ``name``, ``claude_session`` and ``workflow``.
        """
        if not isinstance(data, dict):
            raise WorkflowDefinitionError(
                f"Workflow document must be a mapping, got {type(data).__name__}"
            )

        steps_data = data.get("workflow") or []
        if not isinstance(steps_data, list):
            raise WorkflowDefinitionError("'workflow' must be a list of steps")

        session = data.get("claude_session") or SessionMode.ISOLATED.value
        try:
            session_mode = SessionMode(session)
        except ValueError:
            raise WorkflowDefinitionError(
                f"Unsupported claude_session value: {session!r}"
            ) from None

        name = data.get("name")
        return cls(
            name=str(name) if name is not None else "",
            session_mode=session_mode,
            steps=[parse_step(item, index) for index, item in enumerate(steps_data)],
        )


class LogEntry(BaseModel):
    """One log event emitted by a runner"""

    level: LogLevel
    message: str
    step: Optional[str] = None
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class StepResult(BaseModel):
    """Outcome of one attempted step"""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    success: bool
    exit_code: Optional[int] = Field(default=None, alias="exitCode")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class WorkflowResult(BaseModel):
    """Outcome of a workflow run"""

    success: bool
    steps: List[StepResult] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "steps": [step.to_dict() for step in self.steps],
        }
