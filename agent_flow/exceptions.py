"""
Structural errors raised by agent-flow.

Step-level failures are never raised; they are reported through
``StepResult``/``WorkflowResult``. Only problems that prevent a run from
starting, or misuse of a runner, surface as exceptions.
"""


class AgentFlowError(Exception):
    """Base class for agent-flow errors"""


class WorkflowDefinitionError(AgentFlowError, ValueError):
    """A workflow document could not be parsed into a definition"""


class RunnerBusyError(AgentFlowError, RuntimeError):
    """``run`` was called on a runner that is already running"""
