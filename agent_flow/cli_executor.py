"""
Agent CLI Command Module

Builds the command line used to invoke the conversational agent CLI for an
agent step.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class AgentCLIConfig:
    """Configuration for one agent CLI invocation"""

    cli_path: str = "claude"
    """Path to the agent CLI executable"""

    skip_permissions: bool = False
    """Whether to pass --dangerously-skip-permissions"""

    resume_session_id: Optional[str] = None
    """Session to resume with --resume (None starts a fresh session)"""

    output_format: str = "stream-json"
    """Value for --output-format; the runner parses stream-json events"""

    verbose: bool = True
    """Whether to pass --verbose (required by stream-json output)"""

    additional_cli_args: List[str] = field(default_factory=list)
    """Additional CLI arguments, placed before the prompt"""


def build_agent_command(config: AgentCLIConfig, prompt: str) -> List[str]:
    """
    Build the agent CLI command.

    The prompt is always the final argument, passed via --print.

    Args:
        config: CLI configuration
        prompt: The prompt to send to the agent

    Returns:
        List of command arguments
    """
    cmd = [config.cli_path]

    if config.skip_permissions:
        cmd.append("--dangerously-skip-permissions")

    if config.resume_session_id:
        cmd.extend(["--resume", config.resume_session_id])

    cmd.extend(config.additional_cli_args)

    cmd.extend(["--output-format", config.output_format])
    if config.verbose:
        cmd.append("--verbose")

    cmd.extend(["--print", prompt])

    return cmd
