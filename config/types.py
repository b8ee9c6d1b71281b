from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class WorkflowSettings(BaseModel):
    """Resolved settings consumed by the workflow runner"""

    agent_cli_path: str = "claude"
    agent_shell: str = "sh"
    workflow_cwd: Optional[str] = None
    workflow_sessions_dir: str = ".ai-workflows/.sessions"
    workflow_record_sessions: bool = True
    workflow_log_level: str = "INFO"


class SpawnEnvironment(BaseModel):
    """Environment variables overlaid onto every spawned step process"""

    variables: Dict[str, str] = Field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        """Get an environment variable value"""
        return self.variables.get(name, default)

    def set(self, name: str, value: str) -> None:
        """Set an environment variable value"""
        self.variables[name] = value

    def merged_over(self, base: Dict[str, str]) -> Dict[str, str]:
        """Return ``base`` with these variables applied on top"""
        merged = dict(base)
        merged.update(self.variables)
        return merged
