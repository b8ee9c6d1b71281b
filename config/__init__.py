"""
Workflow Configuration Package.

This package contains the centralized settings manager for agent-flow.
"""

from config.manager import EnvironmentManager, env_manager
from config.types import (
    SpawnEnvironment,
    WorkflowSettings,
)

# Re-export the singleton instance for easy access
env = env_manager

__all__ = [
    "EnvironmentManager",
    "env_manager",
    "env",
    "SpawnEnvironment",
    "WorkflowSettings",
]
