from pathlib import Path
from typing import Dict, Any, Optional, List, Callable
from config.types import SpawnEnvironment, WorkflowSettings
import logging
import os


class EnvironmentManager:
    """
    Environment manager holding the settings used to run workflows and the
    environment overlay handed to spawned step processes.
    """

    _instance = None

    # Prefix for variables that are forwarded into every step process
    SPAWN_ENV_PREFIX = "WORKFLOW_ENV_"

    # Default settings with their types
    DEFAULT_SETTINGS = {
        # Agent CLI executable used for agent steps
        "agent_cli_path": ("claude", str),
        # Shell used for shell steps (invoked as <shell> -c <command>)
        "agent_shell": ("sh", str),
        # Working directory for spawned processes (None means current directory)
        "workflow_cwd": (None, str),
        # Session transcript storage
        "workflow_sessions_dir": (".ai-workflows/.sessions", str),
        "workflow_record_sessions": (True, bool),
        # Python logging level used by the command line
        "workflow_log_level": ("INFO", str),
    }

    # Each setting can be set via its uppercase env var
    ENV_MAPPING = {setting.upper(): setting for setting in DEFAULT_SETTINGS.keys()}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize environment with default values"""
        self.spawn_env = SpawnEnvironment()
        self._providers: List[Callable[[], Dict[str, Any]]] = []
        self.settings: Dict[str, Any] = {}
        self.env_file: Optional[Path] = None
        self.logger = logging.getLogger(__name__)

        for key, (default_value, _) in self.DEFAULT_SETTINGS.items():
            self.settings[key] = default_value

        self._load_from_env_file()

    def _convert_value(self, value: str, target_type: type) -> Any:
        """Convert string value to target type"""
        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")
        return target_type(value)

    def _candidate_env_files(self) -> List[Path]:
        env_file_paths = [Path.cwd() / ".env"]
        try:
            env_file_paths.append(Path.home() / ".env")
        except (RuntimeError, OSError):
            # Home directory cannot be determined
            pass
        return env_file_paths

    def _load_from_env_file(self):
        """Find and load variables from a .env file"""
        env_file_paths = self._candidate_env_files()

        for env_path in env_file_paths:
            if env_path.exists() and env_path.is_file():
                self.logger.debug(f"Loading environment from: {env_path}")
                self._parse_env_file(env_path)
                self.env_file = env_path
                return

        self.logger.debug(
            "No .env file found, tried: %s", ", ".join(str(p) for p in env_file_paths)
        )

    def _apply_variable(self, key: str, value: str):
        """Route one KEY=VALUE pair into settings or the spawn overlay"""
        if key in self.ENV_MAPPING:
            setting_name = self.ENV_MAPPING[key]
            _, target_type = self.DEFAULT_SETTINGS[setting_name]
            self.settings[setting_name] = self._convert_value(value, target_type)
        elif key.startswith(self.SPAWN_ENV_PREFIX):
            var_name = key[len(self.SPAWN_ENV_PREFIX):]
            if var_name:
                self.spawn_env.set(var_name, value)

    def _parse_env_file(self, env_file_path: Path):
        """Parse a .env file and load variables into the environment"""
        try:
            with open(env_file_path, "r") as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith("#") and "=" in line:
                        key, value = line.split("=", 1)
                        key = key.strip()
                        value = value.strip()

                        # Remove quotes if present
                        if (value.startswith('"') and value.endswith('"')) or (
                            value.startswith("'") and value.endswith("'")
                        ):
                            value = value[1:-1]

                        self._apply_variable(key, value)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Error parsing .env file {env_file_path}: {e}")

    def register_provider(self, provider: Callable[[], Dict[str, Any]]):
        """Register a provider function that returns additional settings"""
        self._providers.append(provider)
        return self

    def load(self):
        """Load all environment information"""
        self._load_from_env_file()

        for key, value in os.environ.items():
            if key in self.ENV_MAPPING or key.startswith(self.SPAWN_ENV_PREFIX):
                self._apply_variable(key, value)

        for provider in self._providers:
            additional_data = provider()

            if settings := additional_data.get("settings", {}):
                for key, value in settings.items():
                    if key in self.settings:
                        self.settings[key] = value

            for key, value in additional_data.get("spawn_env", {}).items():
                self.spawn_env.set(key, str(value))

        return self

    def get_setting(self, name: str, default: Any = None) -> Any:
        """Get a setting value by name"""
        value = self.settings.get(name, default)
        return default if value is None else value

    def get_workflow_settings(self) -> WorkflowSettings:
        """Snapshot the runner settings as a typed model"""
        values = {key: value for key, value in self.settings.items() if value is not None}
        return WorkflowSettings(**values)


# Create singleton instance
env_manager = EnvironmentManager()
