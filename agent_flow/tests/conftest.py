import os
import stat
from pathlib import Path
from typing import Dict, List

import psutil
import pytest

from config import EnvironmentManager

# Fake agent CLI. Records its arguments (one per line, then __END__) when
# CLAUDE_ARGS_LOG is set and its working directory when CLAUDE_CWD_LOG is set.
# A prompt of __FAIL__ exits 2; otherwise it resumes the requested session or
# reports session-1.
FAKE_CLAUDE = """#!/bin/sh
prev=""
prompt=""
resume=""
for arg in "$@"; do
  if [ -n "$CLAUDE_ARGS_LOG" ]; then
    printf '%s\\n' "$arg" >> "$CLAUDE_ARGS_LOG"
  fi
  if [ "$prev" = "--print" ]; then
    prompt="$arg"
  fi
  if [ "$prev" = "--resume" ]; then
    resume="$arg"
  fi
  prev="$arg"
done
if [ -n "$CLAUDE_ARGS_LOG" ]; then
  printf '__END__\\n' >> "$CLAUDE_ARGS_LOG"
fi
if [ -n "$CLAUDE_CWD_LOG" ]; then
  pwd > "$CLAUDE_CWD_LOG"
fi
sid="${resume:-session-1}"
if [ "$prompt" = "__FAIL__" ]; then
  printf '{"type":"assistant","message":{"content":[{"type":"text","text":"mock-fail"}]},"session_id":"%s"}\\n' "$sid"
  exit 2
fi
printf '{"type":"system","subtype":"init","session_id":"%s"}\\n' "$sid"
printf '{"type":"assistant","message":{"content":[{"type":"text","text":"mock-ok"},{"type":"tool_use","name":"Bash","input":{"command":"ls"}}]},"session_id":"%s"}\\n' "$sid"
printf '{"type":"tool","content":"file.txt"}\\n'
printf 'not json at all\\n'
printf '{"type":"result","total_cost_usd":0.0125,"session_id":"%s"}' "$sid"
"""


class FakeClaude:
    """Handle on a fake agent CLI installed in a temporary directory"""

    def __init__(self, bin_dir: Path):
        self.bin_dir = bin_dir
        self.args_log = bin_dir / "claude-args.log"
        self.cwd_log = bin_dir / "claude-cwd.log"

    @property
    def env(self) -> Dict[str, str]:
        return {
            "PATH": f"{self.bin_dir}{os.pathsep}{os.environ.get('PATH', '')}",
            "CLAUDE_ARGS_LOG": str(self.args_log),
            "CLAUDE_CWD_LOG": str(self.cwd_log),
        }

    def invocations(self) -> List[List[str]]:
        """Arguments of each invocation, in order"""
        if not self.args_log.exists():
            return []
        segments = self.args_log.read_text().strip().split("__END__")
        parsed = [[line for line in segment.strip().split("\n") if line] for segment in segments]
        return [segment for segment in parsed if segment]


@pytest.fixture
def fake_claude(tmp_path):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "claude"
    script.write_text(FAKE_CLAUDE)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return FakeClaude(bin_dir)


@pytest.fixture(autouse=True)
def fresh_env_manager(monkeypatch, tmp_path):
    """Keep settings from the developer's .env files out of the tests"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(EnvironmentManager, "_candidate_env_files", lambda self: [])
    for key in list(os.environ):
        if key in EnvironmentManager.ENV_MAPPING or key.startswith(
            EnvironmentManager.SPAWN_ENV_PREFIX
        ):
            monkeypatch.delenv(key)
    manager = EnvironmentManager()
    for key, (default_value, _) in EnvironmentManager.DEFAULT_SETTINGS.items():
        manager.settings[key] = default_value
    manager.spawn_env.variables.clear()
    yield manager


@pytest.fixture(autouse=True)
def cleanup_processes():
    """Cleanup any leftover processes after each test"""
    yield
    current_process = psutil.Process()
    for child in current_process.children(recursive=True):
        try:
            child.terminate()
            child.wait(timeout=1)
        except (psutil.NoSuchProcess, psutil.TimeoutExpired):
            try:
                child.kill()
            except psutil.NoSuchProcess:
                pass

