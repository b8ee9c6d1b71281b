"""
Streaming decoder for the agent CLI's ``stream-json`` output.

The agent writes one JSON event per line on stdout, but pipe reads do not
respect line boundaries: an event can be split across reads and several
events can arrive in a single read. ``StreamJsonDecoder`` carries the
incomplete tail of each read over to the next one. ``AgentEventHandler``
turns decoded events into log entries and remembers the agent session id.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from agent_flow.types import LogLevel

logger = logging.getLogger(__name__)

EmitCallback = Callable[[LogLevel, str], None]


@dataclass
class DecodedLine:
    """One complete stdout line: a JSON object, or raw text if it is not one"""

    text: str
    event: Optional[Dict[str, Any]] = None

    @property
    def is_event(self) -> bool:
        return self.event is not None


def _decode_line(line: str) -> DecodedLine:
    try:
        value = json.loads(line)
    except ValueError:
        return DecodedLine(text=line)
    if not isinstance(value, dict):
        return DecodedLine(text=line)
    return DecodedLine(text=line, event=value)


class StreamJsonDecoder:
    """Incremental newline-delimited JSON decoder"""

    def __init__(self):
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last newline"""
        return self._buffer

    def feed(self, text: str) -> List[DecodedLine]:
        """Add a chunk and return every line it completed"""
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [_decode_line(line) for line in lines if line.strip()]

    def flush(self) -> List[DecodedLine]:
        """Decode whatever is left once the stream has ended"""
        remaining, self._buffer = self._buffer, ""
        if not remaining.strip():
            return []
        return [_decode_line(remaining)]


def _format_tool_use(block: Dict[str, Any]) -> str:
    tool_input = json.dumps(block.get("input"), separators=(",", ":"), ensure_ascii=False)
    return f"{block.get('name')}({tool_input})"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AgentEventHandler:
    """Maps agent events to log entries for one agent step.

    Args:
        emit: Called with (level, message) for every log entry produced
        session_id: Session id known before the step started, if any
    """

    def __init__(self, emit: EmitCallback, session_id: Optional[str] = None):
        self._emit = emit
        self.session_id = session_id

    def handle(self, line: DecodedLine) -> None:
        if not line.is_event:
            self._emit(LogLevel.STDOUT, line.text)
            return

        event = line.event
        session_id = event.get("session_id")
        if isinstance(session_id, str) and session_id:
            self.session_id = session_id

        event_type = event.get("type")
        if event_type == "assistant":
            self._handle_assistant(event, line.text)
        elif event_type == "tool":
            self._handle_tool(event)
        elif event_type == "result":
            self._handle_result(event)

    def handle_all(self, lines: List[DecodedLine]) -> None:
        for line in lines:
            self.handle(line)

    def _handle_assistant(self, event: Dict[str, Any], raw: str) -> None:
        message = event.get("message")
        if not isinstance(message, dict):
            logger.debug("Assistant event without a message object, passing through")
            self._emit(LogLevel.STDOUT, raw)
            return

        content = message.get("content")
        if not isinstance(content, list):
            return

        for block in content:
            if not isinstance(block, dict):
                continue
            block_type = block.get("type")
            if block_type == "text":
                text = block.get("text")
                if isinstance(text, str) and text:
                    self._emit(LogLevel.STDOUT, text)
            elif block_type == "tool_use":
                self._emit(LogLevel.TOOL_USE, _format_tool_use(block))

    def _handle_tool(self, event: Dict[str, Any]) -> None:
        output = event.get("content")
        if not output:
            return
        if not isinstance(output, str):
            output = json.dumps(output, ensure_ascii=False)
        self._emit(LogLevel.TOOL_RESULT, output)

    def _handle_result(self, event: Dict[str, Any]) -> None:
        cost = event.get("total_cost_usd")
        if _is_number(cost):
            self._emit(LogLevel.INFO, f"Cost: ${cost:.6f}")
