"""
Unit tests for the stream-json decoder and agent event mapping
"""

import json

from agent_flow.stream_parser import AgentEventHandler, StreamJsonDecoder
from agent_flow.types import LogLevel


def run_chunks(chunks, session_id=None):
    """Feed chunks through a decoder and handler, returning emitted entries"""
    emitted = []
    decoder = StreamJsonDecoder()
    handler = AgentEventHandler(lambda level, message: emitted.append((level, message)), session_id)
    for chunk in chunks:
        handler.handle_all(decoder.feed(chunk))
    handler.handle_all(decoder.flush())
    return emitted, handler


ASSISTANT = json.dumps(
    {"type": "assistant", "message": {"content": [{"type": "text", "text": "hello"}]}}
)
RESULT = json.dumps({"type": "result", "total_cost_usd": 0.5, "session_id": "abc"})


class TestStreamJsonDecoder:
    """Tests for line reassembly"""

    def test_split_event_matches_whole_lines(self):
        whole, _ = run_chunks([ASSISTANT + "\n", RESULT + "\n"])
        split, _ = run_chunks([ASSISTANT[:10], ASSISTANT[10:] + "\n" + RESULT[:5], RESULT[5:] + "\n"])

        assert split == whole
        assert whole == [(LogLevel.STDOUT, "hello"), (LogLevel.INFO, "Cost: $0.500000")]

    def test_concatenated_events_match_whole_lines(self):
        whole, _ = run_chunks([ASSISTANT + "\n", RESULT + "\n"])
        joined, _ = run_chunks([ASSISTANT + "\n" + RESULT + "\n"])

        assert joined == whole

    def test_incomplete_tail_is_held_back(self):
        decoder = StreamJsonDecoder()

        assert decoder.feed(ASSISTANT[:20]) == []
        assert decoder.pending == ASSISTANT[:20]

        lines = decoder.feed(ASSISTANT[20:] + "\n")
        assert len(lines) == 1
        assert lines[0].event["type"] == "assistant"
        assert decoder.pending == ""

    def test_flush_decodes_unterminated_line(self):
        emitted, handler = run_chunks([RESULT])

        assert emitted == [(LogLevel.INFO, "Cost: $0.500000")]
        assert handler.session_id == "abc"

    def test_flush_of_whitespace_is_empty(self):
        decoder = StreamJsonDecoder()
        decoder.feed("  ")

        assert decoder.flush() == []

    def test_blank_lines_are_ignored(self):
        emitted, _ = run_chunks(["\n\n   \n" + ASSISTANT + "\n\n"])

        assert emitted == [(LogLevel.STDOUT, "hello")]

    def test_non_json_line_passes_through(self):
        emitted, _ = run_chunks(["warning: something odd\n", ASSISTANT + "\n"])

        assert emitted == [
            (LogLevel.STDOUT, "warning: something odd"),
            (LogLevel.STDOUT, "hello"),
        ]

    def test_non_object_json_passes_through(self):
        emitted, _ = run_chunks(["42\n", '"text"\n'])

        assert emitted == [(LogLevel.STDOUT, "42"), (LogLevel.STDOUT, '"text"')]

    def test_unterminated_non_json_tail_passes_through(self):
        emitted, _ = run_chunks(["partial {"])

        assert emitted == [(LogLevel.STDOUT, "partial {")]


class TestAgentEventHandler:
    """Tests for event to log entry mapping"""

    def test_assistant_text_and_tool_use(self):
        event = {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": "Looking around"},
                    {"type": "tool_use", "name": "Read", "input": {"file_path": "a.py", "limit": 5}},
                    {"type": "text", "text": ""},
                    {"type": "thinking", "thinking": "hmm"},
                ]
            },
        }

        emitted, _ = run_chunks([json.dumps(event) + "\n"])

        assert emitted == [
            (LogLevel.STDOUT, "Looking around"),
            (LogLevel.TOOL_USE, 'Read({"file_path":"a.py","limit":5})'),
        ]

    def test_assistant_without_message_passes_through(self):
        line = json.dumps({"type": "assistant"})

        emitted, _ = run_chunks([line + "\n"])

        assert emitted == [(LogLevel.STDOUT, line)]

    def test_tool_content(self):
        emitted, _ = run_chunks(
            [
                json.dumps({"type": "tool", "content": "ok"}) + "\n",
                json.dumps({"type": "tool", "content": ""}) + "\n",
                json.dumps({"type": "tool"}) + "\n",
                json.dumps({"type": "tool", "content": [{"type": "text", "text": "x"}]}) + "\n",
            ]
        )

        assert emitted == [
            (LogLevel.TOOL_RESULT, "ok"),
            (LogLevel.TOOL_RESULT, '[{"type": "text", "text": "x"}]'),
        ]

    def test_result_cost_formatting(self):
        emitted, _ = run_chunks(
            [
                json.dumps({"type": "result", "total_cost_usd": 0}) + "\n",
                json.dumps({"type": "result", "total_cost_usd": 1.23456789}) + "\n",
            ]
        )

        assert emitted == [
            (LogLevel.INFO, "Cost: $0.000000"),
            (LogLevel.INFO, "Cost: $1.234568"),
        ]

    def test_non_numeric_cost_is_ignored(self):
        emitted, _ = run_chunks(
            [
                json.dumps({"type": "result", "total_cost_usd": None}) + "\n",
                json.dumps({"type": "result", "total_cost_usd": "0.5"}) + "\n",
                json.dumps({"type": "result", "total_cost_usd": True}) + "\n",
                json.dumps({"type": "result"}) + "\n",
            ]
        )

        assert emitted == []

    def test_session_id_from_any_event(self):
        _, handler = run_chunks(
            [json.dumps({"type": "system", "subtype": "init", "session_id": "s-1"}) + "\n"]
        )

        assert handler.session_id == "s-1"

    def test_latest_session_id_wins(self):
        _, handler = run_chunks(
            [
                json.dumps({"type": "system", "session_id": "s-1"}) + "\n",
                json.dumps({"type": "result", "session_id": "s-2"}) + "\n",
            ]
        )

        assert handler.session_id == "s-2"

    def test_empty_or_non_string_session_id_is_ignored(self):
        _, handler = run_chunks(
            [
                json.dumps({"type": "system", "session_id": ""}) + "\n",
                json.dumps({"type": "system", "session_id": 7}) + "\n",
            ],
            session_id="previous",
        )

        assert handler.session_id == "previous"

    def test_unknown_event_types_emit_nothing(self):
        emitted, _ = run_chunks([json.dumps({"type": "user", "message": {}}) + "\n"])

        assert emitted == []
