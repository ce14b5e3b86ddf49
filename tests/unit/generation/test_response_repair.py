"""Tests for JSON recovery from raw LLM responses."""

from __future__ import annotations

import json
import logging

import pytest

from project_generator.generation.exceptions import MalformedResponseError
from project_generator.generation.response_repair import (
    attempt_repair,
    clean_response,
    decode_response,
)


class TestCleanResponse:
    """Tests for clean_response()."""

    def test_strips_json_code_fence(self) -> None:
        """A fenced JSON block is reduced to the bare object."""
        raw = '```json\n{"name":"Test","tasks":[]}\n```'

        assert clean_response(raw) == '{"name":"Test","tasks":[]}'

    def test_strips_plain_code_fence(self) -> None:
        """Fences without a language tag are stripped too."""
        assert clean_response('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_drops_surrounding_prose(self) -> None:
        """Text before the first brace and after the last brace is removed."""
        raw = 'Here is your project:\n{"a": {"b": 2}}\nLet me know if you need more.'

        assert clean_response(raw) == '{"a": {"b": 2}}'

    def test_text_without_braces_is_only_trimmed(self) -> None:
        """Without an object span the text is returned trimmed."""
        assert clean_response("  no json here  ") == "no json here"

    @pytest.mark.parametrize(
        "raw",
        [
            '```json\n{"name":"Test"}\n```',
            'prose {"a": [1, 2]} prose',
            '```json\n```json\n{"x": "y"}\n```\n```',
            '{"unterminated": [1, 2',
        ],
    )
    def test_is_idempotent(self, raw: str) -> None:
        """Cleaning a cleaned response changes nothing."""
        once = clean_response(raw)

        assert clean_response(once) == once


class TestAttemptRepair:
    """Tests for attempt_repair()."""

    def test_closes_missing_brace(self) -> None:
        """A missing final brace is appended."""
        text = '{"name": "Test", "tasks": [{"title": "Task 1"}]'

        assert attempt_repair(text) == '{"name": "Test", "tasks": [{"title": "Task 1"}]}'

    def test_closes_bracket_then_brace(self) -> None:
        """Unclosed array and object are closed innermost first."""
        repaired = attempt_repair('{"name": "Partial", "tasks": [{"title": "Only task", "duration": 2}')

        assert repaired is not None
        assert json.loads(repaired) == {
            "name": "Partial",
            "tasks": [{"title": "Only task", "duration": 2}],
        }

    def test_closes_unterminated_string(self) -> None:
        """A string cut off by truncation is closed and keeps its content."""
        repaired = attempt_repair('{"name": "Trunc')

        assert repaired is not None
        assert json.loads(repaired) == {"name": "Trunc"}

    def test_drops_trailing_comma(self) -> None:
        """A dangling comma before the truncation point is removed."""
        repaired = attempt_repair('{"tasks": [{"title": "A"},')

        assert repaired is not None
        assert json.loads(repaired) == {"tasks": [{"title": "A"}]}

    def test_brackets_inside_strings_are_ignored(self) -> None:
        """Brackets within string values do not produce closers."""
        repaired = attempt_repair('{"title": "Use [brackets] and {braces}", "tasks": [')

        assert repaired is not None
        assert json.loads(repaired)["title"] == "Use [brackets] and {braces}"

    @pytest.mark.parametrize("text", ["", "   ", "not json at all", "}}}{{{"])
    def test_unrepairable_returns_none(self, text: str) -> None:
        """Unrepairable input yields None, never invalid JSON."""
        assert attempt_repair(text) is None

    def test_result_always_decodes(self) -> None:
        """Any non-None repair result is valid JSON."""
        for text in ['{"a": [1, 2', '{"a": "b', '[{"a": 1}, {"b": ', '{"a": {"b": {"c": 1']:
            repaired = attempt_repair(text)
            if repaired is not None:
                json.loads(repaired)


class TestDecodeResponse:
    """Tests for decode_response()."""

    def test_decodes_fenced_json(self) -> None:
        """Fenced JSON decodes without repair."""
        assert decode_response('```json\n{"name": "X", "tasks": []}\n```') == {
            "name": "X",
            "tasks": [],
        }

    def test_repairs_truncated_json(self, caplog: pytest.LogCaptureFixture) -> None:
        """Truncated payloads are repaired and the repair is logged."""
        with caplog.at_level(logging.INFO):
            data = decode_response('{"name": "X", "tasks": [{"title": "A", "duration": 1}')

        assert data["tasks"][0]["title"] == "A"
        assert "Successfully repaired JSON response" in caplog.text

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty_response_raises(self, raw: object) -> None:
        """Empty or non-string input is malformed."""
        with pytest.raises(MalformedResponseError, match="empty response"):
            decode_response(raw)  # type: ignore[arg-type]

    def test_unrepairable_raises_with_diagnostics(self) -> None:
        """The error carries length and excerpt diagnostics."""
        raw = "This is not valid JSON at all {{{malformed response from model"

        with pytest.raises(MalformedResponseError) as exc_info:
            decode_response(raw)

        diagnostics = exc_info.value.diagnostics
        assert diagnostics["original_length"] == len(raw)
        assert diagnostics["head"] == raw[:200]
        assert "Response length" in str(exc_info.value)
