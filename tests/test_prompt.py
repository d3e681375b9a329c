"""Tests for prompt templates."""

from __future__ import annotations

from conftest import utc
from secondbrain.rag.history import make_turn
from secondbrain.rag.prompt import build_direct_prompt, build_prompt, render_history


def _history():
    return (
        make_turn("user", "What is X?", utc(2024, 1, 1)),
        make_turn("assistant", "X is a letter.", utc(2024, 1, 1)),
    )


class TestBuildPrompt:
    """Test build_prompt function."""

    def test_without_history(self) -> None:
        """No history section should appear without turns."""
        prompt = build_prompt("Why?", "Because.")

        assert "<conversation_history>" not in prompt
        assert "conversation history" not in prompt.lower()
        assert "KNOWLEDGE BASE CONTENT:\nBecause.\n" in prompt
        assert "User Question: Why?" in prompt
        assert prompt.startswith("<prompt>")
        assert prompt.endswith("</prompt>")

    def test_empty_history_same_as_none(self) -> None:
        assert build_prompt("Why?", "ctx", ()) == build_prompt("Why?", "ctx", None)

    def test_with_history(self) -> None:
        """History turns should be rendered in order before the context."""
        prompt = build_prompt("And Y?", "ctx", _history())

        assert "PREVIOUS CONVERSATION:\nUser: What is X?\nAssistant: X is a letter." in prompt
        assert prompt.index("<conversation_history>") < prompt.index("<context>")
        assert "Reference previous conversation" in prompt

    def test_deterministic(self) -> None:
        """Same inputs should give identical prompts."""
        assert build_prompt("q", "c", _history()) == build_prompt("q", "c", _history())


class TestDirectPrompt:
    """Test build_direct_prompt function."""

    def test_question_and_guidelines(self) -> None:
        prompt = build_direct_prompt("Hello?")

        assert "<user_input>\nHello?\n</user_input>" in prompt
        assert "<conversation_history>" not in prompt
        assert "<context>" not in prompt

    def test_with_history(self) -> None:
        prompt = build_direct_prompt("Hello?", _history())

        assert "User: What is X?" in prompt
        assert "context-aware" in prompt


class TestRenderHistory:
    def test_empty(self) -> None:
        assert render_history(None) == ""
        assert render_history(()) == ""
