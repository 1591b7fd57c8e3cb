"""Shared test fixtures for the Planning Copilot test suite."""

from __future__ import annotations

import contextlib
import os
from collections.abc import Sequence
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("OPENAI_API_KEY", "test-openai-key-456")


class RecordingDisplay:
    """Display double that records everything instead of printing it."""

    def __init__(self) -> None:
        self.panels: list[tuple[str, str]] = []
        self.notes: list[tuple[str, str]] = []
        self.links: list[str] = []
        self.errors: list[str] = []
        self.fragments: list[str] = []
        self.statuses: list[str] = []
        self.selections: list[tuple[str, list[str]]] = []
        self.tables: list[list[str]] = []
        self.events: list[str] = []
        self.answers: list[str] = []
        self.select_index = 0

    def assistant_begin(self) -> None:
        self.events.append("begin")

    def assistant_fragment(self, text: str) -> None:
        self.events.append(f"fragment:{text}")
        self.fragments.append(text)

    def assistant_end(self) -> None:
        self.events.append("end")

    def panel(self, title: str, body: str, *, style: str = "grey50") -> None:
        self.panels.append((title, body))

    def note(self, label: str, text: str) -> None:
        self.notes.append((label, text))

    def link(self, url: str, label: str) -> None:
        self.links.append(url)

    def error(self, text: str) -> None:
        self.errors.append(text)

    def status(self, message: str):
        self.statuses.append(message)
        return contextlib.nullcontext()

    def ask(self, prompt: str, default: str | None = None) -> str:
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def select(self, title: str, choices: Sequence[str]) -> str:
        self.selections.append((title, list(choices)))
        return choices[self.select_index]

    def functions_table(self, specs) -> None:
        self.tables.append([spec.name for spec in specs])

    def panel_titles(self) -> list[str]:
        return [title for title, _ in self.panels]


@pytest.fixture
def mock_llm():
    """Factory fixture: a mock chat model returning the given texts in order."""

    def _make(*responses: str):
        llm = MagicMock()
        llm.invoke.side_effect = [AIMessage(content=text) for text in responses]
        return llm

    return _make


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2025-01-01 12:00."""
    return lambda: datetime(2025, 1, 1, 12, 0)
