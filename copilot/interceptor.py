"""Observability and control over every tool invocation.

The :class:`CallInterceptor` sits between the tool registry and the tool
handlers.  Each call is rendered for audit before it runs, and after a
successful run the result is either echoed, left alone, or replaced by an
operator choice, depending on the tool's declared
:class:`~copilot.tools.registry.ResultDisplay` policy.  Failures are never
rewritten: they are logged and re-raised unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from copilot.display import Display
from copilot.tools.registry import ResultDisplay, ToolSpec
from copilot.utils import truncate

logger = logging.getLogger(__name__)

ELIDED_PLACEHOLDER = "<plan text>"
NO_PLANS_FOUND = "No plans found!"
SELECT_PLAN_TITLE = "Please select the [green]saved plan[/]!"


@dataclass
class ToolCallEvent:
    """One observed tool call with its resolved arguments and outcome."""

    spec: ToolSpec
    arguments: dict[str, Any] = field(default_factory=dict)
    result: Any = None
    error: BaseException | None = None

    @property
    def name(self) -> str:
        return self.spec.name


def format_arguments(event: ToolCallEvent) -> str:
    """Render ``name=value`` pairs, eliding parameters that carry plan text."""
    elided = {p.name for p in event.spec.parameters if p.elide}
    pairs = []
    for key, value in event.arguments.items():
        shown = ELIDED_PLACEHOLDER if key in elided else value
        pairs.append(f"{key}={shown}")
    return ",".join(pairs)


def format_result(result: Any) -> str:
    if isinstance(result, (list, tuple)):
        return ", ".join(str(item) for item in result)
    return "" if result is None else str(result)


class CallInterceptor:
    """Before/after hooks around every tool handler."""

    def __init__(self, display: Display) -> None:
        self._display = display
        self._after_handlers: dict[ResultDisplay, Callable[[ToolCallEvent], Any]] = {
            ResultDisplay.ECHO: self._echo_result,
            ResultDisplay.SUPPRESS: self._keep_result,
            ResultDisplay.HIDDEN: self._keep_result,
            ResultDisplay.SELECT: self._select_one,
        }

    def invoke(self, spec: ToolSpec, arguments: dict[str, Any]) -> Any:
        event = ToolCallEvent(spec=spec, arguments=dict(arguments))
        self.before_invoke(event)
        try:
            event.result = spec.handler(**arguments)
        except Exception as exc:
            event.error = exc
            logger.warning("Tool %s failed: %s: %s", spec.name, type(exc).__name__, exc)
            raise
        return self.after_invoke(event)

    # ── Hooks ────────────────────────────────────────────────────────

    def before_invoke(self, event: ToolCallEvent) -> None:
        logger.debug("Tool call %s(%s)", event.name, format_arguments(event))
        if event.spec.result_display is ResultDisplay.HIDDEN:
            return
        self._display.panel("Function call", f"{event.name}({format_arguments(event)})")

    def after_invoke(self, event: ToolCallEvent) -> Any:
        """Return the value the model gets to see for a successful call."""
        handler = self._after_handlers[event.spec.result_display]
        return handler(event)

    # ── Result policies ──────────────────────────────────────────────

    def _keep_result(self, event: ToolCallEvent) -> Any:
        return event.result

    def _echo_result(self, event: ToolCallEvent) -> Any:
        text = format_result(event.result)
        logger.debug("Tool result %s: %s", event.name, truncate(text, 250))
        self._display.panel(f"Function result - {event.name}", text, style="grey30")
        return event.result

    def _select_one(self, event: ToolCallEvent) -> Any:
        choices: Sequence[str] = [str(item) for item in event.result or ()]
        if not choices:
            return NO_PLANS_FOUND
        choice = self._display.select(SELECT_PLAN_TITLE, choices)
        logger.info("Operator selected %s from %s", choice, event.name)
        return choice
