"""Per-session state: the current plan slot and the chat history."""

from __future__ import annotations

from dataclasses import dataclass, field

from langchain_core.messages import AnyMessage

from copilot.planning.plan import Plan


@dataclass
class Session:
    """The single operator session.

    ``current_plan`` is the one mutable plan slot; creating or loading a
    plan replaces it.  ``messages`` holds user turns and the final
    assistant reply of each turn.
    """

    user_name: str = "User"
    messages: list[AnyMessage] = field(default_factory=list)
    current_plan: Plan | None = None
