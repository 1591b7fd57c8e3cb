"""Plan data type and the template dialect plans are written in.

A plan is a Jinja2 template produced by the model.  Tool calls are
expressions, sequencing is source order, ``{% for %}`` loops iterate and
``{% if %}`` branches.  Templates run in a sandboxed environment whose only
globals are the plannable tools, with ``StrictUndefined`` so a helper the
model made up fails loudly instead of rendering as an empty string.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from jinja2 import StrictUndefined, TemplateSyntaxError
from jinja2.sandbox import SandboxedEnvironment

PLAN_EXTENSION = ".hbp"
TIMESTAMP_FORMAT = "%Y%m%d%H%M"
NO_PLAN_MESSAGE = "No plan has been created yet. Please provide instructions for a plan first."


class PlanStatus(str, Enum):
    DRAFT = "draft"
    REVISED = "revised"
    EXECUTED = "executed"


class NoCurrentPlanError(Exception):
    """Raised when an operation needs a current plan and the session has none."""


class MalformedPlanError(Exception):
    """Raised when plan text is not a syntactically valid template."""


def slugify(text: str, max_length: int = 40) -> str:
    slug = re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")
    return slug[:max_length].rstrip("_") or "plan"


def make_plan_id(created_at: datetime, task: str) -> str:
    return f"{created_at.strftime(TIMESTAMP_FORMAT)}-{slugify(task)}"


def build_environment(tools: Mapping[str, Callable[..., Any]] | None = None) -> SandboxedEnvironment:
    """Sandboxed Jinja environment exposing *tools* as global functions."""
    env = SandboxedEnvironment(
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        autoescape=False,
    )
    env.globals.update(tools or {})
    return env


def check_template(template: str) -> None:
    """Raise :class:`MalformedPlanError` unless *template* parses."""
    try:
        build_environment().parse(template)
    except TemplateSyntaxError as exc:
        raise MalformedPlanError(f"Plan template is not valid (line {exc.lineno}): {exc.message}") from exc


@dataclass
class Plan:
    """A named, ordered sequence of steps held as template text."""

    id: str
    task: str
    template: str
    status: PlanStatus = PlanStatus.DRAFT
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(cls, task: str, template: str, created_at: datetime, *, revised: bool = False) -> Plan:
        """Build a freshly synthesized plan; the template must parse."""
        check_template(template)
        return cls(
            id=make_plan_id(created_at, task),
            task=task,
            template=template,
            status=PlanStatus.REVISED if revised else PlanStatus.DRAFT,
            created_at=created_at,
        )

    @classmethod
    def from_text(cls, plan_id: str, template: str, created_at: datetime) -> Plan:
        """Rebuild a plan from persisted text; only syntax is checked."""
        check_template(template)
        return cls(id=plan_id, task=plan_id, template=template, created_at=created_at)

    def __str__(self) -> str:
        return self.template
