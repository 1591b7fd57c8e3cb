"""Explicit tool registration table.

Every tool the model (or a plan template) may call is declared once at
start-up as a :class:`ToolSpec`: a stable name, a description, an ordered
parameter list and a handler closure.  The registry turns the specs into
LangChain ``StructuredTool`` objects for the chat model and routes every
invocation through the :class:`~copilot.interceptor.CallInterceptor`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, Field, create_model

if TYPE_CHECKING:
    from copilot.interceptor import CallInterceptor

logger = logging.getLogger(__name__)

REQUIRED: Any = ...


class ResultDisplay(str, Enum):
    """How the interceptor treats a tool's call and result."""

    ECHO = "echo"          # show call and result
    SUPPRESS = "suppress"  # show call, result already rendered by the tool
    SELECT = "select"      # show call, let the operator pick one result entry
    HIDDEN = "hidden"      # internal helper, show nothing


@dataclass(frozen=True)
class ParamSpec:
    """One declared tool parameter."""

    name: str
    type: type = str
    description: str = ""
    default: Any = REQUIRED
    elide: bool = False  # carries bulk plan text; shown as a placeholder

    @property
    def required(self) -> bool:
        return self.default is REQUIRED


@dataclass(frozen=True)
class ToolSpec:
    """Immutable catalog entry."""

    name: str
    description: str
    handler: Callable[..., Any]
    parameters: tuple[ParamSpec, ...] = ()
    result_display: ResultDisplay = ResultDisplay.ECHO
    plannable: bool = True
    exposed: bool = True

    def args_schema(self) -> type[BaseModel]:
        """Build the pydantic argument model handed to the chat model."""
        fields = {
            p.name: (
                p.type,
                Field(default=p.default, description=p.description or None),
            )
            for p in self.parameters
        }
        return create_model(f"{_camel(self.name)}Args", **fields)

    def resolve_arguments(
        self,
        args: Sequence[Any] = (),
        kwargs: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Map positional and keyword arguments onto the declared parameters.

        Defaults are filled in; unknown names, surplus positionals and
        missing required parameters raise ``ValueError``.
        """
        kwargs = dict(kwargs or {})
        if len(args) > len(self.parameters):
            raise ValueError(
                f"{self.name}() takes {len(self.parameters)} arguments, got {len(args)}"
            )
        for param, value in zip(self.parameters, args):
            if param.name in kwargs:
                raise ValueError(f"{self.name}() got multiple values for {param.name!r}")
            kwargs[param.name] = value

        known = {p.name for p in self.parameters}
        unknown = sorted(set(kwargs) - known)
        if unknown:
            raise ValueError(f"{self.name}() got unexpected arguments: {', '.join(unknown)}")

        resolved: dict[str, Any] = {}
        for param in self.parameters:
            if param.name in kwargs:
                resolved[param.name] = kwargs[param.name]
            elif param.required:
                raise ValueError(f"{self.name}() missing required argument {param.name!r}")
            else:
                resolved[param.name] = param.default
        return resolved

    def signature(self) -> str:
        """Human/model readable call signature, e.g. ``send_email(to, subject, body)``."""
        parts = []
        for p in self.parameters:
            parts.append(p.name if p.required else f"{p.name}={p.default!r}")
        return f"{self.name}({', '.join(parts)})"


def _camel(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


class ToolRegistry:
    """Name → :class:`ToolSpec` table built once at process start."""

    def __init__(self, interceptor: CallInterceptor | None = None) -> None:
        self._interceptor = interceptor
        self._specs: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> ToolSpec:
        if spec.name in self._specs:
            raise ValueError(f"Tool {spec.name!r} is already registered")
        self._specs[spec.name] = spec
        logger.debug("Registered tool %s", spec.signature())
        return spec

    def register_all(self, specs: Sequence[ToolSpec]) -> None:
        for spec in specs:
            self.register(spec)

    def get(self, name: str) -> ToolSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise KeyError(f"Unknown tool: {name}") from None

    def __contains__(self, name: str) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def specs(self, *, exposed: bool | None = None, plannable: bool | None = None) -> list[ToolSpec]:
        """Return specs in registration order, optionally filtered by flag."""
        return [
            spec
            for spec in self._specs.values()
            if (exposed is None or spec.exposed == exposed)
            and (plannable is None or spec.plannable == plannable)
        ]

    # ── Invocation ───────────────────────────────────────────────────

    def invoke(self, name: str, arguments: Mapping[str, Any] | None = None) -> Any:
        """Call a tool by name with a keyword argument map."""
        spec = self.get(name)
        resolved = spec.resolve_arguments(kwargs=arguments)
        if self._interceptor is None:
            return spec.handler(**resolved)
        return self._interceptor.invoke(spec, resolved)

    def callable_for(self, name: str) -> Callable[..., Any]:
        """Return a plain function that invokes *name* with positional or keyword args."""
        spec = self.get(name)

        def call(*args: Any, **kwargs: Any) -> Any:
            return self.invoke(name, spec.resolve_arguments(args, kwargs))

        call.__name__ = name
        call.__doc__ = spec.description
        return call

    def as_langchain_tools(self) -> list[StructuredTool]:
        """Build the ``StructuredTool`` list bound to the chat model."""
        tools = []
        for spec in self.specs(exposed=True):
            tools.append(
                StructuredTool.from_function(
                    func=self.callable_for(spec.name),
                    name=spec.name,
                    description=spec.description,
                    args_schema=spec.args_schema(),
                )
            )
        return tools
