"""Plan lifecycle: create, revise, save, load, execute and chart.

State machine per session::

    NoPlan → Draft → (Revised)* → Executed
    load_plan: any state → Draft (the in-memory plan is discarded)
    save_plan: no state change

The engine never holds the current plan itself; it is read from and
written to the :class:`~copilot.session.Session` passed to every call.
Execution is gated: a new plan only runs when the operator (through the
model) asks for it, or when ``auto_execute`` is switched on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from copilot.display import Display
from copilot.planning.chart import mermaid_live_link
from copilot.planning.plan import (
    NO_PLAN_MESSAGE,
    PLAN_EXTENSION,
    TIMESTAMP_FORMAT,
    NoCurrentPlanError,
    Plan,
    PlanStatus,
    build_environment,
)
from copilot.prompts import (
    GUIDANCE_FRAGMENT,
    HELPER_HALLUCINATION_GUARD,
    MERMAID_CONVERTER_PROMPT,
    PLANNER_SELF_REFERENCE_GUARD,
    REVISION_FRAGMENT,
    get_planner_prompt,
)
from copilot.services.retriever import KnowledgeRetriever, RetrieverUninitialized, Topic
from copilot.session import Session
from copilot.tools.registry import ParamSpec, ResultDisplay, ToolRegistry, ToolSpec
from copilot.utils import content_text, strip_code_fences, truncate

logger = logging.getLogger(__name__)

MERMAID_CONVERTER = "plan_to_mermaid_converter"
DEBUG_OUTPUT_CHARS = 250

PLAN_CREATED_MESSAGE = "Plan was created. Please check and revise the plan as needed before executing it."
PLAN_ADJUSTED_MESSAGE = "Plan was adjusted. Please check and revise the plan as needed before executing it."


class PlanExecutionError(Exception):
    """Raised when a step of the plan fails; earlier steps are not undone."""


class PlanEngine:
    """Creates, persists and runs plans against the tool registry."""

    def __init__(
        self,
        planner_llm: BaseChatModel,
        chart_llm: BaseChatModel,
        registry: ToolRegistry,
        display: Display,
        *,
        retriever: KnowledgeRetriever | None = None,
        plans_dir: Path = Path("output"),
        consult_cookbook: bool = True,
        auto_execute: bool = False,
        enable_chart_generation: bool = True,
        echo_template: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._planner_llm = planner_llm
        self._chart_llm = chart_llm
        self._registry = registry
        self._display = display
        self._retriever = retriever
        self._plans_dir = Path(plans_dir)
        self._consult_cookbook = consult_cookbook
        self._auto_execute = auto_execute
        self._enable_chart_generation = enable_chart_generation
        self._echo_template = echo_template
        self._clock = clock

    # ── Creation ─────────────────────────────────────────────────────

    def create_plan(self, session: Session, task: str, is_revision: bool = False) -> str:
        """Synthesize a plan for *task* and make it the current plan."""
        instructions = [task, PLANNER_SELF_REFERENCE_GUARD]
        status_text = "Creating a plan..."

        if self._consult_cookbook and not is_revision:
            guidance = self._guidance_for(task)
            if guidance is not None:
                instructions.append(
                    GUIDANCE_FRAGMENT.format(guidance=guidance, guard=HELPER_HALLUCINATION_GUARD)
                )

        previous = session.current_plan
        revising = is_revision and previous is not None
        if revising:
            instructions.append(REVISION_FRAGMENT.format(previous_plan=previous.template))
            status_text = "Adjusting the plan..."

        with self._display.status(status_text):
            template = self._synthesize("\n\n".join(instructions))

        session.current_plan = Plan.create(task, template, self._clock(), revised=revising)
        logger.info("Plan %s %s", session.current_plan.id, "revised" if revising else "created")
        self._show(session.current_plan)

        if self._auto_execute:
            return self.execute_plan(session)

        message = PLAN_ADJUSTED_MESSAGE if revising else PLAN_CREATED_MESSAGE
        if self._echo_template:
            message = f"{message}\n\n{template}"
        return message

    def _guidance_for(self, task: str) -> str | None:
        if self._retriever is None:
            return None
        try:
            guidance = self._retriever.ask(task, Topic.COOKBOOK)
        except RetrieverUninitialized:
            logger.warning("Knowledge base not ready; planning without cookbook guidance")
            return None
        self._display.note("Guidance", truncate(guidance, DEBUG_OUTPUT_CHARS))
        return guidance

    def _synthesize(self, task_prompt: str) -> str:
        specs = self._registry.specs(plannable=True)
        response = self._planner_llm.invoke(
            [SystemMessage(content=get_planner_prompt(specs)), HumanMessage(content=task_prompt)]
        )
        return strip_code_fences(content_text(response))

    # ── Execution ────────────────────────────────────────────────────

    def execute_plan(self, session: Session) -> str:
        """Run the current plan's template against the live tools."""
        plan = session.current_plan
        if plan is None:
            return NO_PLAN_MESSAGE

        env = build_environment(
            {spec.name: self._registry.callable_for(spec.name) for spec in self._registry.specs(plannable=True)}
        )
        logger.info("Executing plan %s", plan.id)
        try:
            result = env.from_string(plan.template).render().strip()
        except Exception as exc:
            logger.error("Plan %s failed: %s", plan.id, exc)
            raise PlanExecutionError(f"Plan execution failed: {exc}") from exc

        plan.status = PlanStatus.EXECUTED
        self._display.note("Plan result", truncate(result, DEBUG_OUTPUT_CHARS))
        return result

    # ── Persistence ──────────────────────────────────────────────────

    def save_plan(self, session: Session, name: str) -> str:
        """Write the current template verbatim to ``<plans_dir>/<timestamp>-<name>``."""
        plan = session.current_plan
        if plan is None:
            raise NoCurrentPlanError(NO_PLAN_MESSAGE)

        file_name = Path(name).name
        if not file_name.endswith(PLAN_EXTENSION):
            file_name += PLAN_EXTENSION
        path = self._plans_dir / f"{self._clock().strftime(TIMESTAMP_FORMAT)}-{file_name}"

        self._plans_dir.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(plan.template)
        logger.info("Saved plan %s to %s", plan.id, path)
        return f"Plan has been saved to the file: {path}"

    def load_plan(self, session: Session, path: str) -> str:
        """Replace the current plan with the template stored at *path*."""
        with open(path, encoding="utf-8", newline="") as fh:
            template = fh.read()
        session.current_plan = Plan.from_text(Path(path).stem, template, self._clock())
        logger.info("Loaded plan %s from %s", session.current_plan.id, path)
        self._show(session.current_plan)
        return f"Plan has been loaded from the file: {path}"

    def list_saved_plans(self) -> list[str]:
        if not self._plans_dir.is_dir():
            return []
        return sorted(str(path) for path in self._plans_dir.glob(f"*{PLAN_EXTENSION}"))

    # ── Charts ───────────────────────────────────────────────────────

    def render_chart(self, session: Session) -> str:
        """Turn the current plan into a generalized mermaid.live flowchart link."""
        if not self._enable_chart_generation:
            return ""
        plan = session.current_plan
        if plan is None:
            return NO_PLAN_MESSAGE

        with self._display.status("Converting plan to Mermaid Chart..."):
            chart = self._registry.invoke(MERMAID_CONVERTER, {"plan_to_convert": plan.template})

        link = mermaid_live_link(chart)
        self._display.link(link, "Display Flowchart for Plan")
        return f"The chart has been generated. Link to the flowchart: {link}"

    def convert_to_mermaid(self, plan_to_convert: str) -> str:
        response = self._chart_llm.invoke(
            [HumanMessage(content=MERMAID_CONVERTER_PROMPT.format(plan_to_convert=plan_to_convert))]
        )
        return strip_code_fences(content_text(response))

    # ── Display ──────────────────────────────────────────────────────

    def _show(self, plan: Plan) -> None:
        self._display.panel("Plan", plan.template)

    # ── Tool declarations ────────────────────────────────────────────

    def tool_specs(self, session: Session) -> list[ToolSpec]:
        """Catalog entries for the planner, bound to *session*."""

        def create_process_plan(task: str, plan_change_requested: bool = False) -> str:
            return self.create_plan(session, task, is_revision=plan_change_requested)

        def execute_process_plan() -> str:
            return self.execute_plan(session)

        def save_plan_to_file(file_name: str) -> str:
            try:
                return self.save_plan(session, file_name)
            except NoCurrentPlanError:
                return NO_PLAN_MESSAGE

        def load_plan_from_file(file_path: str) -> str:
            return self.load_plan(session, file_path)

        def generate_chart_for_plan() -> str:
            return self.render_chart(session)

        return [
            ToolSpec(
                name="create_process_plan",
                description="Create or adjust an existing process plan for a given task.",
                handler=create_process_plan,
                parameters=(
                    ParamSpec(
                        "task",
                        description=(
                            "The task to perform, that can involve multiple steps. Describe the plan based "
                            "on details provided earlier if relevant. If a plan change is requested, "
                            "extend the previous plan."
                        ),
                    ),
                    ParamSpec(
                        "plan_change_requested",
                        bool,
                        "Set if the user has requested an adjustment of an existing plan",
                        default=False,
                    ),
                ),
                result_display=ResultDisplay.SUPPRESS,
                plannable=False,
            ),
            ToolSpec(
                name="execute_process_plan",
                description="Execute the plan that was created earlier.",
                handler=execute_process_plan,
                plannable=False,
            ),
            ToolSpec(
                name="save_plan_to_file",
                description="Save the plan to a file.",
                handler=save_plan_to_file,
                parameters=(
                    ParamSpec(
                        "file_name",
                        description=(
                            "The filename with a .hbp file extension. The filename should reflect the "
                            "task for the plan in a few words with underscores."
                        ),
                    ),
                ),
                plannable=False,
            ),
            ToolSpec(
                name="load_plan_from_file",
                description="Load a plan from a file.",
                handler=load_plan_from_file,
                parameters=(ParamSpec("file_path", description="The file path to the plan file."),),
                plannable=False,
            ),
            ToolSpec(
                name="get_plans_list",
                description="Gets a list of plans that have been saved.",
                handler=self.list_saved_plans,
                result_display=ResultDisplay.SELECT,
                plannable=False,
            ),
            ToolSpec(
                name="generate_chart_for_plan",
                description="Displays the plan in a flow chart.",
                handler=generate_chart_for_plan,
                result_display=ResultDisplay.SUPPRESS,
                plannable=False,
            ),
            ToolSpec(
                name=MERMAID_CONVERTER,
                description="Convert a plan template to a Mermaid flowchart.",
                handler=self.convert_to_mermaid,
                parameters=(ParamSpec("plan_to_convert", description="The plan template.", elide=True),),
                result_display=ResultDisplay.HIDDEN,
                plannable=False,
                exposed=False,
            ),
        ]
