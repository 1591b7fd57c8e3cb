"""Tests for the plan lifecycle: create, revise, execute, save, load, chart."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from copilot.interceptor import CallInterceptor
from copilot.planning.engine import (
    PLAN_ADJUSTED_MESSAGE,
    PLAN_CREATED_MESSAGE,
    PlanEngine,
    PlanExecutionError,
)
from copilot.planning.plan import NO_PLAN_MESSAGE, MalformedPlanError, NoCurrentPlanError, Plan, PlanStatus
from copilot.services.retriever import KnowledgeRetriever, RetrieverUninitialized, Topic
from copilot.session import Session
from copilot.tools.registry import ParamSpec, ToolRegistry, ToolSpec

OFFSITE_TEMPLATE = (
    "{# Invite every participant #}\n"
    "{% for p in ['ana@example.com', 'li@example.com'] %}\n"
    "{{ record_step(label='invite ' ~ p) }}\n"
    "{% endfor %}\n"
    "{{ record_step('book venue') }}"
)


# ── Helpers ──────────────────────────────────────────────────────────


class Harness:
    """Engine wired to a registry with two recording tools."""

    def __init__(self, display, mock_llm, tmp_path, clock, *, planner_responses=(), chart_responses=(),
                 retriever=None, **engine_kwargs):
        self.side_effects: list[str] = []
        self.display = display
        self.planner_llm = mock_llm(*planner_responses)
        self.chart_llm = mock_llm(*chart_responses)
        self.registry = ToolRegistry(CallInterceptor(display))
        self.session = Session()
        self.plans_dir = tmp_path / "output"
        self.engine = PlanEngine(
            self.planner_llm,
            self.chart_llm,
            self.registry,
            display,
            retriever=retriever,
            plans_dir=self.plans_dir,
            clock=clock,
            **engine_kwargs,
        )
        self.registry.register_all(
            [
                ToolSpec(
                    name="record_step",
                    description="Record a completed step.",
                    handler=self._record,
                    parameters=(ParamSpec("label"),),
                ),
                ToolSpec(
                    name="fail_step",
                    description="Always fails.",
                    handler=self._fail,
                ),
            ]
        )
        self.registry.register_all(self.engine.tool_specs(self.session))

    def _record(self, label: str) -> str:
        self.side_effects.append(label)
        return f"done: {label}"

    def _fail(self) -> str:
        raise RuntimeError("SMTP connection refused")

    def planner_prompt(self, call_index: int = 0) -> str:
        messages = self.planner_llm.invoke.call_args_list[call_index][0][0]
        return "\n".join(m.content for m in messages)


@pytest.fixture
def make_harness(display, mock_llm, tmp_path, fixed_clock):
    def _make(**kwargs):
        return Harness(display, mock_llm, tmp_path, fixed_clock, **kwargs)

    return _make


def _mock_retriever(answer: str = "Confirm dates first, then invite each participant."):
    retriever = MagicMock(spec=KnowledgeRetriever)
    retriever.ask.return_value = answer
    return retriever


# ── TestCreatePlan ───────────────────────────────────────────────────


class TestCreatePlan:
    def test_offsite_task_consults_cookbook_and_drafts_plan(self, make_harness):
        retriever = _mock_retriever()
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE], retriever=retriever)

        result = h.engine.create_plan(h.session, "organize a 2-day offsite")

        retriever.ask.assert_called_once_with("organize a 2-day offsite", Topic.COOKBOOK)
        assert result == PLAN_CREATED_MESSAGE
        assert h.session.current_plan.status is PlanStatus.DRAFT
        assert h.session.current_plan.template == OFFSITE_TEMPLATE
        assert h.side_effects == []  # drafting never runs tools

    def test_guidance_and_helper_guard_are_in_the_prompt(self, make_harness):
        retriever = _mock_retriever("Loop over the participant list.")
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE], retriever=retriever)

        h.engine.create_plan(h.session, "organize a 2-day offsite")

        prompt = h.planner_prompt()
        assert "Loop over the participant list." in prompt
        assert "Don't use template helpers" in prompt
        assert "record_step(label)" in prompt
        # planner tools are never offered to the template
        assert "create_process_plan(" not in prompt

    def test_guidance_disabled_skips_retriever(self, make_harness):
        retriever = _mock_retriever()
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE], retriever=retriever, consult_cookbook=False)

        h.engine.create_plan(h.session, "organize a 2-day offsite")

        retriever.ask.assert_not_called()

    def test_uninitialized_retriever_still_plans(self, make_harness):
        retriever = _mock_retriever()
        retriever.ask.side_effect = RetrieverUninitialized("not ready")
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE], retriever=retriever)

        assert h.engine.create_plan(h.session, "organize a 2-day offsite") == PLAN_CREATED_MESSAGE
        assert h.session.current_plan is not None

    def test_plan_is_displayed_in_a_panel(self, make_harness, display):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])

        h.engine.create_plan(h.session, "organize a 2-day offsite")

        assert ("Plan", OFFSITE_TEMPLATE) in display.panels

    def test_code_fences_are_stripped(self, make_harness):
        h = make_harness(planner_responses=[f"```jinja\n{OFFSITE_TEMPLATE}\n```"])

        h.engine.create_plan(h.session, "organize a 2-day offsite")

        assert h.session.current_plan.template == OFFSITE_TEMPLATE

    def test_unparseable_synthesis_fails_and_keeps_previous_plan(self, make_harness, display):
        h = make_harness(planner_responses=["{{ send_email(to='a@b.c' }}"])
        previous = Plan(id="keep", task="t", template=OFFSITE_TEMPLATE)
        h.session.current_plan = previous

        with pytest.raises(MalformedPlanError):
            h.engine.create_plan(h.session, "email the team")

        assert h.session.current_plan is previous
        assert "Plan" not in display.panel_titles()

    def test_plan_id_uses_timestamp_and_task(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])

        h.engine.create_plan(h.session, "Organize a 2-day offsite!")

        assert h.session.current_plan.id == "202501011200-organize_a_2_day_offsite"

    def test_echo_template_appends_raw_template(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE], echo_template=True)

        result = h.engine.create_plan(h.session, "organize a 2-day offsite")

        assert result.startswith(PLAN_CREATED_MESSAGE)
        assert OFFSITE_TEMPLATE in result

    def test_auto_execute_runs_the_new_plan(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE], auto_execute=True)

        result = h.engine.create_plan(h.session, "organize a 2-day offsite")

        assert "done: book venue" in result
        assert h.side_effects == ["invite ana@example.com", "invite li@example.com", "book venue"]
        assert h.session.current_plan.status is PlanStatus.EXECUTED


class TestRevisePlan:
    def test_revision_quotes_previous_plan_and_skips_guidance(self, make_harness):
        retriever = _mock_retriever()
        revised = OFFSITE_TEMPLATE + "\n{{ record_step('send agenda') }}"
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE, revised], retriever=retriever)

        h.engine.create_plan(h.session, "organize a 2-day offsite")
        result = h.engine.create_plan(h.session, "also send the agenda", is_revision=True)

        assert retriever.ask.call_count == 1  # only for the first, non-revision call
        assert OFFSITE_TEMPLATE in h.planner_prompt(1)
        assert "Extend and adjust the previous plan" in h.planner_prompt(1)
        assert result == PLAN_ADJUSTED_MESSAGE
        assert h.session.current_plan.template == revised
        assert h.session.current_plan.status is PlanStatus.REVISED

    def test_revision_without_current_plan_creates_draft(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])

        result = h.engine.create_plan(h.session, "organize a 2-day offsite", is_revision=True)

        assert result == PLAN_CREATED_MESSAGE
        assert h.session.current_plan.status is PlanStatus.DRAFT

    def test_revising_an_executed_plan_marks_it_revised(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE, OFFSITE_TEMPLATE])
        h.engine.create_plan(h.session, "organize a 2-day offsite")
        h.engine.execute_plan(h.session)

        h.engine.create_plan(h.session, "one more step", is_revision=True)

        assert h.session.current_plan.status is PlanStatus.REVISED


# ── TestExecutePlan ──────────────────────────────────────────────────


class TestExecutePlan:
    def test_no_plan_returns_message(self, make_harness):
        h = make_harness()
        assert h.engine.execute_plan(h.session) == NO_PLAN_MESSAGE

    def test_loop_runs_once_per_element_in_order(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])
        h.engine.create_plan(h.session, "organize a 2-day offsite")

        h.engine.execute_plan(h.session)

        assert h.side_effects == ["invite ana@example.com", "invite li@example.com", "book venue"]
        assert h.session.current_plan.status is PlanStatus.EXECUTED

    def test_each_step_goes_through_the_interceptor(self, make_harness, display):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])
        h.engine.create_plan(h.session, "organize a 2-day offsite")

        h.engine.execute_plan(h.session)

        call_panels = [body for title, body in display.panels if title == "Function call"]
        assert call_panels == [
            "record_step(label=invite ana@example.com)",
            "record_step(label=invite li@example.com)",
            "record_step(label=book venue)",
        ]

    def test_result_is_returned_in_full_and_noted_truncated(self, make_harness, display):
        long_label = "x" * 400
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template=f"{{{{ record_step('{long_label}') }}}}")

        result = h.engine.execute_plan(h.session)

        assert result == f"done: {long_label}"
        label, note = display.notes[-1]
        assert label == "Plan result"
        assert len(note) < len(result)

    def test_failing_step_does_not_undo_earlier_steps(self, make_harness):
        template = "{{ record_step('send invitation') }}\n{{ fail_step() }}\n{{ record_step('never') }}"
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template=template)

        with pytest.raises(PlanExecutionError, match="SMTP connection refused") as exc_info:
            h.engine.execute_plan(h.session)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert h.side_effects == ["send invitation"]
        assert h.session.current_plan.status is PlanStatus.DRAFT

    def test_unknown_helper_fails_execution(self, make_harness):
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template="{{ includes('a', 'b') }}")

        with pytest.raises(PlanExecutionError):
            h.engine.execute_plan(h.session)

    def test_set_binds_tool_results_for_later_steps(self, make_harness):
        template = "{% set first = record_step('search venues') %}{{ record_step(first ~ ' -> book') }}"
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template=template)

        assert h.engine.execute_plan(h.session) == "done: done: search venues -> book"

    def test_planner_tools_are_not_callable_from_templates(self, make_harness):
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template="{{ execute_process_plan() }}")

        with pytest.raises(PlanExecutionError):
            h.engine.execute_plan(h.session)


# ── TestPersistence ──────────────────────────────────────────────────


class TestSavePlan:
    def test_writes_template_to_timestamped_file(self, make_harness):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])
        h.engine.create_plan(h.session, "organize a 2-day offsite")

        result = h.engine.save_plan(h.session, "offsite")

        path = h.plans_dir / "202501011200-offsite.hbp"
        assert str(path) in result
        assert path.read_bytes() == OFFSITE_TEMPLATE.encode("utf-8")

    def test_keeps_existing_extension(self, make_harness):
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template="{{ record_step('a') }}")

        h.engine.save_plan(h.session, "offsite.hbp")

        assert (h.plans_dir / "202501011200-offsite.hbp").exists()

    def test_directory_components_are_dropped(self, make_harness):
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template="{{ record_step('a') }}")

        h.engine.save_plan(h.session, "../../etc/offsite")

        assert (h.plans_dir / "202501011200-offsite.hbp").exists()

    def test_save_does_not_change_status(self, make_harness):
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template="x", status=PlanStatus.REVISED)

        h.engine.save_plan(h.session, "offsite")

        assert h.session.current_plan.status is PlanStatus.REVISED

    def test_without_plan_raises(self, make_harness):
        h = make_harness()
        with pytest.raises(NoCurrentPlanError):
            h.engine.save_plan(h.session, "offsite")

    def test_tool_without_plan_returns_message(self, make_harness):
        h = make_harness()
        assert h.registry.invoke("save_plan_to_file", {"file_name": "offsite"}) == NO_PLAN_MESSAGE


class TestLoadPlan:
    def test_save_then_load_round_trips_byte_identical(self, make_harness, display):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])
        h.engine.create_plan(h.session, "organize a 2-day offsite")
        shown_after_creation = display.panels[-1][1]
        h.engine.save_plan(h.session, "offsite")
        h.session.current_plan = None

        path = h.plans_dir / "202501011200-offsite.hbp"
        result = h.engine.load_plan(h.session, str(path))

        assert "Plan has been loaded" in result
        assert h.session.current_plan.template == shown_after_creation
        assert h.session.current_plan.status is PlanStatus.DRAFT
        assert h.session.current_plan.id == "202501011200-offsite"

    def test_line_endings_survive_round_trip(self, make_harness):
        template = "{{ record_step('a') }}\r\n{{ record_step('b') }}\r\n"
        h = make_harness()
        h.session.current_plan = Plan(id="p", task="t", template=template)
        h.engine.save_plan(h.session, "crlf")

        h.engine.load_plan(h.session, str(h.plans_dir / "202501011200-crlf.hbp"))

        assert h.session.current_plan.template == template

    def test_load_replaces_executed_plan_with_draft(self, make_harness, tmp_path):
        h = make_harness()
        h.session.current_plan = Plan(id="old", task="t", template="x", status=PlanStatus.EXECUTED)
        path = tmp_path / "other.hbp"
        path.write_text("{{ record_step('b') }}", encoding="utf-8")

        h.engine.load_plan(h.session, str(path))

        assert h.session.current_plan.id == "other"
        assert h.session.current_plan.status is PlanStatus.DRAFT

    def test_malformed_file_fails_and_keeps_current_plan(self, make_harness, tmp_path):
        h = make_harness()
        current = Plan(id="keep", task="t", template="x")
        h.session.current_plan = current
        path = tmp_path / "broken.hbp"
        path.write_text("{% for p in people %}{{ p }}", encoding="utf-8")

        with pytest.raises(MalformedPlanError):
            h.engine.load_plan(h.session, str(path))

        assert h.session.current_plan is current

    def test_missing_file_propagates(self, make_harness, tmp_path):
        h = make_harness()
        with pytest.raises(FileNotFoundError):
            h.engine.load_plan(h.session, str(tmp_path / "nope.hbp"))


class TestListSavedPlans:
    def test_missing_directory_returns_empty_list(self, make_harness):
        h = make_harness()
        assert h.engine.list_saved_plans() == []

    def test_empty_directory_returns_empty_list(self, make_harness):
        h = make_harness()
        h.plans_dir.mkdir(parents=True)
        assert h.engine.list_saved_plans() == []

    def test_lists_only_plan_files_sorted(self, make_harness):
        h = make_harness()
        h.plans_dir.mkdir(parents=True)
        (h.plans_dir / "202501021200-b.hbp").write_text("b")
        (h.plans_dir / "202501011200-a.hbp").write_text("a")
        (h.plans_dir / "notes.txt").write_text("n")

        assert h.engine.list_saved_plans() == [
            str(h.plans_dir / "202501011200-a.hbp"),
            str(h.plans_dir / "202501021200-b.hbp"),
        ]

    def test_saved_plan_is_offered_for_selection(self, make_harness, display):
        h = make_harness(planner_responses=[OFFSITE_TEMPLATE])
        h.engine.create_plan(h.session, "organize a 2-day offsite")
        h.engine.save_plan(h.session, "offsite")
        path = str(h.plans_dir / "202501011200-offsite.hbp")

        assert h.engine.list_saved_plans() == [path]
        assert h.registry.invoke("get_plans_list") == path
        assert display.selections[-1][1] == [path]


# ── TestRenderChart ──────────────────────────────────────────────────


class TestRenderChart:
    def test_disabled_returns_empty_string_without_model_call(self, make_harness):
        h = make_harness(enable_chart_generation=False)
        h.session.current_plan = Plan(id="p", task="t", template=OFFSITE_TEMPLATE)

        assert h.engine.render_chart(h.session) == ""
        h.chart_llm.invoke.assert_not_called()

    def test_no_plan_returns_message(self, make_harness):
        h = make_harness()
        assert h.engine.render_chart(h.session) == NO_PLAN_MESSAGE
        h.chart_llm.invoke.assert_not_called()

    def test_generates_link_for_converted_chart(self, make_harness, display):
        chart = "flowchart TD\n    A[Invite participants]-->B[Book venue]"
        h = make_harness(chart_responses=[f"```mermaid\n{chart}\n```"])
        h.session.current_plan = Plan(id="p", task="t", template=OFFSITE_TEMPLATE)

        result = h.engine.render_chart(h.session)

        link = display.links[-1]
        assert link in result
        payload = json.loads(base64.b64decode(link.split("#base64:", 1)[1]))
        assert payload == {"code": chart, "editorMode": "code", "mermaid": {"theme": "dark"}}

    def test_converter_prompt_carries_plan_and_no_pii_rule(self, make_harness):
        h = make_harness(chart_responses=["flowchart TD\n A-->B"])
        h.session.current_plan = Plan(id="p", task="t", template=OFFSITE_TEMPLATE)

        h.engine.render_chart(h.session)

        prompt = h.chart_llm.invoke.call_args[0][0][0].content
        assert OFFSITE_TEMPLATE in prompt
        assert "email addresses" in prompt
        assert "no steps may be added" in prompt

    def test_converter_call_is_not_shown(self, make_harness, display):
        h = make_harness(chart_responses=["flowchart TD\n A-->B"])
        h.session.current_plan = Plan(id="p", task="t", template=OFFSITE_TEMPLATE)

        h.engine.render_chart(h.session)

        assert not any("plan_to_mermaid_converter" in body for _, body in display.panels)


def test_plan_files_use_plans_dir(make_harness):
    h = make_harness()
    assert isinstance(h.plans_dir, Path)
    assert not h.plans_dir.exists()  # created lazily on first save
