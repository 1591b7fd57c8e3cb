"""Prompt text for the chat model, the planner, the chart converter and RAG answers."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from copilot.tools.registry import ToolSpec

SYSTEM_PROMPT_TEMPLATE = """You are a personal assistant who can help organizing events and arranging certain tasks.
Suggest a plan to solve the task. Revise the plan based on feedback from the user.

Generic info about processes can be retrieved using a function call to retrieve_documentation.

If function parameters for an event / conference are not specified, e.g. the date, participant list or \
topic of the conference, always ask the user for them before creating the plan. Don't assume any \
information for an event or conference. Don't assume parameters of functions if not provided earlier.

If the question is about general topics, use retrieve_documentation to retrieve the answer.
If the context already contains the answer, DON'T call retrieve_documentation or get_process_guidance.

If the user would like to automate a process, e.g. organizing a conference, use create_process_plan, \
but only if the date, participant list and topic are known. Don't call the action functions directly \
first; come up with a plan via create_process_plan.

After creating or adjusting the plan with create_process_plan, don't trigger the plan execution. Let the \
user decide if the plan is good. If they say the plan is good, execute it with execute_process_plan.

In case the user asks to load plans, get the file name first using get_plans_list. Don't ask for the \
file name, call get_plans_list. If the file name is known, load the plan via load_plan_from_file.

The date today is {current_date}.
Answer in {language}. Don't output too many newlines in the response, only if it's necessary."""


PLANNER_PROMPT_TEMPLATE = """You create execution plans as Jinja2 templates.

The template is rendered once, top to bottom, to carry out the task. Call the available functions as \
Jinja expressions and keep intermediate values with set, for example:

{{% set results = web_search(query="venues for a 2-day offsite in Lisbon", count=3) %}}
{{% for email in ["ana@example.com", "li@example.com"] %}}
{{{{ send_email(to=email, subject="Offsite invitation", body="...") }}}}
{{% endfor %}}
{{{{ add_event_to_calendar(event_title="Offsite", event_description="...", event_location="Lisbon", \
event_start_date="2025-03-03", event_end_date="2025-03-04") }}}}

Rules:
- Only call the functions listed below, with the parameter names listed.
- Use {{% for %}} for repetition and {{% if %}} for conditions.
- Use only Jinja2 built-in filters and tests; there are no other helpers.
- Put short {{# comments #}} above each step describing what it does.
- Return ONLY the template. No explanations and no code fences.

Available functions:
{functions}"""

HELPER_HALLUCINATION_GUARD = (
    "Don't use template helpers or filters that do not exist, e.g. split, substring, "
    "indexOf or includes as functions."
)

PLANNER_SELF_REFERENCE_GUARD = (
    "Don't use the get_process_guidance, execute_process_plan or create_process_plan "
    "functions in the template."
)

GUIDANCE_FRAGMENT = "For coming up with a plan, here is some guidance:\n{guidance}\n{guard}"

REVISION_FRAGMENT = (
    "The user has requested a change in the plan. Extend and adjust the previous plan "
    "instead of starting over. The previous plan was:\n{previous_plan}"
)


MERMAID_CONVERTER_PROMPT = """Convert the plan, written as a Jinja2 template, to a Mermaid flow chart.
Don't keep any specific details, e.g. names, dates, email addresses or other personal details, \
in the Mermaid chart; generalize the plan.
Every step of the plan must appear in the chart and no steps may be added that are not in the plan.
Use proper formatting and indentation for the Mermaid chart. It should be a TD chart.
You can represent iterations in the plan, e.g. a for loop in the template, for example:
flowchart TD
    step1-->step2-->step3-->|Loop on step2| step2
    step3-->step4
Conditions however should be represented as separate paths in the chart.
The steps shouldn't just be like step1, step2, but should contain a short description of the action, \
e.g. 'Send email'.
RETURN JUST THE MERMAID CHART STRING, NO OTHER TEXT OR EXPLANATION. Don't use quotes or code blocks.
Process plan to convert:
{plan_to_convert}"""


ANSWER_PROMPT = """Answer the question using only the facts below. If the facts don't contain the \
answer, reply exactly "INFO NOT FOUND.". Answer in {language}.

Facts:
{facts}"""


def get_system_prompt(language: str = "English") -> str:
    """Build the chat system prompt with today's date injected."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        current_date=datetime.now().strftime("%Y-%m-%d"),
        language=language,
    )


def get_planner_prompt(specs: Sequence[ToolSpec]) -> str:
    """Planner instructions listing the functions a template may call."""
    lines = [f"- {spec.signature()}: {spec.description}" for spec in specs]
    return PLANNER_PROMPT_TEMPLATE.format(functions="\n".join(lines))
