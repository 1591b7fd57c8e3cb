"""Action tools: date, calendar, email, files and web search.

Each handler returns a human-readable string (or list of strings) the
model can use directly.  Input problems the model can fix itself, such as
a malformed email address, come back as messages; transport failures
propagate.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path

from copilot.display import Display
from copilot.services.email_client import EmailClient
from copilot.services.web_search import WebSearchClient
from copilot.tools.registry import ParamSpec, ResultDisplay, ToolRegistry, ToolSpec

logger = logging.getLogger(__name__)

# RFC 5322-ish pattern, one plain address only
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


def _validate_email(email: str) -> str | None:
    """Return an error message if *email* looks invalid, else ``None``."""
    if not email or not email.strip():
        return "No email address was provided. Please ask the user for the recipient's email."
    email = email.strip()
    if not _EMAIL_RE.match(email):
        return (
            f'"{email}" does not look like a valid email address. '
            "Only one plain email address can be used per email."
        )
    return None


def get_current_date() -> str:
    return datetime.now().strftime("%Y-%m-%d")


def add_event_to_calendar(
    event_title: str,
    event_description: str,
    event_location: str,
    event_start_date: str,
    event_end_date: str,
) -> str:
    # TODO: write to a real calendar backend once one is configured
    logger.info(
        "Calendar event %r at %s from %s to %s", event_title, event_location, event_start_date, event_end_date,
    )
    return "Event added to the calendar!"


def read_file(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def write_file(path: str, content: str) -> str:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return f"Content written to {target}"


def build_action_specs(
    registry: ToolRegistry,
    display: Display,
    *,
    email_client: EmailClient | None = None,
    search_client: WebSearchClient | None = None,
) -> list[ToolSpec]:
    """Catalog entries for the action tools."""
    email_client = email_client or EmailClient()
    search_client = search_client or WebSearchClient()

    def send_email(to: str, subject: str, body: str) -> str:
        error = _validate_email(to)
        if error:
            return error
        email_client.send(to.strip(), subject, body)
        return "Email sent successfully!"

    def web_search(query: str, count: int = 5) -> list[str]:
        return search_client.search(query, count)

    def get_available_functions() -> str:
        display.functions_table(registry.specs(exposed=True))
        return "The above are the list of functions that are available for use."

    return [
        ToolSpec(
            name="get_current_date",
            description="Get the current date in YYYY-MM-DD format.",
            handler=get_current_date,
        ),
        ToolSpec(
            name="add_event_to_calendar",
            description="Add an event to the calendar in case adding a calendar event is requested by the user.",
            handler=add_event_to_calendar,
            parameters=(
                ParamSpec("event_title", description="Title of the event"),
                ParamSpec("event_description", description="Description of the event"),
                ParamSpec("event_location", description="Location of the event"),
                ParamSpec("event_start_date", description="Start date and time of the event"),
                ParamSpec("event_end_date", description="End date and time of the event"),
            ),
        ),
        ToolSpec(
            name="send_email",
            description=(
                "Send an email to a recipient with a specified subject and body. "
                "Only one email can be sent at a time."
            ),
            handler=send_email,
            parameters=(
                ParamSpec(
                    "to",
                    description="The email address of the recipient. Just the email address, one address only!",
                ),
                ParamSpec("subject", description="Email subject"),
                ParamSpec("body", description="Email body"),
            ),
        ),
        ToolSpec(
            name="read_file",
            description="Read a text file and return its content.",
            handler=read_file,
            parameters=(ParamSpec("path", description="Source file path"),),
        ),
        ToolSpec(
            name="write_file",
            description="Write text content to a file, replacing it if it exists.",
            handler=write_file,
            parameters=(
                ParamSpec("path", description="Destination file path"),
                ParamSpec("content", description="File content"),
            ),
        ),
        ToolSpec(
            name="web_search",
            description="Search the internet and return the top results as 'title: snippet (url)' lines.",
            handler=web_search,
            parameters=(
                ParamSpec("query", description="Text to search for"),
                ParamSpec("count", int, "Number of results", default=5),
            ),
        ),
        ToolSpec(
            name="get_available_functions",
            description=(
                "Returns the list of functions that are available for use, "
                "can show what the assistant can do."
            ),
            handler=get_available_functions,
            result_display=ResultDisplay.SUPPRESS,
            plannable=False,
        ),
    ]
