"""Turn-based chat loop with token streaming.

The streaming part is split in two: :func:`stream_fragments` turns the
agent's LangGraph message stream into a lazy sequence of text fragments,
and :func:`consume_stream` flushes each fragment to the display as it
arrives while building up the full reply.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence

from langchain_core.messages import AIMessage, AnyMessage, HumanMessage

from copilot.agent import CHATBOT_NODE, RUN_CONFIG
from copilot.display import Display
from copilot.session import Session
from copilot.utils import content_text

logger = logging.getLogger(__name__)

QUIT_COMMANDS = ("exit", "quit", "q")


def stream_fragments(agent, messages: Sequence[AnyMessage]) -> Iterator[str]:
    """Yield the chatbot's text tokens for one turn.

    Tokens produced by models running inside tools (the planner, the
    chart converter) are streamed by LangGraph too; only the ``chatbot``
    node's output is kept.  Models that do not stream token by token
    show up as one complete message.
    """
    stream = agent.stream({"messages": list(messages)}, config=RUN_CONFIG, stream_mode="messages")
    for chunk, metadata in stream:
        if metadata.get("langgraph_node") != CHATBOT_NODE:
            continue
        if not isinstance(chunk, AIMessage):
            continue
        text = content_text(chunk)
        if text:
            yield text


def consume_stream(fragments: Iterable[str], display: Display) -> str:
    """Render *fragments* in order as they arrive and return the full text."""
    parts: list[str] = []
    started = False
    for fragment in fragments:
        if not started:
            display.assistant_begin()
            started = True
        display.assistant_fragment(fragment)
        parts.append(fragment)
    if started:
        display.assistant_end()
    return "".join(parts)


class ConversationLoop:
    """Drives the chat: history, model call, streaming, final message."""

    def __init__(self, agent, session: Session, display: Display) -> None:
        self._agent = agent
        self._session = session
        self._display = display

    def send(self, user_message: str) -> str:
        """Run one turn and return the assistant's reply."""
        self._session.messages.append(HumanMessage(content=user_message))
        reply = consume_stream(stream_fragments(self._agent, self._session.messages), self._display)
        if reply:
            self._session.messages.append(AIMessage(content=reply))
        logger.debug("Turn finished: %d chars, %d messages in history", len(reply), len(self._session.messages))
        return reply

    def greet(self, ask_name_and_language: bool) -> None:
        """Optionally ask the operator's name and language before the first turn."""
        if not ask_name_and_language:
            return
        name = self._display.ask("What's your [green]name[/]?", default="User")
        language = self._display.ask("Specify the [green]language[/]!", default="English")
        self._session.user_name = name
        self._session.messages.append(
            HumanMessage(content=f"My name is {name}! I speak {language}! Please speak in {language}!")
        )

    def run(self) -> None:
        """Prompt/response loop until the operator quits."""
        while True:
            try:
                user_input = self._display.ask(f"[bold dark_green]{self._session.user_name} >[/]").strip()
            except (KeyboardInterrupt, EOFError):
                self._display.assistant_end()
                break

            if not user_input:
                continue
            if user_input.lower() in QUIT_COMMANDS:
                break

            try:
                self.send(user_input)
            except KeyboardInterrupt:
                break
            except Exception as exc:
                logger.exception("Error processing message")
                self._display.error(f"Something went wrong: {exc}")
