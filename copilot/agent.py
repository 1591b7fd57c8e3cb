"""LangGraph tool-calling agent and model builders.

Graph:

    chatbot → (has tool calls?) → tools → chatbot (loop)
            → (no tool calls?)  → END

The ``chatbot`` node calls the chat model with the whole catalog bound;
the ``tools`` node runs the requested tools through the registry, and so
through the call interceptor.  Tool failures are not converted into
error messages for the model: ``handle_tool_errors=False`` lets them
reach the conversation loop.

Tool calls run one at a time: parallel tool use is switched off when the
tools are bound, and every run carries ``RUN_CONFIG`` so the tools node
never fans a message's calls out over a thread pool.

Each model role gets its own client, like the planner which is pinned to
temperature 0 with a narrow top-p to keep generated templates stable.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Annotated

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AnyMessage, SystemMessage
from langchain_core.tools import BaseTool
from langchain_openai import OpenAIEmbeddings
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from langgraph.prebuilt import ToolNode
from typing_extensions import TypedDict

from copilot.config import (
    ANTHROPIC_API_KEY,
    ASSISTANT_LANGUAGE,
    CHART_TOP_P,
    EMBEDDING_MODEL_NAME,
    MODEL_NAME,
    OPENAI_API_KEY,
    PLANNER_MODEL_NAME,
    PLANNER_TOP_P,
)
from copilot.prompts import get_system_prompt

logger = logging.getLogger(__name__)

CHATBOT_NODE = "chatbot"
TOOLS_NODE = "tools"

# ToolNode sizes its executor from max_concurrency
RUN_CONFIG = {"max_concurrency": 1}


class AgentState(TypedDict):
    """Messages flowing through the graph (appended via ``add_messages``)."""

    messages: Annotated[list[AnyMessage], add_messages]


# ── LLM builders ────────────────────────────────────────────────────


def build_chat_llm() -> ChatAnthropic:
    """Conversation model; tools are bound by the graph builder."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.0,
        max_tokens=1000,
        timeout=300,
    )


def build_planner_llm() -> ChatAnthropic:
    """Deterministic model for plan template synthesis."""
    return ChatAnthropic(
        model=PLANNER_MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.0,
        top_p=PLANNER_TOP_P,
        max_tokens=2048,
        timeout=300,
    )


def build_chart_llm() -> ChatAnthropic:
    """Deterministic model for plan → Mermaid conversion."""
    return ChatAnthropic(
        model=PLANNER_MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.0,
        top_p=CHART_TOP_P,
        max_tokens=1024,
        timeout=300,
    )


def build_answer_llm() -> ChatAnthropic:
    """Model that phrases knowledge base answers from retrieved passages."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.0,
        max_tokens=1024,
        timeout=300,
    )


def build_embeddings() -> OpenAIEmbeddings:
    return OpenAIEmbeddings(model=EMBEDDING_MODEL_NAME, api_key=OPENAI_API_KEY)


# ── Nodes and edges ─────────────────────────────────────────────────


def _make_chatbot_node(llm_with_tools, language: str):
    """Create the chatbot node around a tool-bound model."""

    def chatbot_node(state: AgentState) -> dict:
        system = SystemMessage(content=get_system_prompt(language))
        response = llm_with_tools.invoke([system] + state["messages"])
        return {"messages": [response]}

    return chatbot_node


def should_use_tools(state: AgentState) -> str:
    """Route to the tools node when the last message requests tool calls."""
    last_message = state["messages"][-1]
    if getattr(last_message, "tool_calls", None):
        return TOOLS_NODE
    return END


def create_copilot_agent(
    tools: Sequence[BaseTool],
    llm: BaseChatModel | None = None,
    *,
    language: str = ASSISTANT_LANGUAGE,
):
    """Build and compile the chatbot/tools graph.

    No checkpointer is attached: the conversation loop owns the history
    and passes it in on every turn.
    """
    llm = llm or build_chat_llm()

    graph = StateGraph(AgentState)
    llm_with_tools = llm.bind_tools(tools, parallel_tool_calls=False)
    graph.add_node(CHATBOT_NODE, _make_chatbot_node(llm_with_tools, language))
    graph.add_node(TOOLS_NODE, ToolNode(tools, handle_tool_errors=False))

    graph.set_entry_point(CHATBOT_NODE)
    graph.add_conditional_edges(CHATBOT_NODE, should_use_tools, {TOOLS_NODE: TOOLS_NODE, END: END})
    graph.add_edge(TOOLS_NODE, CHATBOT_NODE)

    compiled = graph.compile()
    logger.debug("Copilot agent compiled — model: %s, tools: %d", MODEL_NAME, len(tools))
    return compiled
