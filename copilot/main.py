"""CLI entry point for the Planning Copilot.

Usage:
    python -m copilot.main              # normal mode (quiet)
    python -m copilot.main --debug      # debug mode (shows API calls)
    python -m copilot.main --reimport   # rebuild the knowledge index first
"""

from __future__ import annotations

import argparse
import logging

from copilot import config
from copilot.agent import (
    build_answer_llm,
    build_chart_llm,
    build_embeddings,
    build_planner_llm,
    create_copilot_agent,
)
from copilot.conversation import ConversationLoop
from copilot.display import ConsoleDisplay
from copilot.interceptor import CallInterceptor
from copilot.planning.engine import PlanEngine
from copilot.services.retriever import KnowledgeRetriever
from copilot.session import Session
from copilot.tools.actions import build_action_specs
from copilot.tools.knowledge import build_knowledge_specs
from copilot.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("copilot").setLevel(logging.DEBUG if debug else logging.INFO)


def build_assistant(display: ConsoleDisplay, session: Session, *, reimport: bool) -> ConversationLoop:
    """Wire retriever, registry, interceptor, plan engine and agent together."""
    retriever = KnowledgeRetriever(
        build_embeddings(),
        build_answer_llm(),
        storage_dir=config.VECTOR_STORAGE_DIR,
        docs_dir=config.RAG_DOCS_DIR,
        display=display,
        language=config.ASSISTANT_LANGUAGE,
    )
    with display.status("Preparing the knowledge base..."):
        retriever.initialize(reimport=reimport)

    registry = ToolRegistry(CallInterceptor(display))
    engine = PlanEngine(
        build_planner_llm(),
        build_chart_llm(),
        registry,
        display,
        retriever=retriever,
        plans_dir=config.PLANS_DIR,
        consult_cookbook=config.CONSULT_COOKBOOK_FOR_PLAN,
        auto_execute=config.AUTO_EXECUTE_PLAN_AFTER_CREATION,
        enable_chart_generation=config.ENABLE_PLAN_CHART_GENERATION,
        echo_template=config.ECHO_PLAN_TEMPLATE,
    )
    registry.register_all(build_action_specs(registry, display))
    registry.register_all(build_knowledge_specs(retriever))
    registry.register_all(engine.tool_specs(session))

    agent = create_copilot_agent(registry.as_langchain_tools())
    logger.info("Copilot ready with %d tools", len(registry))

    if config.PRINT_FUNCTIONS_METADATA_ON_START:
        display.functions_table(registry.specs(exposed=True))
    return ConversationLoop(agent, session, display)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Planning Copilot CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--reimport", action="store_true",
        help="Re-ingest the knowledge base documents before starting",
    )
    args = parser.parse_args()

    _configure_logging(debug=args.debug)

    display = ConsoleDisplay()
    display.intro()

    session = Session()
    loop = build_assistant(display, session, reimport=args.reimport or config.REIMPORT_RAG_DOCUMENTS)
    loop.greet(config.ASK_USER_NAME_AND_LANGUAGE)
    loop.run()
    display.console.print("Goodbye!")


if __name__ == "__main__":
    main()
