"""Knowledge base tools: documentation Q&A and process guidance."""

from __future__ import annotations

import logging

from copilot.services.retriever import KnowledgeRetriever, RetrieverUninitialized, Topic
from copilot.tools.registry import ParamSpec, ToolSpec

logger = logging.getLogger(__name__)

KNOWLEDGE_BASE_NOT_READY = (
    "The knowledge base is still being prepared. Please answer from general knowledge "
    "or try again in a moment."
)


def build_knowledge_specs(retriever: KnowledgeRetriever) -> list[ToolSpec]:
    def _ask(question: str, topic: Topic) -> str:
        try:
            return retriever.ask(question, topic)
        except RetrieverUninitialized:
            logger.warning("Knowledge base queried before initialization (%s)", topic.value)
            return KNOWLEDGE_BASE_NOT_READY

    def retrieve_documentation(question: str) -> str:
        return _ask(question, Topic.DOCUMENTATION)

    def get_process_guidance(question: str) -> str:
        return _ask(question, Topic.COOKBOOK)

    return [
        ToolSpec(
            name="retrieve_documentation",
            description=(
                "Retrieve content for question answering, e.g. about an AI related topic. The question can be "
                "about scientific or technology topics, or to get a summary of a topic for a synopsis."
            ),
            handler=retrieve_documentation,
            parameters=(
                ParamSpec(
                    "question",
                    description=(
                        "The question about the topic. Rephrase it so it keeps the original meaning and can be "
                        "used to retrieve content. If the question is not in English, translate it first."
                    ),
                ),
            ),
        ),
        ToolSpec(
            name="get_process_guidance",
            description="Get guidance on how a certain process or task can be done.",
            handler=get_process_guidance,
            parameters=(
                ParamSpec("question", description="The process or task on which guidance is needed"),
            ),
            plannable=False,
        ),
    ]
