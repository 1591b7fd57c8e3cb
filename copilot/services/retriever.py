"""Retrieval-augmented Q&A over a tagged document corpus.

One vector store holds two logically independent partitions, selected by
the ``topic`` metadata tag:

* ``documentation`` — general reference material (``rag_doc.txt``)
* ``cookbook``      — how-to guidance consulted before planning
                      (``process_cookbook.txt``)

The store is a LangChain ``InMemoryVectorStore`` persisted as a JSON dump
under the storage directory.  Answers are synthesized by the model from
the top matching passages of one partition.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.vectorstores import InMemoryVectorStore

from copilot.display import Display
from copilot.prompts import ANSWER_PROMPT
from copilot.utils import content_text

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.json"
INFO_NOT_FOUND = "INFO NOT FOUND."
MAX_CHUNK_CHARS = 1200
DEFAULT_TOP_K = 4


class Topic(str, Enum):
    DOCUMENTATION = "documentation"
    COOKBOOK = "cookbook"


SOURCE_DOCUMENTS: dict[Topic, str] = {
    Topic.DOCUMENTATION: "rag_doc.txt",
    Topic.COOKBOOK: "process_cookbook.txt",
}

_STATUS_MESSAGES: dict[Topic, str] = {
    Topic.DOCUMENTATION: "Getting info from documentation...",
    Topic.COOKBOOK: "Getting plan guidance from cookbook...",
}


class RetrieverUninitialized(Exception):
    """Raised when the knowledge base is queried before ingestion finished."""


def split_into_chunks(content: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Split text on blank lines and merge paragraphs up to *max_chars*."""
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", content) if p.strip()]
    chunks: list[str] = []
    current = ""
    for paragraph in paragraphs:
        if current and len(current) + len(paragraph) + 2 > max_chars:
            chunks.append(current)
            current = paragraph
        else:
            current = f"{current}\n\n{paragraph}" if current else paragraph
    if current:
        chunks.append(current)
    return chunks


class KnowledgeRetriever:
    """Tagged-partition knowledge base with model-synthesized answers."""

    def __init__(
        self,
        embeddings: Embeddings,
        llm: BaseChatModel,
        *,
        storage_dir: Path,
        docs_dir: Path,
        display: Display | None = None,
        top_k: int = DEFAULT_TOP_K,
        language: str = "English",
    ) -> None:
        self._embeddings = embeddings
        self._llm = llm
        self._storage_dir = Path(storage_dir)
        self._docs_dir = Path(docs_dir)
        self._display = display
        self._top_k = top_k
        self._language = language
        self._store: InMemoryVectorStore | None = None

    @property
    def initialized(self) -> bool:
        return self._store is not None

    @property
    def index_path(self) -> Path:
        return self._storage_dir / INDEX_FILE_NAME

    # ── Ingestion ────────────────────────────────────────────────────

    def initialize(self, reimport: bool = False) -> None:
        """Load the persisted store and ingest missing partitions.

        With *reimport* every partition is rebuilt from its source
        document; otherwise partitions already present are left as is.
        """
        if self.index_path.exists() and not reimport:
            store = InMemoryVectorStore.load(str(self.index_path), self._embeddings)
            logger.info("Loaded knowledge index from %s", self.index_path)
        else:
            store = InMemoryVectorStore(self._embeddings)

        changed = False
        for topic in Topic:
            if reimport or not self._has_partition(store, topic):
                self._ingest(store, topic)
                changed = True

        if changed:
            self._storage_dir.mkdir(parents=True, exist_ok=True)
            store.dump(str(self.index_path))
            logger.info("Saved knowledge index to %s", self.index_path)
        self._store = store

    @staticmethod
    def _partition_ids(store: InMemoryVectorStore, topic: Topic) -> list[str]:
        return [
            doc_id
            for doc_id, record in store.store.items()
            if record.get("metadata", {}).get("topic") == topic.value
        ]

    def _has_partition(self, store: InMemoryVectorStore, topic: Topic) -> bool:
        return bool(self._partition_ids(store, topic))

    def _ingest(self, store: InMemoryVectorStore, topic: Topic) -> None:
        source = self._docs_dir / SOURCE_DOCUMENTS[topic]
        content = source.read_text(encoding="utf-8")

        stale = self._partition_ids(store, topic)
        if stale:
            store.delete(ids=stale)

        chunks = split_into_chunks(content)
        documents = [
            Document(page_content=chunk, metadata={"topic": topic.value, "source": source.name})
            for chunk in chunks
        ]
        ids = [f"{topic.value}-{i:04d}" for i in range(len(documents))]
        store.add_documents(documents, ids=ids)
        logger.info("Ingested %d chunks from %s into %s", len(documents), source, topic.value)

    # ── Questions ────────────────────────────────────────────────────

    def ask(self, question: str, topic: Topic | str) -> str:
        """Answer *question* from the passages of one partition."""
        if not question or not question.strip():
            raise ValueError("question must not be empty")
        if self._store is None:
            raise RetrieverUninitialized("The knowledge base is not initialized yet.")
        topic = Topic(topic)

        if self._display is None:
            return self._answer(question, topic)
        with self._display.status(_STATUS_MESSAGES[topic]):
            return self._answer(question, topic)

    def _answer(self, question: str, topic: Topic) -> str:
        passages = self._store.similarity_search(
            question,
            k=self._top_k,
            filter=lambda doc: doc.metadata.get("topic") == topic.value,
        )
        if not passages:
            logger.info("No %s passages matched %r", topic.value, question)
            return INFO_NOT_FOUND

        facts = "\n\n".join(f"==== {doc.page_content}" for doc in passages)
        response = self._llm.invoke(
            [
                SystemMessage(content=ANSWER_PROMPT.format(language=self._language, facts=facts)),
                HumanMessage(content=question),
            ]
        )
        answer = content_text(response).strip()
        logger.debug("Answered %s question with %d passages", topic.value, len(passages))
        return answer or INFO_NOT_FOUND
