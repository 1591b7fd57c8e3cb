"""HTTP client for the Tavily search API.

Thin wrapper over ``httpx``: one POST per query, results flattened to
``"title: snippet (url)"`` strings the model can read directly.  Failures
raise :class:`WebSearchError` and are not retried.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from copilot.config import TAVILY_API_KEY, TAVILY_BASE_URL

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 20.0


class WebSearchError(Exception):
    """Raised when the search API rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class WebSearchClient:
    """Search the web through Tavily's REST endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ):
        self._api_key = api_key if api_key is not None else TAVILY_API_KEY
        self._client = httpx.Client(
            base_url=base_url or TAVILY_BASE_URL,
            headers={"Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    def search(self, query: str, count: int = 5) -> list[str]:
        if not self._api_key:
            raise WebSearchError("Web search is not configured. Set TAVILY_API_KEY.")

        response = self._client.post(
            "/search",
            json={"query": query, "max_results": count},
            headers={"Authorization": f"Bearer {self._api_key}"},
        )
        if response.status_code >= 400:
            raise WebSearchError(
                f"Search failed with {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        results: list[dict[str, Any]] = response.json().get("results", [])
        logger.debug("Web search %r returned %d results", query, len(results))
        return [_format_hit(hit) for hit in results[:count]]


def _format_hit(hit: dict[str, Any]) -> str:
    title = hit.get("title", "").strip()
    snippet = " ".join(hit.get("content", "").split())
    url = hit.get("url", "")
    return f"{title}: {snippet} ({url})" if title else f"{snippet} ({url})"
