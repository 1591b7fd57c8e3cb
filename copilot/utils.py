"""Small text helpers shared by the engine, the interceptor and the chat loop."""

from __future__ import annotations

import re
from typing import Any

_FENCE_RE = re.compile(r"^\s*```[\w-]*\s*\n(.*?)\n?\s*```\s*$", re.DOTALL)


def truncate(value: str, max_chars: int, add_cutoff_text: bool = True) -> str:
    """Shorten *value* to *max_chars* characters for log and console output."""
    if len(value) <= max_chars:
        return value
    suffix = "...(cut off due to length)" if add_cutoff_text else "..."
    return value[:max_chars] + suffix


def content_text(message: Any) -> str:
    """Return the plain text of a LangChain message or message chunk.

    Anthropic responses may carry a list of content blocks instead of a
    string; only the ``text`` blocks are kept.
    """
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return "" if content is None else str(content)


def strip_code_fences(text: str) -> str:
    """Remove a single surrounding markdown code fence, if present."""
    match = _FENCE_RE.match(text)
    return (match.group(1) if match else text).strip()
