"""Mermaid flowchart links for plans."""

from __future__ import annotations

import base64
import json

MERMAID_LIVE_URL = "http://mermaid.live/view#base64:"


def mermaid_live_link(chart: str, theme: str = "dark") -> str:
    """Encode *chart* as a shareable mermaid.live viewer link."""
    document = {
        "code": chart,
        "editorMode": "code",
        "mermaid": {"theme": theme},
    }
    payload = json.dumps(document, separators=(",", ":"), ensure_ascii=False)
    return MERMAID_LIVE_URL + base64.b64encode(payload.encode("utf-8")).decode("ascii")
