"""Centralized configuration for the Planning Copilot.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/planning-copilot/<VARIABLE_NAME>``.
Feature flags are plain environment variables (``true``/``false``).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store, or ``None`` if unavailable."""
    try:
        import boto3  # noqa: PLC0415 (only needed on AWS)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/planning-copilot/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _lookup(name: str) -> str | None:
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value
    if _ON_AWS:
        return _get_ssm_parameter(name)
    return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = _lookup(name)
    if value:
        return value
    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /planning-copilot/{name} (AWS)."
    )


def _optional_env(name: str, default: str = "") -> str:
    return _lookup(name) or default


def _flag(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _optional_float(name: str, default: str) -> float | None:
    """Parse a float setting; an empty value disables it (``None``)."""
    raw = os.getenv(name, default).strip()
    return float(raw) if raw else None


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-3-5-haiku-latest")
PLANNER_MODEL_NAME: str = os.getenv("PLANNER_MODEL_NAME", MODEL_NAME)

# Some models reject temperature and top_p together; set PLANNER_TOP_P= to drop it.
PLANNER_TOP_P: float | None = _optional_float("PLANNER_TOP_P", "0.1")
CHART_TOP_P: float | None = _optional_float("CHART_TOP_P", "0.2")

# ── Retrieval ───────────────────────────────────────────────────────
OPENAI_API_KEY: str = _require_env("OPENAI_API_KEY")
EMBEDDING_MODEL_NAME: str = os.getenv("EMBEDDING_MODEL_NAME", "text-embedding-3-small")
VECTOR_STORAGE_DIR: Path = Path(os.getenv("VECTOR_STORAGE_DIR", "vector_storage"))
RAG_DOCS_DIR: Path = Path(os.getenv("RAG_DOCS_DIR", "rag_docs"))

# ── Plans ───────────────────────────────────────────────────────────
PLANS_DIR: Path = Path(os.getenv("PLANS_DIR", "output"))

# ── Actions ─────────────────────────────────────────────────────────
TAVILY_API_KEY: str = _optional_env("TAVILY_API_KEY")
TAVILY_BASE_URL: str = "https://api.tavily.com"

SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "465"))
EMAIL_USERNAME: str = _optional_env("EMAIL_USERNAME")
EMAIL_APP_PASSWORD: str = _optional_env("EMAIL_APP_PASSWORD")
EMAIL_SENDER_NAME: str = os.getenv("EMAIL_SENDER_NAME", "Personal Assistant")

# ── Feature flags ───────────────────────────────────────────────────
REIMPORT_RAG_DOCUMENTS: bool = _flag("REIMPORT_RAG_DOCUMENTS", False)
CONSULT_COOKBOOK_FOR_PLAN: bool = _flag("CONSULT_COOKBOOK_FOR_PLAN", True)
AUTO_EXECUTE_PLAN_AFTER_CREATION: bool = _flag("AUTO_EXECUTE_PLAN_AFTER_CREATION", False)
ENABLE_PLAN_CHART_GENERATION: bool = _flag("ENABLE_PLAN_CHART_GENERATION", True)
ECHO_PLAN_TEMPLATE: bool = _flag("ECHO_PLAN_TEMPLATE", False)
ASK_USER_NAME_AND_LANGUAGE: bool = _flag("ASK_USER_NAME_AND_LANGUAGE", False)
PRINT_FUNCTIONS_METADATA_ON_START: bool = _flag("PRINT_FUNCTIONS_METADATA_ON_START", False)
ASSISTANT_LANGUAGE: str = os.getenv("ASSISTANT_LANGUAGE", "English")
