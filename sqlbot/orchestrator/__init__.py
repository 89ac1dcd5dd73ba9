"""
Orchestrator module for SQLBot.

Contains:
1. QueryEngine - question/SQL -> validated, executed QueryResponse
2. LLM clients (LiteLLM with optional fallback model)
3. Prompt construction and SQL extraction
"""

from .llm_client import (
    LLMClient,
    LiteLLMClient,
    FallbackLLM,
    LLMResponse,
    LLMError,
    RateLimitError,
    create_llm_client,
)
from .prompts import build_sql_prompt, build_correction_prompt, build_system_prompt
from .sql_utils import SQLExtractionError, extract_sql, looks_like_sql
from .query_engine import QueryEngine, summarize_result

__all__ = [
    "LLMClient",
    "LiteLLMClient",
    "FallbackLLM",
    "LLMResponse",
    "LLMError",
    "RateLimitError",
    "create_llm_client",
    "build_sql_prompt",
    "build_correction_prompt",
    "build_system_prompt",
    "SQLExtractionError",
    "extract_sql",
    "looks_like_sql",
    "QueryEngine",
    "summarize_result",
]
