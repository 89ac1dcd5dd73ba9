"""
LLM Client Abstraction with Automatic Fallback.

PURPOSE:
========
Provides one interface over any model LiteLLM supports (OpenAI,
Anthropic, Gemini, Groq, Ollama, ...) with an optional fallback model
that is tried once when the primary call fails.

USAGE:
======
    llm = create_llm_client(config)
    response = llm.generate(prompt, system=SYSTEM_RULES)
    # Tries config.llm.model, then config.llm.fallback_model if set
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from litellm import completion

from sqlbot.configs import SQLBotConfig

logger = logging.getLogger(__name__)


# ============================================================
# DATA MODELS
# ============================================================

@dataclass
class LLMResponse:
    """Standardized LLM response."""
    content: str
    model: str
    tokens_used: int = 0
    fallback_occurred: bool = False
    fallback_reason: Optional[str] = None


class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class RateLimitError(LLMError):
    """Raised when rate limit or quota is exceeded."""
    pass


_RATE_LIMIT_MARKERS = ("429", "rate limit", "ratelimit", "quota", "resource_exhausted")


def _is_rate_limit(error: Exception) -> bool:
    text = f"{type(error).__name__} {error}".lower()
    return any(marker in text for marker in _RATE_LIMIT_MARKERS)


# ============================================================
# ABSTRACT LLM CLIENT
# ============================================================

class LLMClient(ABC):
    """
    Abstract base class for LLM clients.

    The query engine only depends on ``generate``, so tests can pass any
    object with that method.
    """

    def __init__(self, model: str):
        self.model = model
        self.call_count = 0

    @abstractmethod
    def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        """
        Generate a response from the LLM.

        Args:
            prompt: The user prompt
            system: Optional system message

        Returns:
            LLMResponse with content and model info

        Raises:
            RateLimitError: When rate limit or quota is exceeded
            LLMError: For other errors
        """
        pass


# ============================================================
# LITELLM CLIENT
# ============================================================

class LiteLLMClient(LLMClient):
    """LLM client backed by ``litellm.completion``."""

    def __init__(
        self,
        model: str,
        temperature: float = 0.1,
        max_tokens: int = 1024,
        api_key: Optional[str] = None,
    ):
        super().__init__(model)
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key

    def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        """Generate a response with a single completion call."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key

        logger.debug("Calling %s (%d prompt chars)", self.model, len(prompt))
        try:
            response = completion(**kwargs)
        except Exception as e:
            if _is_rate_limit(e):
                logger.warning("Rate limit from %s: %s", self.model, e)
                raise RateLimitError(f"{self.model} rate limit/quota exceeded: {e}")
            logger.warning("LLM error from %s: %s", self.model, e)
            raise LLMError(f"{self.model} API error: {e}")

        self.call_count += 1
        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) if usage else 0

        logger.info("✓ %s call successful (%s tokens, total calls: %d)", self.model, tokens, self.call_count)
        return LLMResponse(content=content, model=self.model, tokens_used=tokens or 0)


# ============================================================
# FALLBACK WRAPPER
# ============================================================

class FallbackLLM(LLMClient):
    """
    LLM client with automatic fallback.

    FALLBACK LOGIC:
    ===============
    1. Try the primary client
    2. On any LLMError, try the fallback client ONCE
    3. If the primary hit a rate limit, later calls go straight to the
       fallback until ``reset_quota_status`` is called
    4. If the fallback also fails, raise LLMError with both reasons
    """

    def __init__(self, primary: LLMClient, fallback: LLMClient):
        super().__init__(primary.model)
        self.primary = primary
        self.fallback = fallback
        self.primary_quota_exhausted = False
        self.stats = {
            "total_calls": 0,
            "primary_calls": 0,
            "fallback_calls": 0,
            "fallbacks": 0,
        }

    def generate(self, prompt: str, system: Optional[str] = None) -> LLMResponse:
        self.stats["total_calls"] += 1

        if self.primary_quota_exhausted:
            return self._call_fallback(prompt, system, f"{self.primary.model} quota known to be exhausted")

        try:
            response = self.primary.generate(prompt, system)
            self.stats["primary_calls"] += 1
            return response
        except RateLimitError as e:
            self.primary_quota_exhausted = True
            logger.warning("Primary model rate limited, falling back to %s", self.fallback.model)
            return self._call_fallback(prompt, system, str(e))
        except LLMError as e:
            logger.warning("Primary model failed, falling back to %s", self.fallback.model)
            return self._call_fallback(prompt, system, str(e))

    def _call_fallback(self, prompt: str, system: Optional[str], reason: str) -> LLMResponse:
        self.stats["fallbacks"] += 1
        try:
            response = self.fallback.generate(prompt, system)
        except LLMError as e:
            raise LLMError(f"Both models failed. Primary: {reason}, Fallback: {e}")
        self.stats["fallback_calls"] += 1
        response.fallback_occurred = True
        response.fallback_reason = reason
        return response

    def reset_quota_status(self) -> None:
        """Reset quota exhausted flag (useful for new sessions)."""
        self.primary_quota_exhausted = False

    def get_stats(self) -> Dict[str, Any]:
        return {**self.stats, "primary_quota_exhausted": self.primary_quota_exhausted}


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_llm_client(config: SQLBotConfig) -> LLMClient:
    """
    Create the LLM client described by ``config.llm``.

    Returns:
        LiteLLMClient, or FallbackLLM when a fallback model is configured
    """
    llm = config.llm
    api_key = os.getenv(llm.api_key_env) if llm.api_key_env else None
    primary = LiteLLMClient(llm.model, llm.temperature, llm.max_tokens, api_key=api_key)
    if not llm.fallback_model:
        return primary
    fallback = LiteLLMClient(llm.fallback_model, llm.temperature, llm.max_tokens)
    return FallbackLLM(primary, fallback)
