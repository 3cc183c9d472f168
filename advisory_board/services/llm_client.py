"""
Model Client for the advisory pipeline
--------------------------------------
Black-box async text generation behind a small protocol, an OpenAI
chat-completions implementation, and an ordered provider chain with
failover.
"""

from __future__ import annotations

import os
import time
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

import structlog
from openai import AsyncOpenAI

from advisory_board.core.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_TEMPERATURE,
    LLM_TIMEOUT_SEC,
)
from advisory_board.models.responses import ModelResponse, TokenUsage
from advisory_board.utils.error_handling import (
    AdvisoryBoardError,
    ErrorKind,
    classify_exception,
)

# ────────────────────────────────────────────────────────────
#  Logging
# ────────────────────────────────────────────────────────────
logger = structlog.get_logger(__name__)


@runtime_checkable
class ModelClient(Protocol):
    """Subset of a text-generation backend used by the orchestrator."""

    name: str

    async def call(
        self,
        prompt: str,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: Optional[float] = None,
    ) -> ModelResponse: ...

    def is_available(self) -> bool: ...


# ────────────────────────────────────────────────────────────
#  OpenAI chat completions
# ────────────────────────────────────────────────────────────
class OpenAIModelClient:
    """OpenAI (or OpenAI-compatible local server) chat-completions client."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        name: str = "openai",
        timeout: float = LLM_TIMEOUT_SEC,
    ):
        self.name = name
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self._client = client
        self._api_key = api_key or os.getenv("OPENAI_API_KEY")
        self._base_url = base_url or os.getenv("OPENAI_BASE_URL")

    def is_available(self) -> bool:
        # Local servers usually accept any key
        return self._client is not None or bool(self._api_key) or bool(self._base_url)

    def _ensure_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.is_available():
                raise AdvisoryBoardError(
                    ErrorKind.API_UNAVAILABLE,
                    "OPENAI_API_KEY is not set",
                    context={"provider": self.name},
                )
            self._client = AsyncOpenAI(
                api_key=self._api_key or "local",
                base_url=self._base_url,
                timeout=self.timeout,
            )
            logger.info("✓ OpenAI client initialized", provider=self.name, base_url=self._base_url)
        return self._client

    async def call(
        self,
        prompt: str,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: Optional[float] = None,
    ) -> ModelResponse:
        client = self._ensure_client()
        start = time.perf_counter()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=timeout or self.timeout,
            )
        except Exception as e:
            raise classify_exception(e, {"provider": self.name, "model": self.model}) from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        if not content.strip():
            raise AdvisoryBoardError(
                ErrorKind.INVALID_RESPONSE,
                "Empty completion from model",
                context={"provider": self.name, "model": self.model},
            )

        usage = TokenUsage()
        if getattr(response, "usage", None) is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        logger.debug(
            "Model call completed",
            stage="model_call",
            provider=self.name,
            model=self.model,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
            total_tokens=usage.total_tokens,
        )
        return ModelResponse(
            content=content,
            model=getattr(response, "model", None) or self.model,
            provider=self.name,
            usage=usage,
        )


# ────────────────────────────────────────────────────────────
#  Provider chain
# ────────────────────────────────────────────────────────────
class ProviderChain:
    """Tries providers in order, active provider first; a ModelClient itself."""

    name = "chain"

    def __init__(self, providers: Sequence[ModelClient], active: Optional[str] = None):
        self._providers: List[ModelClient] = list(providers)
        self._status: Dict[str, bool] = {p.name: True for p in self._providers}
        self._active = active or (self._providers[0].name if self._providers else None)

    @property
    def active(self) -> Optional[str]:
        return self._active

    def set_active(self, name: str) -> None:
        if name not in self._status:
            raise AdvisoryBoardError(
                ErrorKind.CONFIGURATION_ERROR,
                f"Unknown provider: {name}",
                context={"providers": list(self._status)},
            )
        self._active = name

    def _ordered(self) -> List[ModelClient]:
        return sorted(self._providers, key=lambda p: p.name != self._active)

    def is_available(self) -> bool:
        return any(self._safe_available(p) for p in self._providers)

    @staticmethod
    def _safe_available(provider: ModelClient) -> bool:
        try:
            return bool(provider.is_available())
        except Exception:
            return False

    def get_provider_status(self) -> Dict[str, bool]:
        return {
            p.name: self._safe_available(p) and self._status.get(p.name, True)
            for p in self._providers
        }

    async def call(
        self,
        prompt: str,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: Optional[float] = None,
    ) -> ModelResponse:
        last_error: Optional[AdvisoryBoardError] = None
        for provider in self._ordered():
            if not self._safe_available(provider):
                logger.debug("Skipping unavailable provider", stage="model_call", provider=provider.name)
                continue
            try:
                result = await provider.call(
                    prompt,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    timeout=timeout,
                )
                self._status[provider.name] = True
                return result
            except Exception as e:
                last_error = classify_exception(e, {"provider": provider.name})
                self._status[provider.name] = False
                logger.warning(
                    "Provider call failed",
                    stage="model_call",
                    provider=provider.name,
                    error_kind=last_error.kind.value,
                )

        if last_error is not None:
            raise last_error
        raise AdvisoryBoardError(ErrorKind.API_UNAVAILABLE, "No model provider available")
