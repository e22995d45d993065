"""
Hosted LLM backends used by the scheme matcher.

Two providers are wired: OpenAI chat completions and Anthropic messages.
Each SDK is imported when its backend is initialised, so a deployment that
runs with ``LLM_PROVIDER=none`` never needs either package installed.

::

    backend = create_backend("anthropic", api_key=config.llm_api_key)
    if backend is not None:
        reply = backend.generate(SYSTEM_PROMPT, "CNC lathe down for 6 hours ...")
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from app.domain.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-haiku-20240307",
}


@dataclass
class LLMResponse:
    text: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    latency_ms: float = 0.0


class LLMBackend(ABC):
    """Minimal surface the scheme matcher relies on."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def is_available(self) -> bool: ...

    @abstractmethod
    def initialize(self) -> bool:
        """Build the client. Returns False when the backend cannot be used."""

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> LLMResponse: ...


class _HostedBackend(LLMBackend):
    """Shared plumbing for API-key based providers.

    Subclasses supply ``_build_client`` and ``_complete``; ``generate`` times
    the call and turns SDK failures into :class:`ExternalServiceError`.
    """

    provider = ""

    def __init__(self, api_key: str, model: str = "", timeout: int = 30):
        self._api_key = api_key
        self._model = model or DEFAULT_MODELS[self.provider]
        self._timeout = timeout
        self._client: Any = None

    @property
    def name(self) -> str:
        return self.provider

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def initialize(self) -> bool:
        if not self._api_key:
            logger.warning("%s backend: no API key configured", self.provider)
            return False
        try:
            self._client = self._build_client()
        except ImportError:
            logger.error("%s backend: SDK not installed (pip install %s)", self.provider, self.provider)
            return False
        except Exception as exc:
            logger.error("%s backend: client construction failed: %s", self.provider, exc)
            return False
        logger.info("%s backend ready (model=%s)", self.provider, self._model)
        return True

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = 1024,
        temperature: float = 0.2,
    ) -> LLMResponse:
        if not self.is_available:
            raise ExternalServiceError(f"{self.provider} backend is not initialised")

        started = time.perf_counter()
        try:
            response = self._complete(system_prompt, user_prompt, max_tokens, temperature)
        except Exception as exc:
            raise ExternalServiceError(
                f"{self.provider} completion failed", detail={"error": str(exc)}
            ) from exc
        response.latency_ms = (time.perf_counter() - started) * 1000
        return response

    @abstractmethod
    def _build_client(self) -> Any: ...

    @abstractmethod
    def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int, temperature: float) -> LLMResponse: ...


class OpenAIBackend(_HostedBackend):
    provider = "openai"

    def __init__(self, api_key: str, model: str = "", timeout: int = 30, base_url: str | None = None):
        super().__init__(api_key, model, timeout)
        # Azure OpenAI or any compatible proxy
        self._base_url = base_url

    def _build_client(self) -> Any:
        import openai

        kwargs: dict[str, Any] = {"api_key": self._api_key, "timeout": self._timeout}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        return openai.OpenAI(**kwargs)

    def _complete(self, system_prompt, user_prompt, max_tokens, temperature) -> LLMResponse:
        reply = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        usage = {}
        if reply.usage:
            usage = {"input_tokens": reply.usage.prompt_tokens, "output_tokens": reply.usage.completion_tokens}
        return LLMResponse(text=reply.choices[0].message.content or "", model=reply.model, usage=usage)


class AnthropicBackend(_HostedBackend):
    provider = "anthropic"

    def _build_client(self) -> Any:
        import anthropic

        return anthropic.Anthropic(api_key=self._api_key, timeout=self._timeout)

    def _complete(self, system_prompt, user_prompt, max_tokens, temperature) -> LLMResponse:
        reply = self._client.messages.create(
            model=self._model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        text = "".join(getattr(block, "text", "") for block in reply.content or [])
        usage = {}
        if reply.usage:
            usage = {"input_tokens": reply.usage.input_tokens, "output_tokens": reply.usage.output_tokens}
        return LLMResponse(text=text, model=reply.model, usage=usage)


_BACKENDS: dict[str, type[_HostedBackend]] = {
    "openai": OpenAIBackend,
    "anthropic": AnthropicBackend,
}


def create_backend(
    provider: str,
    *,
    api_key: str = "",
    model: str = "",
    base_url: str | None = None,
    timeout: int = 30,
) -> LLMBackend | None:
    """Return an initialised backend, or None when scheme matching should use the static list."""
    provider = (provider or "").strip().lower()
    if provider in ("", "none"):
        logger.info("LLM provider disabled; scheme matching uses the static list")
        return None

    backend_cls = _BACKENDS.get(provider)
    if backend_cls is None:
        logger.error("Unknown LLM provider '%s'", provider)
        return None

    if backend_cls is OpenAIBackend:
        backend = OpenAIBackend(api_key, model, timeout, base_url=base_url)
    else:
        backend = backend_cls(api_key, model, timeout)

    if not backend.initialize():
        logger.warning("LLM backend '%s' unavailable; scheme matching uses the static list", provider)
        return None
    return backend
