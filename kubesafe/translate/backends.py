"""Translation backends: local Ollama over HTTP, remote LLMs via LiteLLM."""

from abc import ABC, abstractmethod
from typing import Any

import httpx
import litellm
from litellm import acompletion
from loguru import logger

from kubesafe.config.schema import LocalBackendConfig, RemoteBackendConfig, TranslationConfig

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class BackendError(Exception):
    """A backend call failed. Transient failures may be retried."""

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class TranslationBackend(ABC):
    """Abstract base class for translation backends."""

    name: str = "backend"
    is_local: bool = False

    @abstractmethod
    async def is_available(self) -> bool:
        """Cheap check whether this backend can be called at all."""
        pass

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """
        Run one completion and return the raw model text.

        Raises:
            BackendError: On transport or API failure.
        """
        pass


class OllamaBackend(TranslationBackend):
    """Local inference through the Ollama REST API."""

    name = "ollama"
    is_local = True

    def __init__(
        self,
        config: LocalBackendConfig,
        temperature: float = 0.3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = config.base_url.rstrip("/")
        self.model = config.model
        self.probe_timeout = config.probe_timeout_seconds
        self.temperature = temperature
        self._transport = transport

    def _client(self, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    async def is_available(self) -> bool:
        try:
            async with self._client(self.probe_timeout) as client:
                response = await client.get("/api/tags")
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Ollama probe at {self.base_url} failed: {e}")
            return False

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "model": self.model,
            "system": system_prompt,
            "prompt": user_prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": self.temperature},
        }
        try:
            # The overall deadline is enforced by the caller
            async with self._client(None) as client:
                response = await client.post("/api/generate", json=payload)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            raise BackendError(f"Ollama unreachable: {e}", transient=True) from e
        except httpx.HTTPError as e:
            raise BackendError(f"Ollama request failed: {e}") from e

        if response.status_code != 200:
            detail = _error_detail(response)
            raise BackendError(
                f"Ollama returned HTTP {response.status_code}: {detail}",
                transient=response.status_code in _RETRYABLE_STATUS_CODES,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise BackendError("Ollama returned a non-JSON body") from e
        text = body.get("response") if isinstance(body, dict) else None
        if not isinstance(text, str):
            raise BackendError("Ollama response has no 'response' field")
        return text


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and "error" in body:
        return str(body["error"])
    return response.text[:200]


class LiteLLMBackend(TranslationBackend):
    """
    Remote translation using LiteLLM for multi-provider support.

    Supports OpenAI, Anthropic, OpenRouter, Gemini and anything else LiteLLM
    routes to. Keys are passed per call and never written to os.environ.
    """

    name = "litellm"
    is_local = False

    def __init__(
        self,
        config: RemoteBackendConfig,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ):
        self.model = config.model
        self.api_key = config.api_key or None
        self.api_base = config.api_base
        self.temperature = temperature
        self.max_tokens = max_tokens

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True

    async def is_available(self) -> bool:
        if self.api_key:
            return True
        try:
            status = litellm.validate_environment(model=self.model)
        except Exception as e:
            logger.debug(f"LiteLLM environment check for {self.model} failed: {e}")
            return False
        return bool(status.get("keys_in_environment"))

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "response_format": {"type": "json_object"},
        }
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            # Redact potential API keys from error messages
            error_msg = str(e)
            if self.api_key and len(self.api_key) > 8:
                error_msg = error_msg.replace(self.api_key, "***")
            status = getattr(e, "status_code", None)
            transient = status in _RETRYABLE_STATUS_CODES or isinstance(
                e, (litellm.Timeout, litellm.APIConnectionError)
            )
            raise BackendError(f"LLM call error: {error_msg}", transient=transient) from None

        content = response.choices[0].message.content
        if not isinstance(content, str):
            raise BackendError("LLM response has no text content")
        return content


def build_backends(config: TranslationConfig) -> list[TranslationBackend]:
    """Create the enabled backends, local first."""
    backends: list[TranslationBackend] = []
    if config.local.enabled:
        backends.append(OllamaBackend(config.local, temperature=config.temperature))
    if config.remote.enabled:
        backends.append(
            LiteLLMBackend(config.remote, temperature=config.temperature, max_tokens=config.max_tokens)
        )
    return backends
