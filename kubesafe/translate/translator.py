"""Natural language to kubectl translation with bounded time and fallback."""

import asyncio
from typing import Sequence

from loguru import logger

from kubesafe.config.schema import TranslationConfig
from kubesafe.errors import TranslationUnavailable
from kubesafe.kubectl.types import TranslationRequest, TranslationResult
from kubesafe.translate.backends import BackendError, TranslationBackend, build_backends
from kubesafe.translate.parser import parse_translation
from kubesafe.translate.prompt import build_system_prompt, build_user_prompt


class Translator:
    """
    Translate a TranslationRequest into a validated kubectl command.

    Backends are tried in order (local first). Each call is bounded by
    ``timeout_seconds``; transient failures (timeout, connection, HTTP
    429/5xx) get up to ``max_retries`` further attempts on the same backend,
    anything else moves on to the next backend. The whole walk is bounded by
    ``deadline_seconds``. A malformed answer is not a backend failure and is
    raised straight to the caller.
    """

    def __init__(
        self,
        backends: Sequence[TranslationBackend],
        timeout_seconds: float = 10.0,
        max_retries: int = 1,
        retry_delay_seconds: float = 0.5,
        deadline_seconds: float | None = None,
    ):
        self.backends = list(backends)
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.deadline_seconds = deadline_seconds or timeout_seconds * (max_retries + 1)

    @classmethod
    def from_config(cls, config: TranslationConfig) -> "Translator":
        return cls(
            build_backends(config),
            timeout_seconds=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay_seconds=config.retry_delay_seconds,
            deadline_seconds=config.deadline_seconds,
        )

    async def translate(self, request: TranslationRequest) -> TranslationResult:
        """
        Translate one request.

        Raises:
            TranslationUnavailable: No backend produced an answer in time.
            TranslationMalformed: A backend answered with invalid output.
        """
        failures: list[str] = []
        try:
            return await asyncio.wait_for(
                self._walk_backends(request, failures), timeout=self.deadline_seconds
            )
        except asyncio.TimeoutError:
            failures.append(f"gave up after {self.deadline_seconds:g}s")
            logger.warning(f"Translation unavailable: {'; '.join(failures)}")
            raise TranslationUnavailable("Translation unavailable: " + "; ".join(failures)) from None

    async def _walk_backends(self, request: TranslationRequest, failures: list[str]) -> TranslationResult:
        system_prompt = build_system_prompt(request.context)
        user_prompt = build_user_prompt(request.text, request.context)

        for backend in self.backends:
            if not await self._probe(backend):
                failures.append(f"{backend.name}: not available")
                continue

            raw = await self._complete_with_retry(backend, system_prompt, user_prompt, failures)
            if raw is None:
                continue

            result = parse_translation(raw)
            logger.info(
                f"Translated via {backend.name}: {result.command!r} (confidence {result.confidence})"
            )
            return result

        if not self.backends:
            failures.append("no backends configured")
        logger.warning(f"Translation unavailable: {'; '.join(failures)}")
        raise TranslationUnavailable("Translation unavailable: " + "; ".join(failures))

    async def _probe(self, backend: TranslationBackend) -> bool:
        try:
            return await asyncio.wait_for(backend.is_available(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.debug(f"Availability probe for {backend.name} timed out")
            return False

    async def _complete_with_retry(
        self,
        backend: TranslationBackend,
        system_prompt: str,
        user_prompt: str,
        failures: list[str],
    ) -> str | None:
        for attempt in range(self.max_retries + 1):
            try:
                return await asyncio.wait_for(
                    backend.complete(system_prompt, user_prompt),
                    timeout=self.timeout_seconds,
                )
            except asyncio.TimeoutError:
                reason = f"timed out after {self.timeout_seconds:g}s"
                transient = True
            except BackendError as e:
                reason = str(e)
                transient = e.transient

            logger.warning(f"{backend.name} attempt {attempt + 1} failed: {reason}")
            if not transient or attempt >= self.max_retries:
                failures.append(f"{backend.name}: {reason}")
                return None

            await asyncio.sleep(self.retry_delay_seconds)
        return None
