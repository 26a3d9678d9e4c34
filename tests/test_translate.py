"""Tests for prompt construction, response parsing and the translator."""

import asyncio
import json

import httpx
import pytest

from kubesafe.config.schema import LocalBackendConfig
from kubesafe.errors import TranslationMalformed, TranslationUnavailable
from kubesafe.kubectl.types import EnvironmentContext, TranslationRequest
from kubesafe.translate.backends import BackendError, OllamaBackend, TranslationBackend
from kubesafe.translate.parser import parse_translation
from kubesafe.translate.prompt import SUPPORTED_OPERATIONS, build_system_prompt, build_user_prompt
from kubesafe.translate.translator import Translator

PROD = EnvironmentContext(name="prod-eu", cluster="eu-1", namespace="shop")


def answer(command="kubectl get pods -n shop", confidence=95, rationale="List pods") -> str:
    return json.dumps({"command": command, "confidence": confidence, "rationale": rationale})


# ── Helpers ─────────────────────────────────────────────────────────


class FakeBackend(TranslationBackend):
    """Backend that replays scripted replies; an Exception instance is raised."""

    def __init__(self, name="fake", replies=None, available=True, delay=0.0, is_local=True):
        self.name = name
        self.is_local = is_local
        self.replies = list(replies or [])
        self.available = available
        self.delay = delay
        self.calls = 0

    async def is_available(self) -> bool:
        return self.available

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else answer()
        if isinstance(reply, Exception):
            raise reply
        return reply


def make_translator(*backends, timeout=1.0, retries=1, deadline=None) -> Translator:
    return Translator(
        backends,
        timeout_seconds=timeout,
        max_retries=retries,
        retry_delay_seconds=0,
        deadline_seconds=deadline,
    )


def request(text="show pods") -> TranslationRequest:
    return TranslationRequest(text, PROD)


# ── Prompt ──────────────────────────────────────────────────────────


class TestPrompt:
    def test_system_prompt_embeds_context(self):
        prompt = build_system_prompt(PROD)
        assert "Cluster: eu-1" in prompt
        assert "Namespace: shop" in prompt
        assert "Environment: production" in prompt
        assert "NEEDS_CLARIFICATION" in prompt

    def test_system_prompt_lists_operations(self):
        prompt = build_system_prompt(PROD)
        for op in SUPPORTED_OPERATIONS:
            assert op in prompt

    def test_examples_use_namespace(self):
        assert "kubectl get pods -n shop" in build_system_prompt(PROD)

    def test_user_prompt(self):
        prompt = build_user_prompt("show pods", PROD)
        assert '"show pods"' in prompt
        assert "Current namespace: shop" in prompt


class TestTranslationRequest:
    def test_strips(self):
        assert request("  show pods  ").text == "show pods"

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            request("   ")

    def test_too_long_rejected(self):
        with pytest.raises(ValueError):
            request("x" * 501)


# ── Parser ──────────────────────────────────────────────────────────


class TestParseTranslation:
    def test_plain_json(self):
        result = parse_translation(answer())
        assert result.command == "kubectl get pods -n shop"
        assert result.confidence == 95
        assert result.rationale == "List pods"

    def test_code_fence(self):
        result = parse_translation("```json\n" + answer() + "\n```")
        assert result.confidence == 95

    def test_surrounding_prose(self):
        result = parse_translation("Sure! Here you go: " + answer() + " Hope it helps.")
        assert result.command.startswith("kubectl ")

    def test_reasoning_alias(self):
        raw = json.dumps({"command": "kubectl get ns", "confidence": 90, "reasoning": "Namespaces"})
        assert parse_translation(raw).rationale == "Namespaces"

    def test_integral_float_confidence(self):
        assert parse_translation(answer(confidence=80.0)).confidence == 80

    def test_fractional_confidence_rejected(self):
        with pytest.raises(TranslationMalformed):
            parse_translation(answer(confidence=80.5))

    def test_boolean_confidence_rejected(self):
        with pytest.raises(TranslationMalformed):
            parse_translation(answer(confidence=True))

    def test_confidence_out_of_range(self):
        with pytest.raises(TranslationMalformed):
            parse_translation(answer(confidence=101))

    def test_missing_confidence(self):
        with pytest.raises(TranslationMalformed):
            parse_translation(json.dumps({"command": "kubectl get pods"}))

    def test_wrong_prefix_carries_rationale(self):
        with pytest.raises(TranslationMalformed) as exc:
            parse_translation(answer(command="rm -rf /", rationale="oops"))
        assert exc.value.raw == "oops"

    def test_empty_command(self):
        with pytest.raises(TranslationMalformed):
            parse_translation(answer(command="   "))

    def test_not_json(self):
        with pytest.raises(TranslationMalformed):
            parse_translation("I cannot help with that")

    def test_empty(self):
        with pytest.raises(TranslationMalformed):
            parse_translation("")

    def test_clarification_marker(self):
        result = parse_translation(
            answer(command="kubectl logs", confidence=40, rationale="NEEDS_CLARIFICATION: Which pod?")
        )
        assert result.needs_clarification
        assert result.is_low_confidence(70)


# ── Translator ──────────────────────────────────────────────────────


class TestTranslator:
    @pytest.mark.asyncio
    async def test_local_first(self):
        local = FakeBackend("local")
        remote = FakeBackend("remote", is_local=False)
        result = await make_translator(local, remote).translate(request())
        assert result.confidence == 95
        assert local.calls == 1
        assert remote.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_when_local_unavailable(self):
        local = FakeBackend("local", available=False)
        remote = FakeBackend("remote", replies=[answer(confidence=88)], is_local=False)
        result = await make_translator(local, remote).translate(request())
        assert result.confidence == 88
        assert local.calls == 0

    @pytest.mark.asyncio
    async def test_transient_failure_retried_once(self):
        backend = FakeBackend(replies=[BackendError("503", transient=True), answer(confidence=77)])
        result = await make_translator(backend).translate(request())
        assert result.confidence == 77
        assert backend.calls == 2

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        local = FakeBackend("local", replies=[BackendError("401 unauthorized")])
        remote = FakeBackend("remote", replies=[answer(confidence=60)], is_local=False)
        result = await make_translator(local, remote).translate(request())
        assert local.calls == 1
        assert result.confidence == 60

    @pytest.mark.asyncio
    async def test_timeout_then_unavailable(self):
        slow = FakeBackend(delay=1.0)
        with pytest.raises(TranslationUnavailable):
            await make_translator(slow, timeout=0.05, deadline=5.0).translate(request())
        assert slow.calls == 2

    @pytest.mark.asyncio
    async def test_deadline_bounds_whole_translation(self):
        local = FakeBackend("local", delay=5.0)
        remote = FakeBackend("remote", delay=5.0, is_local=False)
        translator = make_translator(local, remote, timeout=0.2, deadline=0.3)
        loop = asyncio.get_running_loop()
        started = loop.time()
        with pytest.raises(TranslationUnavailable, match="gave up after 0.3s"):
            await translator.translate(request())
        assert loop.time() - started < 1.0
        assert remote.calls == 0

    def test_default_deadline_covers_retries(self):
        assert make_translator(timeout=2.0, retries=1).deadline_seconds == 4.0

    @pytest.mark.asyncio
    async def test_malformed_is_not_a_fallback(self):
        local = FakeBackend("local", replies=["no json here"])
        remote = FakeBackend("remote", is_local=False)
        with pytest.raises(TranslationMalformed):
            await make_translator(local, remote).translate(request())
        assert remote.calls == 0

    @pytest.mark.asyncio
    async def test_no_backends(self):
        with pytest.raises(TranslationUnavailable):
            await make_translator().translate(request())


# ── Ollama backend ──────────────────────────────────────────────────


class TestOllamaBackend:
    def backend(self, handler) -> OllamaBackend:
        return OllamaBackend(LocalBackendConfig(), transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_available(self):
        backend = self.backend(lambda req: httpx.Response(200, json={"models": []}))
        assert await backend.is_available()

    @pytest.mark.asyncio
    async def test_unavailable_on_connect_error(self):
        def handler(req):
            raise httpx.ConnectError("refused", request=req)
        assert not await self.backend(handler).is_available()

    @pytest.mark.asyncio
    async def test_generate(self):
        seen = {}

        def handler(req):
            seen.update(json.loads(req.content))
            return httpx.Response(200, json={"response": answer()})

        text = await self.backend(handler).complete("sys", "user")
        assert parse_translation(text).confidence == 95
        assert seen["format"] == "json"
        assert seen["stream"] is False
        assert seen["system"] == "sys"

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        backend = self.backend(lambda req: httpx.Response(503, json={"error": "loading"}))
        with pytest.raises(BackendError) as exc:
            await backend.complete("sys", "user")
        assert exc.value.transient

    @pytest.mark.asyncio
    async def test_missing_model_is_not_transient(self):
        backend = self.backend(lambda req: httpx.Response(404, json={"error": "model not found"}))
        with pytest.raises(BackendError) as exc:
            await backend.complete("sys", "user")
        assert not exc.value.transient
        assert "model not found" in str(exc.value)
