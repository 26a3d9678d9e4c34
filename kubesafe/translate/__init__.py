"""Natural language to kubectl translation."""

from kubesafe.translate.backends import (
    BackendError,
    LiteLLMBackend,
    OllamaBackend,
    TranslationBackend,
    build_backends,
)
from kubesafe.translate.parser import parse_translation
from kubesafe.translate.prompt import SUPPORTED_OPERATIONS, build_system_prompt, build_user_prompt
from kubesafe.translate.translator import Translator

__all__ = [
    "BackendError",
    "LiteLLMBackend",
    "OllamaBackend",
    "TranslationBackend",
    "build_backends",
    "parse_translation",
    "SUPPORTED_OPERATIONS",
    "build_system_prompt",
    "build_user_prompt",
    "Translator",
]
