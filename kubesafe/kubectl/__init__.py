"""kubectl context resolution, types and risk classification."""

from kubesafe.kubectl.types import (
    CLARIFICATION_MARKER,
    TOOL_PREFIX,
    EnvironmentClass,
    EnvironmentContext,
    RiskLevel,
    TranslationRequest,
    TranslationResult,
)
from kubesafe.kubectl.risk import RiskCatalog, classify
from kubesafe.kubectl.context import EnvironmentResolver, discover_kubeconfig, resolve_context

__all__ = [
    "CLARIFICATION_MARKER",
    "TOOL_PREFIX",
    "EnvironmentClass",
    "EnvironmentContext",
    "RiskLevel",
    "TranslationRequest",
    "TranslationResult",
    "RiskCatalog",
    "classify",
    "EnvironmentResolver",
    "discover_kubeconfig",
    "resolve_context",
]
