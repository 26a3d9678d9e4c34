"""Type definitions for kubectl context, translation and risk."""

from dataclasses import dataclass, field
from enum import Enum

TOOL_PREFIX = "kubectl "
CLARIFICATION_MARKER = "NEEDS_CLARIFICATION"


class EnvironmentClass(str, Enum):
    """Deployment tier derived from a context name."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    UNKNOWN = "unknown"

    @classmethod
    def from_context_name(cls, name: str) -> "EnvironmentClass":
        """Classify by case-insensitive substring; most dangerous tier wins."""
        lowered = name.lower()
        if "prod" in lowered:
            return cls.PRODUCTION
        if "stag" in lowered:
            return cls.STAGING
        if "dev" in lowered:
            return cls.DEVELOPMENT
        return cls.UNKNOWN

    @property
    def is_production(self) -> bool:
        return self is EnvironmentClass.PRODUCTION


class RiskLevel(str, Enum):
    """Potential for irreversible or harmful side effects."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def requires_confirmation(self) -> bool:
        return self is not RiskLevel.LOW


@dataclass(frozen=True)
class EnvironmentContext:
    """Immutable snapshot of the active kubectl context."""
    name: str
    cluster: str
    user: str = ""
    namespace: str | None = None
    environment_class: EnvironmentClass = field(init=False)

    def __post_init__(self):
        object.__setattr__(
            self, "environment_class", EnvironmentClass.from_context_name(self.name)
        )

    @property
    def effective_namespace(self) -> str:
        return self.namespace or "default"


@dataclass(frozen=True)
class TranslationRequest:
    """A natural-language request bound to the active context."""
    text: str
    context: EnvironmentContext
    max_chars: int = 500

    def __post_init__(self):
        stripped = self.text.strip()
        if not stripped:
            raise ValueError("Request is empty")
        if len(stripped) > self.max_chars:
            raise ValueError(f"Request is too long ({len(stripped)} > {self.max_chars} characters)")
        object.__setattr__(self, "text", stripped)


@dataclass(frozen=True)
class TranslationResult:
    """A validated translation: command, confidence (0-100) and rationale."""
    command: str
    confidence: int
    rationale: str = ""

    def is_low_confidence(self, threshold: int) -> bool:
        return self.confidence < threshold

    @property
    def needs_clarification(self) -> bool:
        return CLARIFICATION_MARKER in self.rationale
