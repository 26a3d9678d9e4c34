"""Risk classification for kubectl commands."""

import re
import shlex
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from kubesafe.kubectl.types import EnvironmentClass, RiskLevel

DEFAULT_HIGH_VERBS = ("delete", "drain", "replace --force")
DEFAULT_MEDIUM_VERBS = (
    "apply", "create", "patch", "edit", "scale", "rollout", "restart",
    "label", "annotate", "cordon", "uncordon", "taint", "set", "replace",
    "expose", "autoscale", "cp", "exec",
)

# Scaling to zero replicas is a semantic delete
SCALE_TO_ZERO = re.compile(r"\bscale\b.*--replicas(?:=|\s+)0+(?![\d])")


def _verb_pattern(verb: str) -> re.Pattern:
    words = [re.escape(w) for w in verb.lower().split()]
    return re.compile(r"(?<![\w-])" + r"\s+(?:\S+\s+)*?".join(words) + r"(?![\w])")


@dataclass(frozen=True)
class RiskCatalog:
    """Verb lists that drive classification, compiled once."""
    high_verbs: tuple[str, ...] = DEFAULT_HIGH_VERBS
    medium_verbs: tuple[str, ...] = DEFAULT_MEDIUM_VERBS

    @classmethod
    def from_lists(cls, high: Iterable[str], medium: Iterable[str]) -> "RiskCatalog":
        return cls(
            high_verbs=tuple(v.strip() for v in high if v.strip()),
            medium_verbs=tuple(v.strip() for v in medium if v.strip()),
        )

    @property
    def high_patterns(self) -> tuple[re.Pattern, ...]:
        return _compile(self.high_verbs)

    @property
    def medium_patterns(self) -> tuple[re.Pattern, ...]:
        return _compile(self.medium_verbs)


@lru_cache(maxsize=32)
def _compile(verbs: tuple[str, ...]) -> tuple[re.Pattern, ...]:
    return tuple(_verb_pattern(v) for v in verbs)


DEFAULT_CATALOG = RiskCatalog()


def canonical_command(command: str) -> str:
    """Rejoin the argv kubectl would receive, so quoting cannot hide a verb."""
    try:
        return " ".join(shlex.split(command))
    except ValueError:
        return command


def classify(
    command: str,
    environment: EnvironmentClass = EnvironmentClass.UNKNOWN,
    catalog: RiskCatalog | None = None,
) -> RiskLevel:
    """
    Classify a command by risk level.

    First match wins: destructive verb or scale-to-zero is HIGH, any
    mutating verb is MEDIUM, everything else is LOW. The whole argv is
    searched once shell quoting is resolved, so ``del"ete"`` reads as
    delete and a compound command lands on the highest risk it contains.
    The environment does not change the level; it only affects how the
    level is confirmed.
    """
    catalog = catalog or DEFAULT_CATALOG
    text = canonical_command(command).lower()

    if SCALE_TO_ZERO.search(text):
        return RiskLevel.HIGH
    if any(p.search(text) for p in catalog.high_patterns):
        return RiskLevel.HIGH
    if any(p.search(text) for p in catalog.medium_patterns):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
