"""Risk-proportionate confirmation."""

from kubesafe.confirm.types import (
    PASTE_PREFIX,
    Choice,
    ConfirmationModality,
    ConfirmationSpec,
    Decision,
    EngineState,
    Outcome,
    PendingCommand,
)
from kubesafe.confirm.engine import (
    ConfirmationEngine,
    confirmation_for,
    expected_phrase,
    extract_resource_name,
)

__all__ = [
    "PASTE_PREFIX",
    "Choice",
    "ConfirmationModality",
    "ConfirmationSpec",
    "Decision",
    "EngineState",
    "Outcome",
    "PendingCommand",
    "ConfirmationEngine",
    "confirmation_for",
    "expected_phrase",
    "extract_resource_name",
]
