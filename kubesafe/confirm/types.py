"""Type definitions for the confirmation state machine."""

from dataclasses import dataclass
from enum import Enum

from kubesafe.errors import ConfirmationMismatch
from kubesafe.kubectl.types import RiskLevel

# Key name prefix for a bracketed paste, delivered as one event
PASTE_PREFIX = "paste:"


class ConfirmationModality(str, Enum):
    """How the operator must confirm a command."""
    NONE = "none"
    YES_NO = "yes_no"
    TYPED_PHRASE = "typed_phrase"


class EngineState(str, Enum):
    NORMAL = "normal"
    TRANSLATING = "translating"
    MODAL_ACTIVE = "modal_active"
    EXECUTING = "executing"
    DONE = "done"


class Decision(str, Enum):
    EXECUTE = "execute"
    CANCEL = "cancel"
    EDIT = "edit"


class Choice(str, Enum):
    """Highlighted button in the yes/no dialog, in Tab order."""
    NO = "No"
    YES = "Yes"
    ALWAYS = "Always"


@dataclass(frozen=True)
class ConfirmationSpec:
    modality: ConfirmationModality
    expected_phrase: str | None = None


@dataclass(frozen=True)
class PendingCommand:
    """A command awaiting a confirmation decision."""
    command: str
    risk_level: RiskLevel
    natural_language_input: str
    confidence: int | None = None  # None for direct entry
    rationale: str = ""
    original_command: str | None = None  # Set when this is an edit of a proposal

    @property
    def is_edit(self) -> bool:
        return self.original_command is not None and self.original_command != self.command


@dataclass(frozen=True)
class Outcome:
    """Terminal decision for a pending command."""
    decision: Decision
    pending: PendingCommand
    allow_always: bool = False
    via_allowlist: bool = False
    mismatch: ConfirmationMismatch | None = None
    notice: str | None = None
