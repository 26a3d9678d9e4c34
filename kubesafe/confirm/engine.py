"""Confirmation state machine: pick a modality and handle dialog keys."""

import shlex

from filelock import Timeout
from loguru import logger

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
from kubesafe.errors import ConfirmationMismatch
from kubesafe.exec.approvals import Allowlist
from kubesafe.kubectl.types import EnvironmentClass, RiskLevel

# Verbs whose target is the resource the operator must name
_TARGET_VERBS = ("delete", "drain", "scale", "replace")
# Verbs that take a node name directly rather than TYPE NAME
_NODE_VERBS = ("drain", "cordon", "uncordon")
# Flags that consume the following token
_VALUE_FLAGS = {
    "-n", "--namespace", "-o", "--output", "--context", "--cluster", "--kubeconfig",
    "--user", "--grace-period", "--timeout", "-c", "--container", "--replicas",
    "--current-replicas", "--cascade", "--resource-version", "--pod-selector",
}
# Flags that address many resources at once
_MULTI_FLAGS = {
    "--all", "-A", "--all-namespaces", "-l", "--selector", "--field-selector",
    "-f", "--filename", "-k", "--kustomize",
}

_CHOICE_ORDER = (Choice.NO, Choice.YES, Choice.ALWAYS)


def _tokens(command: str) -> list[str]:
    try:
        return shlex.split(command)
    except ValueError:
        return command.split()


def _flag_name(token: str) -> str:
    return token.split("=", 1)[0]


def extract_resource_name(command: str) -> str | None:
    """
    Find the single resource a destructive command targets.

    ``delete deployment nginx`` => nginx, ``delete pod/web-1`` => web-1,
    ``drain node-01`` => node-01, ``scale deploy api --replicas=0`` => api.
    None when no verb is found, or the command names zero or several
    resources (selectors, ``--all``, ``all``, file input).
    """
    tokens = _tokens(command)
    verb_index = next((i for i, t in enumerate(tokens) if t in _TARGET_VERBS), None)
    if verb_index is None:
        return None
    verb = tokens[verb_index]

    positionals: list[str] = []
    skip_next = False
    for token in tokens[verb_index + 1:]:
        if skip_next:
            skip_next = False
            continue
        if token.startswith("-"):
            name = _flag_name(token)
            if name in _MULTI_FLAGS:
                return None
            if name in _VALUE_FLAGS and "=" not in token:
                skip_next = True
            continue
        positionals.append(token)

    if any(p == "all" or p.startswith("all/") or "," in p for p in positionals):
        return None

    if verb in _NODE_VERBS:
        return positionals[0] if len(positionals) == 1 else None

    if len(positionals) == 1 and "/" in positionals[0]:
        name = positionals[0].split("/", 1)[1]
        return name or None
    if len(positionals) == 2 and "/" not in positionals[0] and "/" not in positionals[1]:
        return positionals[1]
    return None


def expected_phrase(command: str, environment_class: EnvironmentClass) -> str:
    """Phrase the operator must type: the target resource, else the environment word."""
    return extract_resource_name(command) or environment_class.value


def confirmation_for(
    risk_level: RiskLevel,
    environment_class: EnvironmentClass,
    command: str,
) -> ConfirmationSpec:
    """
    Derive the confirmation modality.

    High in production needs the typed phrase, high elsewhere and medium
    anywhere need yes/no, low needs nothing.
    """
    if not risk_level.requires_confirmation:
        return ConfirmationSpec(ConfirmationModality.NONE)
    if risk_level is RiskLevel.HIGH and environment_class.is_production:
        return ConfirmationSpec(
            ConfirmationModality.TYPED_PHRASE,
            expected_phrase=expected_phrase(command, environment_class),
        )
    return ConfirmationSpec(ConfirmationModality.YES_NO)


class ConfirmationEngine:
    """
    Per-session confirmation state machine.

    NORMAL -> TRANSLATING -> (DONE | MODAL_ACTIVE -> DONE) -> EXECUTING -> NORMAL.
    Direct entry and edited commands are proposed straight from NORMAL. While
    the modal is active only the dialog's own keys have any effect.
    """

    def __init__(self, allowlist: Allowlist | None = None):
        self.allowlist = allowlist
        self.state = EngineState.NORMAL
        self.pending: PendingCommand | None = None
        self.spec: ConfirmationSpec | None = None
        self.outcome: Outcome | None = None
        self.selected = Choice.NO
        self.typed = ""

    def _reset(self) -> None:
        self.state = EngineState.NORMAL
        self.pending = None
        self.spec = None
        self.outcome = None
        self.selected = Choice.NO
        self.typed = ""

    # ── Translation ────────────────────────────────────────────────

    def begin_translation(self) -> bool:
        """Enter TRANSLATING. Refused while anything else is outstanding."""
        if self.state is not EngineState.NORMAL:
            return False
        self.state = EngineState.TRANSLATING
        return True

    def translation_failed(self) -> None:
        if self.state is EngineState.TRANSLATING:
            self._reset()

    def abort(self) -> None:
        """Interrupt during translation: back to NORMAL, nothing proposed."""
        if self.state is EngineState.TRANSLATING:
            self._reset()

    # ── Proposal ───────────────────────────────────────────────────

    def propose(self, pending: PendingCommand, environment_class: EnvironmentClass) -> Outcome | None:
        """
        Offer a command for confirmation.

        Returns:
            An EXECUTE outcome when no confirmation is needed (low risk or
            allowlisted), otherwise None with the modal now active.
        """
        if self.state not in (EngineState.NORMAL, EngineState.TRANSLATING):
            raise RuntimeError(f"Cannot propose a command while {self.state.value}")

        self.pending = pending
        self.spec = confirmation_for(pending.risk_level, environment_class, pending.command)

        if self.spec.modality is ConfirmationModality.NONE:
            return self._conclude(Outcome(Decision.EXECUTE, pending))

        if self.allowlist is not None and self.allowlist.is_allowed(pending.command):
            logger.info(f"Allowlisted, skipping confirmation: {pending.command}")
            return self._conclude(Outcome(Decision.EXECUTE, pending, via_allowlist=True))

        self.state = EngineState.MODAL_ACTIVE
        self.selected = Choice.NO
        self.typed = ""
        return None

    def _conclude(self, outcome: Outcome) -> Outcome:
        self.outcome = outcome
        self.state = EngineState.DONE
        return outcome

    # ── Modal keys ─────────────────────────────────────────────────

    def handle_key(self, key: str) -> Outcome | None:
        """
        Feed one normalised key to the active modal.

        Returns the outcome when the key concludes the dialog, else None.
        Keys outside the dialog's vocabulary are ignored. A paste only ever
        adds text to a typed phrase; it never picks a yes/no choice.
        """
        if self.state is not EngineState.MODAL_ACTIVE or self.spec is None:
            return None
        if self.spec.modality is ConfirmationModality.TYPED_PHRASE:
            return self._handle_typed_key(key)
        return self._handle_yes_no_key(key)

    def _handle_yes_no_key(self, key: str) -> Outcome | None:
        if key in ("y", "Y"):
            return self._allow()
        if key in ("a", "A"):
            return self._allow(always=True)
        if key in ("n", "N", "escape", "ctrl-c"):
            return self._deny()
        if key in ("e", "E"):
            return self._edit()
        if key in ("tab", "right"):
            self._cycle(1)
        elif key == "left":
            self._cycle(-1)
        elif key == "enter":
            if self.selected is Choice.YES:
                return self._allow()
            if self.selected is Choice.ALWAYS:
                return self._allow(always=True)
            return self._deny()
        return None

    def _handle_typed_key(self, key: str) -> Outcome | None:
        if key in ("escape", "ctrl-c"):
            return self._deny()
        if key == "ctrl-e":
            return self._edit()
        if key == "enter":
            expected = self.spec.expected_phrase or ""
            if self.typed == expected:
                return self._allow()
            mismatch = ConfirmationMismatch(expected, self.typed)
            logger.info(f"Typed confirmation mismatch for {self.pending.command!r}")
            return self._deny(mismatch=mismatch)
        if key == "backspace":
            self.typed = self.typed[:-1]
        elif key == "ctrl-u":
            self.typed = ""
        elif key.startswith(PASTE_PREFIX):
            self.typed += key[len(PASTE_PREFIX):]
        elif len(key) == 1 and key.isprintable():
            self.typed += key
        return None

    def _cycle(self, step: int) -> None:
        index = _CHOICE_ORDER.index(self.selected)
        self.selected = _CHOICE_ORDER[(index + step) % len(_CHOICE_ORDER)]

    def _allow(self, always: bool = False) -> Outcome:
        notice = None
        if always and self.allowlist is not None:
            try:
                self.allowlist.add(self.pending.command)
            except (OSError, Timeout) as e:
                logger.warning(f"Could not persist allowlist entry: {e}")
                notice = f"Allowlist not updated ({e}); running this once."
        return self._conclude(Outcome(Decision.EXECUTE, self.pending, allow_always=always, notice=notice))

    def _deny(self, mismatch: ConfirmationMismatch | None = None) -> Outcome:
        return self._conclude(Outcome(Decision.CANCEL, self.pending, mismatch=mismatch))

    def _edit(self) -> Outcome:
        return self._conclude(Outcome(Decision.EDIT, self.pending))

    # ── Execution ──────────────────────────────────────────────────

    def start_execution(self) -> None:
        if self.state is not EngineState.DONE or self.outcome is None or self.outcome.decision is not Decision.EXECUTE:
            raise RuntimeError("Only an approved command can start executing")
        self.state = EngineState.EXECUTING

    def finish(self) -> None:
        """Return to NORMAL after a concluded or executed command."""
        if self.state in (EngineState.DONE, EngineState.EXECUTING):
            self._reset()
