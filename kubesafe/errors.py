"""Error taxonomy for the translation-to-execution pipeline."""


class KubesafeError(Exception):
    """Base class for all kubesafe errors."""


class ConfigurationError(KubesafeError):
    """
    No usable kubectl context could be resolved.

    Fatal to starting a shell session. Carries a remediation hint that is
    shown to the operator instead of the underlying parser error.
    """

    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n{self.hint}"
        return self.message


class TranslationError(KubesafeError):
    """Base class for translation failures."""


class TranslationUnavailable(TranslationError):
    """Every translation backend timed out, was unreachable, or failed."""


class TranslationMalformed(TranslationError):
    """The backend answered, but the answer failed validation."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


class ExecutionError(KubesafeError):
    """The command was rejected before running or the process could not be spawned."""


class AuditError(KubesafeError):
    """An audit record could not be written or read."""


class ConfirmationMismatch(KubesafeError):
    """A typed confirmation phrase did not match the expected phrase."""

    def __init__(self, expected: str, typed: str):
        super().__init__(f"Confirmation phrase mismatch: expected {expected!r}")
        self.expected = expected
        self.typed = typed
