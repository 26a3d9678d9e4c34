"""Interactive pipeline controller.

Owns the single outstanding translation or execution task, the allowlist
and the audit log, and turns normalised key events into state transitions.
It performs no terminal I/O; the UI layer renders its state.
"""

import asyncio
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Literal

from loguru import logger

from kubesafe import __logo__, __version__
from kubesafe.audit import AuditLog, AuditLogEntry, UserAction, parse_history_filter
from kubesafe.config.schema import Config
from kubesafe.confirm import (
    PASTE_PREFIX,
    ConfirmationEngine,
    Decision,
    EngineState,
    Outcome,
    PendingCommand,
)
from kubesafe.errors import (
    AuditError,
    ConfigurationError,
    ExecutionError,
    TranslationMalformed,
    TranslationUnavailable,
)
from kubesafe.exec import Allowlist, ExecutionResult, execute_command, explain_failure, resolve_executable
from kubesafe.kubectl import (
    TOOL_PREFIX,
    EnvironmentContext,
    EnvironmentResolver,
    RiskCatalog,
    TranslationRequest,
    classify,
)
from kubesafe.session.editor import LineEditor
from kubesafe.translate import Translator

TranscriptKind = Literal[
    "input", "proposal", "rationale", "stdout", "stderr",
    "info", "success", "warning", "error", "history",
]

MAX_TRANSCRIPT_LINES = 2000
SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"

HELP_LINES = (
    "Type a request in plain English, or a kubectl command to run it directly.",
    "  /history [today|N|<context>|production]  recent audit entries",
    "  /context [name]                          show or switch the kubectl context",
    "  /allowlist [remove <command>]            show or edit always-allowed commands",
    "  /clear                                   clear the screen",
    "  /help                                    this help",
    "  /quit                                    leave (also Ctrl-D, or Ctrl-C on an empty line)",
    "While a request runs, Esc or Ctrl-C interrupts it.",
)

ExecutorFn = Callable[..., Awaitable[ExecutionResult]]


@dataclass(frozen=True)
class TranscriptLine:
    kind: TranscriptKind
    text: str


def _is_direct(text: str) -> bool:
    return text == TOOL_PREFIX.strip() or text.startswith(TOOL_PREFIX)


def _history_line(entry: AuditLogEntry) -> str:
    when = entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
    exit_code = "-" if entry.exit_code is None else str(entry.exit_code)
    return (
        f"#{entry.id} {when} {entry.environment_name} "
        f"{entry.user_action.value:<9} exit={exit_code:<3} {entry.final_command}"
    )


class ShellSession:
    """State of one interactive shell."""

    def __init__(
        self,
        config: Config,
        resolver: EnvironmentResolver,
        translator: Translator,
        audit: AuditLog,
        allowlist: Allowlist,
        executor: ExecutorFn = execute_command,
    ):
        self.config = config
        self.resolver = resolver
        self.context: EnvironmentContext = resolver.resolve()
        self.translator = translator
        self.audit = audit
        self.allowlist = allowlist
        self.executor = executor
        self.catalog = RiskCatalog.from_lists(config.risk.high_verbs, config.risk.medium_verbs)

        self.engine = ConfirmationEngine(allowlist)
        self.editor = LineEditor()
        self.transcript: deque[TranscriptLine] = deque(maxlen=MAX_TRANSCRIPT_LINES)
        self.notice: str | None = None
        self.banner: str | None = None
        self.should_exit = False
        self.spinner_index = 0

        self._translation_task: asyncio.Future | None = None
        self._translation_input = ""
        self._execution_task: asyncio.Future | None = None
        self._executing: PendingCommand | None = None
        self._interrupt: asyncio.Event | None = None
        self._edit_origin: PendingCommand | None = None

        self._greet()

    @classmethod
    def from_config(
        cls,
        config: Config,
        context_override: str | None = None,
        kubeconfig: str | Path | None = None,
    ) -> "ShellSession":
        """
        Wire up a session from configuration.

        Raises:
            ConfigurationError: No usable kubectl context.
            AuditError: The audit database cannot be opened.
        """
        resolver = EnvironmentResolver(
            kubeconfig or config.kube.kubeconfig,
            context_override or config.kube.context,
        )
        resolver.resolve()

        allowlist = Allowlist(config.allowlist_path)
        allowlist.load()
        audit = AuditLog.from_config(config)
        return cls(config, resolver, Translator.from_config(config.translation), audit, allowlist)

    # ── State for rendering ────────────────────────────────────────

    @property
    def state(self) -> EngineState:
        return self.engine.state

    @property
    def busy(self) -> bool:
        return self.state in (EngineState.TRANSLATING, EngineState.EXECUTING)

    @property
    def is_editing(self) -> bool:
        return self._edit_origin is not None

    @property
    def status_label(self) -> str | None:
        if self.state is EngineState.TRANSLATING:
            return "Translating..."
        if self.state is EngineState.EXECUTING and self._executing is not None:
            return f"Running {self._executing.command}"
        return None

    @property
    def spinner(self) -> str:
        return SPINNER_FRAMES[self.spinner_index % len(SPINNER_FRAMES)]

    def tick(self) -> None:
        """Advance the spinner while busy."""
        if self.busy:
            self.spinner_index += 1

    def _say(self, kind: TranscriptKind, text: str) -> None:
        for line in text.splitlines() or [""]:
            self.transcript.append(TranscriptLine(kind, line))

    def _greet(self) -> None:
        self._say("info", f"{__logo__} kubesafe v{__version__}. Type /help for commands.")
        self._describe_context()
        if resolve_executable(self.config.kube.binary) is None:
            self._say("warning", f"'{self.config.kube.binary}' was not found on PATH; commands will fail to start.")

    def _describe_context(self) -> None:
        ctx = self.context
        self._say(
            "info",
            f"Context {ctx.name} (cluster {ctx.cluster}, namespace {ctx.effective_namespace}, "
            f"{ctx.environment_class.value})",
        )
        if ctx.environment_class.is_production:
            self._say("warning", "PRODUCTION context: destructive commands require typing the resource name.")

    # ── Keys ───────────────────────────────────────────────────────

    def handle_key(self, key: str) -> None:
        """Dispatch one normalised key according to the current state."""
        state = self.state

        if state is EngineState.MODAL_ACTIVE:
            outcome = self.engine.handle_key(key)
            if outcome is not None:
                self._resolve(outcome)
            return

        if state is EngineState.EXECUTING:
            if key in ("ctrl-c", "escape"):
                self.interrupt()
            return

        if state is EngineState.TRANSLATING:
            if key in ("ctrl-c", "escape"):
                self.cancel_translation()
            elif key == "enter":
                self.notice = "Still processing the previous request..."
            else:
                self._edit_key(key)
            return

        if key == "enter":
            line = self.editor.text
            self.editor.clear()
            self.submit(line)
        elif key == "ctrl-c":
            if self._edit_origin is not None:
                self._cancel_edit()
            elif self.editor.text:
                self.editor.clear()
            else:
                self.should_exit = True
        elif key == "ctrl-d":
            if not self.editor.text:
                self.should_exit = True
        elif key == "escape":
            if self._edit_origin is not None:
                self._cancel_edit()
            else:
                self.notice = None
        else:
            self._edit_key(key)

    def _edit_key(self, key: str) -> None:
        editor = self.editor
        if key == "backspace":
            editor.backspace()
        elif key == "delete":
            editor.delete()
        elif key == "left":
            editor.left()
        elif key == "right":
            editor.right()
        elif key == "home":
            editor.home()
        elif key == "end":
            editor.end()
        elif key == "up":
            editor.previous()
        elif key == "down":
            editor.next()
        elif key == "ctrl-u":
            editor.clear()
        elif key.startswith(PASTE_PREFIX):
            editor.insert(key[len(PASTE_PREFIX):])
        elif len(key) == 1 and key.isprintable():
            editor.insert(key)

    # ── Submission ─────────────────────────────────────────────────

    def submit(self, line: str) -> None:
        """Handle a completed input line."""
        text = line.strip()
        if not text:
            return

        self.editor.remember(text)
        self.notice = None

        if text.startswith("/"):
            self._run_slash(text)
            return

        self.banner = None
        self._say("input", text)

        if self._edit_origin is not None:
            self._submit_edit(text)
        elif _is_direct(text):
            self._propose(
                PendingCommand(
                    command=text,
                    risk_level=self._classify(text),
                    natural_language_input=text,
                )
            )
        else:
            self._start_translation(text)

    def _classify(self, command: str):
        return classify(command, self.context.environment_class, self.catalog)

    def _submit_edit(self, text: str) -> None:
        origin = self._edit_origin
        if not _is_direct(text):
            self.notice = f"An edited command must start with '{TOOL_PREFIX.strip()}'. Esc cancels the edit."
            self.editor.set(text)
            return

        self._edit_origin = None
        proposal = origin.original_command or origin.command
        self._propose(
            PendingCommand(
                command=text,
                risk_level=self._classify(text),
                natural_language_input=origin.natural_language_input,
                confidence=origin.confidence,
                rationale=origin.rationale,
                original_command=None if text == proposal else proposal,
            )
        )

    def _start_translation(self, text: str) -> None:
        try:
            request = TranslationRequest(
                text, self.context, max_chars=self.config.translation.max_input_chars
            )
        except ValueError as e:
            self.notice = str(e)
            return

        if not self.engine.begin_translation():
            self.notice = "Still processing the previous request..."
            return

        self._translation_input = request.text
        self._translation_task = asyncio.ensure_future(self.translator.translate(request))

    def cancel_translation(self) -> None:
        if self._translation_task is not None:
            self._translation_task.cancel()
            self._translation_task = None
        self.engine.abort()
        self._say("warning", "Translation cancelled.")

    def _propose(self, pending: PendingCommand) -> None:
        self._say("proposal", f"{pending.command}  [{pending.risk_level.value}]")
        if pending.rationale:
            self._say("rationale", pending.rationale)
        outcome = self.engine.propose(pending, self.context.environment_class)
        if outcome is not None:
            self._resolve(outcome)

    def _resolve(self, outcome: Outcome) -> None:
        if outcome.notice:
            self.notice = outcome.notice
        pending = outcome.pending

        if outcome.decision is Decision.EXECUTE:
            if outcome.via_allowlist:
                self._say("info", "Allowlisted: running without confirmation.")
            elif outcome.allow_always and outcome.notice is None:
                self._say("info", "Added to allowlist.")
            self._start_execution(pending)
        elif outcome.decision is Decision.CANCEL:
            if outcome.mismatch is not None:
                self._say(
                    "warning",
                    f"'{outcome.mismatch.typed}' does not match '{outcome.mismatch.expected}'. Cancelled.",
                )
            else:
                self._say("warning", "Cancelled.")
            self._record(pending, UserAction.CANCELLED)
            self.engine.finish()
        else:
            self._edit_origin = pending
            self.editor.set(pending.command)
            self.engine.finish()
            self.notice = "Edit the command and press Enter. Esc cancels."

    def _cancel_edit(self) -> None:
        origin, self._edit_origin = self._edit_origin, None
        self.editor.clear()
        self._say("warning", "Edit cancelled.")
        self._record(origin, UserAction.CANCELLED)

    # ── Execution ──────────────────────────────────────────────────

    def _start_execution(self, pending: PendingCommand) -> None:
        self.engine.start_execution()
        self._executing = pending
        self._interrupt = asyncio.Event()
        self._execution_task = asyncio.ensure_future(
            self.executor(
                pending.command,
                self.config.exec,
                binary=self.config.kube.binary,
                interrupt=self._interrupt,
            )
        )

    def interrupt(self) -> None:
        if self._interrupt is not None and not self._interrupt.is_set():
            self._interrupt.set()
            self.notice = "Interrupting..."

    # ── Task polling ───────────────────────────────────────────────

    def poll(self) -> None:
        """Collect finished translation or execution tasks."""
        if self._translation_task is not None and self._translation_task.done():
            task, self._translation_task = self._translation_task, None
            self._on_translation_done(task)
        if self._execution_task is not None and self._execution_task.done():
            task, self._execution_task = self._execution_task, None
            self._on_execution_done(task)

    async def wait_idle(self) -> None:
        """Await outstanding tasks and poll until none remain."""
        while True:
            tasks = [t for t in (self._translation_task, self._execution_task) if t is not None]
            if not tasks:
                return
            await asyncio.wait(tasks)
            self.poll()

    def _on_translation_done(self, task: asyncio.Future) -> None:
        if task.cancelled():
            self.engine.abort()
            return

        try:
            result = task.result()
        except TranslationUnavailable as e:
            self.engine.translation_failed()
            logger.warning(f"{e}")
            self._say("error", "No translation backend answered in time.")
            self.notice = "Type the kubectl command yourself and press Enter."
            self.editor.set(TOOL_PREFIX)
            return
        except TranslationMalformed as e:
            self.engine.translation_failed()
            logger.warning(f"Malformed translation: {e}")
            self._say("error", f"Could not use the translation: {e}")
            if e.raw:
                self._say("rationale", e.raw)
            self.notice = "Rephrase the request or type the kubectl command directly."
            return
        except Exception as e:
            self.engine.translation_failed()
            logger.exception(f"Translation failed: {e}")
            self._say("error", f"Translation failed: {e}")
            return

        pending = PendingCommand(
            command=result.command,
            risk_level=self._classify(result.command),
            natural_language_input=self._translation_input,
            confidence=result.confidence,
            rationale=result.rationale,
        )
        if result.needs_clarification or result.is_low_confidence(
            self.config.translation.confidence_threshold
        ):
            self.banner = (
                f"Low confidence ({result.confidence}%). Check the command before running it."
            )
        self._propose(pending)

    def _on_execution_done(self, task: asyncio.Future) -> None:
        pending, self._executing = self._executing, None
        self._interrupt = None
        action = UserAction.EDITED if pending.is_edit else UserAction.EXECUTED

        if task.cancelled():
            self._say("warning", "Execution cancelled.")
            self._record(pending, action, error="Execution cancelled")
            self.engine.finish()
            return

        try:
            result = task.result()
        except ExecutionError as e:
            self._say("error", str(e))
            self._offer_retry(pending)
            self._record(pending, action, error=str(e))
            self.engine.finish()
            return
        except Exception as e:
            logger.exception(f"Execution failed: {e}")
            self._say("error", f"Execution failed: {e}")
            self._record(pending, action, error=str(e))
            self.engine.finish()
            return

        self._show_result(result)
        if not result.success and not result.interrupted:
            self._explain(result)
            self._offer_retry(pending)
        self._record(pending, action, result=result)
        self.engine.finish()

    def _explain(self, result: ExecutionResult) -> None:
        hint = explain_failure(result.stderr, self.context.effective_namespace)
        if hint is None:
            return
        self._say("warning", hint.explanation)
        if hint.suggestion:
            self._say("info", f"Try: {hint.suggestion}")

    def _offer_retry(self, pending: PendingCommand) -> None:
        self.editor.set(pending.command)
        self.notice = "Fix the command and press Enter to retry."

    def _show_result(self, result: ExecutionResult) -> None:
        if result.stdout:
            self._say("stdout", result.stdout.rstrip("\n"))
        if result.stderr:
            self._say("stderr", result.stderr.rstrip("\n"))

        if result.timed_out:
            self._say("error", f"Timed out after {self.config.exec.timeout_seconds}s and was killed.")
        elif result.interrupted:
            self._say("warning", f"Interrupted (exit {result.exit_code}).")
        elif result.success:
            self._say("success", f"✓ exit 0 in {result.duration_ms} ms")
        else:
            self._say("error", f"✗ exit {result.exit_code} in {result.duration_ms} ms")

    # ── Audit ──────────────────────────────────────────────────────

    def _record(
        self,
        pending: PendingCommand,
        action: UserAction,
        result: ExecutionResult | None = None,
        error: str = "",
    ) -> None:
        entry = AuditLogEntry.for_context(
            self.context,
            natural_language_input=pending.natural_language_input,
            final_command=pending.command,
            risk_level=pending.risk_level,
            user_action=action,
            original_command=pending.original_command,
            confidence=pending.confidence,
            exit_code=result.exit_code if result else None,
            stdout=result.stdout if result else "",
            stderr=result.stderr if result else error,
            duration_ms=result.duration_ms if result else None,
        )
        try:
            self.audit.record(entry)
        except AuditError as e:
            logger.warning(f"Audit write failed: {e}")
            self.notice = f"Warning: audit entry not written ({e})"

    # ── Slash commands ─────────────────────────────────────────────

    def _run_slash(self, text: str) -> None:
        name, _, arg = text.partition(" ")
        name = name.lower()
        arg = arg.strip()

        if name in ("/quit", "/exit", "/q"):
            self.should_exit = True
        elif name == "/help":
            for line in HELP_LINES:
                self._say("info", line)
        elif name == "/clear":
            self.transcript.clear()
        elif name == "/history":
            self._show_history(arg)
        elif name == "/context":
            self._show_or_switch_context(arg)
        elif name == "/allowlist":
            self._show_or_edit_allowlist(arg)
        else:
            self.notice = f"Unknown command {name}. Type /help."

    def _show_history(self, arg: str) -> None:
        try:
            audit_filter = parse_history_filter(arg)
        except ValueError as e:
            self.notice = str(e)
            return

        try:
            entries = self.audit.query(audit_filter, limit=self.config.audit.page_size)
            total = self.audit.count(audit_filter)
        except AuditError as e:
            logger.warning(f"History query failed: {e}")
            self.notice = f"Could not read history: {e}"
            return

        label = audit_filter.describe() if audit_filter is not None else "all"
        self._say("info", f"History ({label}): showing {len(entries)} of {total}")
        for entry in entries:
            self._say("history", _history_line(entry))

    def _show_or_switch_context(self, name: str) -> None:
        if not name:
            self._describe_context()
            try:
                names = self.resolver.available_contexts()
            except ConfigurationError as e:
                self.notice = e.message
                return
            for n in names:
                marker = "*" if n == self.context.name else " "
                self._say("info", f" {marker} {n}")
            return

        if self._edit_origin is not None:
            self._cancel_edit()

        try:
            self.context = self.resolver.switch(name)
        except ConfigurationError as e:
            self._say("error", e.message)
            if e.hint:
                self._say("info", e.hint)
            return
        self._say("success", f"Switched to {name}.")
        self._describe_context()

    def _show_or_edit_allowlist(self, arg: str) -> None:
        verb, _, command = arg.partition(" ")
        if verb == "remove":
            if not command.strip():
                self.notice = "Usage: /allowlist remove <command>"
            elif self.allowlist.remove(command):
                self._say("success", f"Removed: {command.strip()}")
            else:
                self.notice = f"Not in allowlist: {command.strip()}"
            return
        if arg:
            self.notice = "Usage: /allowlist [remove <command>]"
            return

        entries = self.allowlist.entries()
        if not entries:
            self._say("info", "Allowlist is empty.")
            return
        self._say("info", f"Allowlist ({self.allowlist.path}):")
        for entry in entries:
            self._say("info", f"  {entry}")

    # ── Shutdown ───────────────────────────────────────────────────

    async def shutdown(self) -> None:
        """Stop outstanding work, audit whatever was in flight, close the log."""
        if self._translation_task is not None:
            self.cancel_translation()
        if self._execution_task is not None:
            self.interrupt()
            await self.wait_idle()
        if self.state is EngineState.MODAL_ACTIVE:
            outcome = self.engine.handle_key("escape")
            if outcome is not None:
                self._resolve(outcome)
        if self._edit_origin is not None:
            self._cancel_edit()
        self.audit.close()
