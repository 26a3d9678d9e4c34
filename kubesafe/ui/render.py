"""Rich renderables for the interactive shell."""

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.rule import Rule
from rich.text import Text

from kubesafe import __logo__
from kubesafe.confirm import Choice, ConfirmationModality, EngineState
from kubesafe.kubectl.types import EnvironmentClass, RiskLevel
from kubesafe.session import ShellSession, TranscriptLine

ENV_STYLES = {
    EnvironmentClass.PRODUCTION: "bold white on red",
    EnvironmentClass.STAGING: "bold black on yellow",
    EnvironmentClass.DEVELOPMENT: "bold black on green",
    EnvironmentClass.UNKNOWN: "bold black on yellow",
}

RISK_STYLES = {
    RiskLevel.LOW: "green",
    RiskLevel.MEDIUM: "yellow",
    RiskLevel.HIGH: "bold red",
}

LINE_STYLES = {
    "input": "bold cyan",
    "proposal": "bold",
    "rationale": "dim italic",
    "stdout": "",
    "stderr": "red",
    "info": "dim",
    "success": "green",
    "warning": "yellow",
    "error": "bold red",
    "history": "",
}

LINE_PREFIXES = {"input": "❯ ", "proposal": "→ "}


def render_header(session: ShellSession) -> Text:
    ctx = session.context
    header = Text()
    header.append(f" {__logo__} kubesafe ", style="bold cyan")
    header.append(f" {ctx.environment_class.value.upper()} ", style=ENV_STYLES[ctx.environment_class])
    header.append(f"  context: {ctx.name}  cluster: {ctx.cluster}  namespace: {ctx.effective_namespace}")
    return header


def render_line(line: TranscriptLine) -> Text:
    text = Text(
        LINE_PREFIXES.get(line.kind, "") + line.text,
        style=LINE_STYLES.get(line.kind, ""),
        no_wrap=True,
        overflow="ellipsis",
    )
    return text


def _yes_no_choices(selected: Choice) -> Text:
    choices = Text()
    for choice in (Choice.NO, Choice.YES, Choice.ALWAYS):
        if choice is selected:
            choices.append(f" [ {choice.value} ] ", style="reverse bold")
        else:
            choices.append(f"   {choice.value}   ")
    return choices


def render_modal(session: ShellSession) -> Panel | None:
    engine = session.engine
    if engine.state is not EngineState.MODAL_ACTIVE or engine.pending is None:
        return None

    pending = engine.pending
    ctx = session.context
    risk_style = RISK_STYLES[pending.risk_level]
    lines: list[Text] = [Text(pending.command, style="bold")]
    if pending.rationale:
        lines.append(Text(pending.rationale, style="dim italic"))
    lines.append(Text(f"Context: {ctx.name} ({ctx.environment_class.value})", style="dim"))
    lines.append(Text())

    if engine.spec.modality is ConfirmationModality.TYPED_PHRASE:
        expected = engine.spec.expected_phrase or ""
        lines.append(Text.assemble("Type ", (expected, "bold"), " to confirm:"))
        typed_style = "bold red" if engine.typed and not expected.startswith(engine.typed) else "bold white"
        lines.append(Text.assemble(("> ", "dim"), (engine.typed, typed_style), ("▏", "blink")))
        lines.append(Text("Enter: confirm · Ctrl-E: edit · Esc: cancel", style="dim"))
        title = f"{pending.risk_level.value} risk in PRODUCTION"
    else:
        lines.append(_yes_no_choices(engine.selected))
        lines.append(Text("y: yes · a: always · n/Esc: no · e: edit · Tab/←/→: move · Enter: select", style="dim"))
        title = f"Confirm {pending.risk_level.value} risk command"

    return Panel(Group(*lines), title=title, border_style=risk_style, expand=True)


def render_input(session: ShellSession) -> Text:
    editor = session.editor
    dimmed = session.state is EngineState.MODAL_ACTIVE
    prompt_style = "dim" if dimmed else "bold cyan"
    line = Text("edit ❯ " if session.is_editing else "❯ ", style=prompt_style)
    before = editor.text[:editor.cursor]
    at = editor.text[editor.cursor:editor.cursor + 1] or " "
    after = editor.text[editor.cursor + 1:]
    line.append(before, style="dim" if dimmed else "")
    line.append(at, style="dim" if dimmed else "reverse")
    line.append(after, style="dim" if dimmed else "")
    return line


def render_status(session: ShellSession) -> Text:
    status = Text()
    label = session.status_label
    if label:
        status.append(f"{session.spinner} {label}", style="cyan")
    if session.notice:
        if label:
            status.append("  ")
        status.append(session.notice, style="yellow")
    return status


def render_screen(session: ShellSession, height: int) -> RenderableType:
    """Compose the full screen for a terminal ``height`` rows tall."""
    modal = render_modal(session)
    banner = (
        Panel(Text(session.banner, style="bold yellow"), border_style="yellow")
        if session.banner else None
    )

    reserved = 5  # header, rule, rule, status, input
    if modal is not None:
        reserved += len(modal.renderable.renderables) + 2
    if banner is not None:
        reserved += 3
    room = max(0, height - reserved)

    visible = list(session.transcript)[-room:] if room else []
    body = [render_line(line) for line in visible]
    body.extend(Text() for _ in range(room - len(visible)))

    parts: list[RenderableType] = [render_header(session), Rule(style="dim"), *body]
    if banner is not None:
        parts.append(banner)
    if modal is not None:
        parts.append(modal)
    parts.extend([Rule(style="dim"), render_status(session), render_input(session)])
    return Group(*parts)
