"""CLI commands for kubesafe."""

import asyncio
import platform

import typer
from rich.console import Console
from rich.table import Table

from kubesafe import __logo__, __version__
from kubesafe.audit.filters import MAX_HISTORY_DAYS
from kubesafe.errors import AuditError, ConfigurationError

# The interaction loop needs add_reader support on Windows
if platform.system() == "Windows":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

app = typer.Typer(
    name="kubesafe",
    help=f"{__logo__} kubesafe - natural language kubectl with guard rails",
    no_args_is_help=True,
)

console = Console()

RISK_COLORS = {"LOW": "green", "MEDIUM": "yellow", "HIGH": "red"}
ACTION_COLORS = {"EXECUTED": "green", "EDITED": "cyan", "CANCELLED": "yellow"}


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} kubesafe v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """kubesafe - natural language kubectl with guard rails."""
    pass


def _fail_configuration(e: ConfigurationError) -> None:
    console.print(f"[red]{e.message}[/red]")
    if e.hint:
        console.print(f"[dim]{e.hint}[/dim]")
    raise typer.Exit(1)


# ============================================================================
# Interactive Shell
# ============================================================================


@app.command()
def shell(
    context: str = typer.Option(None, "--context", "-c", help="kubectl context to use instead of current-context"),
    kubeconfig: str = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig file"),
):
    """Start the interactive shell."""
    from kubesafe.config.loader import load_config
    from kubesafe.session import ShellSession
    from kubesafe.ui import InteractionLoop
    from kubesafe.utils.log import setup_logging

    config = load_config()
    setup_logging(config, interactive=True)

    try:
        session = ShellSession.from_config(config, context_override=context, kubeconfig=kubeconfig)
    except ConfigurationError as e:
        _fail_configuration(e)
    except AuditError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    asyncio.run(InteractionLoop(session, console).run())
    console.print(f"{__logo__} Bye.")


# ============================================================================
# Audit History
# ============================================================================


@app.command()
def history(
    today: bool = typer.Option(False, "--today", help="Only entries since midnight"),
    days: int = typer.Option(
        None, "--days", "-d", min=1, max=MAX_HISTORY_DAYS, help="Only entries from the last N days"
    ),
    env: str = typer.Option(None, "--env", "-e", help="Context name, or production/staging/development"),
    limit: int = typer.Option(20, "--limit", "-n", min=1, max=200, help="Entries per page"),
    page: int = typer.Option(0, "--page", "-p", min=0, help="Zero-based page number"),
):
    """Show audit history, most recent first."""
    from kubesafe.audit import AuditLog, DateRange, parse_history_filter
    from kubesafe.config.loader import load_config
    from kubesafe.utils.log import setup_logging

    selected = [flag for flag in (today, days is not None, env is not None) if flag]
    if len(selected) > 1:
        console.print("[red]Use only one of --today, --days and --env.[/red]")
        raise typer.Exit(1)

    try:
        if today:
            audit_filter = DateRange.today()
        elif days is not None:
            audit_filter = DateRange.last_days(days)
        elif env is not None:
            audit_filter = parse_history_filter(env)
        else:
            audit_filter = None
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    config = load_config()
    setup_logging(config)

    try:
        audit = AuditLog.from_config(config)
        try:
            entries = audit.query(audit_filter, limit=limit, page=page)
            total = audit.count(audit_filter)
        finally:
            audit.close()
    except AuditError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not entries:
        console.print("[yellow]No audit entries found.[/yellow]")
        return

    label = audit_filter.describe() if audit_filter is not None else "all entries"
    table = Table(title=f"Audit history ({label}), page {page + 1}, {total} total")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Time")
    table.add_column("Context", style="cyan")
    table.add_column("Risk")
    table.add_column("Action")
    table.add_column("Exit", justify="right")
    table.add_column("Command")

    for entry in entries:
        risk = entry.risk_level.value
        action = entry.user_action.value
        command = entry.final_command
        if entry.original_command:
            command += f"\n[dim](proposed: {entry.original_command})[/dim]"
        table.add_row(
            str(entry.id),
            entry.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
            entry.environment_name,
            f"[{RISK_COLORS[risk]}]{risk}[/{RISK_COLORS[risk]}]",
            f"[{ACTION_COLORS[action]}]{action}[/{ACTION_COLORS[action]}]",
            "-" if entry.exit_code is None else str(entry.exit_code),
            command,
        )

    console.print(table)


# ============================================================================
# Allowlist
# ============================================================================


allowlist_app = typer.Typer(help="Manage always-allowed commands")
app.add_typer(allowlist_app, name="allowlist")


def _load_allowlist():
    from kubesafe.config.loader import load_config
    from kubesafe.exec import Allowlist

    return Allowlist(load_config().allowlist_path)


@allowlist_app.command("list")
def allowlist_list():
    """List allowlisted commands."""
    allowlist = _load_allowlist()
    entries = allowlist.entries()

    if not entries:
        console.print("[yellow]Allowlist is empty.[/yellow]")
        console.print(f"[dim]File: {allowlist.path}[/dim]")
        return

    table = Table(title="Allowlisted Commands")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Command", style="cyan")
    for i, entry in enumerate(entries, 1):
        table.add_row(str(i), entry)

    console.print(table)
    console.print(f"[dim]File: {allowlist.path}[/dim]")


@allowlist_app.command("add")
def allowlist_add(
    command: str = typer.Argument(help="Exact command, e.g. 'kubectl rollout restart deployment api'"),
):
    """Allow a command to run without confirmation."""
    from kubesafe.kubectl.types import TOOL_PREFIX

    command = command.strip()
    if not command.startswith(TOOL_PREFIX):
        console.print(f"[red]Only '{TOOL_PREFIX.strip()}' commands can be allowlisted.[/red]")
        raise typer.Exit(1)

    try:
        added = _load_allowlist().add(command)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if added:
        console.print(f"[green]✓[/green] Allowlisted: [cyan]{command}[/cyan]")
    else:
        console.print(f"[dim]Already allowlisted: {command}[/dim]")


@allowlist_app.command("remove")
def allowlist_remove(
    command: str = typer.Argument(help="Exact command to remove"),
):
    """Remove a command from the allowlist."""
    if _load_allowlist().remove(command):
        console.print(f"[green]✓[/green] Removed: [cyan]{command.strip()}[/cyan]")
    else:
        console.print(f"[red]Not in allowlist: {command.strip()}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Context & Status
# ============================================================================


@app.command()
def context(
    kubeconfig: str = typer.Option(None, "--kubeconfig", help="Path to the kubeconfig file"),
):
    """Show the active kubectl context and how it is classified."""
    from kubesafe.config.loader import load_config
    from kubesafe.kubectl import EnvironmentResolver

    config = load_config()
    resolver = EnvironmentResolver(kubeconfig or config.kube.kubeconfig, config.kube.context)

    try:
        active = resolver.resolve()
        names = resolver.available_contexts()
    except ConfigurationError as e:
        _fail_configuration(e)

    console.print(f"{__logo__} Kubeconfig: {resolver.path}\n")

    table = Table(title="Contexts")
    table.add_column("Active", justify="center")
    table.add_column("Name", style="cyan")
    table.add_column("Environment")
    table.add_column("Cluster")
    table.add_column("Namespace", style="dim")

    for name in names:
        try:
            ctx = resolver.switch(name) if name != active.name else active
        except ConfigurationError as e:
            table.add_row("", name, "[red]invalid[/red]", f"[dim]{e.message}[/dim]", "")
            continue
        marker = "[green]✓[/green]" if name == active.name else ""
        env_class = ctx.environment_class.value
        env_style = "red" if ctx.environment_class.is_production else "yellow" if env_class != "development" else "green"
        table.add_row(marker, name, f"[{env_style}]{env_class}[/{env_style}]", ctx.cluster, ctx.effective_namespace)

    console.print(table)


@app.command()
def status():
    """Show kubesafe configuration status."""
    from kubesafe.config.loader import get_config_path, load_config
    from kubesafe.exec import resolve_executable
    from kubesafe.kubectl import discover_kubeconfig

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} kubesafe Status\n")

    kubeconfig = discover_kubeconfig(config.kube.kubeconfig)
    binary = resolve_executable(config.kube.binary)
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Kubeconfig: {kubeconfig} {'[green]✓[/green]' if kubeconfig.exists() else '[red]✗[/red]'}")
    console.print(f"kubectl: {binary or config.kube.binary} {'[green]✓[/green]' if binary else '[red]✗ not found[/red]'}")
    console.print(f"Audit log: {config.audit_path} {'[green]✓[/green]' if config.audit_path.exists() else '[dim]not created yet[/dim]'}")
    console.print(f"Allowlist: {config.allowlist_path} {'[green]✓[/green]' if config.allowlist_path.exists() else '[dim]empty[/dim]'}")

    local = config.translation.local
    remote = config.translation.remote
    console.print(
        f"Local backend: {'[green]' + local.model + ' @ ' + local.base_url + '[/green]' if local.enabled else '[dim]disabled[/dim]'}"
    )
    console.print(
        f"Remote backend: {'[green]' + remote.model + '[/green]' if remote.enabled else '[dim]disabled[/dim]'}"
        f"{' [dim](api key set)[/dim]' if remote.api_key else ''}"
    )


if __name__ == "__main__":
    app()
