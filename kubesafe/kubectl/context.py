"""Resolve the active kubectl context from a kubeconfig file."""

import os
from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from kubesafe.errors import ConfigurationError
from kubesafe.kubectl.types import EnvironmentContext

_HINT_LIST = "Run 'kubectl config get-contexts' to see what is available."
_HINT_USE = "Select one with 'kubectl config use-context <name>' or pass --context."


def discover_kubeconfig(explicit: str | Path | None = None) -> Path:
    """
    Find the kubeconfig to read.

    Order: explicit path, first existing entry of $KUBECONFIG, ~/.kube/config.
    """
    if explicit:
        return Path(explicit).expanduser()

    env_value = os.environ.get("KUBECONFIG", "")
    candidates = [Path(p).expanduser() for p in env_value.split(os.pathsep) if p]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    if candidates:
        return candidates[0]

    return Path.home() / ".kube" / "config"


def _load_kubeconfig(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"No kubeconfig found at {path}.",
            "Set KUBECONFIG or create ~/.kube/config (e.g. via your cloud CLI). " + _HINT_LIST,
        )

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.debug(f"Failed to read kubeconfig {path}: {e}")
        raise ConfigurationError(f"Cannot read kubeconfig at {path}.", "Check the file permissions.") from e
    except yaml.YAMLError as e:
        logger.debug(f"Failed to parse kubeconfig {path}: {e}")
        raise ConfigurationError(
            f"Kubeconfig at {path} is not valid YAML.",
            "Fix the file or point KUBECONFIG at a working one. " + _HINT_LIST,
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Kubeconfig at {path} is empty or malformed.", _HINT_LIST)
    return data


def _context_entries(data: dict[str, Any], path: Path) -> list[dict[str, Any]]:
    entries = [
        e for e in (data.get("contexts") or [])
        if isinstance(e, dict) and isinstance(e.get("name"), str)
    ]
    if not entries:
        raise ConfigurationError(f"No contexts defined in {path}.", _HINT_LIST)
    return entries


class EnvironmentResolver:
    """
    Resolve and cache the session's EnvironmentContext.

    The context is read once and reused until refresh() or switch() replaces
    it wholesale.
    """

    def __init__(self, kubeconfig: str | Path | None = None, context_override: str | None = None):
        self.kubeconfig = kubeconfig
        self.context_override = context_override
        self._current: EnvironmentContext | None = None

    @property
    def path(self) -> Path:
        return discover_kubeconfig(self.kubeconfig)

    def resolve(self) -> EnvironmentContext:
        """Get the active context, reading the kubeconfig on first use."""
        if self._current is None:
            self._current = self._read(self.context_override)
            logger.info(
                f"Resolved context {self._current.name} "
                f"({self._current.environment_class.value}, cluster={self._current.cluster})"
            )
        return self._current

    def refresh(self) -> EnvironmentContext:
        """Drop the cached context and read it again."""
        self._current = None
        return self.resolve()

    def switch(self, name: str) -> EnvironmentContext:
        """Replace the active context with another named one from the same file."""
        context = self._read(name)
        self.context_override = name
        self._current = context
        logger.info(f"Switched context to {name} ({context.environment_class.value})")
        return context

    def available_contexts(self) -> list[str]:
        path = self.path
        return [e["name"] for e in _context_entries(_load_kubeconfig(path), path)]

    def _read(self, override: str | None) -> EnvironmentContext:
        path = self.path
        data = _load_kubeconfig(path)
        entries = _context_entries(data, path)

        name = override or data.get("current-context")
        if not name:
            raise ConfigurationError(f"No current-context set in {path}.", _HINT_USE)

        entry = next((e for e in entries if e["name"] == name), None)
        if entry is None:
            raise ConfigurationError(f"Context '{name}' not found in {path}.", _HINT_LIST)

        details = entry.get("context") or {}
        cluster = details.get("cluster") if isinstance(details, dict) else None
        if not cluster:
            raise ConfigurationError(f"Context '{name}' has no cluster.", _HINT_LIST)

        return EnvironmentContext(
            name=name,
            cluster=str(cluster),
            user=str(details.get("user") or ""),
            namespace=details.get("namespace") or None,
        )


def resolve_context(
    kubeconfig: str | Path | None = None,
    context_override: str | None = None,
) -> EnvironmentContext:
    """One-shot resolution without a cached resolver."""
    return EnvironmentResolver(kubeconfig, context_override).resolve()
