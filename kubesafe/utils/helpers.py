"""Small filesystem and identity helpers."""

import getpass
import os
import secrets
from pathlib import Path


def get_data_dir() -> Path:
    """Get the kubesafe data directory (~/.kubesafe by default)."""
    override = os.environ.get("KUBESAFE_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".kubesafe"


def ensure_dir(path: Path) -> Path:
    """Create a directory (and parents) if missing and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def expand_path(value: str | Path) -> Path:
    """Expand ~ and environment variables in a configured path."""
    return Path(os.path.expandvars(str(value))).expanduser()


def current_user() -> str:
    """Get the login name of the operator, or 'unknown'."""
    try:
        return getpass.getuser()
    except Exception:
        return "unknown"


def write_text_atomic(path: Path, text: str, mode: int = 0o600) -> None:
    """Write a text file via temp file + rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(f".{secrets.token_hex(4)}.tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.chmod(mode)
    tmp_path.replace(path)
