"""Utility helpers."""

from kubesafe.utils.helpers import (
    current_user,
    ensure_dir,
    expand_path,
    get_data_dir,
    write_text_atomic,
)

__all__ = [
    "current_user",
    "ensure_dir",
    "expand_path",
    "get_data_dir",
    "write_text_atomic",
]
