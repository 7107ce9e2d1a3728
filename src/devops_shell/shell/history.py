"""Persisted command history.

History is a plain text file with one command per line, loaded when the
shell starts and rewritten when it exits.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def load_history(path: Path) -> list[str]:
    """Read history entries from ``path``.

    A missing or unreadable file yields an empty history.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except OSError as e:
        logger.warning(f"Could not read history from {path}: {e}")
        return []
    return [line for line in text.splitlines() if line.strip()]


def save_history(entries: list[str], path: Path, limit: int | None = None) -> bool:
    """Write ``entries`` to ``path``, keeping only the last ``limit``.

    Returns:
        True if the file was written.
    """
    if limit is not None:
        entries = entries[-limit:] if limit else []
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(f"{entry}\n" for entry in entries), encoding="utf-8")
    except OSError as e:
        logger.error(f"Error saving history to {path}: {e}")
        return False
    logger.debug(f"Saved {len(entries)} history entries to {path}")
    return True


__all__ = ["load_history", "save_history"]
