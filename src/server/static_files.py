"""Static asset lookup for the web UI directory."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Optional

_SERVED_SUFFIXES = frozenset({".html", ".js", ".css", ".svg", ".png", ".ico", ".json"})


def resolve_static_file(ui_root: Path, request_path: str) -> Optional[Path]:
    """Map a request path to an asset inside `ui_root`, or None."""
    root = ui_root.resolve()
    relative = (request_path or "").lstrip("/")
    if not relative:
        return None
    if any(part.startswith(".") for part in Path(relative).parts):
        return None

    candidate = (root / relative).resolve()
    if root not in candidate.parents:
        return None
    if candidate.suffix.lower() not in _SERVED_SUFFIXES:
        return None
    if not candidate.is_file():
        return None
    return candidate


def guess_content_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(str(path))
    if not mime_type:
        return "application/octet-stream"
    if mime_type.startswith("text/") or mime_type in {
        "application/javascript",
        "application/json",
        "image/svg+xml",
    }:
        return f"{mime_type}; charset=utf-8"
    return mime_type
