# memoria/utils/http.py
from __future__ import annotations
from pathlib import Path, PurePath
from typing import Optional
import urllib.parse


def safe_rel_under(base: Path, target: Path) -> Optional[Path]:
    """
    Return target's path relative to base if target is inside base, else None.
    Prevents path traversal (.., absolute paths, symlinks pointing outside).
    """
    try:
        return Path(target).resolve().relative_to(Path(base).resolve())
    except (ValueError, OSError, RuntimeError):
        return None


def rel_posix(rel: PurePath) -> str:
    """Relative path as a '/'-separated string (the index key format)."""
    return "/".join(rel.parts)


def encode_url_path(rel_path: str) -> str:
    """Percent-encode each segment independently; '/' separators are kept."""
    return "/".join(urllib.parse.quote(seg, safe="") for seg in rel_path.split("/"))


def media_url(rel_path: str) -> str:
    return f"/media/{encode_url_path(rel_path)}"


def thumbnail_url(item_id: str) -> str:
    return f"/api/thumbnail/{item_id}"
