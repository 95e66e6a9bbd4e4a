# memoria/services/media_types.py
# Extension → media kind. Unknown extensions are never indexed.
from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


DEFAULT_IMAGE_EXT = ("jpg", "jpeg", "png", "gif", "svg", "webp", "bmp", "tif", "tiff", "heic", "heif", "avif")
DEFAULT_VIDEO_EXT = ("mp4", "mov", "avi", "m4v", "webm", "mkv")
DEFAULT_AUDIO_EXT = ("mp3", "wav", "flac", "m4a", "aac", "ogg")


def _norm_ext(e: str) -> str:
    e = (e or "").strip().lower()
    if e and not e.startswith("."):
        e = "." + e
    return e


def _norm_ext_list(exts: Iterable[str]) -> set[str]:
    """
    Normalize extension strings: ensure leading dot and lowercase.
    Accepts 'jpg' or '.jpg' and returns '.jpg'.
    """
    out: set[str] = set()
    for e in exts:
        e = _norm_ext(str(e))
        if e:
            out.add(e)
    return out


def build_ext_table(image: Iterable[str], video: Iterable[str], audio: Iterable[str]) -> Dict[MediaKind, set[str]]:
    """Normalized lookup table; checked in image, video, audio order."""
    return {
        MediaKind.IMAGE: _norm_ext_list(image),
        MediaKind.VIDEO: _norm_ext_list(video),
        MediaKind.AUDIO: _norm_ext_list(audio),
    }


DEFAULT_EXT_TABLE = build_ext_table(DEFAULT_IMAGE_EXT, DEFAULT_VIDEO_EXT, DEFAULT_AUDIO_EXT)


def classify(extension: str, table: Optional[Mapping[MediaKind, set[str]]] = None) -> Optional[MediaKind]:
    """Return the MediaKind for an extension ('.JPG', 'jpg', ...) or None if unknown."""
    ext = _norm_ext(extension)
    if not ext:
        return None
    for kind, exts in (table or DEFAULT_EXT_TABLE).items():
        if ext in exts:
            return kind
    return None
