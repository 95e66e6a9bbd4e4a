# memoria/core/config.py
# Loads Memoria settings from a TOML file (defaults + overrides).
# - Reads MEMORIA_CONFIG or searches for memoria.toml (CWD, parents, package dir)
# - Normalizes extension lists (lowercase, ensure leading dot)
# - Relative paths are resolved under [paths].data_dir

from __future__ import annotations
from functools import lru_cache
from pathlib import Path
import os
from typing import Dict, List, Optional
import tomli as tomllib  # py3.11+: tomllib in stdlib; using tomli for compatibility

from memoria.services.media_types import (
    DEFAULT_AUDIO_EXT,
    DEFAULT_IMAGE_EXT,
    DEFAULT_VIDEO_EXT,
    MediaKind,
    build_ext_table,
)


# -------------------- Defaults (used if TOML omits keys) --------------------
_DEFAULTS = {
    "paths": {
        "data_dir": ".",
        "media_root": "media",
        "thumb_subdir": "thumbnails",
        "records_subdir": "data",
        "logs_subdir": "logs",
        # folder (relative to media_root) whose images feed /api/selected-photos
        "selected_subdir": "Select",
    },
    "server": {
        "host": "127.0.0.1",
        "port": 3300,
        "cors_origins": ["http://localhost:5173", "http://127.0.0.1:5173"],
    },
    "watcher": {
        "enabled": True,
        "stability_ms": 2000,       # file must stay unchanged this long before indexing
        "poll_interval_ms": 100,
    },
    "thumbnails": {
        "size": 200,
        "quality": 80,
        "video_offset": 0.1,        # fraction of the duration to grab the frame from
        "workers": 2,
        "ffmpeg": "ffmpeg",
        "ffprobe": "ffprobe",
        "timeout_s": 30,
    },
    "records": {
        "stories_file": "stories.json",
        "travel_pins_file": "travel_pins.json",
    },
    "ext": {
        "image": list(DEFAULT_IMAGE_EXT),
        "video": list(DEFAULT_VIDEO_EXT),
        "audio": list(DEFAULT_AUDIO_EXT),
    },
    "logging": {
        "level": "",
        "json": False,
    },
}

CONFIG_FILENAME = "memoria.toml"


# -------------------- Read + merge TOML --------------------
def _find_config_path() -> Path | None:
    """Find memoria.toml without user input.
    Priority:
      1) MEMORIA_CONFIG
      2) ./memoria.toml (CWD)
      3) ascend parents from CWD looking for memoria.toml
      4) memoria.toml next to the package
    """
    # 1) Explicit env
    cfg_env = os.getenv("MEMORIA_CONFIG")
    if cfg_env:
        p = Path(cfg_env).expanduser()
        if p.exists():
            return p

    # 2) + 3) CWD, then walk up to the filesystem root
    cur = Path.cwd()
    while True:
        candidate = cur / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        if cur.parent == cur:
            break
        cur = cur.parent

    # 4) sibling to the package
    pkg_default = Path(__file__).resolve().parents[1] / CONFIG_FILENAME
    if pkg_default.exists():
        return pkg_default

    return None


def _load_config_toml(path: Optional[Path] = None) -> tuple[dict, Optional[Path]]:
    """Load TOML from `path` (or the best match) and return (data, path).

    Returns ({}, None) if no file is found.
    """
    path = path or _find_config_path()
    if path and path.exists():
        with path.open("rb") as f:
            return tomllib.load(f), path
    return {}, None


def _section(cfg: dict, name: str) -> dict:
    return {**_DEFAULTS[name], **(cfg.get(name) or {})}


def _under(base: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return (p if p.is_absolute() else base / p).resolve()


class Settings:
    """
    Resolved configuration for one Memoria process.
    Built from a plain dict (the parsed TOML) merged over _DEFAULTS, so tests
    can construct one directly: Settings({"paths": {"data_dir": str(tmp_path)}}).
    """
    def __init__(self, cfg: Optional[dict] = None, *, source: Optional[Path] = None) -> None:
        cfg = cfg or {}
        self.source = source

        # ---- paths ----
        paths = _section(cfg, "paths")
        data_dir = Path(paths["data_dir"]).expanduser()
        if not data_dir.is_absolute() and source is not None:
            # relative data_dir in a config file means "relative to that file"
            data_dir = source.parent / data_dir
        self.data_dir: Path = data_dir.resolve()
        self.media_root: Path = _under(self.data_dir, paths["media_root"])
        self.thumb_dir: Path = _under(self.data_dir, paths["thumb_subdir"])
        self.records_dir: Path = _under(self.data_dir, paths["records_subdir"])
        self.logs_dir: Path = _under(self.data_dir, paths["logs_subdir"])
        self.selected_subdir: str = str(paths.get("selected_subdir") or "").strip("/")

        # ---- server ----
        server = _section(cfg, "server")
        self.host: str = str(server["host"])
        self.port: int = int(server["port"])
        self.cors_origins: List[str] = [str(o) for o in server.get("cors_origins") or []]

        # ---- watcher ----
        watcher = _section(cfg, "watcher")
        self.watch_enabled: bool = bool(watcher["enabled"])
        self.stability_seconds: float = max(int(watcher["stability_ms"]), 0) / 1000.0
        self.poll_interval: float = max(int(watcher["poll_interval_ms"]), 10) / 1000.0

        # ---- thumbnails ----
        thumbs = _section(cfg, "thumbnails")
        self.thumb_size: int = int(thumbs["size"])
        self.thumb_quality: int = min(max(int(thumbs["quality"]), 1), 95)
        self.video_offset: float = min(max(float(thumbs["video_offset"]), 0.0), 1.0)
        self.thumb_workers: int = max(int(thumbs["workers"]), 1)
        self.ffmpeg: str = str(thumbs["ffmpeg"])
        self.ffprobe: str = str(thumbs["ffprobe"])
        self.ffmpeg_timeout: float = float(thumbs["timeout_s"])

        # ---- records ----
        records = _section(cfg, "records")
        self.stories_path: Path = _under(self.records_dir, records["stories_file"])
        self.travel_pins_path: Path = _under(self.records_dir, records["travel_pins_file"])

        # ---- extensions ----
        ext = _section(cfg, "ext")
        self.ext_table: Dict[MediaKind, set[str]] = build_ext_table(
            ext.get("image", []), ext.get("video", []), ext.get("audio", []),
        )

        # ---- logging ----
        log = _section(cfg, "logging")
        self.log_level: str = str(log.get("level") or "")
        self.json_logs: bool = bool(log.get("json", False))

    # the collaborator contract other components rely on
    @property
    def media_root_path(self) -> Path:
        return self.media_root

    @property
    def listen_port(self) -> int:
        return self.port

    def __repr__(self) -> str:
        return (
            f"Settings(source={self.source}, media_root={self.media_root}, "
            f"thumb_dir={self.thumb_dir}, records_dir={self.records_dir}, "
            f"host={self.host}, port={self.port}, watch={self.watch_enabled}, "
            f"stability={self.stability_seconds}s, thumb_size={self.thumb_size})"
        )


def load_settings(path: Optional[Path] = None) -> Settings:
    """Read the TOML file (explicit path or discovered) and build Settings."""
    cfg, source = _load_config_toml(Path(path) if path else None)
    return Settings(cfg, source=source)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once from the discovered config file."""
    return load_settings()
