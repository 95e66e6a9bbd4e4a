# memoria/services/thumbnails.py
# Square JPEG thumbnails cached on disk as <thumb_dir>/<id>.jpg.
# - a present file is a cache hit; it is never re-validated
# - images: Pillow decode → cover-fit → JPEG
# - videos: one frame from ffmpeg (seek to a fraction of the duration), same encode path
# - audio: no thumbnail
# All writes go to a temp file in the cache dir and are os.replace()d into place.
from __future__ import annotations

import io
import logging
import os
import shutil
import subprocess
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Set

from PIL import Image, ImageOps

from memoria.core.errors import GenerationFailure
from memoria.services.media_types import MediaKind

try:
    import pillow_heif  # type: ignore
    pillow_heif.register_heif_opener()
except ImportError:
    pass

logger = logging.getLogger(__name__)

THUMB_SUFFIX = ".jpg"


class ThumbnailCache:
    def __init__(
        self,
        cache_dir: Path,
        *,
        size: int = 200,
        quality: int = 80,
        video_offset: float = 0.1,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
        timeout: float = 30.0,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.size = size
        self.quality = quality
        self.video_offset = video_offset
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout = timeout
        self._warned_no_ffmpeg = False

    def prepare(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, item_id: str) -> Path:
        return self.cache_dir / f"{item_id}{THUMB_SUFFIX}"

    def exists(self, item_id: str) -> bool:
        return self.path_for(item_id).is_file()

    # ---------- public ----------
    def ensure_thumbnail(self, source: Path, item_id: str, kind: MediaKind) -> bool:
        """
        Make sure <id>.jpg exists. Returns True on a cache hit or a successful
        generation, False otherwise (audio, no ffmpeg, decode/tool failure).
        Never raises for generation problems.
        """
        if self.exists(item_id):
            return True
        if kind == MediaKind.AUDIO:
            return False
        try:
            if kind == MediaKind.IMAGE:
                with Image.open(source) as im:
                    self._write_jpeg(im, item_id)
            elif kind == MediaKind.VIDEO:
                frame = self._extract_video_frame(Path(source))
                if frame is None:
                    return False
                with Image.open(io.BytesIO(frame)) as im:
                    self._write_jpeg(im, item_id)
            else:
                return False
        except GenerationFailure as e:
            logger.warning("Thumbnail failed for %s (%s): %s", item_id, source, e.message)
            return False
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            # PIL.UnidentifiedImageError is an OSError
            logger.warning("Thumbnail failed for %s (%s): %s", item_id, source, e)
            return False
        logger.info("Thumbnail generated for %s: %s", kind.value, item_id)
        return True

    # ---------- encode ----------
    def _write_jpeg(self, im: Image.Image, item_id: str) -> None:
        im = ImageOps.exif_transpose(im)
        im = im.convert("RGB")
        thumb = ImageOps.fit(im, (self.size, self.size), method=Image.Resampling.LANCZOS)
        self.prepare()
        fd, tmp_name = tempfile.mkstemp(prefix=f".{item_id}.", suffix=".tmp", dir=self.cache_dir)
        try:
            with os.fdopen(fd, "wb") as f:
                thumb.save(f, format="JPEG", quality=self.quality)
            os.replace(tmp_name, self.path_for(item_id))
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    # ---------- video ----------
    def _ffmpeg_path(self) -> Optional[str]:
        path = shutil.which(self.ffmpeg)
        if path is None and not self._warned_no_ffmpeg:
            logger.warning("ffmpeg not found (%s); video thumbnails disabled", self.ffmpeg)
            self._warned_no_ffmpeg = True
        return path

    def _probe_duration(self, source: Path) -> float:
        """Duration in seconds via ffprobe; 0.0 if unknown."""
        ffprobe = shutil.which(self.ffprobe)
        if ffprobe is None:
            return 0.0
        cmd = [
            ffprobe, "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(source),
        ]
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout, check=False)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug("ffprobe failed for %s: %s", source, e)
            return 0.0
        try:
            return max(float(proc.stdout.strip().splitlines()[0]), 0.0)
        except (ValueError, IndexError):
            return 0.0

    def _extract_video_frame(self, source: Path) -> Optional[bytes]:
        """One PNG-encoded frame at video_offset × duration, or None if ffmpeg is missing."""
        ffmpeg = self._ffmpeg_path()
        if ffmpeg is None:
            return None
        seek = self._probe_duration(source) * self.video_offset
        cmd = [
            ffmpeg, "-nostdin", "-hide_banner", "-loglevel", "error",
            "-ss", f"{seek:.3f}",
            "-i", str(source),
            "-frames:v", "1",
            "-f", "image2pipe", "-vcodec", "png",
            "-",
        ]
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired:
            raise GenerationFailure(f"ffmpeg timed out after {self.timeout}s")
        except OSError as e:
            raise GenerationFailure(f"ffmpeg could not run: {e}")
        if proc.returncode != 0 or not proc.stdout:
            err = proc.stderr.decode(errors="replace").strip()
            raise GenerationFailure(err or f"ffmpeg rc={proc.returncode}")
        return proc.stdout


class ThumbnailQueue:
    """
    Worker pool the index hands thumbnail work to.
    At most one job per id is pending or running; ids already on disk are
    not scheduled at all.
    """
    def __init__(self, cache: ThumbnailCache, workers: int = 2) -> None:
        self.cache = cache
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="memoria-thumb")
        self._inflight: Set[str] = set()
        self._lock = threading.Lock()

    def submit(self, source: Path, item_id: str, kind: MediaKind) -> Optional[Future]:
        if kind == MediaKind.AUDIO:
            return None
        with self._lock:
            if item_id in self._inflight or self.cache.exists(item_id):
                return None
            self._inflight.add(item_id)
        try:
            return self._executor.submit(self._run, Path(source), item_id, kind)
        except RuntimeError:
            with self._lock:
                self._inflight.discard(item_id)
            raise

    def _run(self, source: Path, item_id: str, kind: MediaKind) -> bool:
        try:
            return self.cache.ensure_thumbnail(source, item_id, kind)
        except Exception:
            logger.exception("Unexpected error generating thumbnail %s", item_id)
            return False
        finally:
            with self._lock:
                self._inflight.discard(item_id)

    def pending(self) -> int:
        with self._lock:
            return len(self._inflight)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
