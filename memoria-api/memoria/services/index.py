# memoria/services/index.py
# In-memory media index: relative path → MediaItem.
# The dict never leaves this class; readers get sorted copies.
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from memoria.schemas.media import MediaItem
from memoria.services.media_types import MediaKind, classify
from memoria.utils.http import media_url, rel_posix, safe_rel_under, thumbnail_url
from memoria.utils.identity import identify

logger = logging.getLogger(__name__)

# (source_path, item_id, kind) → must not block
ThumbnailRequester = Callable[[Path, str, MediaKind], object]


def _recency_key(item: MediaItem):
    return (-item.modified_at, item.relative_path)


class MediaIndex:
    def __init__(
        self,
        media_root: Path,
        request_thumbnail: Optional[ThumbnailRequester] = None,
        *,
        ext_table: Optional[Mapping[MediaKind, set[str]]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.media_root = Path(media_root)
        self._request_thumbnail = request_thumbnail
        self._ext_table = ext_table
        self._clock = clock
        self._items: Dict[str, MediaItem] = {}
        self._lock = threading.Lock()
        self._last_update = 0

    # ---------- helpers ----------
    def relative_path(self, absolute_path: Path) -> Optional[str]:
        rel = safe_rel_under(self.media_root, Path(absolute_path))
        if rel is None or not rel.parts:
            return None
        return rel_posix(rel)

    def _touch(self) -> None:
        # caller holds the lock
        self._last_update = int(self._clock() * 1000)

    def _build_item(self, absolute_path: Path, rel: str, kind: MediaKind) -> Optional[MediaItem]:
        try:
            st = absolute_path.stat()
        except OSError as e:
            logger.warning("Cannot stat %s: %s", absolute_path, e)
            return None
        mtime_ms = st.st_mtime_ns // 1_000_000
        item_id = identify(rel)
        return MediaItem(
            id=item_id,
            relative_path=rel,
            name=absolute_path.name,
            kind=kind,
            created_at_date=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).date().isoformat(),
            modified_at=mtime_ms,
            size_bytes=st.st_size,
            media_url=media_url(rel),
            thumbnail_url=thumbnail_url(item_id),
        )

    # ---------- mutations ----------
    def upsert(self, absolute_path: Path) -> Optional[MediaItem]:
        """
        Index (or fully re-index) one file and ask for its thumbnail.
        Returns the new item, or None when the file is skipped
        (outside the root, unknown extension, vanished).
        """
        absolute_path = Path(absolute_path)
        rel = self.relative_path(absolute_path)
        if rel is None:
            logger.warning("Ignoring path outside media root: %s", absolute_path)
            return None
        kind = classify(absolute_path.suffix, self._ext_table)
        if kind is None:
            logger.debug("Skipping unknown type: %s", rel)
            return None

        item = self._build_item(absolute_path, rel, kind)
        if item is None:
            return None

        with self._lock:
            replaced = rel in self._items
            self._items[rel] = item
            self._touch()
        logger.info("%s: %s (%s)", "Updated" if replaced else "Added", rel, kind.value)

        if self._request_thumbnail is not None:
            try:
                self._request_thumbnail(absolute_path, item.id, kind)
            except RuntimeError as e:
                # worker pool already shut down
                logger.warning("Thumbnail request for %s rejected: %s", rel, e)
        return item

    def remove(self, absolute_path: Path) -> bool:
        """Drop the entry for a path. Cached thumbnails are left on disk."""
        rel = self.relative_path(Path(absolute_path))
        if rel is None:
            return False
        with self._lock:
            removed = self._items.pop(rel, None) is not None
            if removed:
                self._touch()
        if removed:
            logger.info("Removed: %s", rel)
        return removed

    def remove_tree(self, absolute_dir: Path) -> int:
        """Drop every entry under a directory (deleted or moved away)."""
        rel = self.relative_path(Path(absolute_dir))
        if rel is None:
            return 0
        prefix = rel + "/"
        with self._lock:
            doomed = [k for k in self._items if k.startswith(prefix)]
            for k in doomed:
                del self._items[k]
            if doomed:
                self._touch()
        if doomed:
            logger.info("Removed %d item(s) under %s/", len(doomed), rel)
        return len(doomed)

    # ---------- reads ----------
    def list(self) -> List[MediaItem]:
        """Point-in-time snapshot, newest first."""
        with self._lock:
            snapshot = list(self._items.values())
        snapshot.sort(key=_recency_key)
        return snapshot

    def items_under(self, folder: str, kind: Optional[MediaKind] = None) -> List[MediaItem]:
        """Snapshot restricted to one folder (relative to the root), newest first."""
        prefix = folder.strip("/") + "/" if folder.strip("/") else ""
        return [
            it for it in self.list()
            if it.relative_path.startswith(prefix) and (kind is None or it.kind == kind)
        ]

    def get(self, item_id: str) -> Optional[MediaItem]:
        with self._lock:
            for item in self._items.values():
                if item.id == item_id:
                    return item
        return None

    def get_update_timestamp(self) -> int:
        """Epoch millis of the last upsert/remove (0 if none yet)."""
        with self._lock:
            return self._last_update

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, relative_path: object) -> bool:
        with self._lock:
            return relative_path in self._items
