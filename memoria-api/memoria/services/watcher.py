# memoria/services/watcher.py
# Filesystem watcher → MediaIndex.
#
# watchdog callbacks only enqueue events. One worker thread drains the queue in
# arrival order and is the only code path that mutates the index, so a delete
# that arrives after an add always wins.
#
# Per file:  unseen → pending-stable → indexed → (pending again on modify) → removed
# A pending file is indexed once its (size, mtime) has not changed for
# `stability_seconds`. Create and modify both end in reconcile(path).
from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from memoria.core.errors import WatchSetupFailure
from memoria.services.index import MediaIndex
from memoria.utils.http import safe_rel_under

logger = logging.getLogger(__name__)

# queued event kinds
CHANGED = "changed"
REMOVED = "removed"
REMOVED_DIR = "removed_dir"
SCAN_DIR = "scan_dir"


@dataclass
class _Pending:
    signature: Tuple[int, int]  # (size, mtime_ns)
    since: float                # clock value when the signature last changed


class _MediaEventHandler(FileSystemEventHandler):
    """Translate watchdog events into queue entries; no index work here."""

    def __init__(self, watcher: "MediaWatcher") -> None:
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            # files copied in with the directory may not get their own events
            self.watcher.enqueue(SCAN_DIR, event.src_path)
        else:
            self.watcher.enqueue(CHANGED, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.enqueue(CHANGED, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.watcher.enqueue(REMOVED_DIR if event.is_directory else REMOVED, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            self.watcher.enqueue(REMOVED_DIR, event.src_path)
            self.watcher.enqueue(SCAN_DIR, event.dest_path)
        else:
            self.watcher.enqueue(REMOVED, event.src_path)
            self.watcher.enqueue(CHANGED, event.dest_path)


class MediaWatcher:
    def __init__(
        self,
        media_root: Path,
        index: MediaIndex,
        *,
        stability_seconds: float = 2.0,
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.media_root = Path(media_root)
        self.index = index
        self.stability_seconds = stability_seconds
        self.poll_interval = poll_interval
        self._clock = clock
        self._events: "queue.Queue[Tuple[str, str]]" = queue.Queue()
        self._pending: Dict[Path, _Pending] = {}
        self._observer: Optional[Observer] = None
        self._worker: Optional[threading.Thread] = None
        self._stop = threading.Event()

    # ---------- filters ----------
    def is_watched(self, path: Path) -> bool:
        """Inside the root and no path component is hidden (dot-prefixed)."""
        rel = safe_rel_under(self.media_root, path)
        if rel is None or not rel.parts:
            return False
        return not any(part.startswith(".") for part in rel.parts)

    # ---------- event intake (any thread) ----------
    def enqueue(self, kind: str, path) -> None:
        if isinstance(path, bytes):
            path = os.fsdecode(path)
        self._events.put((kind, str(path)))

    # ---------- single writer ----------
    def reconcile(self, path: Path) -> None:
        """The one entry point for 'this file is new or changed and stable'."""
        self.index.upsert(path)

    def _mark_pending(self, path: Path, now: float) -> None:
        if not self.is_watched(path):
            return
        try:
            st = path.stat()
        except OSError:
            self._pending.pop(path, None)
            return
        sig = (st.st_size, st.st_mtime_ns)
        entry = self._pending.get(path)
        if entry is None or entry.signature != sig:
            self._pending[path] = _Pending(sig, now)

    def _scan_dir(self, directory: Path, now: float) -> int:
        """Queue every visible file under directory as pending."""
        count = 0
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                if name.startswith("."):
                    continue
                p = Path(dirpath) / name
                if p.is_file():
                    self._mark_pending(p, now)
                    count += 1
        return count

    def _apply(self, kind: str, raw_path: str, now: float) -> None:
        path = Path(raw_path)
        if kind == CHANGED:
            self._mark_pending(path, now)
        elif kind == REMOVED:
            self._pending.pop(path, None)
            self.index.remove(path)
        elif kind == REMOVED_DIR:
            prefix = str(path) + os.sep
            for p in [p for p in self._pending if str(p).startswith(prefix)]:
                del self._pending[p]
            self.index.remove_tree(path)
        elif kind == SCAN_DIR:
            is_root = path.resolve() == self.media_root.resolve()
            if (is_root or self.is_watched(path)) and path.is_dir():
                self._scan_dir(path, now)

    def tick(self, now: Optional[float] = None) -> List[Path]:
        """
        Drain queued events, then index every pending file that has been
        stable long enough. Returns the paths handed to reconcile().
        """
        now = self._clock() if now is None else now
        while True:
            try:
                kind, raw_path = self._events.get_nowait()
            except queue.Empty:
                break
            self._apply(kind, raw_path, now)

        ready: List[Path] = []
        for path, entry in list(self._pending.items()):
            try:
                st = path.stat()
            except OSError:
                # vanished before it settled; the delete event handles the index
                del self._pending[path]
                continue
            sig = (st.st_size, st.st_mtime_ns)
            if sig != entry.signature:
                entry.signature, entry.since = sig, now
            elif now - entry.since >= self.stability_seconds:
                del self._pending[path]
                ready.append(path)

        for path in ready:
            self.reconcile(path)
        return ready

    def pending_paths(self) -> List[Path]:
        return sorted(self._pending)

    def rescan(self) -> None:
        """Queue every visible file under the root (startup, manual refresh)."""
        self.enqueue(SCAN_DIR, self.media_root)

    # ---------- lifecycle ----------
    def _ensure_root(self) -> None:
        if self.media_root.is_dir():
            return
        try:
            self.media_root.mkdir(parents=True, exist_ok=True)
            logger.info("Created media root directory: %s", self.media_root)
        except OSError as e:
            raise WatchSetupFailure(f"cannot create media root {self.media_root}: {e}")

    def start(self) -> bool:
        """
        Create the root if needed, queue existing files, start watching.
        Returns False (after logging) if the root is unusable; the caller keeps
        running with an empty index.
        """
        try:
            self._ensure_root()
            observer = Observer()
            observer.schedule(_MediaEventHandler(self), str(self.media_root), recursive=True)
            observer.start()
        except (WatchSetupFailure, OSError) as e:
            logger.error("Media watcher disabled: %s", e)
            return False

        self._observer = observer
        self._stop.clear()
        self.rescan()
        self._worker = threading.Thread(target=self._run, name="memoria-watcher", daemon=True)
        self._worker.start()
        logger.info("Watching for media in: %s", self.media_root)
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.poll_interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Watcher pass failed; continuing")

    def stop(self) -> None:
        self._stop.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        if self._worker is not None:
            self._worker.join(timeout=5)
            self._worker = None

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()
