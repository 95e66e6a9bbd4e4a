import os
import shutil
import time

from conftest import make_image, wait_for
from memoria.services.index import MediaIndex
from memoria.services.watcher import CHANGED, REMOVED, REMOVED_DIR, SCAN_DIR, MediaWatcher


def _watcher(root, stability=2.0):
    index = MediaIndex(root)
    return MediaWatcher(root, index, stability_seconds=stability, poll_interval=0.02), index


def test_file_is_indexed_only_after_stability_window(media_root):
    w, index = _watcher(media_root)
    make_image(media_root / "photo1.jpg")
    w.rescan()

    assert w.tick(now=100.0) == []
    assert len(index) == 0
    assert w.pending_paths() == [media_root / "photo1.jpg"]

    assert w.tick(now=101.0) == []
    assert len(index) == 0

    assert w.tick(now=102.5) == [media_root / "photo1.jpg"]
    assert [it.kind.value for it in index.list()] == ["image"]
    assert w.pending_paths() == []


def test_changing_file_restarts_the_window(media_root):
    w, index = _watcher(media_root)
    p = media_root / "growing.mp4"
    p.write_bytes(b"\0" * 10)
    w.enqueue(CHANGED, p)
    w.tick(now=0.0)

    p.write_bytes(b"\0" * 5000)  # still being written
    assert w.tick(now=1.9) == []
    assert w.tick(now=3.0) == []   # only 1.1s since the size changed
    assert w.tick(now=4.0) == [p]
    assert index.list()[0].size_bytes == 5000


def test_modification_reindexes_through_same_path(media_root):
    w, index = _watcher(media_root)
    p = make_image(media_root / "a.png", fmt="PNG", size=(4, 4))
    w.enqueue(CHANGED, p)
    w.tick(now=0.0)
    w.tick(now=5.0)
    before = index.list()[0]

    make_image(p, fmt="PNG", size=(300, 300))
    os.utime(p, (2_000_000_000, 2_000_000_000))
    w.enqueue(CHANGED, p)
    w.tick(now=10.0)
    assert index.list() == [before]        # pending again, old entry still served
    w.tick(now=20.0)

    after = index.list()
    assert len(after) == 1
    assert after[0].id == before.id
    assert after[0].modified_at == 2_000_000_000_000


def test_hidden_and_unknown_files_are_never_indexed(media_root):
    w, index = _watcher(media_root)
    make_image(media_root / ".hidden.jpg")
    make_image(media_root / ".cache" / "x.jpg")
    make_image(media_root / "album" / ".DS_Store")
    (media_root / "notes.txt").write_text("hi")
    make_image(media_root / "album" / "ok.jpg")

    w.rescan()
    w.tick(now=0.0)
    w.enqueue(CHANGED, media_root / ".hidden.jpg")
    w.tick(now=10.0)

    assert [it.relative_path for it in index.list()] == ["album/ok.jpg"]


def test_delete_removes_entry(media_root):
    w, index = _watcher(media_root)
    p = make_image(media_root / "photo1.jpg")
    w.enqueue(CHANGED, p)
    w.tick(now=0.0)
    w.tick(now=3.0)
    assert len(index) == 1

    p.unlink()
    w.enqueue(REMOVED, p)
    w.tick(now=4.0)
    assert len(index) == 0


def test_delete_before_stable_never_indexes(media_root):
    w, index = _watcher(media_root)
    p = make_image(media_root / "quick.jpg")
    w.enqueue(CHANGED, p)
    w.tick(now=0.0)
    p.unlink()
    w.enqueue(REMOVED, p)
    w.tick(now=10.0)
    assert len(index) == 0
    assert w.pending_paths() == []


def test_remove_after_add_in_same_batch_wins(media_root):
    w, index = _watcher(media_root, stability=0.0)
    p = make_image(media_root / "x.jpg")
    w.enqueue(CHANGED, p)
    w.tick(now=0.0)             # indexed (zero window)
    assert len(index) == 1
    w.enqueue(CHANGED, p)
    w.enqueue(REMOVED, p)       # file still on disk, but the delete came last
    w.tick(now=1.0)
    assert len(index) == 0


def test_directory_removal_and_move(media_root):
    w, index = _watcher(media_root)
    for rel in ["Paris/a.jpg", "Paris/b.jpg", "Rome/c.jpg"]:
        make_image(media_root / rel)
    w.rescan()
    w.tick(now=0.0)
    w.tick(now=3.0)
    assert len(index) == 3

    shutil.move(str(media_root / "Paris"), str(media_root / "France"))
    w.enqueue(REMOVED_DIR, media_root / "Paris")
    w.enqueue(SCAN_DIR, media_root / "France")
    w.tick(now=4.0)
    assert sorted(it.relative_path for it in index.list()) == ["Rome/c.jpg"]
    w.tick(now=7.0)
    assert sorted(it.relative_path for it in index.list()) == ["France/a.jpg", "France/b.jpg", "Rome/c.jpg"]


def test_start_creates_missing_root(tmp_path):
    root = tmp_path / "new" / "media"
    w, index = _watcher(root)
    try:
        assert w.start() is True
        assert root.is_dir()
        assert w.running
    finally:
        w.stop()
    assert not w.running


def test_start_failure_keeps_running_with_empty_index(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    w, index = _watcher(blocker / "media")
    assert w.start() is False
    assert not w.running
    assert index.list() == []
    w.stop()


def test_live_observer_end_to_end(media_root):
    w, index = _watcher(media_root, stability=0.2)
    assert w.start()
    try:
        p = make_image(media_root / "live" / "photo1.jpg")
        assert wait_for(lambda: "live/photo1.jpg" in index, timeout=10)

        (media_root / "live" / "notes.txt").write_text("never indexed")
        p.unlink()
        assert wait_for(lambda: "live/photo1.jpg" not in index, timeout=10)
        time.sleep(0.5)
        assert index.list() == []
    finally:
        w.stop()
