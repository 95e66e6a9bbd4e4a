import os
import threading

from conftest import make_image
from memoria.services.index import MediaIndex
from memoria.services.media_types import MediaKind
from memoria.utils.identity import identify


class FakeClock:
    def __init__(self, t=1_700_000_000.0):
        self.t = t

    def __call__(self):
        return self.t


def _index(root, calls=None, clock=None):
    requester = (lambda src, item_id, kind: calls.append((src, item_id, kind))) if calls is not None else None
    return MediaIndex(root, requester, clock=clock or FakeClock())


def _set_mtime(path, seconds):
    os.utime(path, (seconds, seconds))


def test_upsert_builds_item_and_requests_thumbnail(media_root):
    calls = []
    idx = _index(media_root, calls)
    p = make_image(media_root / "trips" / "beach day.jpg")
    _set_mtime(p, 1_700_000_000)

    item = idx.upsert(p)

    assert item is not None
    assert item.relative_path == "trips/beach day.jpg"
    assert item.id == identify("trips/beach day.jpg")
    assert item.name == "beach day.jpg"
    assert item.kind == MediaKind.IMAGE
    assert item.size_bytes == p.stat().st_size
    assert item.modified_at == 1_700_000_000_000
    assert item.created_at_date == "2023-11-14"
    assert item.media_url == "/media/trips/beach%20day.jpg"
    assert item.thumbnail_url == f"/api/thumbnail/{item.id}"
    assert calls == [(p, item.id, MediaKind.IMAGE)]


def test_unknown_extension_is_skipped(media_root):
    calls = []
    idx = _index(media_root, calls)
    notes = media_root / "notes.txt"
    notes.write_text("hello")

    assert idx.upsert(notes) is None
    assert len(idx) == 0
    assert calls == []
    assert idx.get_update_timestamp() == 0


def test_path_outside_root_is_ignored(media_root, tmp_path):
    idx = _index(media_root)
    outside = make_image(tmp_path / "elsewhere.jpg")
    assert idx.upsert(outside) is None
    assert len(idx) == 0


def test_missing_file_is_skipped(media_root):
    idx = _index(media_root)
    assert idx.upsert(media_root / "gone.jpg") is None


def test_list_is_newest_first(media_root):
    idx = _index(media_root)
    for name, mtime in [("a.jpg", 100), ("b.jpg", 300), ("c.mp3", 200)]:
        p = media_root / name
        if name.endswith(".jpg"):
            make_image(p)
        else:
            p.write_bytes(b"ID3" + b"\0" * 64)
        _set_mtime(p, mtime)
        idx.upsert(p)

    assert [it.name for it in idx.list()] == ["b.jpg", "c.mp3", "a.jpg"]


def test_upsert_recomputes_on_change(media_root):
    calls = []
    idx = _index(media_root, calls)
    p = make_image(media_root / "x.png", fmt="PNG", size=(10, 10))
    first = idx.upsert(p)

    make_image(p, fmt="PNG", size=(400, 400))
    _set_mtime(p, 1_800_000_000)
    second = idx.upsert(p)

    assert len(idx) == 1
    assert second.id == first.id
    assert second.size_bytes == p.stat().st_size != first.size_bytes
    assert second.modified_at == 1_800_000_000_000
    assert idx.list() == [second]
    # the thumbnail requester decides whether a cached file already covers it
    assert len(calls) == 2


def test_remove(media_root):
    clock = FakeClock()
    idx = _index(media_root, clock=clock)
    p = make_image(media_root / "photo1.jpg")
    idx.upsert(p)
    added_at = idx.get_update_timestamp()
    assert added_at == int(clock.t * 1000)

    clock.t += 5
    assert idx.remove(p) is True
    assert len(idx) == 0
    assert idx.get_update_timestamp() == added_at + 5000

    # removing again is a no-op and does not bump the timestamp
    clock.t += 5
    assert idx.remove(p) is False
    assert idx.get_update_timestamp() == added_at + 5000


def test_remove_after_upsert_leaves_path_absent(media_root):
    idx = _index(media_root)
    p = make_image(media_root / "photo1.jpg")
    idx.upsert(p)
    idx.remove(p)
    assert "photo1.jpg" not in idx
    assert idx.list() == []


def test_remove_tree(media_root):
    idx = _index(media_root)
    for rel in ["Paris/a.jpg", "Paris/sub/b.jpg", "Parisian/c.jpg", "d.jpg"]:
        idx.upsert(make_image(media_root / rel))

    assert idx.remove_tree(media_root / "Paris") == 2
    assert sorted(it.relative_path for it in idx.list()) == ["Parisian/c.jpg", "d.jpg"]


def test_get_and_items_under(media_root):
    idx = _index(media_root)
    a = idx.upsert(make_image(media_root / "Select" / "a.jpg"))
    (media_root / "Select" / "song.mp3").write_bytes(b"\0" * 16)
    idx.upsert(media_root / "Select" / "song.mp3")
    idx.upsert(make_image(media_root / "other.jpg"))

    assert idx.get(a.id) == a
    assert idx.get("00000000") is None
    assert [it.name for it in idx.items_under("Select", MediaKind.IMAGE)] == ["a.jpg"]
    assert len(idx.items_under("Select")) == 2
    assert len(idx.items_under("")) == 3


def test_snapshot_is_a_copy(media_root):
    idx = _index(media_root)
    idx.upsert(make_image(media_root / "a.jpg"))
    snap = idx.list()
    snap.clear()
    assert len(idx.list()) == 1


def test_concurrent_upserts_and_reads(media_root):
    idx = _index(media_root)
    paths = [make_image(media_root / f"img{i}.jpg", size=(8, 8)) for i in range(40)]
    errors = []

    def writer():
        try:
            for _ in range(5):
                for p in paths:
                    idx.upsert(p)
                for p in paths[::2]:
                    idx.remove(p)
        except Exception as e:  # pragma: no cover - reported below
            errors.append(e)

    def reader():
        try:
            for _ in range(200):
                items = idx.list()
                assert len({it.relative_path for it in items}) == len(items)
        except Exception as e:  # pragma: no cover - reported below
            errors.append(e)

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert sorted(it.name for it in idx.list()) == sorted(p.name for p in paths[1::2])
