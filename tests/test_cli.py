import os

import pytest

from conftest import make_image
from memoria.cli import build_parser, main


@pytest.fixture
def config_file(tmp_path):
    cfg = tmp_path / "memoria.toml"
    cfg.write_text('[paths]\ndata_dir = "."\n', encoding="utf-8")
    return cfg


def test_scan_prints_index(tmp_path, config_file, capsys):
    media = tmp_path / "media"
    p = make_image(media / "2024" / "beach.jpg")
    os.utime(p, (1_700_000_000, 1_700_000_000))
    (media / "2024" / "song.mp3").write_bytes(b"ID3")
    (media / "notes.txt").write_text("skip me")
    make_image(media / ".trash" / "gone.jpg")

    assert main(["scan", "--config", str(config_file)]) == 0

    out = capsys.readouterr().out
    assert "2024/beach.jpg" in out
    assert "2024/song.mp3" in out
    assert "notes.txt" not in out
    assert "gone.jpg" not in out
    assert "2 item(s)" in out
    assert "audio=1, image=1" in out
    assert not (tmp_path / "thumbnails").exists()


def test_scan_with_thumbnails(tmp_path, config_file, capsys):
    make_image(tmp_path / "media" / "a.jpg")
    assert main(["scan", "--config", str(config_file), "--thumbs"]) == 0
    assert len(list((tmp_path / "thumbnails").glob("*.jpg"))) == 1
    assert "yes" in capsys.readouterr().out


def test_scan_missing_media_root(config_file, capsys):
    assert main(["scan", "--config", str(config_file)]) == 1
    assert "media root not found" in capsys.readouterr().err


def test_missing_config_file_exits(tmp_path):
    with pytest.raises(SystemExit):
        main(["scan", "--config", str(tmp_path / "nope.toml")])


def test_serve_arguments():
    args = build_parser().parse_args(["serve", "--port", "8080", "--no-watch", "-vv"])
    assert args.port == 8080
    assert args.no_watch is True
    assert args.verbose == 2
    assert args.command == "serve"
