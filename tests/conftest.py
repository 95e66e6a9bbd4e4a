import logging
import time
from pathlib import Path

import pytest
from PIL import Image

from memoria.core.config import Settings
from memoria.core.logging import LOGGER_NAME


def make_image(path: Path, size=(320, 240), color=(200, 40, 90), fmt="JPEG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format=fmt)
    return path


def settle(watcher):
    """Drain queued events and push every pending file past the stability window."""
    t = time.monotonic()
    watcher.tick(now=t)
    return watcher.tick(now=t + 3600)


def wait_for(predicate, timeout=5.0, interval=0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def settings(tmp_path) -> Settings:
    s = Settings({
        "paths": {"data_dir": str(tmp_path)},
        "watcher": {"stability_ms": 2000, "poll_interval_ms": 20},
        "thumbnails": {"workers": 2},
    })
    s.media_root.mkdir(parents=True, exist_ok=True)
    return s


@pytest.fixture
def media_root(settings) -> Path:
    return settings.media_root


@pytest.fixture(autouse=True)
def reset_logging():
    """setup_logging() binds handlers to the captured streams; drop them after each test."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = True
