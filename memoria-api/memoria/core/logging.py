# memoria/core/logging.py
from __future__ import annotations

import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "memoria"


class MaxLevelFilter(logging.Filter):
    """Allow records up to and including `levelno` (drop anything higher)."""
    def __init__(self, levelno: int): super().__init__(); self.levelno = levelno
    def filter(self, record: logging.LogRecord) -> bool: return record.levelno <= self.levelno


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def setup_logging(logs_dir: Optional[Path], verbose: int = 0, quiet: bool = False,
                  log_level_arg: Optional[str] = None, json_logs: bool = False) -> logging.Logger:
    """
    Console/File matrix (console INFO-and-below → stdout, WARNING+ → stderr):
      - -q:   stdout = off;            stderr = WARNING+;  file = INFO+
      - none: stdout = INFO only;      stderr = WARNING+;  file = INFO+
      - -v:   stdout = DEBUG..INFO;    stderr = WARNING+;  file = INFO+
      - -vv:  stdout = DEBUG..INFO;    stderr = WARNING+;  file = DEBUG
      - --log-level=X: stdout & file use X (stderr still takes WARNING+)
    logs_dir=None → console only.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for h in list(logger.handlers): logger.removeHandler(h)

    if log_level_arg:
        console_level = getattr(logging, log_level_arg.upper())
        file_level    = console_level
    elif quiet:
        console_level = None               # stdout handler not installed
        file_level    = logging.INFO
    elif verbose >= 2:
        console_level = logging.DEBUG
        file_level    = logging.DEBUG
    elif verbose >= 1:
        console_level = logging.DEBUG
        file_level    = logging.INFO
    else:
        console_level = logging.INFO
        file_level    = logging.INFO

    console_fmt = (JsonFormatter() if json_logs else
                   logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S"))

    if console_level is not None and console_level <= logging.INFO:
        out = logging.StreamHandler(sys.stdout)
        out.setLevel(console_level)
        out.addFilter(MaxLevelFilter(logging.INFO))
        out.setFormatter(console_fmt)
        logger.addHandler(out)

    err = logging.StreamHandler(sys.stderr)
    err.setLevel(max(console_level or logging.WARNING, logging.WARNING))
    err.setFormatter(console_fmt)
    logger.addHandler(err)

    if logs_dir is not None:
        logs_dir = Path(logs_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = logs_dir / "memoria.log"
        fh = logging.handlers.TimedRotatingFileHandler(
            log_path, when="midnight", backupCount=14, encoding="utf-8",
        )
        fh.setLevel(file_level)
        if json_logs:
            fh.setFormatter(JsonFormatter())
        else:
            fh.setFormatter(logging.Formatter(
                "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
            ))
        logger.addHandler(fh)
        logger.debug(f"Log file: {log_path}")

    return logger
