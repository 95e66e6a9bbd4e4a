# memoria/repositories/json_store.py
# Flat JSON-file record store (a list of dicts) used for stories and travel pins.
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from memoria.core.errors import MemoriaError, NotFoundError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class JsonRecordStore:
    """
    list / get / create / update / delete over one JSON file.
    Every call re-reads the file, so hand edits are picked up; writes are
    atomic (temp file + os.replace).
    """
    def __init__(self, path: Path, *, name: str = "record") -> None:
        self.path = Path(path)
        self.name = name
        self._lock = threading.Lock()

    # ---------- file io (caller holds the lock) ----------
    def _read(self, strict: bool = False) -> List[Record]:
        """
        Records on disk; a missing file is an empty store.
        An unreadable file reads as empty, unless `strict` (every write path),
        where it raises instead so the next write cannot replace it.
        """
        if not self.path.exists():
            return []
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            problem = f"cannot read {self.name} store {self.path}: {e}"
        else:
            if isinstance(data, list):
                return [r for r in data if isinstance(r, dict)]
            problem = f"{self.name} store {self.path} is not a JSON list"
        logger.error("%s", problem)
        if strict:
            raise MemoriaError(f"{self.name} store is unreadable; fix or move {self.path.name}", status=500)
        return []

    def _write(self, records: List[Record]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    @staticmethod
    def _find(records: List[Record], record_id: str) -> int:
        for i, r in enumerate(records):
            if str(r.get("id")) == record_id:
                return i
        return -1

    # ---------- public ----------
    def list(self) -> List[Record]:
        with self._lock:
            return self._read()

    def get(self, record_id: str) -> Optional[Record]:
        with self._lock:
            records = self._read()
        i = self._find(records, record_id)
        return records[i] if i >= 0 else None

    def create(self, data: Record) -> Record:
        record = {k: v for k, v in data.items() if k != "id"}
        record["id"] = uuid.uuid4().hex
        record["createdAt"] = int(time.time() * 1000)
        with self._lock:
            records = self._read(strict=True)
            records.append(record)
            self._write(records)
        logger.info("Created %s %s", self.name, record["id"])
        return record

    def update(self, record_id: str, data: Record) -> Record:
        with self._lock:
            records = self._read(strict=True)
            i = self._find(records, record_id)
            if i < 0:
                raise NotFoundError(f"{self.name} not found")
            merged = {**records[i], **{k: v for k, v in data.items() if k != "id"}}
            merged["id"] = records[i]["id"]
            records[i] = merged
            self._write(records)
        logger.info("Updated %s %s", self.name, record_id)
        return merged

    def delete(self, record_id: str) -> None:
        with self._lock:
            records = self._read(strict=True)
            i = self._find(records, record_id)
            if i < 0:
                raise NotFoundError(f"{self.name} not found")
            del records[i]
            self._write(records)
        logger.info("Deleted %s %s", self.name, record_id)
