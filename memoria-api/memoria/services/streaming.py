# memoria/services/streaming.py
# Serve files under a root with single byte-range support.
#   no Range            → 200, whole file
#   Range: bytes=S-E    → 206, Content-Range: bytes S-E/size
#   out of bounds       → 416, Content-Range: bytes */size
# Multi-range headers ("bytes=0-9,20-29") are answered with the FIRST range only,
# as a single-part 206; multipart/byteranges is not produced.
from __future__ import annotations

import mimetypes
import os
import re
from pathlib import Path
from typing import BinaryIO, Iterator, Optional, Tuple

from fastapi.responses import Response, StreamingResponse

from memoria.core.errors import ForbiddenPathError, NotFoundError, RangeNotSatisfiableError, ValidationError
from memoria.utils.http import safe_rel_under

CHUNK_SIZE = 64 * 1024

_RANGE_SPEC_RE = re.compile(r"^\s*(\d*)\s*-\s*(\d*)\s*$")


def resolve_media_path(root: Path, requested: str) -> Path:
    """Map a decoded relative URL path to a file under root, or raise 400/403/404."""
    if not requested or "\x00" in requested:
        raise ValidationError("invalid path")
    abs_path = (Path(root) / requested).resolve()
    if safe_rel_under(root, abs_path) is None:
        raise ForbiddenPathError("access denied")
    if not abs_path.is_file():
        raise NotFoundError("file not found")
    return abs_path


def parse_range(header: Optional[str], size: int) -> Optional[Tuple[int, int]]:
    """
    Parse a Range header against a file size.
    Returns None when the whole file should be sent (no header, or a unit
    other than bytes), (start, end) inclusive otherwise.
    Raises RangeNotSatisfiableError unless 0 <= start <= end < size.
    """
    if not header:
        return None
    unit, sep, ranges = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        return None

    first = ranges.split(",", 1)[0]
    m = _RANGE_SPEC_RE.match(first)
    if not m or (m.group(1) == "" and m.group(2) == ""):
        raise RangeNotSatisfiableError(size)
    start_s, end_s = m.groups()

    if start_s == "":
        # suffix form: last N bytes
        length = int(end_s)
        if length <= 0 or size == 0:
            raise RangeNotSatisfiableError(size)
        start, end = max(size - length, 0), size - 1
    else:
        start = int(start_s)
        end = int(end_s) if end_s else size - 1

    if not (0 <= start <= end < size):
        raise RangeNotSatisfiableError(size)
    return start, end


def _iter_open(f: BinaryIO, start: int, end: int, chunk_size: int) -> Iterator[bytes]:
    """Yield bytes [start, end] from an open file, closing it when done."""
    try:
        f.seek(start)
        remaining = end - start + 1
        while remaining > 0:
            data = f.read(min(chunk_size, remaining))
            if not data:
                break
            remaining -= len(data)
            yield data
    finally:
        f.close()


def iter_file(path: Path, start: int, end: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield bytes [start, end] of a file in chunks."""
    return _iter_open(open(path, "rb"), start, end, chunk_size)


def content_type_for(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or "application/octet-stream"


def serve(root: Path, requested: str, range_header: Optional[str]) -> Response:
    abs_path = resolve_media_path(root, requested)
    # opened before any header is sent; a file gone since the lookup is a 404
    try:
        f = open(abs_path, "rb")
    except OSError:
        raise NotFoundError("file not found")
    try:
        size = os.fstat(f.fileno()).st_size
        byte_range = parse_range(range_header, size)
    except BaseException:
        f.close()
        raise
    media_type = content_type_for(abs_path)

    if byte_range is None:
        headers = {"Content-Length": str(size), "Accept-Ranges": "bytes"}
        if size == 0:
            f.close()
            return Response(b"", status_code=200, headers=headers, media_type=media_type)
        return StreamingResponse(
            _iter_open(f, 0, size - 1, CHUNK_SIZE), status_code=200, headers=headers, media_type=media_type,
        )

    start, end = byte_range
    headers = {
        "Content-Range": f"bytes {start}-{end}/{size}",
        "Content-Length": str(end - start + 1),
        "Accept-Ranges": "bytes",
    }
    return StreamingResponse(
        _iter_open(f, start, end, CHUNK_SIZE), status_code=206, headers=headers, media_type=media_type,
    )
