# memoria/utils/identity.py
import hashlib
import re

ID_LENGTH = 8  # hex chars → 32-bit space; collisions are not detected

_ID_RE = re.compile(r"^[0-9a-f]{%d}$" % ID_LENGTH)


def identify(relative_path: str) -> str:
    """
    Stable short id for a path relative to the media root.
    Same path → same id, across processes and platforms ('\\' counts as '/').
    """
    key = str(relative_path).replace("\\", "/")
    digest = hashlib.sha1(key.encode("utf-8", "surrogatepass")).hexdigest()
    return digest[:ID_LENGTH]


def is_valid_id(value: str) -> bool:
    return bool(_ID_RE.match(value or ""))
