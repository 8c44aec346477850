import re
from pathlib import Path

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9._-]+$")


class LocalBlobStore:
    """Raw uploads on disk under ``root/<sessionId>/<timestamp>``."""

    def __init__(self, root: str):
        self.root = Path(root)

    def put(self, key: str, data: bytes) -> Path:
        segments = key.split("/")
        if not segments or any(s in ("", ".", "..") or not _SAFE_SEGMENT.match(s) for s in segments):
            raise ValueError(f"invalid blob key: {key!r}")
        path = self.root.joinpath(*segments)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
