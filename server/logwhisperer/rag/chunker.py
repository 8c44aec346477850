import hashlib
from typing import List

def _nbytes(s: str) -> int:
    return len(s.encode("utf-8"))

def chunk_by_bytes(text: str, max_bytes: int, overlap_bytes: int = 0) -> List[str]:
    """
    Split text into chunks whose UTF-8 encoding fits in max_bytes.
    Each chunk after the first repeats the tail of its predecessor, as many
    whole characters as fit in overlap_bytes.
    """
    if max_bytes <= 0:
        raise ValueError(f"max_bytes must be greater than 0, got {max_bytes}")
    if not text:
        return []
    overlap_bytes = max(0, min(overlap_bytes, max_bytes - 1))

    sizes = [_nbytes(ch) for ch in text]
    widest = max(sizes)
    if widest > max_bytes:
        raise ValueError(f"max_bytes={max_bytes} cannot hold a {widest}-byte character")

    chunks: List[str] = []
    n = len(text)
    start = 0
    while True:
        end = start
        size = 0
        while end < n and size + sizes[end] <= max_bytes:
            size += sizes[end]
            end += 1
        chunks.append(text[start:end])
        if end >= n:
            break

        # walk back over whole characters that fit in the overlap budget
        back = end
        carried = 0
        while back > start and carried + sizes[back - 1] <= overlap_bytes:
            carried += sizes[back - 1]
            back -= 1
        # must advance or we loop forever on overlaps as wide as the chunk
        start = max(back, start + 1)

    return chunks

def fingerprint(text: str) -> str:
    """SHA-1 hex digest of the UTF-8 bytes; a dedup key, not a credential."""
    return hashlib.sha1(text.encode("utf-8")).hexdigest()
