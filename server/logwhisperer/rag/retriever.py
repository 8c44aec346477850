import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

from logwhisperer.rag.vectorstore import PATTERN_FIELDS
from logwhisperer.schemas.models import RetrievedPattern

log = logging.getLogger("retriever")


class VectorSearch(Protocol):
    def search(self, query_embedding: List[float], top_k: int, fields: Sequence[str] = ...) -> List[Dict[str, Any]]: ...


class Embedder(Protocol):
    def embed_query(self, text: str) -> List[float]: ...


def build_query(chunks: Sequence[str], seed_chunks: int = 3) -> str:
    # Anchor on the start of the log, where the triggering event usually is.
    return "\n".join(chunks[:seed_chunks]).strip()


def to_pattern(match: Dict[str, Any]) -> RetrievedPattern:
    meta = match.get("metadata") or {}
    score = match.get("score")
    return RetrievedPattern(
        id=str(match.get("id", "")),
        title=str(meta.get("title") or ""),
        vendor=str(meta.get("vendor") or ""),
        signature=str(meta.get("signature") or ""),
        guidance=str(meta.get("guidance") or ""),
        score=float(score) if isinstance(score, (int, float)) else None,
    )


class PatternRetriever:
    """Best-effort lookup of known incident patterns; never fails the caller."""

    def __init__(
        self,
        store: Optional[VectorSearch],
        embedder: Optional[Embedder],
        top_k: int = 8,
        seed_chunks: int = 3,
    ):
        self.store = store
        self.embedder = embedder
        self.top_k = top_k
        self.seed_chunks = seed_chunks

    def retrieve(self, chunks: Sequence[str]) -> List[RetrievedPattern]:
        query = build_query(chunks, self.seed_chunks)
        if not query:
            return []
        if self.store is None or self.embedder is None:
            log.info("Retrieval skipped: vector index or embedder not configured")
            return []

        try:
            qvec = self.embedder.embed_query(query)
            matches = self.store.search(qvec, self.top_k, PATTERN_FIELDS)
            patterns = [to_pattern(m) for m in matches]
        except Exception:
            log.exception("Pattern retrieval failed; continuing without patterns")
            return []

        log.info("Retrieval: requested_top_k=%d got=%d", self.top_k, len(patterns))
        return patterns
