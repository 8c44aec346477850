from pathlib import Path
from typing import List, Dict, Any, Optional
import json
import logging

from logwhisperer.rag.vectorstore import ChromaVectorStore, PATTERN_FIELDS
from logwhisperer.llm.clients import EmbeddingsClient

log = logging.getLogger("ingest")

def load_patterns(path: Path) -> List[Dict[str, Any]]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of patterns")
    items = []
    for row in data:
        if not isinstance(row, dict) or not row.get("id"):
            log.warning("Skipping pattern without id in %s: %r", path, row)
            continue
        items.append({"id": str(row["id"]), **{f: str(row.get(f) or "") for f in PATTERN_FIELDS}})
    return items

def pattern_document(p: Dict[str, Any]) -> str:
    return "\n".join(p[f] for f in ("title", "signature", "guidance") if p.get(f))

def seed_patterns(patterns_file: str, store: ChromaVectorStore, embedder: Optional[EmbeddingsClient]) -> int:
    path = Path(patterns_file)
    if not patterns_file or not path.is_file():
        log.warning("Pattern file not found: %s", patterns_file)
        return 0
    if embedder is None:
        log.warning("EMBED_API_URL not set; pattern library left empty.")
        return 0

    patterns = load_patterns(path)
    if not patterns:
        log.warning("No patterns found to ingest.")
        return 0

    docs = [pattern_document(p) for p in patterns]
    log.info("Embedding %d patterns...", len(docs))
    vectors = embedder.embed(docs)

    store.upsert(
        ids=[p["id"] for p in patterns],
        texts=docs,
        embeddings=vectors,
        metadatas=[{f: p[f] for f in PATTERN_FIELDS} for p in patterns],
    )
    return len(patterns)
