from typing import List, Dict, Any, Optional, Sequence
import chromadb
from chromadb.config import Settings as ChromaSettings
from logwhisperer.core.config import settings

PATTERN_FIELDS = ("title", "vendor", "signature", "guidance")

class ChromaVectorStore:
    def __init__(self, collection: Optional[str] = None, persist_dir: Optional[str] = None):
        persist_dir = settings.chroma_persist_dir if persist_dir is None else persist_dir
        if persist_dir:
            self.client = chromadb.PersistentClient(
                path=persist_dir,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
        else:
            self.client = chromadb.EphemeralClient(
                settings=ChromaSettings(anonymized_telemetry=False),
            )
        self.collection = self.client.get_or_create_collection(
            name=collection or settings.chroma_collection,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(self, ids: List[str], texts: List[str], embeddings: List[List[float]], metadatas: List[Dict[str, Any]]):
        self.collection.upsert(
            ids=ids,
            documents=texts,
            embeddings=embeddings,
            metadatas=metadatas,
        )

    def count(self) -> int:
        return self.collection.count()

    def search(self, query_embedding: List[float], top_k: int, fields: Sequence[str] = PATTERN_FIELDS) -> List[Dict[str, Any]]:
        """Return [{id, score, metadata}] best first; score is cosine similarity."""
        if self.count() == 0:
            return []
        res = self.collection.query(
            query_embeddings=[query_embedding],
            n_results=min(top_k, self.count()),
            include=["metadatas", "distances"],
        )
        # Chroma query returns lists (batch size 1)
        ids = res.get("ids", [[]])[0]
        metas = (res.get("metadatas") or [[]])[0]
        dists = (res.get("distances") or [[]])[0]

        matches = []
        for mid, meta, dist in zip(ids, metas, dists):
            meta = meta or {}
            matches.append({
                "id": mid,
                "score": 1.0 - float(dist),
                "metadata": {f: meta.get(f, "") for f in fields},
            })
        return matches
