from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from logwhisperer.rag.ingest import load_patterns, pattern_document, seed_patterns


class _Embedder:
    def __init__(self) -> None:
        self.batches: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(texts)
        return [[float(i), 1.0] for i, _ in enumerate(texts)]


class _Collection:
    def __init__(self) -> None:
        self.rows: dict[str, dict] = {}

    def upsert(self, ids, texts, embeddings, metadatas) -> None:
        for i, t, e, m in zip(ids, texts, embeddings, metadatas):
            self.rows[i] = {"text": t, "embedding": e, "metadata": m}


class SeedPatternsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "patterns.json"
        self.path.write_text(json.dumps([
            {"id": "ufw_mdns", "title": "UFW blocked mDNS", "vendor": "linux",
             "signature": "DPT=5353", "guidance": "Allow UDP/5353."},
            {"title": "no id, skipped"},
            {"id": "asa_106023", "title": "ASA Deny", "vendor": "cisco"},
        ]), encoding="utf-8")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_seeds_valid_rows(self) -> None:
        store, embedder = _Collection(), _Embedder()
        self.assertEqual(seed_patterns(str(self.path), store, embedder), 2)
        self.assertEqual(set(store.rows), {"ufw_mdns", "asa_106023"})
        self.assertEqual(store.rows["ufw_mdns"]["metadata"]["vendor"], "linux")
        self.assertEqual(store.rows["asa_106023"]["metadata"]["guidance"], "")
        self.assertEqual(embedder.batches[0][0], "UFW blocked mDNS\nDPT=5353\nAllow UDP/5353.")

    def test_missing_inputs_seed_nothing(self) -> None:
        store = _Collection()
        self.assertEqual(seed_patterns(str(self.path) + ".missing", store, _Embedder()), 0)
        self.assertEqual(seed_patterns("", store, _Embedder()), 0)
        self.assertEqual(seed_patterns(str(self.path), store, None), 0)
        self.assertEqual(store.rows, {})

    def test_load_rejects_non_list(self) -> None:
        self.path.write_text(json.dumps({"id": "x"}), encoding="utf-8")
        with self.assertRaises(ValueError):
            load_patterns(self.path)

    def test_document_skips_blank_fields(self) -> None:
        self.assertEqual(pattern_document({"title": "T", "signature": "", "guidance": "G"}), "T\nG")


if __name__ == "__main__":
    unittest.main()
