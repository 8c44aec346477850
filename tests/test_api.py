from __future__ import annotations

import asyncio
import json
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient
from fakes import FakeLLM, MemoryStore, analysis_json, make_settings

from logwhisperer.api import Services, create_app
from logwhisperer.rag.pipeline import LogPipeline
from logwhisperer.rag.retriever import PatternRetriever
from logwhisperer.session.state import SessionManager
from logwhisperer.storage.blobs import LocalBlobStore


def _commands(*cmds: str) -> str:
    return json.dumps({"suggested_commands": [{"cmd": c, "why": "check", "risk": "low"} for c in cmds]})


class _LoopCheckingBlobs(LocalBlobStore):
    """Records whether put ran on a thread with a running event loop."""

    def __init__(self, root: str) -> None:
        super().__init__(root)
        self.on_loop: list[bool] = []

    def put(self, key: str, data: bytes):
        try:
            asyncio.get_running_loop()
            self.on_loop.append(True)
        except RuntimeError:
            self.on_loop.append(False)
        return super().put(key, data)


class ApiTest(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.blob_dir = Path(self._tmp.name)
        self.store = MemoryStore()
        self.llm = FakeLLM()
        cfg = make_settings()
        pipeline = LogPipeline(self.llm, PatternRetriever(None, None), self.store, cfg)
        services = Services(SessionManager(self.store, pipeline, cfg.max_messages), LocalBlobStore(str(self.blob_dir)))
        self.client = TestClient(create_app(services, cfg))

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_chat_requires_logs(self) -> None:
        for body in ({}, {"logs": ""}, {"logs": "   "}, {"sessionId": "s1"}):
            resp = self.client.post("/api/chat", json=body)
            self.assertEqual(resp.status_code, 400, body)
        self.assertEqual(self.llm.calls, [])

    def test_chat_shape(self) -> None:
        self.llm.responses += [
            {"response": analysis_json(summary="mDNS blocked", anomalies=["DPT=5353 drops"])},
            {"response": _commands("ufw status", "cat /etc/shadow")},
        ]
        resp = self.client.post("/api/chat", json={"sessionId": "s1", "logs": "IN=eth0 DPT=5353", "vendor": "linux"})

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["sessionId"], "s1")
        self.assertEqual(body["summary"], "mDNS blocked")
        self.assertEqual(body["suggested_commands"], [{"cmd": "ufw status", "why": "check", "risk": "low"}])
        for key in ("anomalies", "evidence", "assumptions"):
            self.assertIn(key, body)

    def test_chat_assigns_session_id(self) -> None:
        self.llm.responses += [analysis_json(), _commands()]
        body = self.client.post("/api/chat", json={"logs": "x"}).json()
        self.assertTrue(body["sessionId"])

    def test_history(self) -> None:
        self.llm.responses += [analysis_json(), _commands("ip route show")]
        self.client.post("/api/chat", json={"sessionId": "s1", "logs": "route flap"})

        body = self.client.get("/api/sessions/s1").json()
        self.assertEqual(body["sessionId"], "s1")
        self.assertEqual(len(body["events"]), 1)
        self.assertEqual(body["suggestions"][0]["cmd"], "ip route show")
        self.assertEqual([m["role"] for m in body["messages"]], ["user", "assistant"])

    def test_storage_failure_is_an_error(self) -> None:
        self.store.fail_writes = True
        self.llm.responses += [analysis_json(), _commands()]
        resp = self.client.post("/api/chat", json={"sessionId": "s1", "logs": "x"})
        self.assertEqual(resp.status_code, 500)

    def test_upload(self) -> None:
        resp = self.client.post("/api/upload", content=b"raw bytes", headers={"x-session-id": "s1"})
        self.assertEqual(resp.status_code, 200)
        key = resp.json()["key"]
        self.assertTrue(key.startswith("s1/"))
        self.assertEqual((self.blob_dir / key).read_bytes(), b"raw bytes")

    def test_upload_writes_off_the_event_loop(self) -> None:
        blobs = _LoopCheckingBlobs(str(self.blob_dir))
        cfg = make_settings()
        pipeline = LogPipeline(None, PatternRetriever(None, None), self.store, cfg)
        client = TestClient(create_app(Services(SessionManager(self.store, pipeline), blobs), cfg))

        resp = client.post("/api/upload", content=b"raw bytes", headers={"x-session-id": "s1"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(blobs.on_loop, [False])
        self.assertEqual((self.blob_dir / resp.json()["key"]).read_bytes(), b"raw bytes")

    def test_upload_bad_session_header(self) -> None:
        resp = self.client.post("/api/upload", content=b"x", headers={"x-session-id": "../../etc"})
        self.assertEqual(resp.status_code, 400)

    def test_upload_without_blob_store(self) -> None:
        cfg = make_settings()
        pipeline = LogPipeline(None, PatternRetriever(None, None), self.store, cfg)
        client = TestClient(create_app(Services(SessionManager(self.store, pipeline), None), cfg))
        self.assertEqual(client.post("/api/upload", content=b"x").status_code, 501)


if __name__ == "__main__":
    unittest.main()
