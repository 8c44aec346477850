import asyncio
import logging
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from logwhisperer.core.logging import setup_logging
from logwhisperer.core.config import Settings, settings
from logwhisperer.llm.clients import ChatClient, EmbeddingsClient
from logwhisperer.rag.vectorstore import ChromaVectorStore
from logwhisperer.rag.ingest import seed_patterns
from logwhisperer.rag.pipeline import LogPipeline
from logwhisperer.rag.retriever import PatternRetriever
from logwhisperer.schemas.models import ChatRequest
from logwhisperer.session.state import SessionManager
from logwhisperer.storage.blobs import LocalBlobStore
from logwhisperer.storage.sqlite_store import SqliteStore, now_ms

log = logging.getLogger("api")


class Services:
    def __init__(self, sessions: SessionManager, blobs: Optional[LocalBlobStore] = None):
        self.sessions = sessions
        self.blobs = blobs


def build_services(cfg: Settings) -> Services:
    if not cfg.llm_api_url or not cfg.embed_api_url:
        log.warning("LLM_API_URL or EMBED_API_URL not set. Analysis will fall back to 'unavailable'.")

    llm = ChatClient(cfg.llm_api_url, cfg.llm_api_key) if cfg.llm_api_url else None
    embedder = EmbeddingsClient(cfg.embed_api_url, cfg.embed_model_name, cfg.embed_dims) if cfg.embed_api_url else None
    vectors = ChromaVectorStore(cfg.chroma_collection, cfg.chroma_persist_dir)

    try:
        count = seed_patterns(cfg.patterns_file, vectors, embedder)
        log.info("Pattern seeding complete. Patterns ingested: %d", count)
    except Exception:
        log.exception("Pattern seeding failed; retrieval will return no patterns.")

    store = SqliteStore(cfg.db_path)
    retriever = PatternRetriever(vectors, embedder, top_k=cfg.top_k, seed_chunks=cfg.seed_chunks)
    pipeline = LogPipeline(llm, retriever, store, cfg)
    blobs = LocalBlobStore(cfg.blob_dir) if cfg.blob_dir else None
    return Services(SessionManager(store, pipeline, cfg.max_messages, cfg.max_sessions), blobs)


def create_app(services: Optional[Services] = None, cfg: Settings = settings) -> FastAPI:
    app = FastAPI(title="LogWhisperer Server", version="0.1")
    app.state.services = services

    @app.on_event("startup")
    def startup():
        setup_logging(cfg.log_level)
        if app.state.services is None:
            app.state.services = build_services(cfg)

    def _services() -> Services:
        if app.state.services is None:
            raise HTTPException(status_code=503, detail="Service not initialised.")
        return app.state.services

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/api/chat")
    async def chat(req: ChatRequest):
        try:
            if not req.logs or not req.logs.strip():
                raise HTTPException(status_code=400, detail="logs field required")
            session_id = req.session_id or str(uuid.uuid4())
            result = await _services().sessions.chat(session_id, req.logs, hints=req.hints, vendor=req.vendor)
            return JSONResponse(content=result)
        except HTTPException:
            raise
        except Exception as e:
            log.exception("Chat failed.")
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/api/sessions/{session_id}")
    async def history(session_id: str):
        try:
            result = await _services().sessions.history(session_id)
            return JSONResponse(content=result.model_dump(by_alias=True))
        except HTTPException:
            raise
        except Exception as e:
            log.exception("History failed.")
            raise HTTPException(status_code=500, detail=str(e))

    @app.post("/api/upload")
    async def upload(request: Request):
        blobs = _services().blobs
        if blobs is None:
            raise HTTPException(status_code=501, detail="Blob storage not configured.")
        session_id = request.headers.get("x-session-id") or str(uuid.uuid4())
        key = f"{session_id}/{now_ms()}"
        try:
            body = await request.body()
            await asyncio.to_thread(blobs.put, key, body)
            log.info("Upload stored: key=%s bytes=%d", key, len(body))
            return {"key": key, "sessionId": session_id}
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            log.exception("Upload failed.")
            raise HTTPException(status_code=500, detail=str(e))

    return app


app = create_app()
