import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

from logwhisperer.core.config import Settings
from logwhisperer.rag.chunker import chunk_by_bytes, fingerprint
from logwhisperer.rag.normalize import normalize_analysis, normalize_suggestions
from logwhisperer.rag.prompts import ANALYSIS_SYSTEM, analysis_prompt, command_prompt, command_system
from logwhisperer.rag.retriever import PatternRetriever
from logwhisperer.schemas.models import (
    AnalysisResult,
    ChunkResult,
    CommandSuggestion,
    PipelineOutput,
    RetrievedPattern,
)
from logwhisperer.utils.redact import redact
from logwhisperer.utils.safety import filter_suggestions, parse_allowlist

log = logging.getLogger("pipeline")

JSON_OBJECT = {"type": "json_object"}


class InferenceBackend(Protocol):
    def infer(self, model: str, messages: List[Dict[str, str]], max_tokens: int = ...,
              response_format: Optional[Dict[str, Any]] = ...) -> Any: ...


class EventSink(Protocol):
    def append_event(self, session_id: str, kind: str, payload: Dict[str, Any]) -> None: ...
    def append_suggestion(self, session_id: str, suggestion: CommandSuggestion) -> None: ...


def _redact_analysis(analysis: AnalysisResult) -> AnalysisResult:
    return AnalysisResult(
        summary=redact(analysis.summary),
        anomalies=[redact(a) for a in analysis.anomalies],
        evidence={redact(k): [redact(line) for line in v] for k, v in analysis.evidence.items()},
        assumptions=[redact(a) for a in analysis.assumptions],
    )


class LogPipeline:
    """
    One linear pass per chat turn:
    redact -> chunk -> retrieve -> analyze -> suggest -> persist.

    Retrieval and both model calls degrade to fallbacks; storage errors propagate.
    Blocking collaborators run in worker threads.
    """

    def __init__(self, llm: Optional[InferenceBackend], retriever: PatternRetriever, sink: EventSink, cfg: Settings):
        self.llm = llm
        self.retriever = retriever
        self.sink = sink
        self.cfg = cfg
        self.allowlist = parse_allowlist(cfg.safe_commands_allowlist)

    # ---- stages -------------------------------------------------------------

    def scrub(self, text: str) -> str:
        return redact(text)

    def chunk_logs(self, redacted: str) -> ChunkResult:
        chunks = chunk_by_bytes(redacted, self.cfg.chunk_size, self.cfg.chunk_overlap)
        return ChunkResult(chunks=chunks, hashes=[fingerprint(c) for c in chunks])

    async def retrieve_patterns(self, chunks: ChunkResult) -> List[RetrievedPattern]:
        if not chunks.chunks:
            return []
        return await asyncio.to_thread(self.retriever.retrieve, chunks.chunks)

    async def analyze(
        self,
        chunks: ChunkResult,
        patterns: List[RetrievedPattern],
        hints: Optional[str] = None,
        vendor: Optional[str] = None,
    ) -> AnalysisResult:
        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM},
            {"role": "user", "content": analysis_prompt(chunks.chunks, patterns, hints=hints, vendor=vendor)},
        ]
        raw = await self._infer(self.cfg.analysis_model, messages, "Analysis")
        return _redact_analysis(normalize_analysis(raw))

    async def suggest_commands(self, analysis: AnalysisResult) -> List[CommandSuggestion]:
        messages = [
            {"role": "system", "content": command_system(self.allowlist, self.cfg.max_suggestions)},
            {"role": "user", "content": command_prompt(analysis)},
        ]
        raw = await self._infer(self.cfg.command_model, messages, "Command")
        envelope = normalize_suggestions(raw)
        accepted = filter_suggestions(envelope.suggested_commands, self.allowlist, self.cfg.max_suggestions)
        log.info("Suggestions: proposed=%d accepted=%d", len(envelope.suggested_commands), len(accepted))
        return accepted

    async def write_memory(
        self,
        session_id: str,
        analysis: AnalysisResult,
        suggestions: List[CommandSuggestion],
        hashes: Optional[List[str]] = None,
    ) -> None:
        payload = {**analysis.model_dump(), "fingerprints": hashes or []}
        await asyncio.to_thread(self.sink.append_event, session_id, "analysis", payload)
        for s in suggestions:
            await asyncio.to_thread(self.sink.append_suggestion, session_id, s)

    # ---- driver -------------------------------------------------------------

    async def run(
        self,
        session_id: str,
        raw_text: str,
        hints: Optional[str] = None,
        vendor: Optional[str] = None,
    ) -> PipelineOutput:
        redacted = self.scrub(raw_text)
        chunks = self.chunk_logs(redacted)
        log.info("Run start: session=%s bytes=%d chunks=%d", session_id, len(redacted.encode("utf-8")), len(chunks.chunks))

        patterns = await self.retrieve_patterns(chunks)
        analysis = await self.analyze(
            chunks,
            patterns,
            hints=self.scrub(hints) if hints else None,
            vendor=self.scrub(vendor) if vendor else None,
        )
        log.info("Analysis: anomalies=%d assumptions=%d", len(analysis.anomalies), len(analysis.assumptions))

        suggestions = await self.suggest_commands(analysis)
        await self.write_memory(session_id, analysis, suggestions, chunks.hashes)

        return PipelineOutput(**analysis.model_dump(), suggested_commands=suggestions)

    async def _infer(self, model: str, messages: List[Dict[str, str]], label: str) -> Any:
        if self.llm is None:
            log.warning("%s model skipped: LLM_API_URL not set", label)
            return None
        try:
            raw = await asyncio.to_thread(
                self.llm.infer,
                model,
                messages,
                max_tokens=self.cfg.max_tokens,
                response_format=JSON_OBJECT,
            )
        except Exception:
            log.exception("%s model call failed", label)
            return None
        return raw
