from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, List, Literal, Optional

Risk = Literal["low", "med", "high"]

MAX_ANOMALIES = 5
MAX_ASSUMPTIONS = 3


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str
    timestamp: int


class SessionState(BaseModel):
    session_id: str
    created_at: int
    last_active: int
    messages: List[Message] = Field(default_factory=list)


class RetrievedPattern(BaseModel):
    id: str
    title: str = ""
    vendor: str = ""
    signature: str = ""
    guidance: str = ""
    score: Optional[float] = None


class ChunkResult(BaseModel):
    chunks: List[str] = Field(default_factory=list)
    hashes: List[str] = Field(default_factory=list)


class AnalysisResult(BaseModel):
    summary: str
    anomalies: List[str]
    evidence: Dict[str, List[str]]
    assumptions: List[str]

    @field_validator("evidence", mode="before")
    @classmethod
    def _listify_evidence(cls, v: Any) -> Any:
        # models often emit a single line instead of a list
        if isinstance(v, dict):
            return {k: [line] if isinstance(line, str) else line for k, line in v.items()}
        return v

    @field_validator("anomalies")
    @classmethod
    def _cap_anomalies(cls, v: List[str]) -> List[str]:
        return v[:MAX_ANOMALIES]

    @field_validator("assumptions")
    @classmethod
    def _cap_assumptions(cls, v: List[str]) -> List[str]:
        return v[:MAX_ASSUMPTIONS]


class RawSuggestion(BaseModel):
    cmd: str
    why: str
    risk: Optional[str] = None


class SuggestionEnvelope(BaseModel):
    suggested_commands: List[RawSuggestion]

    @field_validator("suggested_commands", mode="before")
    @classmethod
    def _drop_malformed(cls, v: Any) -> Any:
        if not isinstance(v, list):
            return v
        return [
            item for item in v
            if isinstance(item, dict)
            and isinstance(item.get("cmd"), str)
            and isinstance(item.get("why"), str)
            and item["cmd"].strip()
        ]


class CommandSuggestion(BaseModel):
    cmd: str
    why: str
    risk: Risk


class PipelineOutput(AnalysisResult):
    suggested_commands: List[CommandSuggestion] = Field(default_factory=list)


# ---- HTTP shapes -------------------------------------------------------------

class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    logs: Optional[str] = None
    hints: Optional[str] = None
    vendor: Optional[str] = None


class HistoryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    events: List[Dict[str, Any]] = Field(default_factory=list)
    suggestions: List[Dict[str, Any]] = Field(default_factory=list)
    messages: List[Message] = Field(default_factory=list)
