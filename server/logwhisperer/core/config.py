from pydantic import BaseModel, model_validator
from dotenv import load_dotenv
import os

load_dotenv()

DEFAULT_ALLOWLIST = "ip,ss,ping,dig,journalctl,systemctl,ufw,iptables,tcpdump,traceroute"

def _verify_setting(raw: str | None) -> str | bool:
    # requests takes either a bool or a CA bundle path
    if raw is None or raw.strip().lower() in ("", "true", "1", "yes"):
        return True
    if raw.strip().lower() in ("false", "0", "no"):
        return False
    return raw

class Settings(BaseModel):
    # LLM
    llm_api_url: str = os.getenv("LLM_API_URL", "")
    llm_api_key: str = os.getenv("LLM_API_KEY", "")
    analysis_model: str = os.getenv("ANALYSIS_MODEL", "meta-llama/llama-3.3-70b-instruct")
    command_model: str = os.getenv("COMMAND_MODEL", "meta-llama/llama-3.1-8b-instruct")
    max_tokens: int = int(os.getenv("MAX_TOKENS", "2048"))
    # Embeddings
    embed_api_url: str = os.getenv("EMBED_API_URL", "")
    embed_model_name: str = os.getenv("EMBED_MODEL_NAME", "")
    embed_dims: int = int(os.getenv("EMBED_DIMS", "1024"))
    # SSL
    ssl_verify_path: str | bool = _verify_setting(os.getenv("SSL_VERIFY_PATH"))

    # Pipeline
    chunk_size: int = int(os.getenv("CHUNK_SIZE", "2000"))
    chunk_overlap: int = int(os.getenv("CHUNK_OVERLAP", "200"))
    top_k: int = int(os.getenv("TOP_K", "8"))
    seed_chunks: int = int(os.getenv("SEED_CHUNKS", "3"))
    safe_commands_allowlist: str = os.getenv("SAFE_COMMANDS_ALLOWLIST", DEFAULT_ALLOWLIST)
    max_suggestions: int = int(os.getenv("MAX_SUGGESTIONS", "3"))
    max_messages: int = int(os.getenv("MAX_MESSAGES", "20"))
    max_sessions: int = int(os.getenv("MAX_SESSIONS", "1024"))

    # Chroma
    chroma_collection: str = os.getenv("CHROMA_COLLECTION", "log_patterns")
    chroma_persist_dir: str = os.getenv("CHROMA_PERSIST_DIR", "")

    # Storage
    db_path: str = os.getenv("DB_PATH", "data/logwhisperer.sqlite")
    blob_dir: str = os.getenv("BLOB_DIR", "data/uploads")
    patterns_file: str = os.getenv("PATTERNS_FILE", "data/patterns.json")

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @model_validator(mode="after")
    def _check_limits(self):
        if self.chunk_size <= 0:
            raise ValueError(f"CHUNK_SIZE must be > 0, got {self.chunk_size}")
        if self.chunk_overlap < 0:
            raise ValueError(f"CHUNK_OVERLAP must be >= 0, got {self.chunk_overlap}")
        if self.max_messages <= 0 or self.max_suggestions <= 0 or self.max_sessions <= 0:
            raise ValueError("MAX_MESSAGES, MAX_SUGGESTIONS and MAX_SESSIONS must be > 0")
        return self

settings = Settings()
