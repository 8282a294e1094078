from dataclasses import dataclass
from functools import lru_cache
import os


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None or not value.strip():
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_float(value: str | None, *, default: float, minimum: float) -> float:
    if value is None or not value.strip():
        return default
    parsed = float(value)
    return max(minimum, parsed)


def _to_optional(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _to_tuple(value: str | None) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    environment: str
    port: int
    log_level: str
    allowed_origins: tuple[str, ...]
    gemini_api_key: str | None
    gemini_base_url: str
    gemini_embed_model: str
    gemini_chat_model: str
    pinecone_api_key: str | None
    pinecone_index_name: str | None
    pinecone_controller_url: str
    provider_timeout_seconds: float
    provider_init_attempts: int
    chunk_max_length: int
    search_top_k: int
    live_stage_delay_scale: float
    live_rate_window_ms: int
    live_indexing_limit: int
    live_query_limit: int
    api_rate_window_ms: int
    api_rate_limit: int

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    environment = (os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development").strip().lower()
    is_production = environment == "production"

    return Settings(
        environment=environment,
        port=_to_int(os.getenv("PORT"), default=3000, minimum=1),
        log_level=os.getenv("LOG_LEVEL", "INFO" if is_production else "DEBUG").strip().upper(),
        allowed_origins=_to_tuple(os.getenv("ALLOWED_ORIGINS")),
        gemini_api_key=_to_optional(os.getenv("GEMINI_API_KEY")),
        gemini_base_url=os.getenv(
            "GEMINI_BASE_URL",
            "https://generativelanguage.googleapis.com/v1beta",
        ),
        gemini_embed_model=os.getenv("GEMINI_EMBED_MODEL", "text-embedding-004"),
        gemini_chat_model=os.getenv("GEMINI_CHAT_MODEL", "gemini-2.0-flash"),
        pinecone_api_key=_to_optional(os.getenv("PINECONE_API_KEY")),
        pinecone_index_name=_to_optional(os.getenv("PINECONE_INDEX_NAME")),
        pinecone_controller_url=os.getenv("PINECONE_CONTROLLER_URL", "https://api.pinecone.io"),
        provider_timeout_seconds=_to_float(
            os.getenv("PROVIDER_TIMEOUT_SECONDS"), default=30.0, minimum=0.1
        ),
        provider_init_attempts=_to_int(os.getenv("PROVIDER_INIT_ATTEMPTS"), default=3, minimum=1),
        chunk_max_length=_to_int(os.getenv("CHUNK_MAX_LENGTH"), default=100, minimum=10),
        search_top_k=_to_int(os.getenv("SEARCH_TOP_K"), default=3, minimum=1),
        live_stage_delay_scale=_to_float(
            os.getenv("LIVE_STAGE_DELAY_SCALE"), default=1.0, minimum=0.0
        ),
        live_rate_window_ms=_to_int(os.getenv("LIVE_RATE_WINDOW_MS"), default=60_000, minimum=1),
        live_indexing_limit=_to_int(os.getenv("LIVE_INDEXING_LIMIT"), default=3, minimum=1),
        live_query_limit=_to_int(os.getenv("LIVE_QUERY_LIMIT"), default=5, minimum=1),
        api_rate_window_ms=_to_int(os.getenv("API_RATE_WINDOW_MS"), default=900_000, minimum=1),
        api_rate_limit=_to_int(
            os.getenv("API_RATE_LIMIT"),
            default=100 if is_production else 1000,
            minimum=1,
        ),
    )
