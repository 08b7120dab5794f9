"""Application configuration with sensible defaults.

Optional tuning values are read once at import time. Required connection
settings are validated explicitly by ``load_settings()`` so that a missing
value fails the process at startup with the full list of problems.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from chatme.errors import ConfigError

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"

# Embedding service (OpenAI-compatible endpoint)
EMBEDDING_BASE_URL = os.getenv(
    "EMBEDDING_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai"
)
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-004")

# Chat completion service (OpenAI-compatible endpoint)
CHAT_BASE_URL = os.getenv("CHAT_BASE_URL", EMBEDDING_BASE_URL)
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemini-1.5-flash")

# Vector store
VECTOR_STORE_BACKEND = os.getenv("VECTOR_STORE_BACKEND", "astra")  # astra | faiss

# Ingestion parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "512"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "128"))
PAGE_LOAD_TIMEOUT = float(os.getenv("PAGE_LOAD_TIMEOUT", "60.0"))

# Retrieval
RETRIEVAL_LIMIT = int(os.getenv("RETRIEVAL_LIMIT", "10"))

# Per-call deadline for embedding, chat and store requests
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "60.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

SIMILARITY_METRICS = ("cosine", "dot_product", "euclidean")

_ASTRA_SETTINGS = (
    "ASTRA_DB_API_ENDPOINT",
    "ASTRA_DB_API_TOKEN",
    "ASTRA_DB_NAMESPACE",
)


@dataclass(frozen=True)
class Settings:
    """Validated startup configuration."""

    embedding_api_key: str
    embedding_dimension: int
    similarity_metric: str
    collection_name: str
    astra_endpoint: Optional[str] = None
    astra_token: Optional[str] = None
    astra_namespace: Optional[str] = None
    vector_store_backend: str = "astra"
    embedding_base_url: str = EMBEDDING_BASE_URL
    embedding_model: str = EMBEDDING_MODEL
    chat_api_key: Optional[str] = None
    chat_base_url: str = CHAT_BASE_URL
    chat_model: str = CHAT_MODEL
    chunk_size: int = CHUNK_SIZE
    chunk_overlap: int = CHUNK_OVERLAP
    page_load_timeout: float = PAGE_LOAD_TIMEOUT
    retrieval_limit: int = RETRIEVAL_LIMIT
    http_timeout: float = HTTP_TIMEOUT
    data_dir: Path = field(default=DATA_DIR)
    log_level: str = LOG_LEVEL


def _parse_int(env: Mapping[str, str], name: str, default: int, problems: list) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        problems.append(f"{name} (not an integer: {raw!r})")
        return default


def _parse_float(env: Mapping[str, str], name: str, default: float, problems: list) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        problems.append(f"{name} (not a number: {raw!r})")
        return default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read and validate configuration from the environment.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Validated Settings

    Raises:
        ConfigError: Listing every missing or invalid setting
    """
    env = os.environ if environ is None else environ

    backend = env.get("VECTOR_STORE_BACKEND", VECTOR_STORE_BACKEND).lower()
    required = ["EMBEDDING_API_KEY", "ASTRA_DB_COLLECTION", "EMBEDDING_DIMENSION", "SIMILARITY_METRIC"]
    if backend == "astra":
        required.extend(_ASTRA_SETTINGS)

    missing = [name for name in required if not env.get(name)]
    problems = []

    if backend not in ("astra", "faiss"):
        problems.append(f"VECTOR_STORE_BACKEND (unknown backend: {backend!r})")

    dimension = _parse_int(env, "EMBEDDING_DIMENSION", 0, problems)
    if "EMBEDDING_DIMENSION" not in missing and dimension <= 0:
        problems.append("EMBEDDING_DIMENSION (must be positive)")

    metric = env.get("SIMILARITY_METRIC", "").lower()
    if metric and metric not in SIMILARITY_METRICS:
        problems.append(
            f"SIMILARITY_METRIC (must be one of {', '.join(SIMILARITY_METRICS)})"
        )

    chunk_size = _parse_int(env, "CHUNK_SIZE", CHUNK_SIZE, problems)
    chunk_overlap = _parse_int(env, "CHUNK_OVERLAP", CHUNK_OVERLAP, problems)
    if chunk_size <= 0:
        problems.append("CHUNK_SIZE (must be positive)")
    if chunk_overlap < 0 or chunk_overlap >= chunk_size:
        problems.append(
            f"CHUNK_OVERLAP (must be >= 0 and less than CHUNK_SIZE={chunk_size})"
        )

    retrieval_limit = _parse_int(env, "RETRIEVAL_LIMIT", RETRIEVAL_LIMIT, problems)
    if retrieval_limit <= 0:
        problems.append("RETRIEVAL_LIMIT (must be positive)")

    page_load_timeout = _parse_float(env, "PAGE_LOAD_TIMEOUT", PAGE_LOAD_TIMEOUT, problems)
    http_timeout = _parse_float(env, "HTTP_TIMEOUT", HTTP_TIMEOUT, problems)

    if missing or problems:
        details = [f"missing {name}" for name in missing] + [
            f"invalid {problem}" for problem in problems
        ]
        raise ConfigError(
            "Invalid configuration: " + "; ".join(details),
            missing=missing,
        )

    return Settings(
        embedding_api_key=env["EMBEDDING_API_KEY"],
        embedding_dimension=dimension,
        similarity_metric=metric,
        collection_name=env["ASTRA_DB_COLLECTION"],
        astra_endpoint=env.get("ASTRA_DB_API_ENDPOINT"),
        astra_token=env.get("ASTRA_DB_API_TOKEN"),
        astra_namespace=env.get("ASTRA_DB_NAMESPACE"),
        vector_store_backend=backend,
        embedding_base_url=env.get("EMBEDDING_BASE_URL", EMBEDDING_BASE_URL),
        embedding_model=env.get("EMBEDDING_MODEL", EMBEDDING_MODEL),
        chat_api_key=env.get("CHAT_API_KEY") or env["EMBEDDING_API_KEY"],
        chat_base_url=env.get("CHAT_BASE_URL", CHAT_BASE_URL),
        chat_model=env.get("CHAT_MODEL", CHAT_MODEL),
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        page_load_timeout=page_load_timeout,
        retrieval_limit=retrieval_limit,
        http_timeout=http_timeout,
        data_dir=Path(env.get("DATA_DIR", str(DATA_DIR))),
        log_level=env.get("LOG_LEVEL", LOG_LEVEL),
    )
