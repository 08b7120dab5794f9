"""Vector store data model and the client contract both backends follow."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Protocol


class SimilarityMetric(str, Enum):
    """Distance function a collection ranks neighbours by."""

    COSINE = "cosine"
    DOT_PRODUCT = "dot_product"
    EUCLIDEAN = "euclidean"


@dataclass(frozen=True)
class Collection:
    """A named, dimension-typed container of chunks."""

    name: str
    dimension: int
    metric: SimilarityMetric


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DocumentChunk:
    """One embedded piece of page text.

    ``id`` and ``similarity`` are only set on chunks returned by a search.
    """

    vector: List[float]
    text: str
    source_url: str
    inserted_at: datetime = field(default_factory=_utcnow)
    id: Optional[str] = None
    similarity: Optional[float] = None

    def to_document(self) -> dict:
        """Serialize to the stored document shape."""
        return {
            "$vector": list(self.vector),
            "text": self.text,
            "url": self.source_url,
            "timestamp": self.inserted_at.isoformat(),
        }

    @classmethod
    def from_document(cls, doc: dict) -> "DocumentChunk":
        """Build a chunk from a stored document."""
        timestamp = doc.get("timestamp")
        try:
            inserted_at = datetime.fromisoformat(timestamp) if timestamp else _utcnow()
        except ValueError:
            inserted_at = _utcnow()

        doc_id = doc.get("_id")
        return cls(
            vector=list(doc.get("$vector") or []),
            text=doc.get("text", ""),
            source_url=doc.get("url", ""),
            inserted_at=inserted_at,
            id=str(doc_id) if doc_id is not None else None,
            similarity=doc.get("$similarity"),
        )


class VectorStore(Protocol):
    """Operations the pipeline and the assembler rely on."""

    async def ensure_collection(
        self, name: str, dimension: int, metric: SimilarityMetric
    ) -> Collection:
        ...

    async def insert(self, collection: Collection, chunk: DocumentChunk) -> str:
        ...

    async def search(
        self, collection: Collection, query_vector: List[float], limit: int
    ) -> List[DocumentChunk]:
        ...

    async def ping(self) -> bool:
        ...

    async def aclose(self) -> None:
        ...
