"""FAISS vector store for local development and tests.

Handles:
- Per-collection flat indexes matching the configured similarity metric
- Dimension validation on insert and search
- Optional index and metadata persistence
"""
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import faiss
import numpy as np
import structlog

from chatme.errors import InvalidInput, StoreReadError, StoreWriteError
from chatme.rag.store import Collection, DocumentChunk, SimilarityMetric

logger = structlog.get_logger()


@dataclass
class _LocalCollection:
    collection: Collection
    index: faiss.Index
    records: List[Dict[str, Any]] = field(default_factory=list)


def _new_index(dimension: int, metric: SimilarityMetric) -> faiss.Index:
    # Exact search, fine for <100k vectors
    if metric == SimilarityMetric.EUCLIDEAN:
        return faiss.IndexFlatL2(dimension)
    return faiss.IndexFlatIP(dimension)


class FaissVectorStore:
    """In-process vector store with the same contract as the remote one."""

    def __init__(self, index_dir: Optional[Path] = None):
        """Initialize the FAISS vector store.

        Args:
            index_dir: Directory to persist indexes in (in-memory only if None)
        """
        self.index_dir = Path(index_dir) if index_dir else None
        self._collections: Dict[str, _LocalCollection] = {}

        logger.info(
            "faiss_store_initialized",
            index_dir=str(self.index_dir) if self.index_dir else None,
        )

    def _paths(self, name: str):
        return self.index_dir / f"{name}.index", self.index_dir / f"{name}.json"

    def _load(self, name: str) -> Optional[_LocalCollection]:
        """Load a persisted collection, if there is one."""
        if self.index_dir is None:
            return None

        index_path, metadata_path = self._paths(name)
        if not (index_path.exists() and metadata_path.exists()):
            return None

        try:
            with open(metadata_path, "r") as f:
                metadata = json.load(f)
            index = faiss.read_index(str(index_path))
        except Exception as e:
            raise StoreReadError(
                f"Failed to load FAISS collection: {e}", collection=name
            ) from e

        local = _LocalCollection(
            collection=Collection(
                name=name,
                dimension=metadata["dimension"],
                metric=SimilarityMetric(metadata["metric"]),
            ),
            index=index,
            records=metadata.get("records", []),
        )
        self._collections[name] = local

        logger.info(
            "faiss_collection_loaded",
            collection=name,
            dimension=local.collection.dimension,
            vector_count=index.ntotal,
        )
        return local

    def _get(self, name: str, error_class: type) -> _LocalCollection:
        local = self._collections.get(name) or self._load(name)
        if local is None:
            raise error_class(f"Collection not found: {name}", collection=name)
        return local

    def _as_matrix(self, vector: List[float], metric: SimilarityMetric) -> np.ndarray:
        matrix = np.array([vector], dtype=np.float32)
        if metric == SimilarityMetric.COSINE:
            faiss.normalize_L2(matrix)
        return matrix

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        metric: SimilarityMetric = SimilarityMetric.DOT_PRODUCT,
    ) -> Collection:
        """Return the named collection, creating it when absent.

        Raises:
            StoreWriteError: If it exists with a different dimension or metric
        """
        metric = SimilarityMetric(metric)
        local = self._collections.get(name) or self._load(name)

        if local is not None:
            existing = local.collection
            if existing.dimension != dimension or existing.metric != metric:
                raise StoreWriteError(
                    f"Collection {name} exists with dimension={existing.dimension}, "
                    f"metric={existing.metric.value}; requested dimension={dimension}, "
                    f"metric={metric.value}",
                    collection=name,
                )
            logger.info("collection_exists", collection=name)
            return existing

        collection = Collection(name=name, dimension=dimension, metric=metric)
        self._collections[name] = _LocalCollection(
            collection=collection, index=_new_index(dimension, metric)
        )

        logger.info(
            "collection_created",
            collection=name,
            dimension=dimension,
            metric=metric.value,
        )
        return collection

    async def insert(self, collection: Collection, chunk: DocumentChunk) -> str:
        """Add one chunk to the collection's index.

        Raises:
            StoreWriteError: On missing collection or dimension mismatch
        """
        local = self._get(collection.name, StoreWriteError)
        dimension = local.collection.dimension

        if len(chunk.vector) != dimension:
            raise StoreWriteError(
                f"Vector dimension mismatch: collection {collection.name} expects "
                f"{dimension}, got {len(chunk.vector)}",
                collection=collection.name,
            )

        local.index.add(self._as_matrix(chunk.vector, local.collection.metric))

        chunk_id = uuid.uuid4().hex
        local.records.append(
            {
                "_id": chunk_id,
                "$vector": list(chunk.vector),
                "text": chunk.text,
                "url": chunk.source_url,
                "timestamp": chunk.inserted_at.isoformat(),
            }
        )

        logger.debug(
            "chunk_inserted",
            collection=collection.name,
            id=chunk_id,
            total_vectors=local.index.ntotal,
        )
        return chunk_id

    async def search(
        self, collection: Collection, query_vector: List[float], limit: int
    ) -> List[DocumentChunk]:
        """Search for the chunks most similar to a query vector.

        Returns:
            Up to ``limit`` chunks, most similar first

        Raises:
            InvalidInput: If limit is not positive
            StoreReadError: On query dimension mismatch
        """
        if limit < 1:
            raise InvalidInput(f"Search limit must be positive, got {limit}")

        local = self._collections.get(collection.name) or self._load(collection.name)
        if local is None:
            # Nothing ingested yet
            logger.info("collection_not_created_yet", collection=collection.name)
            return []
        dimension = local.collection.dimension

        if len(query_vector) != dimension:
            raise StoreReadError(
                f"Query dimension mismatch: expected {dimension}, "
                f"got {len(query_vector)}",
                collection=collection.name,
            )

        # Ensure we don't request more results than we have
        top_k = min(limit, local.index.ntotal)
        if top_k == 0:
            return []

        scores, indices = local.index.search(
            self._as_matrix(query_vector, local.collection.metric), top_k
        )

        results = []
        for score, position in zip(scores[0].tolist(), indices[0].tolist()):
            if position < 0:
                continue
            if local.collection.metric == SimilarityMetric.EUCLIDEAN:
                # Squared L2 distance, lower is closer
                similarity = 1.0 / (1.0 + score)
            else:
                similarity = score
            record = dict(local.records[position], **{"$similarity": similarity})
            results.append(DocumentChunk.from_document(record))

        logger.info(
            "vector_search_completed",
            collection=collection.name,
            limit=limit,
            results_found=len(results),
        )
        return results

    async def save(self) -> None:
        """Write every collection's index and metadata to ``index_dir``."""
        if self.index_dir is None:
            return

        self.index_dir.mkdir(parents=True, exist_ok=True)

        for name, local in self._collections.items():
            index_path, metadata_path = self._paths(name)
            metadata = {
                "dimension": local.collection.dimension,
                "metric": local.collection.metric.value,
                "vector_count": local.index.ntotal,
                "saved_at": datetime.now().isoformat(),
                "records": local.records,
            }
            try:
                faiss.write_index(local.index, str(index_path))
                with open(metadata_path, "w") as f:
                    json.dump(metadata, f)
            except Exception as e:
                raise StoreWriteError(
                    f"Failed to save FAISS collection: {e}", collection=name
                ) from e

            logger.info(
                "faiss_collection_saved",
                collection=name,
                index_path=str(index_path),
                vector_count=local.index.ntotal,
            )

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        await self.save()
