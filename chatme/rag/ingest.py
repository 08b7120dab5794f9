"""Ingest pipeline for loading web pages into the vector store.

Orchestrates:
- Collection creation (once per run)
- Page text extraction
- Text chunking
- Embedding generation
- Chunk insertion
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

import structlog

from chatme.errors import InvalidInput
from chatme.llm_client import EmbeddingClient
from chatme.rag.chunker import TextChunker
from chatme.rag.extractor import ContentExtractor
from chatme.rag.store import DocumentChunk, SimilarityMetric, VectorStore

logger = structlog.get_logger()

STATUS_OK = "ok"
STATUS_FAILED = "failed"


@dataclass
class UrlResult:
    """Outcome of ingesting one URL."""

    url: str
    status: str
    chunks_inserted: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "status": self.status,
            "chunks_inserted": self.chunks_inserted,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class IngestReport:
    """Outcome of one ingestion run."""

    results: List[UrlResult] = field(default_factory=list)

    @property
    def chunks_inserted(self) -> int:
        return sum(r.chunks_inserted for r in self.results)

    @property
    def urls_processed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_OK)

    @property
    def urls_failed(self) -> int:
        return sum(1 for r in self.results if r.status == STATUS_FAILED)

    @property
    def success(self) -> bool:
        return self.urls_failed == 0

    @property
    def message(self) -> str:
        if self.success:
            return "Data loaded successfully"
        return f"{self.urls_failed} of {len(self.results)} URL(s) failed to load"

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "chunks_inserted": self.chunks_inserted,
            "results": [r.to_dict() for r in self.results],
        }


class IngestPipeline:
    """Pipeline for ingesting web pages into the knowledge base."""

    def __init__(
        self,
        extractor: ContentExtractor,
        chunker: TextChunker,
        embedder: EmbeddingClient,
        store: VectorStore,
        collection_name: str,
        dimension: int,
        metric: SimilarityMetric = SimilarityMetric.DOT_PRODUCT,
        isolate_failures: bool = False,
    ):
        """Initialize the ingest pipeline.

        Args:
            extractor: Page text extractor
            chunker: Text chunker
            embedder: Embedding client
            store: Vector store client
            collection_name: Collection to write into
            dimension: Embedding dimension of the collection
            metric: Similarity metric used if the collection is created
            isolate_failures: Record per-URL failures and keep going instead
                of aborting the whole batch
        """
        self.extractor = extractor
        self.chunker = chunker
        self.embedder = embedder
        self.store = store
        self.collection_name = collection_name
        self.dimension = dimension
        self.metric = SimilarityMetric(metric)
        self.isolate_failures = isolate_failures

        logger.info(
            "ingest_pipeline_initialized",
            collection=self.collection_name,
            dimension=self.dimension,
            metric=self.metric.value,
            chunk_size=self.chunker.chunk_size,
            chunk_overlap=self.chunker.chunk_overlap,
            isolate_failures=self.isolate_failures,
        )

    async def ingest_url(
        self, collection, url: str, result: Optional[UrlResult] = None
    ) -> UrlResult:
        """Extract, chunk, embed and insert a single page.

        Args:
            collection: Ensured target collection
            url: Page URL
            result: Result to count inserted chunks on; it keeps the partial
                count when a later chunk fails

        Raises:
            FetchError, EmbeddingError, StoreWriteError: On the first failure
        """
        if result is None:
            result = UrlResult(url=url, status=STATUS_OK)

        logger.info("ingesting_url", url=url)

        text = await self.extractor.extract(url)
        chunks = self.chunker.chunk_text(text)

        if not chunks:
            logger.warning("no_chunks_created", url=url)
            return result

        logger.info("url_chunked", url=url, **self.chunker.get_chunk_stats(chunks))

        for chunk in chunks:
            try:
                vector = await self.embedder.embed(chunk.content)
                await self.store.insert(
                    collection,
                    DocumentChunk(
                        vector=vector,
                        text=chunk.content,
                        source_url=url,
                        inserted_at=datetime.now(timezone.utc),
                    ),
                )
            except Exception as e:
                logger.error(
                    "chunk_ingestion_failed",
                    url=url,
                    chunk_index=chunk.chunk_index,
                    chunks_inserted=result.chunks_inserted,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            result.chunks_inserted += 1

        logger.info("url_ingested", url=url, chunks_inserted=result.chunks_inserted)

        return result

    async def ingest(
        self,
        urls: Sequence[str],
        progress_callback: Optional[Callable[[int, int, str], None]] = None,
    ) -> IngestReport:
        """Ingest a batch of URLs.

        Args:
            urls: Page URLs; blank entries are skipped
            progress_callback: Optional callback function(current, total, url)

        Returns:
            IngestReport with one result per non-blank URL

        Raises:
            InvalidInput: If there is no URL to ingest
            ChatmeError: On the first failure unless isolate_failures is set
        """
        if not urls:
            raise InvalidInput("No URLs provided")

        targets = [url.strip() for url in urls if url and url.strip()]
        skipped = len(urls) - len(targets)
        if skipped:
            logger.warning("blank_urls_skipped", count=skipped)
        if not targets:
            raise InvalidInput("No URLs provided")

        logger.info("starting_ingest", url_count=len(targets))

        collection = await self.store.ensure_collection(
            self.collection_name, self.dimension, self.metric
        )

        report = IngestReport()

        for idx, url in enumerate(targets, 1):
            if progress_callback:
                progress_callback(idx, len(targets), url)

            result = UrlResult(url=url, status=STATUS_OK)
            try:
                await self.ingest_url(collection, url, result)
            except Exception as e:
                logger.error(
                    "url_ingestion_failed",
                    url=url,
                    chunks_inserted=result.chunks_inserted,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if not self.isolate_failures:
                    raise
                result.status = STATUS_FAILED
                result.error = str(e)

            report.results.append(result)

        logger.info(
            "ingest_completed",
            urls_processed=report.urls_processed,
            urls_failed=report.urls_failed,
            chunks_inserted=report.chunks_inserted,
        )

        return report
