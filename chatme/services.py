"""Process-wide service objects, built once from validated settings."""
from dataclasses import dataclass

import structlog

from chatme.config import Settings
from chatme.llm_client import ChatClient, EmbeddingClient
from chatme.rag.chunker import TextChunker
from chatme.rag.extractor import ContentExtractor
from chatme.rag.ingest import IngestPipeline
from chatme.rag.retriever import PromptAssembler
from chatme.rag.store import Collection, SimilarityMetric, VectorStore
from chatme.rag.store_astra import AstraVectorStore
from chatme.rag.store_faiss import FaissVectorStore

logger = structlog.get_logger()


@dataclass
class Services:
    """Shared client handles passed into the pipeline, assembler and app."""

    settings: Settings
    embedder: EmbeddingClient
    chat_client: ChatClient
    store: VectorStore
    extractor: ContentExtractor
    chunker: TextChunker

    @property
    def collection(self) -> Collection:
        return Collection(
            name=self.settings.collection_name,
            dimension=self.settings.embedding_dimension,
            metric=SimilarityMetric(self.settings.similarity_metric),
        )

    def ingest_pipeline(self, isolate_failures: bool = False) -> IngestPipeline:
        return IngestPipeline(
            extractor=self.extractor,
            chunker=self.chunker,
            embedder=self.embedder,
            store=self.store,
            collection_name=self.settings.collection_name,
            dimension=self.settings.embedding_dimension,
            metric=SimilarityMetric(self.settings.similarity_metric),
            isolate_failures=isolate_failures,
        )

    def assembler(self) -> PromptAssembler:
        return PromptAssembler(
            embedder=self.embedder,
            store=self.store,
            collection=self.collection,
            default_limit=self.settings.retrieval_limit,
        )

    async def aclose(self) -> None:
        await self.store.aclose()


def build_store(settings: Settings) -> VectorStore:
    if settings.vector_store_backend == "faiss":
        return FaissVectorStore(index_dir=settings.data_dir / "faiss")
    return AstraVectorStore(
        endpoint=settings.astra_endpoint,
        token=settings.astra_token,
        namespace=settings.astra_namespace,
        timeout=settings.http_timeout,
    )


def build_services(settings: Settings) -> Services:
    """Construct every client once for the lifetime of the process."""
    services = Services(
        settings=settings,
        embedder=EmbeddingClient(
            api_key=settings.embedding_api_key,
            dimension=settings.embedding_dimension,
            base_url=settings.embedding_base_url,
            model=settings.embedding_model,
            timeout=settings.http_timeout,
        ),
        chat_client=ChatClient(
            api_key=settings.chat_api_key,
            base_url=settings.chat_base_url,
            model=settings.chat_model,
            timeout=settings.http_timeout,
        ),
        store=build_store(settings),
        extractor=ContentExtractor(timeout=settings.page_load_timeout),
        chunker=TextChunker(
            chunk_size=settings.chunk_size, chunk_overlap=settings.chunk_overlap
        ),
    )

    logger.info(
        "services_built",
        backend=settings.vector_store_backend,
        collection=settings.collection_name,
        embedding_model=settings.embedding_model,
        dimension=settings.embedding_dimension,
    )

    return services
