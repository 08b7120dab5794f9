"""Retrieval and prompt assembly for grounded chat.

Handles:
- Query embedding generation
- Vector search over the knowledge base
- Context formatting into the system prompt
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from chatme import config
from chatme.errors import InvalidInput
from chatme.llm_client import EmbeddingClient
from chatme.rag.store import Collection, DocumentChunk, VectorStore

logger = structlog.get_logger()

SYSTEM_PROMPT_TEMPLATE = """You are a knowledgeable assistant who provides clear and accurate responses.

Context information:
{context}

Please use the context above to help answer this question:
{question}

Guidelines:
- Answer using only the information in the context above
- Give clear short and concise answers
- Do not include any images in your response
- If the context doesn't contain relevant information, say so"""


@dataclass
class PromptContext:
    """Everything retrieved for one query, plus the finished prompt."""

    prompt_text: str
    retrieved_chunks: List[DocumentChunk] = field(default_factory=list)
    query_vector: List[float] = field(default_factory=list)
    limit: int = 0

    @property
    def sources(self) -> List[Dict[str, object]]:
        """Source summaries for display."""
        return [
            {
                "source": chunk.source_url,
                "content_preview": chunk.text[:200] + "..."
                if len(chunk.text) > 200
                else chunk.text,
                "similarity": chunk.similarity,
            }
            for chunk in self.retrieved_chunks
        ]


def format_context(chunks: List[DocumentChunk]) -> str:
    """Join chunk texts in retrieval order."""
    return "\n\n".join(chunk.text.strip() for chunk in chunks)


def build_prompt(question: str, chunks: List[DocumentChunk]) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=format_context(chunks), question=question)


class PromptAssembler:
    """Turns a user question into a grounded system prompt."""

    def __init__(
        self,
        embedder: EmbeddingClient,
        store: VectorStore,
        collection: Collection,
        default_limit: int = None,
    ):
        """Initialize the assembler.

        Args:
            embedder: Embedding client
            store: Vector store client
            collection: Collection to search
            default_limit: Number of chunks to retrieve (default from config)
        """
        self.embedder = embedder
        self.store = store
        self.collection = collection
        self.default_limit = default_limit or config.RETRIEVAL_LIMIT

        logger.info(
            "assembler_initialized",
            collection=self.collection.name,
            default_limit=self.default_limit,
        )

    async def build_context(
        self, query_text: str, limit: Optional[int] = None
    ) -> PromptContext:
        """Retrieve context for a question and wrap it in the prompt template.

        Search failures degrade to an empty context so the chat can still
        answer, just without grounding.

        Args:
            query_text: User question
            limit: Maximum number of chunks to retrieve

        Returns:
            PromptContext with the prompt and the chunks, most similar first

        Raises:
            InvalidInput: If the query is empty or limit is not positive
            EmbeddingError: If the query cannot be embedded
        """
        if not query_text or not query_text.strip():
            raise InvalidInput("Query text cannot be empty")

        limit = self.default_limit if limit is None else limit
        if limit < 1:
            raise InvalidInput(f"Retrieval limit must be positive, got {limit}")

        logger.info("retrieval_started", query_length=len(query_text), limit=limit)

        query_vector = await self.embedder.embed(query_text)

        try:
            chunks = await self.store.search(self.collection, query_vector, limit)
        except Exception as e:
            # Retrieval is best effort; answer without grounding
            logger.error(
                "retrieval_failed",
                collection=self.collection.name,
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query_text[:100],
            )
            chunks = []

        logger.info(
            "retrieval_completed",
            query_length=len(query_text),
            results_returned=len(chunks),
            top_similarity=chunks[0].similarity if chunks else None,
        )

        return PromptContext(
            prompt_text=build_prompt(query_text, chunks),
            retrieved_chunks=chunks,
            query_vector=query_vector,
            limit=limit,
        )

    @staticmethod
    def build_messages(
        history: List[Dict[str, str]], context: PromptContext
    ) -> List[Dict[str, str]]:
        """Prepend the grounded system prompt to the conversation turns."""
        turns = [
            {"role": m["role"], "content": m["content"]}
            for m in history
            if m.get("role") in ("user", "assistant")
        ]
        return [{"role": "system", "content": context.prompt_text}] + turns
