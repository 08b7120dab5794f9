"""Text chunking with overlap for the ingestion pipeline.

Implements character-based chunking to avoid tokenizer dependencies.
Consecutive chunks share exactly ``chunk_overlap`` characters, so dropping
the overlap prefix from every chunk after the first rebuilds the input.
"""
from typing import List
from dataclasses import dataclass
import structlog

from chatme import config

logger = structlog.get_logger()


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
        respect_boundaries: bool = False,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each chunk in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
            respect_boundaries: Cut at sentence/word boundaries when possible

        Raises:
            ValueError: If the size/overlap combination is invalid
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = (
            config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        )
        self.respect_boundaries = respect_boundaries

        # Validate parameters
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")
        if self.chunk_overlap < 0:
            raise ValueError(f"Overlap must not be negative, got {self.chunk_overlap}")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be less than "
                f"chunk size ({self.chunk_size})"
            )

        logger.info(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            respect_boundaries=self.respect_boundaries,
        )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects in document order
        """
        if not text:
            return []

        text_length = len(text)

        # Handle text shorter than chunk size
        if text_length <= self.chunk_size:
            logger.debug(
                "text_shorter_than_chunk_size",
                text_length=text_length,
                chunk_size=self.chunk_size,
            )
            return [
                TextChunk(
                    content=text,
                    char_start=0,
                    char_end=text_length,
                    chunk_index=0,
                )
            ]

        chunks = []
        chunk_index = 0
        start = 0

        while True:
            end = min(start + self.chunk_size, text_length)
            chunk_content = text[start:end]

            # Only adjust cuts that are not at the end of the text
            if self.respect_boundaries and end < text_length:
                chunk_content = self._adjust_chunk_boundary(chunk_content)
                end = start + len(chunk_content)

            chunks.append(
                TextChunk(
                    content=chunk_content,
                    char_start=start,
                    char_end=end,
                    chunk_index=chunk_index,
                )
            )

            if end >= text_length:
                break

            # Move to next chunk with overlap
            start = end - self.chunk_overlap
            chunk_index += 1

        logger.info(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // len(chunks),
        )

        return chunks

    def _adjust_chunk_boundary(self, chunk_content: str) -> str:
        """Adjust chunk boundary to avoid breaking mid-word or mid-sentence.

        The shortened chunk is always longer than the overlap so the next
        chunk starts after this one does.

        Args:
            chunk_content: Current chunk content

        Returns:
            Adjusted chunk content
        """
        candidates = []

        # Sentence boundary (period, !, ?)
        for break_char in (". ", "! ", "? ", ".\n", "!\n", "?\n"):
            last_break = chunk_content.rfind(break_char)
            if last_break > len(chunk_content) * 0.7:  # At least 70% through chunk
                candidates.append(last_break + len(break_char))
                break

        # Paragraph, then line boundary
        for break_char in ("\n\n", "\n"):
            last_break = chunk_content.rfind(break_char)
            if last_break > len(chunk_content) * 0.7:
                candidates.append(last_break + len(break_char))
                break

        # Word boundary (space)
        last_space = chunk_content.rfind(" ")
        if last_space > len(chunk_content) * 0.8:  # At least 80% through chunk
            candidates.append(last_space + 1)

        for cut in candidates:
            if cut > self.chunk_overlap:
                return chunk_content[:cut]

        # If no good break point found, just return original
        return chunk_content

    def get_chunk_stats(self, chunks: List[TextChunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of TextChunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


def segment(text: str, chunk_size: int, overlap: int) -> List[str]:
    """Split text into fixed-size overlapping pieces.

    Args:
        text: Text to split
        chunk_size: Maximum piece length in characters
        overlap: Characters shared by consecutive pieces

    Returns:
        List of chunk strings
    """
    chunker = TextChunker(chunk_size=chunk_size, chunk_overlap=overlap)
    return [chunk.content for chunk in chunker.chunk_text(text)]
