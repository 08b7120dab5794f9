"""Test doubles shared across the unit tests."""
import asyncio
import hashlib
from typing import Dict, List, Optional

from chatme.errors import EmbeddingError, FetchError

DIMENSION = 4


class FakeEmbedder:
    """Deterministic embedder; known texts map to fixed vectors."""

    def __init__(self, dimension: int = DIMENSION, vectors: Optional[Dict[str, List[float]]] = None):
        self.dimension = dimension
        self.vectors = vectors or {}
        self.calls: List[str] = []
        self.fail_on: Optional[str] = None

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingError("embedding service unavailable")
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode()).digest()
        return [b / 255.0 + 0.01 for b in digest[: self.dimension]]


class FakeExtractor:
    """Returns canned page text per URL."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = pages
        self.calls: List[str] = []

    async def extract(self, url: str) -> str:
        self.calls.append(url)
        if url not in self.pages:
            raise FetchError(f"Failed to load {url}", url=url)
        return self.pages[url]


class FakeSession:
    """Rendering session that records how often it was closed."""

    def __init__(self, text: str = "", error: Optional[Exception] = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.close_calls = 0
        self.loaded: List[str] = []

    async def load(self, url: str, timeout: float, wait_until: str) -> str:
        self.loaded.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.text

    async def close(self) -> None:
        self.close_calls += 1


class FakeChatClient:
    model = "fake-model"

    def __init__(self, reply: str = "The answer.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.requests: List[list] = []

    async def chat(self, messages, temperature=None) -> str:
        self.requests.append(messages)
        if self.error is not None:
            raise self.error
        return self.reply

    async def stream_chat(self, messages, temperature=None):
        self.requests.append(messages)
        if self.error is not None:
            raise self.error
        for word in self.reply.split(" "):
            yield word + " "

