"""Shared fixtures for the test suite."""
from typing import Dict

import pytest

from chatme.config import load_settings
from chatme.rag.chunker import TextChunker
from chatme.rag.store_faiss import FaissVectorStore
from chatme.services import Services

from fakes import DIMENSION, FakeChatClient, FakeEmbedder, FakeExtractor


@pytest.fixture
def base_env() -> Dict[str, str]:
    return {
        "EMBEDDING_API_KEY": "test-key",
        "ASTRA_DB_API_ENDPOINT": "https://db.example.com",
        "ASTRA_DB_API_TOKEN": "AstraCS:token",
        "ASTRA_DB_NAMESPACE": "default_keyspace",
        "ASTRA_DB_COLLECTION": "knowledge",
        "EMBEDDING_DIMENSION": str(DIMENSION),
        "SIMILARITY_METRIC": "cosine",
    }


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def faiss_store() -> FaissVectorStore:
    return FaissVectorStore()


@pytest.fixture
def services(base_env, embedder, faiss_store):
    settings = load_settings(dict(base_env, VECTOR_STORE_BACKEND="faiss", CHUNK_SIZE="20", CHUNK_OVERLAP="5"))
    return Services(
        settings=settings,
        embedder=embedder,
        chat_client=FakeChatClient(),
        store=faiss_store,
        extractor=FakeExtractor({"https://example.com": "Example page text about ducks and geese."}),
        chunker=TextChunker(chunk_size=20, chunk_overlap=5),
    )
