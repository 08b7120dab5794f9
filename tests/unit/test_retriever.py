"""Tests for retrieval and grounded prompt assembly."""
import pytest

from chatme.errors import EmbeddingError, InvalidInput, StoreReadError
from chatme.rag.retriever import SYSTEM_PROMPT_TEMPLATE, PromptAssembler
from chatme.rag.store import Collection, DocumentChunk, SimilarityMetric

from fakes import DIMENSION, FakeEmbedder


class FailingStore:
    async def search(self, collection, query_vector, limit):
        raise StoreReadError("find failed: connection refused", collection=collection.name)


async def seeded_assembler(faiss_store, embedder):
    collection = await faiss_store.ensure_collection("kb", DIMENSION, SimilarityMetric.COSINE)
    for vector, text in [
        ([1.0, 0.0, 0.0, 0.0], "Ducks can swim."),
        ([0.0, 1.0, 0.0, 0.0], "Geese migrate south."),
        ([0.7, 0.7, 0.0, 0.0], "Both are waterfowl."),
    ]:
        await faiss_store.insert(
            collection, DocumentChunk(vector=vector, text=text, source_url="https://birds.example")
        )
    embedder.vectors["Can ducks swim?"] = [1.0, 0.1, 0.0, 0.0]
    return PromptAssembler(embedder=embedder, store=faiss_store, collection=collection)


@pytest.mark.asyncio
async def test_context_holds_all_chunks_most_similar_first(faiss_store, embedder):
    assembler = await seeded_assembler(faiss_store, embedder)

    context = await assembler.build_context("Can ducks swim?", limit=10)

    texts = [c.text for c in context.retrieved_chunks]
    assert texts == ["Ducks can swim.", "Both are waterfowl.", "Geese migrate south."]
    assert context.limit == 10
    assert context.query_vector == [1.0, 0.1, 0.0, 0.0]
    prompt = context.prompt_text
    assert prompt.index("Ducks can swim.") < prompt.index("Both are waterfowl.") < prompt.index("Geese migrate south.")
    assert "Can ducks swim?" in prompt
    assert "If the context doesn't contain relevant information, say so" in prompt


@pytest.mark.asyncio
async def test_search_failure_degrades_to_empty_context(embedder):
    collection = Collection("kb", DIMENSION, SimilarityMetric.COSINE)
    assembler = PromptAssembler(embedder=embedder, store=FailingStore(), collection=collection)

    context = await assembler.build_context("anything there?")

    assert context.retrieved_chunks == []
    assert context.prompt_text == SYSTEM_PROMPT_TEMPLATE.format(
        context="", question="anything there?"
    )


@pytest.mark.asyncio
async def test_embedding_failure_propagates(faiss_store):
    embedder = FakeEmbedder()
    embedder.fail_on = "question"
    assembler = await seeded_assembler(faiss_store, embedder)

    with pytest.raises(EmbeddingError):
        await assembler.build_context("a question")


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   "])
async def test_empty_query_is_invalid(faiss_store, embedder, query):
    assembler = await seeded_assembler(faiss_store, embedder)

    with pytest.raises(InvalidInput):
        await assembler.build_context(query)


@pytest.mark.asyncio
async def test_build_messages_prepends_system_prompt(faiss_store, embedder):
    assembler = await seeded_assembler(faiss_store, embedder)
    context = await assembler.build_context("Can ducks swim?", limit=1)
    history = [
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "hi"},
        {"role": "tool", "content": "ignored"},
        {"role": "user", "content": "Can ducks swim?"},
    ]

    messages = assembler.build_messages(history, context)

    assert messages[0] == {"role": "system", "content": context.prompt_text}
    assert [m["role"] for m in messages[1:]] == ["user", "assistant", "user"]
    assert context.sources[0]["source"] == "https://birds.example"
