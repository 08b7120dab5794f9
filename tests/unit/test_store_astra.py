"""Tests for the Data API store client against an in-memory fake server."""
import json

import httpx
import pytest

from chatme.errors import InvalidInput, StoreReadError, StoreWriteError
from chatme.rag.store import Collection, DocumentChunk, SimilarityMetric
from chatme.rag.store_astra import AstraVectorStore

ENDPOINT = "https://db-id-region.apps.astra.datastax.com"
NAMESPACE = "default_keyspace"


class FakeDataApi:
    """Just enough of the Data API to exercise the client."""

    def __init__(self):
        self.collections = {}
        self.commands = []
        self.create_error = None
        self.find_fails = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Token"] == "AstraCS:token"
        parts = request.url.path.strip("/").split("/")
        assert parts[:4] == ["api", "json", "v1", NAMESPACE]
        collection = parts[4] if len(parts) > 4 else None

        body = json.loads(request.content)
        name = next(iter(body))
        self.commands.append((name, collection))
        args = body[name]

        if name == "createCollection":
            if self.create_error:
                return httpx.Response(200, json={"errors": [self.create_error]})
            self.collections.setdefault(args["name"], [])
            return httpx.Response(200, json={"status": {"ok": 1}})

        if name == "findCollections":
            return httpx.Response(200, json={"status": {"collections": list(self.collections)}})

        if collection not in self.collections:
            return httpx.Response(
                200,
                json={"errors": [{"errorCode": "COLLECTION_NOT_EXIST", "message": "Collection does not exist"}]},
            )

        docs = self.collections[collection]

        if name == "insertOne":
            doc = dict(args["document"], _id=f"id-{len(docs)}")
            docs.append(doc)
            return httpx.Response(200, json={"status": {"insertedIds": [doc["_id"]]}})

        if name == "find":
            if self.find_fails:
                return httpx.Response(503, text="unavailable")
            limit = args.get("options", {}).get("limit", 20)
            query = args.get("sort", {}).get("$vector")
            results = [dict(d) for d in docs]
            if query is not None:
                for d in results:
                    d["$similarity"] = sum(a * b for a, b in zip(query, d["$vector"]))
                results.sort(key=lambda d: d["$similarity"], reverse=True)
            return httpx.Response(200, json={"data": {"documents": results[:limit]}})

        raise AssertionError(f"unexpected command {name}")


@pytest.fixture
def api():
    return FakeDataApi()


@pytest.fixture
def store(api):
    return AstraVectorStore(
        endpoint=ENDPOINT,
        token="AstraCS:token",
        namespace=NAMESPACE,
        transport=httpx.MockTransport(api),
    )


@pytest.mark.asyncio
async def test_missing_collection_is_created(store, api):
    collection = await store.ensure_collection("kb", 3, SimilarityMetric.DOT_PRODUCT)

    assert collection == Collection("kb", 3, SimilarityMetric.DOT_PRODUCT)
    assert "kb" in api.collections
    assert [c[0] for c in api.commands] == ["find", "createCollection"]


@pytest.mark.asyncio
async def test_ensure_collection_twice_creates_once(store, api):
    await store.ensure_collection("kb", 3, SimilarityMetric.DOT_PRODUCT)
    await store.ensure_collection("kb", 3, SimilarityMetric.DOT_PRODUCT)

    assert [c[0] for c in api.commands].count("createCollection") == 1
    assert list(api.collections) == ["kb"]


@pytest.mark.asyncio
async def test_already_exists_response_counts_as_success(store, api):
    api.create_error = {
        "errorCode": "COLLECTION_ALREADY_EXISTS",
        "message": "Collection 'kb' already exists",
    }

    collection = await store.ensure_collection("kb", 3, SimilarityMetric.COSINE)

    assert collection.name == "kb"


@pytest.mark.asyncio
async def test_conflicting_settings_error_is_not_treated_as_existing(store, api):
    api.create_error = {
        "errorCode": "EXISTING_COLLECTION_DIFFERENT_SETTINGS",
        "message": "Collection already exists but with different settings",
    }

    with pytest.raises(StoreWriteError, match="different settings"):
        await store.ensure_collection("kb", 3, SimilarityMetric.COSINE)


@pytest.mark.asyncio
async def test_other_create_errors_raise(store, api):
    api.create_error = {"errorCode": "TOO_MANY_COLLECTIONS", "message": "limit reached"}

    with pytest.raises(StoreWriteError, match="limit reached"):
        await store.ensure_collection("kb", 3, SimilarityMetric.COSINE)


@pytest.mark.asyncio
async def test_insert_sends_document_shape(store, api):
    collection = await store.ensure_collection("kb", 3, SimilarityMetric.DOT_PRODUCT)

    inserted_id = await store.insert(
        collection,
        DocumentChunk(vector=[0.1, 0.2, 0.3], text="hello", source_url="https://example.com"),
    )

    stored = api.collections["kb"][0]
    assert inserted_id == "id-0"
    assert stored["$vector"] == [0.1, 0.2, 0.3]
    assert stored["text"] == "hello"
    assert stored["url"] == "https://example.com"
    assert "timestamp" in stored


@pytest.mark.asyncio
async def test_insert_rejects_wrong_dimension_before_sending(store, api):
    collection = await store.ensure_collection("kb", 3, SimilarityMetric.DOT_PRODUCT)
    sent = len(api.commands)

    with pytest.raises(StoreWriteError):
        await store.insert(collection, DocumentChunk(vector=[0.1], text="x", source_url="u"))

    assert len(api.commands) == sent


@pytest.mark.asyncio
async def test_search_empty_collection(store):
    collection = await store.ensure_collection("kb", 2, SimilarityMetric.DOT_PRODUCT)

    assert await store.search(collection, [1.0, 0.0], 10) == []


@pytest.mark.asyncio
async def test_search_returns_available_chunks_in_order(store):
    collection = await store.ensure_collection("kb", 2, SimilarityMetric.DOT_PRODUCT)
    for vector, text in [([0.1, 0.9], "low"), ([0.9, 0.1], "high"), ([0.5, 0.5], "mid")]:
        await store.insert(collection, DocumentChunk(vector=vector, text=text, source_url="u"))

    results = await store.search(collection, [1.0, 0.0], 10)

    assert [r.text for r in results] == ["high", "mid", "low"]
    assert results[0].similarity == pytest.approx(0.9)
    assert results[0].vector == [0.9, 0.1]


@pytest.mark.asyncio
async def test_search_transport_failure_is_read_error(store, api):
    collection = await store.ensure_collection("kb", 2, SimilarityMetric.DOT_PRODUCT)
    api.find_fails = True

    with pytest.raises(StoreReadError) as exc_info:
        await store.search(collection, [1.0, 0.0], 10)

    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_search_rejects_non_positive_limit(store):
    collection = Collection("kb", 2, SimilarityMetric.DOT_PRODUCT)

    with pytest.raises(InvalidInput):
        await store.search(collection, [1.0, 0.0], 0)


@pytest.mark.asyncio
async def test_ping(store):
    assert await store.ping() is True
