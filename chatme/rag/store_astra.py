"""Vector store client for the Astra DB Data API.

Handles:
- Lazy collection creation with a probe for existing collections
- Chunk insertion with client-side dimension validation
- Nearest-neighbour search via ``sort.$vector``
"""
from typing import Any, Dict, List, Optional

import httpx
import structlog

from chatme import config
from chatme.errors import InvalidInput, StoreError, StoreReadError, StoreWriteError
from chatme.rag.store import Collection, DocumentChunk, SimilarityMetric

logger = structlog.get_logger()

API_PATH = "api/json/v1"
ALREADY_EXISTS_CODE = "COLLECTION_ALREADY_EXISTS"


def _is_already_exists(errors: List[Dict[str, Any]]) -> bool:
    # Messages also mention existing collections for settings conflicts
    return any(error.get("errorCode") == ALREADY_EXISTS_CODE for error in errors)


class AstraVectorStore:
    """Async client for a remote Data API namespace."""

    def __init__(
        self,
        endpoint: str,
        token: str,
        namespace: str,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the store client.

        Args:
            endpoint: Database API endpoint URL
            token: Application token
            namespace: Keyspace holding the collection
            timeout: Request timeout in seconds (default from config)
            transport: Optional httpx transport (used by tests)
        """
        self.endpoint = endpoint.rstrip("/")
        self.token = token
        self.namespace = namespace
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._transport = transport

        logger.info(
            "astra_store_initialized",
            endpoint=self.endpoint,
            namespace=self.namespace,
        )

    def _url(self, collection: Optional[str] = None) -> str:
        url = f"{self.endpoint}/{API_PATH}/{self.namespace}"
        if collection:
            url = f"{url}/{collection}"
        return url

    async def _command(
        self,
        command: Dict[str, Any],
        collection: Optional[str],
        error_class: type,
    ) -> Dict[str, Any]:
        """POST one Data API command and return the decoded body.

        Raises:
            StoreError subclass given by ``error_class`` on transport errors,
            error statuses or API-level errors
        """
        name = next(iter(command))
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._url(collection),
                    json=command,
                    headers={"Token": self.token, "Content-Type": "application/json"},
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            logger.error(
                "astra_http_error",
                command=name,
                collection=collection,
                status_code=status_code,
                error=str(e),
            )
            raise error_class(
                f"{name} failed: {e}", collection=collection, status_code=status_code
            ) from e
        except ValueError as e:
            raise error_class(
                f"{name} returned a non-JSON response", collection=collection
            ) from e

        errors = body.get("errors") or []
        if errors:
            logger.warning(
                "astra_command_errors",
                command=name,
                collection=collection,
                errors=errors,
            )
            message = "; ".join(str(err.get("message", err)) for err in errors)
            raise error_class(
                f"{name} failed: {message}", collection=collection, api_errors=errors
            )

        return body

    async def ensure_collection(
        self,
        name: str,
        dimension: int,
        metric: SimilarityMetric = SimilarityMetric.DOT_PRODUCT,
    ) -> Collection:
        """Return the named collection, creating it if it does not answer a probe.

        Args:
            name: Collection name
            dimension: Vector dimension for a new collection
            metric: Similarity metric for a new collection

        Returns:
            Collection descriptor

        Raises:
            StoreWriteError: If the collection cannot be created
        """
        metric = SimilarityMetric(metric)
        collection = Collection(name=name, dimension=dimension, metric=metric)

        try:
            await self._command({"find": {"options": {"limit": 1}}}, name, StoreReadError)
            logger.info("collection_exists", collection=name)
            return collection
        except StoreReadError as e:
            logger.info("collection_probe_failed", collection=name, error=str(e))

        command = {
            "createCollection": {
                "name": name,
                "options": {"vector": {"dimension": dimension, "metric": metric.value}},
            }
        }
        try:
            await self._command(command, None, StoreWriteError)
        except StoreWriteError as e:
            # Lost a creation race with another caller
            if _is_already_exists(e.api_errors):
                logger.info("collection_already_exists", collection=name)
                return collection
            logger.error("collection_create_failed", collection=name, error=str(e))
            raise

        logger.info(
            "collection_created",
            collection=name,
            dimension=dimension,
            metric=metric.value,
        )
        return collection

    async def insert(self, collection: Collection, chunk: DocumentChunk) -> str:
        """Insert one chunk.

        Returns:
            Inserted document id

        Raises:
            StoreWriteError: On dimension mismatch or write failure
        """
        if len(chunk.vector) != collection.dimension:
            raise StoreWriteError(
                f"Vector dimension mismatch: collection {collection.name} expects "
                f"{collection.dimension}, got {len(chunk.vector)}",
                collection=collection.name,
            )

        body = await self._command(
            {"insertOne": {"document": chunk.to_document()}},
            collection.name,
            StoreWriteError,
        )

        try:
            inserted_id = str(body["status"]["insertedIds"][0])
        except (KeyError, IndexError, TypeError) as e:
            raise StoreWriteError(
                "insertOne response has no inserted id", collection=collection.name
            ) from e

        logger.debug(
            "chunk_inserted",
            collection=collection.name,
            id=inserted_id,
            url=chunk.source_url,
        )
        return inserted_id

    async def search(
        self, collection: Collection, query_vector: List[float], limit: int
    ) -> List[DocumentChunk]:
        """Find the chunks most similar to a query vector.

        Returns:
            Up to ``limit`` chunks, most similar first

        Raises:
            InvalidInput: If limit is not positive
            StoreReadError: On read failure
        """
        if limit < 1:
            raise InvalidInput(f"Search limit must be positive, got {limit}")

        command = {
            "find": {
                "sort": {"$vector": list(query_vector)},
                "projection": {"*": 1},
                "options": {"limit": limit, "includeSimilarity": True},
            }
        }
        body = await self._command(command, collection.name, StoreReadError)

        try:
            documents = (body.get("data") or {}).get("documents") or []
            chunks = [DocumentChunk.from_document(doc) for doc in documents[:limit]]
        except (AttributeError, TypeError) as e:
            raise StoreReadError(
                "find response is malformed", collection=collection.name
            ) from e

        logger.info(
            "vector_search_completed",
            collection=collection.name,
            limit=limit,
            results_found=len(chunks),
        )
        return chunks

    async def ping(self) -> bool:
        """Check the namespace answers a command."""
        try:
            await self._command({"findCollections": {}}, None, StoreReadError)
            return True
        except StoreError:
            return False

    async def aclose(self) -> None:
        """Nothing to release; clients are opened per call."""
