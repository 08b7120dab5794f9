"""Exception taxonomy for the ingestion and retrieval pipeline."""
from typing import List, Optional


class ChatmeError(Exception):
    """Base exception for all pipeline errors."""


class InvalidInput(ChatmeError):
    """Request rejected before any work was done.

    Raised when:
    - An ingestion batch has no URLs
    - A query or text to embed is empty
    - A search limit is not positive
    """


class ConfigError(ChatmeError):
    """Startup configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class FetchError(ChatmeError):
    """A page could not be loaded or its text could not be read."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class EmbeddingError(ChatmeError):
    """The embedding service failed or returned an unusable vector.

    Raised when:
    - The service is unreachable or answers with an error status
    - The response body is not the expected shape
    - The vector length differs from the configured dimension
    """


class StoreError(ChatmeError):
    """Error talking to the vector store."""

    def __init__(
        self,
        message: str,
        collection: Optional[str] = None,
        status_code: Optional[int] = None,
        api_errors: Optional[List[dict]] = None,
    ):
        super().__init__(message)
        self.collection = collection
        self.status_code = status_code
        self.api_errors = api_errors or []


class StoreWriteError(StoreError):
    """Collection creation or chunk insertion failed."""


class StoreReadError(StoreError):
    """Similarity search or probe failed."""
