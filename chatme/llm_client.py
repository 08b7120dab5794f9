"""Clients for the OpenAI-compatible embedding and chat completion APIs."""
import json
from typing import AsyncIterator, Dict, List, Optional

import httpx
import structlog

from chatme import config
from chatme.errors import EmbeddingError, InvalidInput

logger = structlog.get_logger()


class EmbeddingClient:
    """Async client turning text into fixed-dimension vectors."""

    def __init__(
        self,
        api_key: str,
        dimension: int,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the embedding client.

        Args:
            api_key: Bearer token for the embedding API
            dimension: Vector length every response must have
            base_url: API base URL (defaults to config.EMBEDDING_BASE_URL)
            model: Embedding model (defaults to config.EMBEDDING_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.dimension = dimension
        self.base_url = (base_url or config.EMBEDDING_BASE_URL).rstrip("/")
        self.model = model or config.EMBEDDING_MODEL
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._transport = transport

    async def embed(self, text: str) -> List[float]:
        """Generate the embedding for a piece of text.

        Args:
            text: Text to embed

        Returns:
            Vector of exactly ``dimension`` floats

        Raises:
            InvalidInput: If text is empty
            EmbeddingError: On API errors, malformed responses or a
                dimension mismatch
        """
        if not text or not text.strip():
            raise InvalidInput("Cannot embed empty text")

        payload = {
            "input": text,
            "model": self.model,
            "encoding_format": "float",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                logger.debug(
                    "embedding_request",
                    model=self.model,
                    text_length=len(text),
                )

                response = await client.post(
                    f"{self.base_url}/embeddings",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                data = response.json()

        except httpx.HTTPError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            logger.error(
                "embedding_http_error",
                error=str(e),
                status_code=status_code,
                model=self.model,
            )
            raise EmbeddingError(f"Embedding request failed: {e}") from e
        except ValueError as e:
            logger.error("embedding_response_not_json", error=str(e))
            raise EmbeddingError("Embedding response is not valid JSON") from e

        vector = self._parse_vector(data)

        if len(vector) != self.dimension:
            logger.error(
                "embedding_dimension_mismatch",
                expected=self.dimension,
                got=len(vector),
                model=self.model,
            )
            raise EmbeddingError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got {len(vector)}"
            )

        logger.debug("embedding_response", model=self.model, dimension=len(vector))

        return vector

    @staticmethod
    def _parse_vector(data) -> List[float]:
        try:
            raw = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingError("Malformed embedding response: no data[0].embedding") from e

        if not isinstance(raw, list):
            raise EmbeddingError("Malformed embedding response: embedding is not a list")

        vector = []
        for value in raw:
            # bool is an int subclass but never a valid component
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise EmbeddingError(
                    f"Malformed embedding response: non-numeric value {value!r}"
                )
            vector.append(float(value))
        return vector


class ChatClient:
    """Async client for chat completions."""

    def __init__(
        self,
        api_key: str,
        base_url: str = None,
        model: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the chat client.

        Args:
            api_key: Bearer token for the chat API
            base_url: API base URL (defaults to config.CHAT_BASE_URL)
            model: Model to use (defaults to config.CHAT_MODEL)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.base_url = (base_url or config.CHAT_BASE_URL).rstrip("/")
        self.model = model or config.CHAT_MODEL
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
    ) -> str:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0.0-2.0)

        Returns:
            Assistant message content

        Raises:
            httpx.HTTPError: On API errors
            ValueError: If the response has no message content
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }
        if temperature is not None:
            payload["temperature"] = temperature

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            logger.info(
                "chat_request",
                model=self.model,
                message_count=len(messages),
                stream=False,
            )

            try:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(
                    "chat_http_error",
                    error=str(e),
                    status_code=getattr(getattr(e, "response", None), "status_code", None),
                )
                raise

            data = response.json()

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError("Chat response has no message content") from e

        logger.info("chat_response", model=self.model, response_length=len(content or ""))

        return content or ""

    async def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Stream a chat completion as content deltas.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0.0-2.0)

        Yields:
            Response text fragments in order

        Raises:
            httpx.HTTPError: On API errors
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": True,
        }
        if temperature is not None:
            payload["temperature"] = temperature

        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            logger.info(
                "chat_request",
                model=self.model,
                message_count=len(messages),
                stream=True,
            )

            async with client.stream(
                "POST",
                f"{self.base_url}/chat/completions",
                json=payload,
                headers=self._headers(),
            ) as response:
                response.raise_for_status()

                # Server-sent events: "data: {...}" lines, ended by "data: [DONE]"
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    chunk = line[len("data:"):].strip()
                    if chunk == "[DONE]":
                        break
                    try:
                        event = json.loads(chunk)
                        delta = event["choices"][0].get("delta", {}).get("content")
                    except (ValueError, KeyError, IndexError, TypeError):
                        logger.warning("chat_stream_bad_event", event_preview=chunk[:100])
                        continue
                    if delta:
                        yield delta
