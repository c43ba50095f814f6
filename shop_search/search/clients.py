"""
Search backend and embedding clients.

Provides:
- SearchBackend: interface the executors query (text + vector search)
- TypesenseBackend: Typesense implementation over httpx
- EmbeddingClient: OpenAI embeddings over httpx
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from shop_search.errors import EmbeddingError, PayloadTooLargeError, SearchBackendError
from shop_search.search.requests import TextSearchRequest, VectorSearchRequest

logger = structlog.get_logger()


@dataclass
class TextHit:
    """Full-text hit: raw document and text-match score."""
    document: dict[str, Any]
    text_match: float = 0.0


@dataclass
class VectorHit:
    """Vector hit: raw document and distance to the query embedding."""
    document: dict[str, Any]
    vector_distance: float = 0.0


class SearchBackend(ABC):
    """Abstract search backend.

    Executors depend only on this interface, not on a concrete client.
    """

    @abstractmethod
    async def text_search(self, request: TextSearchRequest) -> list[TextHit]:
        """Run a full-text search."""

    @abstractmethod
    async def vector_search(self, request: VectorSearchRequest) -> list[VectorHit]:
        """Run a nearest-neighbour search."""


@dataclass
class TypesenseConfig:
    """Configuration for the Typesense client."""
    url: str = "http://localhost:8108"
    api_key: str = ""
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings=None) -> "TypesenseConfig":
        """Create config from service settings."""
        from shop_search.config import get_settings

        settings = settings or get_settings()
        return cls(
            url=settings.typesense_url,
            api_key=settings.typesense_api_key,
            timeout=settings.typesense_connection_timeout,
        )


class TypesenseBackend(SearchBackend):
    """Typesense search backend.

    Usage:
        async with TypesenseBackend() as backend:
            hits = await backend.text_search(request)
    """

    def __init__(
        self,
        config: TypesenseConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize client with configuration.

        Args:
            config: Client configuration (uses settings if None)
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.config = config or TypesenseConfig.from_settings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    async def initialize(self) -> None:
        """Open the HTTP client."""
        async with self._lock:
            if self._client is not None:
                return
            self._client = httpx.AsyncClient(
                base_url=self.config.url,
                headers={
                    "X-TYPESENSE-API-KEY": self.config.api_key,
                    "Content-Type": "application/json",
                },
                timeout=self.config.timeout,
                transport=self._transport,
            )
            logger.info(
                "typesense_client_initialized",
                url=self.config.url,
                api_key="***" + self.config.api_key[-4:] if self.config.api_key else "NOT SET",
            )

    async def close(self) -> None:
        """Close the HTTP client."""
        async with self._lock:
            if self._client:
                await self._client.aclose()
                self._client = None
                logger.info("typesense_client_closed")

    async def __aenter__(self) -> "TypesenseBackend":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def health(self) -> bool:
        """Check backend health."""
        try:
            response = await self._http().get("/health")
            return response.status_code == 200 and bool(response.json().get("ok"))
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("typesense_health_failed", error=str(e))
            return False

    async def text_search(self, request: TextSearchRequest) -> list[TextHit]:
        """Search a collection with full-text matching.

        Raises:
            SearchBackendError: On transport failure or non-2xx response
        """
        data = await self._request(
            "GET",
            f"/collections/{request.collection}/documents/search",
            params=request.to_params(),
        )
        return [
            TextHit(document=hit.get("document", {}), text_match=float(hit.get("text_match") or 0))
            for hit in data.get("hits") or []
        ]

    async def vector_search(self, request: VectorSearchRequest) -> list[VectorHit]:
        """Search a collection by embedding.

        The vector goes in the POST body of a multi_search call so large
        embeddings do not hit URL length limits.

        Raises:
            PayloadTooLargeError: Backend rejected the embedding size
            SearchBackendError: Any other failure
        """
        data = await self._request(
            "POST",
            "/multi_search",
            json={"searches": [request.to_search()]},
        )
        results = data.get("results") or []
        if not results:
            return []

        result = results[0]
        if result.get("error"):
            self._raise_for_error(result.get("code"), str(result["error"]))

        return [
            VectorHit(
                document=hit.get("document", {}),
                vector_distance=float(hit.get("vector_distance") or 0),
            )
            for hit in result.get("hits") or []
        ]

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Typesense client not initialized")
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            response = await self._http().request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise SearchBackendError(f"Typesense request failed: {e}") from e

        if response.status_code >= 400:
            self._raise_for_error(response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise SearchBackendError("Typesense returned invalid JSON") from e

    @staticmethod
    def _raise_for_error(status: int | None, message: str) -> None:
        if status == 413 or "too large" in message.lower():
            raise PayloadTooLargeError(f"Typesense rejected payload: {message[:200]}")
        raise SearchBackendError(f"Typesense error {status}: {message[:200]}", status=status)


@dataclass
class EmbeddingConfig:
    """Configuration for the embedding provider."""
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, settings=None) -> "EmbeddingConfig":
        from shop_search.config import get_settings

        settings = settings or get_settings()
        return cls(
            base_url=settings.openai_base_url,
            api_key=settings.openai_api_key,
            model=settings.openai_embedding_model,
            dimensions=settings.openai_embedding_dimensions,
        )


class EmbeddingClient:
    """Query embeddings from the OpenAI embeddings API."""

    def __init__(
        self,
        config: EmbeddingConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or EmbeddingConfig.from_settings()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.config.timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def embed(self, text: str) -> list[float]:
        """Get embedding vector for text.

        Raises:
            EmbeddingError: If the provider fails or returns no vector
        """
        try:
            response = await self._client.post(
                "/embeddings",
                json={
                    "model": self.config.model,
                    "input": text,
                    "dimensions": self.config.dimensions,
                },
            )
            response.raise_for_status()
            data = response.json()
            embedding = data["data"][0]["embedding"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError) as e:
            logger.error("embedding_failed", text=text[:50], error=str(e))
            raise EmbeddingError(f"Embedding request failed: {e}") from e

        if not embedding:
            raise EmbeddingError("Embedding provider returned an empty vector")
        return embedding
