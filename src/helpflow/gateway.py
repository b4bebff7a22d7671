"""
Recommendation Gateway

Thin async boundary to the external content-generation collaborator.

* Requests are keyed by a context fingerprint. Successful results are cached
  for the lifetime of the gateway, which belongs to exactly one widget.
* At most one request per fingerprint is in flight; a duplicate call made
  while one is pending is dropped (returns ``None``), not queued.
* Every reply goes through :mod:`helpflow.schemas` and comes back as a tagged
  result: :class:`Ok`, :class:`ParseError` or :class:`TransportError`.
  Nothing here raises to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Set, TypeVar, Union

import httpx

from . import schemas
from .config import GatewayConfig
from .errors import ContentServiceError, ContentServiceUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseKind(Enum):
    INSIGHTS = "contextual-help"
    RECOMMENDATIONS = "progressive-disclosure"
    NEXT_STEPS = "next-steps"
    PERSONALIZATION = "tutorial-personalization"
    FAQ = "faq"


_PARSERS: Dict[ResponseKind, Callable[[Any], Any]] = {
    ResponseKind.INSIGHTS: schemas.parse_insights,
    ResponseKind.RECOMMENDATIONS: schemas.parse_recommendations,
    ResponseKind.NEXT_STEPS: schemas.parse_next_steps,
    ResponseKind.PERSONALIZATION: schemas.parse_personalization,
    ResponseKind.FAQ: schemas.parse_faq,
}


class LoadState(Enum):
    NOT_STARTED = "not_started"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class ContentRequest:
    """What is sent to the content-generation collaborator."""
    kind: ResponseKind
    context_description: str
    structured_context: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "contextDescription": self.context_description,
            "structuredContext": self.structured_context,
        }


@dataclass(frozen=True)
class Ok:
    data: Any


@dataclass(frozen=True)
class ParseError:
    message: str
    raw: str = ""


@dataclass(frozen=True)
class TransportError:
    message: str


GatewayResult = Union[Ok, ParseError, TransportError]


class ContentService(Protocol):
    async def generate(self, request: ContentRequest) -> str: ...


class DisabledContentService:
    """Content service used when no generator is configured."""

    async def generate(self, request: ContentRequest) -> str:
        raise ContentServiceUnavailable("content generation is disabled")


class HttpContentService:
    """POSTs requests as JSON to a content-generation endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.api_key = api_key
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def generate(self, request: ContentRequest) -> str:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            r = await self._get_client().post(self.url, json=request.to_payload(), headers=headers)
        except httpx.TimeoutException as e:
            raise ContentServiceError(f"request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ContentServiceError(f"cannot reach content service: {e}") from e
        if r.status_code != 200:
            raise ContentServiceError(f"content service returned {r.status_code}")
        return r.text

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def build_content_service(config: Optional[GatewayConfig] = None) -> ContentService:
    config = config or GatewayConfig()
    if not config.enabled or not config.url:
        return DisabledContentService()
    return HttpContentService(config.url, timeout=config.timeout, api_key=config.api_key)


def sort_by_priority(items: Iterable[T]) -> List[T]:
    """Stable sort, high before medium before low."""
    return sorted(items, key=lambda item: -item.priority.weight)


class RecommendationGateway:
    """Deduplicating, failure-absorbing client of one content service."""

    def __init__(self, service: Optional[ContentService] = None, name: str = "gateway"):
        self.service = service or DisabledContentService()
        self.name = name
        self._cache: Dict[str, Ok] = {}
        self._in_flight: Set[str] = set()
        self._closed = False
        self.request_count = 0

    def state(self, fingerprint: str) -> LoadState:
        if fingerprint in self._in_flight:
            return LoadState.LOADING
        if fingerprint in self._cache:
            return LoadState.LOADED
        return LoadState.NOT_STARTED

    def cached(self, fingerprint: str) -> Optional[Any]:
        hit = self._cache.get(fingerprint)
        return hit.data if hit is not None else None

    async def fetch(self, fingerprint: str, request: ContentRequest) -> Optional[GatewayResult]:
        """Return a tagged result, or ``None`` when the call was dropped."""
        if self._closed:
            return None
        if fingerprint in self._cache:
            return self._cache[fingerprint]
        if fingerprint in self._in_flight:
            logger.debug(f"[{self.name}] dropping duplicate request for {fingerprint}")
            return None

        self._in_flight.add(fingerprint)
        try:
            result = await self._call(request)
        finally:
            self._in_flight.discard(fingerprint)

        if self._closed:
            logger.debug(f"[{self.name}] discarding reply for {fingerprint} after close")
            return None
        if isinstance(result, Ok):
            self._cache[fingerprint] = result
        elif isinstance(result, ParseError):
            logger.warning(
                f"[{self.name}] malformed {request.kind.value} response: {result.message}",
                extra={"widget": self.name},
            )
        else:
            logger.warning(
                f"[{self.name}] {request.kind.value} request failed: {result.message}",
                extra={"widget": self.name},
            )
        return result

    async def fetch_items(self, fingerprint: str, request: ContentRequest) -> List[Any]:
        """Like :meth:`fetch` but collapses every failure to an empty list."""
        result = await self.fetch(fingerprint, request)
        if isinstance(result, Ok) and isinstance(result.data, list):
            return list(result.data)
        return []

    async def _call(self, request: ContentRequest) -> GatewayResult:
        self.request_count += 1
        try:
            raw = await self.service.generate(request)
        except ContentServiceError as e:
            return TransportError(str(e))
        except Exception as e:
            return TransportError(f"{type(e).__name__}: {e}")
        try:
            return Ok(schemas.validate(_PARSERS[request.kind], raw))
        except schemas.ResponseFormatError as e:
            return ParseError(str(e), raw=raw if isinstance(raw, str) else repr(raw))
        except Exception as e:
            logger.exception(
                f"[{self.name}] parser for {request.kind.value} failed unexpectedly",
                extra={"widget": self.name},
            )
            return ParseError(f"{type(e).__name__}: {e}", raw=raw if isinstance(raw, str) else repr(raw))

    def close(self) -> None:
        """Ignore everything still in flight and refuse new requests."""
        self._closed = True
        self._cache.clear()

    @property
    def closed(self) -> bool:
        return self._closed


__all__ = [
    "ResponseKind",
    "LoadState",
    "ContentRequest",
    "Ok",
    "ParseError",
    "TransportError",
    "GatewayResult",
    "ContentService",
    "DisabledContentService",
    "HttpContentService",
    "build_content_service",
    "sort_by_priority",
    "RecommendationGateway",
]
