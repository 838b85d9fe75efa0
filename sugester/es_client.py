"""Elasticsearch client factory and the async executor used by the services.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread`` inside :class:`IndexExecutor`.
"""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Dict, List, Protocol

from elasticsearch import ApiError, Elasticsearch, TransportError

from .config import settings

logger = logging.getLogger(__name__)

# Everything a single index round trip may raise: engine-side errors,
# transport failures (connection, timeout after retries) and response
# payloads that do not have the expected shape.
INDEX_ERRORS = (ApiError, TransportError, AttributeError, KeyError, TypeError, ValueError)


class SearchExecutor(Protocol):
    async def search(self, body: Dict[str, Any]) -> Dict[str, Any]: ...

    async def msearch(self, searches: List[Dict[str, Any]]) -> Dict[str, Any]: ...


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    options: Dict[str, Any] = {
        "request_timeout": settings.es_request_timeout,
        "max_retries": settings.es_max_retries,
        "retry_on_timeout": True,
    }
    if settings.es_username and settings.es_password:
        options["basic_auth"] = (settings.es_username, settings.es_password)
    if settings.es_cloud_id:
        logger.info("Connecting to Elasticsearch cloud deployment %s", settings.es_cloud_id)
        return Elasticsearch(cloud_id=settings.es_cloud_id, **options)
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host, **options)


class IndexExecutor:
    """Runs request bodies against one index without blocking the event loop."""

    def __init__(self, es: Elasticsearch, index: str) -> None:
        self.es = es
        self.index = index

    async def search(self, body: Dict[str, Any]) -> Dict[str, Any]:
        response = await asyncio.to_thread(self.es.search, index=self.index, body=body)
        return response.body

    async def msearch(self, searches: List[Dict[str, Any]]) -> Dict[str, Any]:
        response = await asyncio.to_thread(self.es.msearch, index=self.index, searches=searches)
        return response.body


@lru_cache(maxsize=1)
def get_executor() -> IndexExecutor:
    return IndexExecutor(get_client(), settings.es_index)


def total_hits(response: Dict[str, Any]) -> int:
    """Read the hit count from either the object or the legacy integer form."""
    total = (response.get("hits") or {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)
