"""FastAPI application wiring the search service."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from elasticsearch import ApiError, TransportError
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from . import search_service
from .cache import CacheBackend, get_cache
from .config import settings
from .es_client import SearchExecutor, get_client, get_executor
from .merchandising import MerchandisingStore, get_merchandising_store
from .models import (
    AutocompleteResponse,
    CacheFlushResponse,
    MerchandisingReloadResponse,
    SearchResponse,
    TrendingResponse,
)
from .query_builder import SearchFilters, SearchOptions, SortOrder

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers so module loggers share one format.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Sugester Product Search")


def _require_text(q: str) -> str:
    text = q.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Query must not be empty")
    return text


@app.exception_handler(TransportError)
async def transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    logger.error("Search index unreachable path=%s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Search backend unavailable"})


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    logger.error("Search index error path=%s: %s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"detail": "Search backend error"})


@app.on_event("startup")
async def startup_event() -> None:
    store = get_merchandising_store()
    logger.info("Merchandising rules loaded %s", store.rules.counts())


@app.get("/health")
async def health() -> dict:
    es = get_client()
    status = await asyncio.to_thread(es.cluster.health)
    return {"elasticsearch": status.get("status"), "index": settings.es_index}


@app.get("/api/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(
    q: str = Query(..., min_length=1, max_length=200, description="Search query"),
    limit: int = Query(5, ge=1, le=20),
    executor: SearchExecutor = Depends(get_executor),
    cache: CacheBackend = Depends(get_cache),
    store: MerchandisingStore = Depends(get_merchandising_store),
) -> dict:
    text = _require_text(q)
    return await search_service.autocomplete(executor, text, limit, cache=cache, merchandising=store.rules)


@app.get("/api/search", response_model=SearchResponse)
async def search(
    q: str = Query(..., min_length=1, max_length=200, description="Search query"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    sort: SortOrder = SortOrder.RELEVANCE,
    brand: Optional[str] = None,
    category: Optional[str] = None,
    availability: Optional[str] = None,
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    mount: Optional[str] = None,
    executor: SearchExecutor = Depends(get_executor),
    cache: CacheBackend = Depends(get_cache),
    store: MerchandisingStore = Depends(get_merchandising_store),
) -> dict:
    text = _require_text(q)
    options = SearchOptions(
        filters=SearchFilters(
            brand=brand or None,
            category=category or None,
            availability=availability or None,
            mount=mount or None,
            price_min=price_min,
            price_max=price_max,
        ),
        page=page,
        per_page=per_page,
        sort=sort,
    )
    return await search_service.search(executor, text, options, cache=cache, merchandising=store.rules)


@app.get("/api/trending", response_model=TrendingResponse)
async def trending(
    limit: int = Query(10, ge=1, le=20),
    executor: SearchExecutor = Depends(get_executor),
    cache: CacheBackend = Depends(get_cache),
) -> dict:
    return await search_service.trending(executor, limit, cache=cache)


@app.post("/api/admin/merchandising/reload", response_model=MerchandisingReloadResponse)
async def reload_merchandising(
    cache: CacheBackend = Depends(get_cache),
    store: MerchandisingStore = Depends(get_merchandising_store),
) -> dict:
    rules = store.reload()
    flushed = cache.flush()
    return {"status": "ok", **rules.counts(), "cache_entries_flushed": flushed}


@app.post("/api/admin/cache/flush", response_model=CacheFlushResponse)
async def flush_cache(cache: CacheBackend = Depends(get_cache)) -> dict:
    flushed = cache.flush()
    logger.info("Cache flushed entries=%s", flushed)
    return {"status": "ok", "cache_entries_flushed": flushed}
