"""Search, autocomplete and trending on top of Elasticsearch."""
from __future__ import annotations

import logging
from dataclasses import replace
from time import perf_counter
from typing import Any, Dict, List, Optional

from .cache import (
    SEARCH_TTL,
    CacheBackend,
    autocomplete_key,
    autocomplete_ttl,
    get_cache,
    search_key,
    trending_key,
)
from .classifier import classify_intent
from .config import settings
from .es_client import SearchExecutor, total_hits
from .formatting import format_buckets, format_facets, format_products, format_suggestions
from .intents import Intent, PriceIntent
from .merchandising import MerchandisingRules, get_merchandising_store
from .query_builder import (
    SearchOptions,
    build_autocomplete_query,
    build_search_query,
    build_trending_query,
)
from .ranking import wrap_with_ranking
from .recovery import recover_zero_results

logger = logging.getLogger(__name__)


def _apply_price_intent(intent: Intent, options: SearchOptions) -> SearchOptions:
    if isinstance(intent, PriceIntent) and intent.max_price:
        return replace(options, filters=replace(options.filters, price_max=intent.max_price))
    return options


def build_ranked_search_body(text: str, intent: Intent, options: SearchOptions) -> Dict[str, Any]:
    body = build_search_query(text, intent, options)
    body["query"] = wrap_with_ranking(body["query"], intent).to_dict()
    return body


def build_ranked_autocomplete_body(text: str, intent: Intent, limit: int) -> List[Dict[str, Any]]:
    searches = build_autocomplete_query(text, intent, limit)
    product_body = searches[-1]
    must = product_body["query"]["bool"]["must"]
    must[0] = wrap_with_ranking(must[0], intent).to_dict()
    return searches


async def search(
    executor: SearchExecutor,
    text: str,
    options: SearchOptions | None = None,
    *,
    cache: CacheBackend | None = None,
    merchandising: MerchandisingRules | None = None,
) -> Dict[str, Any]:
    """Ranked search with zero-results recovery.

    Errors from the primary index call propagate to the caller; only the
    recovery cascade swallows them.
    """
    cache = cache if cache is not None else get_cache()
    rules = merchandising if merchandising is not None else get_merchandising_store().rules
    opts = options or SearchOptions()
    sort = opts.sort.value if hasattr(opts.sort, "value") else str(opts.sort)

    cache_key = search_key(text, opts.filters.as_dict(), sort, opts.page)
    cache_start = perf_counter()
    cached = cache.get(cache_key)
    if cached is not None:
        logger.info(
            "timing: total=%.2fms cache_hit=1 q=%r intent=%s",
            (perf_counter() - cache_start) * 1000,
            text,
            (cached.get("intent") or {}).get("type"),
        )
        return cached

    t0 = perf_counter()
    intent = classify_intent(text)
    opts = _apply_price_intent(intent, opts)
    t1 = perf_counter()
    body = build_ranked_search_body(text, intent, opts)
    t2 = perf_counter()
    es_response = await executor.search(body)
    t3 = perf_counter()

    total = total_hits(es_response)
    products = format_products(es_response.get("hits", {}).get("hits"))
    facets = format_facets(es_response.get("aggregations"))
    did_you_mean: Optional[str] = None
    fallback_type: Optional[str] = None

    if total == 0:
        outcome = await recover_zero_results(executor, text, intent, opts)
        products = format_products(outcome.hits)
        did_you_mean = outcome.did_you_mean
        fallback_type = outcome.fallback_type.value
        if outcome.aggregations:
            facets = format_facets(outcome.aggregations)

    products = rules.apply(products, text)
    t4 = perf_counter()

    logger.info(
        "timing: total=%.2fms classify=%.2fms build=%.2fms es=%.2fms post=%.2fms q=%r intent=%s total_hits=%s fallback=%s",
        (t4 - t0) * 1000,
        (t1 - t0) * 1000,
        (t2 - t1) * 1000,
        (t3 - t2) * 1000,
        (t4 - t3) * 1000,
        text,
        intent.kind.value,
        total,
        fallback_type,
    )

    response: Dict[str, Any] = {
        "query": text,
        "total": total or len(products),
        "page": opts.page,
        "per_page": opts.per_page,
        "products": products,
        "facets": facets,
        "intent": intent.as_dict(),
    }
    if did_you_mean:
        response["did_you_mean"] = did_you_mean
    if fallback_type:
        response["fallback_type"] = fallback_type

    cache.set(cache_key, response, SEARCH_TTL)
    logger.debug("cache_store q=%r ttl=%s", text, SEARCH_TTL)
    return response


async def autocomplete(
    executor: SearchExecutor,
    text: str,
    limit: int = 5,
    *,
    cache: CacheBackend | None = None,
    merchandising: MerchandisingRules | None = None,
) -> Dict[str, Any]:
    """Suggestions, categories, brands and products in one ``msearch`` round trip."""
    cache = cache if cache is not None else get_cache()
    rules = merchandising if merchandising is not None else get_merchandising_store().rules

    cache_key = autocomplete_key(text)
    cached = cache.get(cache_key)
    if cached is not None:
        logger.info("autocomplete cache_hit=1 q=%r", text)
        return cached

    t0 = perf_counter()
    intent = classify_intent(text)
    searches = build_ranked_autocomplete_body(text, intent, limit)
    t1 = perf_counter()
    es_response = await executor.msearch(searches)
    t2 = perf_counter()

    responses = es_response["responses"]
    suggest_response, category_response, brand_response, product_response = responses[:4]
    products = format_products((product_response.get("hits") or {}).get("hits"))
    response: Dict[str, Any] = {
        "query": text,
        "suggestions": format_suggestions(suggest_response),
        "categories": format_buckets((category_response.get("aggregations") or {}).get("categories")),
        "brands": format_buckets((brand_response.get("aggregations") or {}).get("brands")),
        "products": rules.apply(products, text),
    }
    t3 = perf_counter()

    logger.info(
        "timing: autocomplete total=%.2fms build=%.2fms es=%.2fms post=%.2fms q=%r intent=%s",
        (t3 - t0) * 1000,
        (t1 - t0) * 1000,
        (t2 - t1) * 1000,
        (t3 - t2) * 1000,
        text,
        intent.kind.value,
    )
    cache.set(cache_key, response, autocomplete_ttl(text))
    return response


async def trending(
    executor: SearchExecutor,
    limit: int = 10,
    *,
    cache: CacheBackend | None = None,
) -> Dict[str, Any]:
    cache = cache if cache is not None else get_cache()
    cache_key = trending_key(limit)
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    es_response = await executor.search(build_trending_query(limit))
    response = {
        "products": format_products(es_response.get("hits", {}).get("hits")),
        "categories": format_buckets((es_response.get("aggregations") or {}).get("top_categories")),
        "queries": [],
    }
    cache.set(cache_key, response, settings.trending_cache_ttl_seconds)
    return response
