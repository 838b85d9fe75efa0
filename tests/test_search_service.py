"""Search, autocomplete and trending dispatch."""

import asyncio

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from conftest import FakeExecutor, es_response, hit, spell_response
from sugester.merchandising import MerchandisingRules
from sugester.query_builder import SearchFilters, SearchOptions
from sugester.search_service import autocomplete, search, trending

NO_RULES = MerchandisingRules()


def test_search_returns_ranked_products_and_facets(cache):
    """The primary body is wrapped in the ranking envelope and facets are formatted."""

    aggregations = {
        "brands": {"buckets": [{"key": "Manfrotto", "doc_count": 4}]},
        "price_ranges": {"buckets": [{"key": "0-500", "to": 500.0, "doc_count": 2}]},
    }
    executor = FakeExecutor([es_response([hit("1", "Statyw Manfrotto", 3.5)], total=4, aggregations=aggregations)])

    response = asyncio.run(search(executor, "statyw manfrotto", cache=cache, merchandising=NO_RULES))

    assert response["total"] == 4
    assert response["products"][0]["name"] == "Statyw Manfrotto"
    assert response["products"][0]["currency"] == "PLN"
    assert response["facets"]["brand"] == [{"name": "Manfrotto", "count": 4}]
    assert response["facets"]["price_ranges"][0]["to"] == 500.0
    assert response["intent"]["type"] == "BRAND"
    assert "fallback_type" not in response
    assert "function_score" in executor.bodies[0]["query"]


def test_search_uses_cache(cache):
    """A repeated query is served without touching the index."""

    executor = FakeExecutor([es_response([hit("1", "Statyw")])])

    first = asyncio.run(search(executor, "Statyw", cache=cache, merchandising=NO_RULES))
    second = asyncio.run(search(executor, "  statyw ", cache=cache, merchandising=NO_RULES))

    assert first == second
    assert len(executor.bodies) == 1


def test_price_intent_sets_price_cap(cache):
    """A parsed maximum price becomes a price filter."""

    executor = FakeExecutor([es_response([hit("1", "Statyw")])])

    asyncio.run(search(executor, "statyw do 500 zł", cache=cache, merchandising=NO_RULES))

    filters = executor.bodies[0]["query"]["function_score"]["query"]["bool"]["filter"]
    assert {"range": {"price": {"lte": 500}}} in filters


def test_explicit_filters_reach_the_body(cache):
    """Request filters and pagination are applied."""

    executor = FakeExecutor([es_response([hit("1", "Statyw")])])
    options = SearchOptions(filters=SearchFilters(category="Statywy i akcesoria"), page=2, per_page=5)

    response = asyncio.run(search(executor, "statyw", options, cache=cache, merchandising=NO_RULES))

    body = executor.bodies[0]
    assert body["from"] == 5
    assert {"term": {"category": "Statywy i akcesoria"}} in body["query"]["function_score"]["query"]["bool"]["filter"]
    assert response["page"] == 2
    assert response["per_page"] == 5


def test_zero_results_run_recovery(cache):
    """Zero hits is a success with a fallback type and the fallback product count."""

    executor = FakeExecutor(
        [
            es_response(total=0),
            spell_response("statyw", 0.8),
            es_response([hit("1", "Statyw"), hit("2", "Statyw 2")]),
        ]
    )

    response = asyncio.run(search(executor, "statwy", cache=cache, merchandising=NO_RULES))

    assert response["fallback_type"] == "spell_correction"
    assert response["did_you_mean"] == "statyw"
    assert response["total"] == 2
    assert len(response["products"]) == 2


def test_primary_index_errors_propagate(cache):
    """Failures of the primary query are not swallowed."""

    executor = FakeExecutor([ESConnectionError("connection refused")])

    with pytest.raises(ESConnectionError):
        asyncio.run(search(executor, "statyw", cache=cache, merchandising=NO_RULES))


def test_merchandising_is_applied(cache):
    """Pinned products lead the result list."""

    rules = MerchandisingRules.from_mappings({"statyw": ["2"]}, {})
    executor = FakeExecutor([es_response([hit("1", "Statyw A"), hit("2", "Statyw B")])])

    response = asyncio.run(search(executor, "statyw", cache=cache, merchandising=rules))

    assert [p["id"] for p in response["products"]] == ["2", "1"]
    assert response["products"][0]["is_pinned"] is True


def test_autocomplete_merges_sub_queries(cache):
    """All four msearch responses feed one payload."""

    msearch_response = {
        "responses": [
            {"suggest": {"product_suggest": [{"options": [{"text": "Canon EOS R6", "_score": 2.0}]}]}},
            {"aggregations": {"categories": {"buckets": [{"key": "Aparaty cyfrowe", "doc_count": 12}]}}},
            {"aggregations": {"brands": {"buckets": [{"key": "Canon", "doc_count": 30}]}}},
            es_response([hit("5", "Canon EOS R6")]),
        ]
    }
    executor = FakeExecutor(msearch_response=msearch_response)

    response = asyncio.run(autocomplete(executor, "canon eos", 5, cache=cache, merchandising=NO_RULES))

    assert response["suggestions"] == [{"text": "Canon EOS R6", "score": 2.0}]
    assert response["categories"] == [{"name": "Aparaty cyfrowe", "count": 12}]
    assert response["brands"] == [{"name": "Canon", "count": 30}]
    assert response["products"][0]["id"] == "5"
    product_body = executor.msearches[0][-1]
    assert "function_score" in product_body["query"]["bool"]["must"][0]
    assert cache.get("ac:canon eos") == response


def test_trending_is_cached(cache):
    """Trending products are read once per TTL."""

    aggregations = {"top_categories": {"buckets": [{"key": "Drony", "doc_count": 3}]}}
    executor = FakeExecutor([es_response([hit("8", "DJI Mini 4 Pro")], aggregations=aggregations)])

    first = asyncio.run(trending(executor, 10, cache=cache))
    second = asyncio.run(trending(executor, 10, cache=cache))

    assert first["categories"] == [{"name": "Drony", "count": 3}]
    assert first == second
    assert len(executor.bodies) == 1


def test_trending_limits_are_cached_separately(cache):
    """A short trending list never answers a request for a longer one."""

    short = es_response([hit("1", "Canon EOS R50")])
    longer = es_response([hit(str(i), f"Produkt {i}") for i in range(1, 6)])
    executor = FakeExecutor([short, longer])

    first = asyncio.run(trending(executor, 3, cache=cache))
    second = asyncio.run(trending(executor, 20, cache=cache))
    again = asyncio.run(trending(executor, 20, cache=cache))

    assert len(executor.bodies) == 2
    assert executor.bodies[0]["size"] == 3
    assert executor.bodies[1]["size"] == 20
    assert len(first["products"]) == 1
    assert len(second["products"]) == 5
    assert again == second
