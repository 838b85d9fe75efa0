"""HTTP surface."""

import pytest
from elasticsearch import ConnectionError as ESConnectionError
from fastapi.testclient import TestClient

from conftest import FakeExecutor, es_response, hit
from sugester.cache import InMemoryCache, get_cache
from sugester.es_client import get_executor
from sugester.main import app
from sugester.merchandising import MerchandisingStore, get_merchandising_store


@pytest.fixture
def wired(tmp_path):
    """App with a fake index, an in-memory cache and empty merchandising rules."""

    executor = FakeExecutor()
    cache = InMemoryCache()
    store = MerchandisingStore(tmp_path)
    app.dependency_overrides[get_executor] = lambda: executor
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_merchandising_store] = lambda: store
    yield TestClient(app), executor, cache
    app.dependency_overrides.clear()


def test_search_endpoint(wired):
    """Query parameters become search options and the response validates."""

    client, executor, _ = wired
    executor.responses.append(es_response([hit("1", "Statyw Manfrotto", price=499.0)]))

    response = client.get("/api/search", params={"q": "statyw", "page": 2, "per_page": 10, "sort": "price_desc"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["products"][0]["id"] == "1"
    assert payload["page"] == 2
    assert payload["intent"]["type"] == "CATEGORY"
    assert executor.bodies[0]["sort"] == [{"price": "desc"}, "_score"]


def test_search_rejects_blank_query(wired):
    """Whitespace-only queries are a client error."""

    client, _, _ = wired

    assert client.get("/api/search", params={"q": "   "}).status_code == 400


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"q": "x" * 201},
        {"q": "statyw", "per_page": 101},
        {"q": "statyw", "sort": "cheapest"},
        {"q": "statyw", "price_min": -1},
    ],
)
def test_search_validation(wired, params):
    """Out-of-range parameters are rejected before searching."""

    client, executor, _ = wired

    assert client.get("/api/search", params=params).status_code == 422
    assert executor.bodies == []


def test_index_outage_is_503(wired):
    """Transport failures on the primary query surface as service unavailable."""

    client, executor, _ = wired
    executor.responses.append(ESConnectionError("connection refused"))

    assert client.get("/api/search", params={"q": "statyw"}).status_code == 503


def test_autocomplete_endpoint(wired):
    """Autocomplete returns the four sections."""

    client, executor, _ = wired
    executor.msearch_response = {"responses": [{}, {}, {}, es_response([hit("5", "Canon EOS R6")])]}

    response = client.get("/api/autocomplete", params={"q": "canon", "limit": 3})

    assert response.status_code == 200
    payload = response.json()
    assert payload["products"][0]["name"] == "Canon EOS R6"
    assert payload["suggestions"] == []
    assert executor.msearches[0][-1]["size"] == 3


def test_autocomplete_limit_bounds(wired):
    """Limit must stay within 1-20."""

    client, _, _ = wired

    assert client.get("/api/autocomplete", params={"q": "canon", "limit": 21}).status_code == 422


def test_trending_endpoint(wired):
    """Trending lists products and categories."""

    client, executor, _ = wired
    executor.responses.append(es_response([hit("8", "DJI Mini 4 Pro")]))

    payload = client.get("/api/trending").json()

    assert payload["products"][0]["id"] == "8"
    assert payload["queries"] == []


def test_merchandising_reload_flushes_cache(wired, tmp_path):
    """Reloading rules also drops cached query results."""

    client, _, cache = wired
    cache.set("sr:statyw:abcdef12", {}, 60)
    (tmp_path / "pinned.json").write_text('{"statyw": ["1"]}', encoding="utf-8")

    payload = client.post("/api/admin/merchandising/reload").json()

    assert payload == {"status": "ok", "pinned": 1, "blacklisted": 0, "cache_entries_flushed": 1}


def test_cache_flush_endpoint(wired):
    """The flush endpoint reports how many entries went away."""

    client, _, cache = wired
    cache.set("ac:canon", {}, 60)

    assert client.post("/api/admin/cache/flush").json() == {"status": "ok", "cache_entries_flushed": 1}
