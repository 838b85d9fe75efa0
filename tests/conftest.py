"""Shared fakes: an in-process index executor and response builders."""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest

from sugester.cache import InMemoryCache


def es_response(
    hits: Iterable[Dict[str, Any]] = (),
    total: Optional[int] = None,
    aggregations: Optional[Dict[str, Any]] = None,
    suggest: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    hit_list = list(hits)
    response: Dict[str, Any] = {
        "hits": {
            "total": {"value": len(hit_list) if total is None else total, "relation": "eq"},
            "hits": hit_list,
        }
    }
    if aggregations is not None:
        response["aggregations"] = aggregations
    if suggest is not None:
        response["suggest"] = suggest
    return response


def hit(product_id: str, name: str, score: float = 1.0, **fields: Any) -> Dict[str, Any]:
    return {"_id": product_id, "_score": score, "_source": {"id": product_id, "name": name, **fields}}


def spell_response(text: str | None = None, score: float = 0.0) -> Dict[str, Any]:
    options = [] if text is None else [{"text": text, "score": score}]
    return {"suggest": {"spell_check": [{"text": "", "offset": 0, "length": 0, "options": options}]}}


class FakeExecutor:
    """Answers ``search`` calls from a queue (or a handler) and records every body."""

    def __init__(
        self,
        responses: Iterable[Any] = (),
        handler: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
        msearch_response: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.responses: List[Any] = list(responses)
        self.handler = handler
        self.msearch_response = msearch_response
        self.bodies: List[Dict[str, Any]] = []
        self.msearches: List[List[Dict[str, Any]]] = []

    async def search(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self.bodies.append(body)
        if self.handler is not None:
            return self.handler(body)
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def msearch(self, searches: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.msearches.append(searches)
        if isinstance(self.msearch_response, Exception):
            raise self.msearch_response
        return self.msearch_response or {"responses": [{}, {}, {}, {}]}


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()
