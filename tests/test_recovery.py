"""Zero-results recovery cascade."""

import asyncio

import pytest
from elasticsearch import ConnectionError as ESConnectionError

from conftest import FakeExecutor, es_response, hit, spell_response
from sugester.intents import CategoryIntent, GeneralIntent
from sugester.recovery import FallbackType, recover_zero_results


def _query_text(body):
    return body["query"]["function_score"]["query"]["bool"]["must"][0]["multi_match"]["query"]


def test_spell_correction_wins_first():
    """A confident, different suggestion is searched as a GENERAL query."""

    executor = FakeExecutor([spell_response("statyw", 0.9), es_response([hit("1", "Statyw")])])

    outcome = asyncio.run(recover_zero_results(executor, "statwy", GeneralIntent(query="statwy")))

    assert outcome.fallback_type is FallbackType.SPELL_CORRECTION
    assert outcome.did_you_mean == "statyw"
    assert outcome.total == 1
    assert _query_text(executor.bodies[1]) == "statyw"


def test_weak_suggestion_is_ignored():
    """Suggestions at or below 0.5 are not trusted."""

    executor = FakeExecutor([spell_response("statyw", 0.5), es_response(total=0)])

    outcome = asyncio.run(recover_zero_results(executor, "statwy", GeneralIntent(query="statwy")))

    assert outcome.fallback_type is FallbackType.BESTSELLERS
    assert len(executor.bodies) == 2


def test_relaxation_drops_trailing_words_in_order():
    """Longest prefixes are tried first and the first hit ends the cascade."""

    executor = FakeExecutor(
        [
            spell_response(),
            es_response(total=0),
            es_response([hit("7", "Statyw Manfrotto")]),
        ]
    )

    outcome = asyncio.run(
        recover_zero_results(executor, "statyw manfrotto xyz abc", GeneralIntent(query="statyw manfrotto xyz abc"))
    )

    assert outcome.fallback_type is FallbackType.QUERY_RELAXATION
    assert outcome.relaxed_query == "statyw manfrotto"
    assert [_query_text(body) for body in executor.bodies[1:]] == ["statyw manfrotto xyz", "statyw manfrotto"]


def test_relaxation_survives_index_errors():
    """A failing relaxation step moves on to the next shorter prefix."""

    executor = FakeExecutor(
        [
            ESConnectionError("spell check down"),
            ESConnectionError("timeout"),
            es_response([hit("3", "Statyw")]),
        ]
    )

    outcome = asyncio.run(recover_zero_results(executor, "statyw abc def", GeneralIntent(query="statyw abc def")))

    assert outcome.fallback_type is FallbackType.QUERY_RELAXATION
    assert outcome.relaxed_query == "statyw"


def test_category_fallback_only_for_category_intent():
    """Category intents fall back to the category's best sellers."""

    intent = CategoryIntent(query="statywy", category="Statywy i akcesoria")
    executor = FakeExecutor([spell_response(), es_response([hit("9", "Statyw")])])

    outcome = asyncio.run(recover_zero_results(executor, "statywy", intent))

    assert outcome.fallback_type is FallbackType.CATEGORY_FALLBACK
    assert outcome.fallback_category == "Statywy i akcesoria"
    body = executor.bodies[1]
    assert body["query"]["bool"]["must"] == [{"term": {"category": "Statywy i akcesoria"}}]
    assert body["sort"] == [{"sales_30d": "desc"}]


def test_bestsellers_terminate_the_cascade():
    """Nothing found anywhere ends in best sellers, without raising."""

    executor = FakeExecutor(
        [
            spell_response(),
            es_response(total=0),
            es_response([hit("1", "Bestseller"), hit("2", "Drugi")]),
        ]
    )

    outcome = asyncio.run(recover_zero_results(executor, "qwerty asdf", GeneralIntent(query="qwerty asdf")))

    assert outcome.fallback_type is FallbackType.BESTSELLERS
    assert [h["_id"] for h in outcome.hits] == ["1", "2"]
    bestsellers_body = executor.bodies[-1]
    assert bestsellers_body["query"]["bool"]["filter"] == [{"term": {"availability": "in_stock"}}]


def test_bestsellers_failure_degrades_to_error():
    """Even a failing final state returns an outcome."""

    executor = FakeExecutor([ESConnectionError("down"), ESConnectionError("down")])

    outcome = asyncio.run(recover_zero_results(executor, "qwerty", GeneralIntent(query="qwerty")))

    assert outcome.fallback_type is FallbackType.ERROR
    assert outcome.hits == []
    assert outcome.total == 0


def test_malformed_responses_are_state_failures():
    """Unexpected response shapes count as an unsuccessful state."""

    executor = FakeExecutor([{"suggest": None}, {"unexpected": True}, {"hits": None}])

    outcome = asyncio.run(recover_zero_results(executor, "ab cd", GeneralIntent(query="ab cd")))

    assert outcome.fallback_type is FallbackType.ERROR


@pytest.mark.parametrize(
    "suggest_payload",
    [
        {"suggest": {"spell_check": [{"options": [{"text": "qwerty2", "score": None}]}]}},
        {"suggest": {"spell_check": {"options": [{"text": "qwerty2", "score": 0.9}]}}},
        {"suggest": {"spell_check": [{"options": ["qwerty2"]}]}},
        {"suggest": {"spell_check": [{"options": [{"text": None, "score": 0.9}]}]}},
        ["not", "a", "response"],
    ],
)
def test_malformed_suggestions_fall_through_to_bestsellers(suggest_payload):
    """A suggestion payload of the wrong shape means no correction, not a crash."""

    executor = FakeExecutor([suggest_payload, es_response([hit("1", "Bestseller")])])

    outcome = asyncio.run(recover_zero_results(executor, "qwerty", GeneralIntent(query="qwerty")))

    assert outcome.fallback_type is FallbackType.BESTSELLERS
    assert outcome.total == 1


def test_non_mapping_relaxation_response_is_skipped():
    """A relaxation response that is not an object counts as an unsuccessful step."""

    executor = FakeExecutor(
        [
            spell_response(),
            ["unexpected"],
            {"hits": {"total": {"value": 2}, "hits": None}},
            es_response([hit("1", "Bestseller")]),
        ]
    )

    outcome = asyncio.run(
        recover_zero_results(executor, "statyw abc def", GeneralIntent(query="statyw abc def"))
    )

    assert outcome.fallback_type is FallbackType.BESTSELLERS
    assert [h["_id"] for h in outcome.hits] == ["1"]
