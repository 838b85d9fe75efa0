"""Zero-results recovery: spell correction, relaxation, category, bestsellers.

States run strictly one after another; each is tried only when the previous
one produced nothing. A failing index call inside a state counts as "no
result" and the cascade moves on. The cascade itself never raises.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import settings
from .es_client import INDEX_ERRORS, SearchExecutor, total_hits
from .intents import CategoryIntent, GeneralIntent, Intent
from .query_builder import (
    SearchOptions,
    build_sales_fallback_query,
    build_search_query,
    build_spell_check_query,
)
from .ranking import wrap_with_ranking

logger = logging.getLogger(__name__)

SPELL_MIN_SCORE = 0.5


class FallbackType(str, Enum):
    SPELL_CORRECTION = "spell_correction"
    QUERY_RELAXATION = "query_relaxation"
    CATEGORY_FALLBACK = "category_fallback"
    BESTSELLERS = "bestsellers"
    ERROR = "error"


@dataclass
class RecoveryOutcome:
    fallback_type: FallbackType
    hits: List[Dict[str, Any]] = field(default_factory=list)
    total: int = 0
    aggregations: Optional[Dict[str, Any]] = None
    did_you_mean: Optional[str] = None
    relaxed_query: Optional[str] = None
    fallback_category: Optional[str] = None


def _hits(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    return list(response["hits"]["hits"])


async def _run_general(executor: SearchExecutor, text: str, options: SearchOptions) -> Dict[str, Any]:
    intent = GeneralIntent(query=text)
    body = build_search_query(text, intent, options)
    body["query"] = wrap_with_ranking(body["query"]).to_dict()
    return await executor.search(body)


async def suggest_correction(executor: SearchExecutor, text: str) -> Optional[str]:
    """Top phrase suggestion when it is confident enough and actually different."""
    try:
        response = await executor.search(build_spell_check_query(text))
        entries = (response.get("suggest") or {}).get("spell_check") or []
        if not isinstance(entries, list) or not entries:
            return None
        options = entries[0].get("options") or []
        if not isinstance(options, list) or not options:
            return None
        best = options[0]
        score = best.get("score")
        suggestion = best.get("text")
    except INDEX_ERRORS as exc:
        logger.warning("recovery state=spell_check failed: %s", exc)
        return None
    if not isinstance(score, (int, float)) or not isinstance(suggestion, str):
        return None
    if score > SPELL_MIN_SCORE and suggestion != text:
        return suggestion
    return None


async def try_spell_correction(executor: SearchExecutor, text: str, options: SearchOptions) -> Optional[RecoveryOutcome]:
    corrected = await suggest_correction(executor, text)
    if corrected is None:
        return None
    try:
        response = await _run_general(executor, corrected, options)
        total = total_hits(response)
        if total > 0:
            return RecoveryOutcome(
                fallback_type=FallbackType.SPELL_CORRECTION,
                hits=_hits(response),
                total=total,
                aggregations=response.get("aggregations"),
                did_you_mean=corrected,
            )
    except INDEX_ERRORS as exc:
        logger.warning("recovery state=spell_correction q=%r failed: %s", corrected, exc)
    return None


async def try_query_relaxation(executor: SearchExecutor, text: str, options: SearchOptions) -> Optional[RecoveryOutcome]:
    """Drop trailing words one at a time, longest prefix first."""
    words = text.split()
    for drop in range(1, len(words)):
        relaxed = " ".join(words[: len(words) - drop])
        try:
            response = await _run_general(executor, relaxed, options)
            total = total_hits(response)
            if total > 0:
                return RecoveryOutcome(
                    fallback_type=FallbackType.QUERY_RELAXATION,
                    hits=_hits(response),
                    total=total,
                    aggregations=response.get("aggregations"),
                    relaxed_query=relaxed,
                )
        except INDEX_ERRORS as exc:
            logger.warning("recovery state=query_relaxation q=%r failed: %s", relaxed, exc)
    return None


async def try_category_fallback(executor: SearchExecutor, category: str) -> Optional[RecoveryOutcome]:
    try:
        response = await executor.search(build_sales_fallback_query(settings.fallback_result_size, category))
        total = total_hits(response)
        if total > 0:
            return RecoveryOutcome(
                fallback_type=FallbackType.CATEGORY_FALLBACK,
                hits=_hits(response),
                total=total,
                fallback_category=category,
            )
    except INDEX_ERRORS as exc:
        logger.warning("recovery state=category_fallback category=%r failed: %s", category, exc)
    return None


async def get_bestsellers(executor: SearchExecutor) -> RecoveryOutcome:
    try:
        response = await executor.search(build_sales_fallback_query(settings.fallback_result_size))
        return RecoveryOutcome(
            fallback_type=FallbackType.BESTSELLERS,
            hits=_hits(response),
            total=total_hits(response),
        )
    except INDEX_ERRORS as exc:
        logger.warning("recovery state=bestsellers failed: %s", exc)
        return RecoveryOutcome(fallback_type=FallbackType.ERROR)


async def recover_zero_results(
    executor: SearchExecutor,
    text: str | None,
    intent: Intent,
    options: SearchOptions | None = None,
) -> RecoveryOutcome:
    """Run the recovery states in order and return the first that finds anything."""
    cleaned = (text or "").strip()
    opts = options or SearchOptions()

    outcome = await try_spell_correction(executor, cleaned, opts)
    if outcome is None:
        outcome = await try_query_relaxation(executor, cleaned, opts)
    if outcome is None and isinstance(intent, CategoryIntent) and intent.category:
        outcome = await try_category_fallback(executor, intent.category)
    if outcome is None:
        outcome = await get_bestsellers(executor)

    logger.info(
        "recovery q=%r fallback=%s total=%s",
        cleaned,
        outcome.fallback_type.value,
        outcome.total,
    )
    return outcome
