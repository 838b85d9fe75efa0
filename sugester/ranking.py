"""Multiplicative ranking on top of text relevance.

Every signal is a small object that can both compute its factor for a
document (``weight``) and serialize itself as an Elasticsearch
``function_score`` function (``to_dict``). The Python evaluation is the
reference: the Painless sources below are fixed templates whose numbers all
come from the signal's parameters.

Signal strengths, strongest first:

    1. sales (30d, then 365d)
    2. behavioral popularity, conversion, trending
    3. revenue
    4. availability, promo, badges, rating, condition
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .categories import ACCESSORY_CATEGORIES, BODY_CATEGORIES, LENS_CATEGORIES
from .intents import ConditionPref, Intent, ModelIntent, SkuIntent

Document = Mapping[str, Any]

AVAILABILITY_WEIGHTS: Tuple[Tuple[str, float], ...] = (
    ("in_stock", 1.5),
    ("na_zamowienie", 0.8),
    ("out_of_stock", 0.3),
)
SALES_30D_COEFFICIENT = 0.25
SALES_365D_COEFFICIENT = 0.1
REVENUE_COEFFICIENT = 0.025
POPULARITY_COEFFICIENT = 0.008
CONVERSION_COEFFICIENT = 0.004
TRENDING_COEFFICIENT = 0.003
MARGIN_COEFFICIENT = 0.003
NOVELTY_SCALE_DAYS = 60
NOVELTY_DECAY = 0.5
PROMO_WEIGHT = 1.3
RATING_MIN_REVIEWS = 3
RATING_PIVOT = 3.0
RATING_COEFFICIENT = 0.1
NO_IMAGE_WEIGHT = 0.1
BESTSELLER_WEIGHT = 1.15
HIGHLIGHTED_WEIGHT = 1.1

# (new, used) weights per condition preference.
CONDITION_WEIGHTS: Dict[Optional[ConditionPref], Tuple[float, float]] = {
    ConditionPref.USED: (0.55, 1.8),
    ConditionPref.NEW: (1.5, 0.4),
    None: (1.3, 0.55),
}

# Shorter product names mean the code *is* the product, not an accessory for it.
SKU_NAME_LENGTH_TIERS: Tuple[Tuple[int, float], ...] = ((15, 3.0), (30, 2.5), (45, 1.8), (60, 1.2))

BODY_QUERY_WEIGHTS = {"body": 8.0, "lens": 3.0, "accessory": 0.08}
ACCESSORY_QUERY_WEIGHTS = {"accessory": 5.0, "body": 0.1}

CATEGORY_PREFIX_WEIGHT = 5.0
CATEGORY_RESIDUAL_WEIGHT = 0.5


def field_value(doc: Document, path: str) -> Any:
    """Resolve ``a.b`` either as a flat key or as nested mappings."""
    if path in doc:
        return doc[path]
    current: Any = doc
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _number(doc: Document, path: str) -> float:
    value = field_value(doc, path)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _text(doc: Document, path: str) -> str:
    value = field_value(doc, path)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return "" if value is None else str(value)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Signal:
    """One multiplicative factor of the ranking envelope."""

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


def _script(source: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
    script: Dict[str, Any] = {"source": source}
    if params:
        script["params"] = params
    return {"script_score": {"script": script}}


@dataclass(frozen=True)
class TermWeight(Signal):
    """Fixed weight for documents whose ``field`` holds one of ``values``."""

    field: str
    values: Tuple[Any, ...]
    factor: float

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        value = field_value(doc, self.field)
        candidates = value if isinstance(value, (list, tuple)) else (value,)
        if any(candidate is not None and candidate in self.values for candidate in candidates):
            return self.factor
        return 1.0

    def to_dict(self) -> Dict[str, Any]:
        if len(self.values) == 1:
            predicate = {"term": {self.field: self.values[0]}}
        else:
            predicate = {"terms": {self.field: list(self.values)}}
        return {"filter": predicate, "weight": self.factor}


_LOG1P_SOURCE = """
double v = 0;
if (doc.containsKey(params.field) && doc[params.field].size() > 0) {
  v = doc[params.field].value;
}
if (v <= 0 && params.fallback != null && doc.containsKey(params.fallback) && doc[params.fallback].size() > 0) {
  v = doc[params.fallback].value / params.divisor;
}
if (v > 0) {
  return 1.0 + Math.log1p(v) * params.k;
}
return 1.0;
"""


@dataclass(frozen=True)
class Log1pWeight(Signal):
    """``1 + ln(1 + v) * k`` for positive ``v``; optional fallback field divided by ``divisor``."""

    field: str
    coefficient: float
    fallback: Optional[str] = None
    divisor: float = 1.0

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        value = _number(doc, self.field)
        if value <= 0 and self.fallback:
            value = _number(doc, self.fallback) / self.divisor
        if value > 0:
            return 1.0 + math.log1p(value) * self.coefficient
        return 1.0

    def to_dict(self) -> Dict[str, Any]:
        return _script(
            _LOG1P_SOURCE,
            {"field": self.field, "k": self.coefficient, "fallback": self.fallback, "divisor": self.divisor},
        )


_LINEAR_SOURCE = """
double v = 0;
if (doc.containsKey(params.field) && doc[params.field].size() > 0) {
  v = doc[params.field].value;
}
if (params.positive_only && v <= 0) {
  return 1.0;
}
return 1.0 + v * params.k;
"""


@dataclass(frozen=True)
class LinearWeight(Signal):
    """``1 + v * k``; with ``positive_only`` a non-positive ``v`` yields 1."""

    field: str
    coefficient: float
    positive_only: bool = True

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        value = _number(doc, self.field)
        if self.positive_only and value <= 0:
            return 1.0
        return 1.0 + value * self.coefficient

    def to_dict(self) -> Dict[str, Any]:
        return _script(
            _LINEAR_SOURCE,
            {"field": self.field, "k": self.coefficient, "positive_only": self.positive_only},
        )


_RATING_SOURCE = """
double reviews = doc.containsKey('review_count') && doc['review_count'].size() > 0 ? doc['review_count'].value : 0;
if (reviews < params.min_reviews) {
  return 1.0;
}
double rating = doc.containsKey('avg_rating') && doc['avg_rating'].size() > 0 ? doc['avg_rating'].value : 0;
return 1.0 + (rating - params.pivot) * params.k;
"""


@dataclass(frozen=True)
class RatingWeight(Signal):
    min_reviews: int = RATING_MIN_REVIEWS
    pivot: float = RATING_PIVOT
    coefficient: float = RATING_COEFFICIENT

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        if _number(doc, "review_count") < self.min_reviews:
            return 1.0
        return 1.0 + (_number(doc, "avg_rating") - self.pivot) * self.coefficient

    def to_dict(self) -> Dict[str, Any]:
        return _script(
            _RATING_SOURCE,
            {"min_reviews": self.min_reviews, "pivot": self.pivot, "k": self.coefficient},
        )


@dataclass(frozen=True)
class GaussDecay(Signal):
    """Gaussian decay on a date field: ``decay`` at ``scale_days`` from ``origin``."""

    field: str = "created_at"
    scale_days: float = NOVELTY_SCALE_DAYS
    decay: float = NOVELTY_DECAY

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        created = _parse_timestamp(field_value(doc, self.field))
        if created is None:
            return 1.0
        origin = now or datetime.now(timezone.utc)
        distance_days = abs((origin - created).total_seconds()) / 86400.0
        return self.decay ** ((distance_days / self.scale_days) ** 2)

    def to_dict(self) -> Dict[str, Any]:
        scale = f"{self.scale_days:g}d"
        return {"gauss": {self.field: {"origin": "now", "scale": scale, "decay": self.decay}}}


_NAME_LENGTH_SOURCE = """
int len = doc[params.field].size() > 0 ? doc[params.field].value.length() : 0;
for (int i = 0; i < params.limits.size(); i++) {
  if (len < params.limits.get(i)) {
    return params.factors.get(i);
  }
}
return 1.0;
"""


@dataclass(frozen=True)
class NameLengthWeight(Signal):
    tiers: Tuple[Tuple[int, float], ...] = SKU_NAME_LENGTH_TIERS
    field: str = "name.exact"
    source_field: str = "name"

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        length = len(_text(doc, self.source_field))
        for limit, factor in self.tiers:
            if length < limit:
                return factor
        return 1.0

    def to_dict(self) -> Dict[str, Any]:
        return _script(
            _NAME_LENGTH_SOURCE,
            {
                "field": self.field,
                "limits": [limit for limit, _ in self.tiers],
                "factors": [factor for _, factor in self.tiers],
            },
        )


_NAME_PREFIX_SOURCE = """
if (doc[params.field].size() > 0 && doc[params.field].value.toLowerCase().startsWith(params.q)) {
  return params.factor;
}
return 1.0;
"""


@dataclass(frozen=True)
class NamePrefixWeight(Signal):
    """Rewards products whose name starts with the query, e.g. ``Statyw Vanguard``."""

    prefix: str
    factor: float = CATEGORY_PREFIX_WEIGHT
    field: str = "name.exact"
    source_field: str = "name"

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        if _text(doc, self.source_field).lower().startswith(self.prefix.lower()):
            return self.factor
        return 1.0

    def to_dict(self) -> Dict[str, Any]:
        return _script(
            _NAME_PREFIX_SOURCE,
            {"field": self.field, "q": self.prefix.lower(), "factor": self.factor},
        )


_PATH_MARKER_SOURCE = """
String path = '';
if (doc.containsKey(params.field) && doc[params.field].size() > 0) {
  path = doc[params.field].value.toLowerCase();
}
for (def marker : params.markers) {
  if (path.contains(marker)) {
    return params.factor;
  }
}
return 1.0;
"""


@dataclass(frozen=True)
class CategoryPathWeight(Signal):
    """Damps residual subcategories such as ``pozostałe akcesoria``."""

    markers: Tuple[str, ...]
    factor: float = CATEGORY_RESIDUAL_WEIGHT
    field: str = "category_path"

    def weight(self, doc: Document, now: Optional[datetime] = None) -> float:
        path = _text(doc, self.field).lower()
        if any(marker in path for marker in self.markers):
            return self.factor
        return 1.0

    def to_dict(self) -> Dict[str, Any]:
        return _script(
            _PATH_MARKER_SOURCE,
            {"field": self.field, "markers": list(self.markers), "factor": self.factor},
        )


@dataclass
class RankingEnvelope:
    """A query plus the signals multiplied into its relevance score."""

    query: Dict[str, Any]
    functions: List[Signal] = field(default_factory=list)
    score_mode: str = "multiply"
    boost_mode: str = "multiply"

    def signal_product(self, doc: Document, now: Optional[datetime] = None) -> float:
        product = 1.0
        for signal in self.functions:
            product *= signal.weight(doc, now)
        return product

    def score(self, doc: Document, relevance: float, now: Optional[datetime] = None) -> float:
        return relevance * self.signal_product(doc, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "function_score": {
                "query": self.query,
                "functions": [signal.to_dict() for signal in self.functions],
                "score_mode": self.score_mode,
                "boost_mode": self.boost_mode,
            }
        }


def condition_weights(condition_pref: Optional[ConditionPref]) -> Tuple[float, float]:
    """Return ``(new, used)`` weights for a condition preference."""
    return CONDITION_WEIGHTS.get(condition_pref, CONDITION_WEIGHTS[None])


def _category_context_signals(intent: Optional[Intent]) -> List[Signal]:
    is_body_query = isinstance(intent, ModelIntent) and intent.is_body_query
    wants_accessories = bool(intent is not None and intent.wants_accessories)
    if is_body_query:
        return [
            TermWeight("category", tuple(BODY_CATEGORIES), BODY_QUERY_WEIGHTS["body"]),
            TermWeight("category", tuple(LENS_CATEGORIES), BODY_QUERY_WEIGHTS["lens"]),
            TermWeight("category", tuple(ACCESSORY_CATEGORIES), BODY_QUERY_WEIGHTS["accessory"]),
        ]
    if wants_accessories:
        return [
            TermWeight("category", tuple(ACCESSORY_CATEGORIES), ACCESSORY_QUERY_WEIGHTS["accessory"]),
            TermWeight("category", tuple(BODY_CATEGORIES), ACCESSORY_QUERY_WEIGHTS["body"]),
        ]
    return []


def build_signals(intent: Optional[Intent] = None) -> List[Signal]:
    new_weight, used_weight = condition_weights(intent.condition_pref if intent is not None else None)
    signals: List[Signal] = [TermWeight("availability", (value,), factor) for value, factor in AVAILABILITY_WEIGHTS]
    signals.extend(
        [
            Log1pWeight("sales_30d", SALES_30D_COEFFICIENT),
            Log1pWeight("sales_365d", SALES_365D_COEFFICIENT),
            Log1pWeight("revenue_30d", REVENUE_COEFFICIENT, fallback="revenue_365d", divisor=12.0),
            LinearWeight("ga4.popularity_score", POPULARITY_COEFFICIENT),
            LinearWeight("ga4.conversion_score", CONVERSION_COEFFICIENT),
            LinearWeight("ga4.trending_score", TRENDING_COEFFICIENT),
            LinearWeight("margin_pct", MARGIN_COEFFICIENT, positive_only=False),
            GaussDecay(),
            TermWeight("is_promo", (True,), PROMO_WEIGHT),
            RatingWeight(),
            TermWeight("has_image", (False,), NO_IMAGE_WEIGHT),
            TermWeight("condition", ("new",), new_weight),
            TermWeight("condition", ("used",), used_weight),
            TermWeight("is_bestseller", (True,), BESTSELLER_WEIGHT),
            TermWeight("is_highlighted", (True,), HIGHLIGHTED_WEIGHT),
        ]
    )
    if isinstance(intent, SkuIntent):
        signals.append(NameLengthWeight())
    signals.extend(_category_context_signals(intent))
    return signals


def wrap_with_ranking(query: Dict[str, Any], intent: Optional[Intent] = None) -> RankingEnvelope:
    """Wrap ``query`` so business and behavioral signals multiply its relevance."""
    return RankingEnvelope(query=query, functions=build_signals(intent))


def category_query_signals(query_text: str, markers: Sequence[str]) -> List[Signal]:
    return [NamePrefixWeight(query_text.lower()), CategoryPathWeight(tuple(markers))]
