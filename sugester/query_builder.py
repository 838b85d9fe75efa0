"""Elasticsearch request bodies per intent.

``build_intent_query`` produces the relevance part for one intent; the
``build_*_query`` helpers around it add filters, facets, pagination and
sorting for the search, autocomplete, spell-check and trending requests.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from .brands import normalize_brand_case
from .categories import RESIDUAL_PATH_MARKERS
from .intents import (
    BrandIntent,
    CategoryIntent,
    CompoundIntent,
    EanIntent,
    GeneralIntent,
    Intent,
    IntentType,
    ModelIntent,
    ParametricIntent,
    PriceIntent,
    SkuIntent,
)
from .params import extract_params, strip_params
from .ranking import RankingEnvelope, category_query_signals

logger = logging.getLogger(__name__)

Query = Dict[str, Any]

NAME_FIELDS = [
    "name.exact^10",
    "model_code^8",
    "name.prefix^4",
    "name.folded^3",
    "name.morfologik^2",
    "name.stempel^1",
    "description^0.5",
]
NAME_FIELDS_LIGHT = [
    "name.exact^10",
    "name.prefix^4",
    "name.folded^3",
    "name.morfologik^2",
]
MODEL_FIELDS = ["name.exact^10", "model_code^8", "name.folded^5", "name.prefix^3"]
MODEL_NAME_FIELDS = ["name.folded^3", "name.morfologik^2"]
ACCESSORY_KEYWORD_FIELDS = ["name.folded^5", "name.morfologik^3"]
CATEGORY_TEXT_FIELDS = ["name.folded^3", "name.morfologik^2", "name.stempel^1"]
BASE_MATCH_FIELDS = ["name.prefix^3", "name.folded^2", "name.morfologik"]
CODE_FIELDS = ["sku", "manufacturer_code", "model_code"]

SKU_TERM_BOOST = 200
SKU_PHRASE_BOOST = 50
MODEL_PHRASE_BOOST = 50
MODEL_SLOP_PHRASE_BOOST = 25
MODEL_CODE_PHRASE_BOOST = 30
MODEL_BRAND_BOOST = 15
ACCESSORY_FULL_QUERY_BOOST = 5
ACCESSORY_KEYWORD_BOOST = 3
ACCESSORY_MODEL_NAME_BOOST = 2
ACCESSORY_BRAND_BOOST = 8
BRAND_TERM_BOOST = 20
COMPOUND_PHRASE_BOOST = 20
COMPOUND_BRAND_BOOST = 10

PRODUCT_SOURCE_FIELDS = [
    "id", "name", "brand", "category", "category_path",
    "price", "sale_price", "is_promo", "currency",
    "availability", "image_url", "product_url", "has_image",
    "avg_rating", "review_count", "is_new",
    "description", "sku", "condition", "is_bestseller", "is_highlighted",
]
SEARCH_SOURCE_FIELDS = PRODUCT_SOURCE_FIELDS + [
    "sales_30d", "ga4.popularity_score", "ga4.conversion_score", "ga4.trending_score",
]
FALLBACK_SOURCE_FIELDS = [
    "id", "name", "brand", "category", "price", "sale_price",
    "is_promo", "currency", "availability", "image_url",
    "product_url", "has_image", "avg_rating", "review_count",
]
TRENDING_SOURCE_FIELDS = FALLBACK_SOURCE_FIELDS + ["ga4.popularity_score", "ga4.trending_score"]

PRICE_RANGES = [
    {"key": "0-500", "to": 500},
    {"key": "500-1000", "from": 500, "to": 1000},
    {"key": "1000-3000", "from": 1000, "to": 3000},
    {"key": "3000-5000", "from": 3000, "to": 5000},
    {"key": "5000-10000", "from": 5000, "to": 10000},
    {"key": "10000+", "from": 10000},
]

_POPULARITY_SORT_SOURCE = """
if (doc.containsKey('ga4.popularity_score') && doc['ga4.popularity_score'].size() > 0 && doc['ga4.popularity_score'].value > 0) {
  return doc['ga4.popularity_score'].value;
}
return doc['sales_30d'].size() > 0 ? doc['sales_30d'].value * 0.1 : 0;
"""
_TRENDING_SORT_SOURCE = """
if (doc.containsKey('ga4.trending_score') && doc['ga4.trending_score'].size() > 0) {
  return doc['ga4.trending_score'].value;
}
return 0;
"""


class SortOrder(str, Enum):
    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NEWEST = "newest"
    POPULAR = "popular"
    TRENDING = "trending"


@dataclass(frozen=True)
class SearchFilters:
    brand: Optional[str] = None
    category: Optional[str] = None
    availability: Optional[str] = None
    mount: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None

    def as_dict(self) -> Dict[str, Any]:
        return {name: value for name, value in self.__dict__.items() if value is not None}


@dataclass(frozen=True)
class SearchOptions:
    filters: SearchFilters = field(default_factory=SearchFilters)
    page: int = 1
    per_page: int = 20
    sort: SortOrder = SortOrder.RELEVANCE


def _multi_match(text: str, fields: List[str], **extra: Any) -> Query:
    body: Dict[str, Any] = {"query": text, "fields": fields, "type": "best_fields"}
    body.update(extra)
    return {"multi_match": body}


def _phrase(field_name: str, text: str, boost: float, slop: Optional[int] = None) -> Query:
    body: Dict[str, Any] = {"query": text, "boost": boost}
    if slop is not None:
        body["slop"] = slop
    return {"match_phrase": {field_name: body}}


def _boosted_term(field_name: str, value: Any, boost: float) -> Query:
    return {"term": {field_name: {"value": value, "boost": boost}}}


def _build_ean(text: str, intent: EanIntent) -> Query:
    return {"term": {"ean": text}}


def _build_sku(text: str, intent: SkuIntent) -> Query:
    # The product the code belongs to must outrank accessories that merely
    # mention the code. Keyword fields are case-sensitive, so try the code as
    # typed, upper- and lowercased.
    should: List[Query] = []
    for code_field in CODE_FIELDS:
        for variant in (text, text.upper(), text.lower()):
            should.append(_boosted_term(code_field, variant, SKU_TERM_BOOST))
    should.append(_phrase("name.morfologik", text, SKU_PHRASE_BOOST))
    return {
        "bool": {
            "must": [_multi_match(text, NAME_FIELDS_LIGHT)],
            "should": should,
        }
    }


def _build_model_accessories(text: str, intent: ModelIntent, model_query: str, brand: Optional[str]) -> Query:
    # Accessories often carry the model name only in the description
    # ("Newell zamiennik LP-E6NH" fits "Canon EOS R5 i R6").
    accessory_part = re.sub(re.escape(model_query), "", text, count=1, flags=re.IGNORECASE).strip()
    must: List[Query] = [
        {
            "bool": {
                "should": [
                    _multi_match(model_query, ["name.folded^3", "name.morfologik^2", "name.prefix^1"]),
                    {"match": {"description": {"query": model_query, "operator": "and"}}},
                ],
                "minimum_should_match": 1,
            }
        }
    ]
    if intent.accessory_category:
        must.append({"term": {"category": intent.accessory_category}})

    should: List[Query] = [
        {"multi_match": {"query": text, "fields": NAME_FIELDS, "type": "cross_fields", "boost": ACCESSORY_FULL_QUERY_BOOST}},
    ]
    if accessory_part:
        should.append(_multi_match(accessory_part, ACCESSORY_KEYWORD_FIELDS, boost=ACCESSORY_KEYWORD_BOOST))
    should.append(_multi_match(model_query, MODEL_NAME_FIELDS, boost=ACCESSORY_MODEL_NAME_BOOST))
    if brand:
        should.append(_boosted_term("brand", brand, ACCESSORY_BRAND_BOOST))
    return {"bool": {"must": must, "should": should}}


def _build_model(text: str, intent: ModelIntent) -> Query:
    brand = normalize_brand_case(intent.brand) if intent.brand else None
    model_query = intent.model_query or text

    if intent.wants_accessories and model_query != text:
        return _build_model_accessories(text, intent, model_query, brand)

    text_query = strip_params(text) if intent.params else text
    should: List[Query] = [
        _phrase("name.morfologik", text, MODEL_PHRASE_BOOST),
        _phrase("name.morfologik", text, MODEL_SLOP_PHRASE_BOOST, slop=2),
        _phrase("model_code", text, MODEL_CODE_PHRASE_BOOST),
    ]
    if brand:
        should.append(_boosted_term("brand", brand, MODEL_BRAND_BOOST))
    return {
        "bool": {
            "must": [_multi_match(text_query, MODEL_FIELDS, fuzziness=1, prefix_length=2)],
            "should": should,
        }
    }


def _build_brand(text: str, intent: BrandIntent) -> Query:
    # Products made by the brand outrank accessories that only mention it.
    return {
        "bool": {
            "should": [
                _boosted_term("brand", normalize_brand_case(intent.brand), BRAND_TERM_BOOST),
                _multi_match(text, NAME_FIELDS),
            ]
        }
    }


def _build_compound(text: str, intent: CompoundIntent) -> Query:
    brand = normalize_brand_case(intent.brand) if intent.brand else None
    must: List[Query] = [{"term": {"category": intent.detected_category}}]
    if intent.compatibility_mode and intent.compat_mounts:
        must.append({"terms": {"compatible_mounts": list(intent.compat_mounts)}})

    should: List[Query] = [
        _phrase("name.morfologik", text, COMPOUND_PHRASE_BOOST, slop=3),
        _multi_match(intent.text_query or text, NAME_FIELDS),
    ]
    # Soft brand boost only: third-party lenses for a mount must stay visible.
    if brand and not intent.compatibility_mode:
        should.append(_boosted_term("brand", brand, COMPOUND_BRAND_BOOST))
    return {
        "bool": {
            "must": must,
            "should": should,
            "filter": build_param_filters(intent.params),
        }
    }


def _build_parametric(text: str, intent: ParametricIntent) -> Query:
    residual = strip_params(text)
    if not residual:
        return {"match_all": {}}
    return _multi_match(residual, NAME_FIELDS, fuzziness="AUTO", prefix_length=1)


def _build_category(text: str, intent: CategoryIntent) -> Query:
    # Without a name signal every product in the category scores the same and
    # sales signals let accessories ("ochraniacze na statyw") outrank tripods.
    base = {
        "bool": {
            "must": [{"term": {"category": intent.category}}],
            "should": [_multi_match(text, CATEGORY_TEXT_FIELDS)],
        }
    }
    envelope = RankingEnvelope(query=base, functions=category_query_signals(text, RESIDUAL_PATH_MARKERS))
    return envelope.to_dict()


def _build_price(text: str, intent: PriceIntent) -> Query:
    residual = intent.query
    if not residual or residual == text:
        return {"match_all": {}}
    return _multi_match(residual, NAME_FIELDS)


def _build_general(text: str, intent: GeneralIntent) -> Query:
    text_query = strip_params(text) if intent.params else text
    return _multi_match(text_query or text, NAME_FIELDS, fuzziness="AUTO", prefix_length=1)


_BUILDERS: Dict[IntentType, Callable[[str, Any], Query]] = {
    IntentType.EAN: _build_ean,
    IntentType.SKU: _build_sku,
    IntentType.MODEL: _build_model,
    IntentType.BRAND: _build_brand,
    IntentType.COMPOUND: _build_compound,
    IntentType.PARAMETRIC: _build_parametric,
    IntentType.CATEGORY: _build_category,
    IntentType.PRICE: _build_price,
    IntentType.GENERAL: _build_general,
}


def build_intent_query(text: str | None, intent: Intent) -> Query:
    """Relevance query for ``text`` specialised to ``intent``."""
    kind = getattr(intent, "kind", None)
    builder = _BUILDERS.get(kind) if isinstance(kind, IntentType) else None
    if builder is None:
        raise TypeError(f"Unsupported intent: {intent!r}")
    return builder((text or "").strip(), intent)


def build_base_match_query(text: str | None, intent: Intent) -> Query:
    """Light match used to scope facet aggregations."""
    cleaned = (text or "").strip()
    if isinstance(intent, EanIntent):
        return {"term": {"ean": cleaned}}
    if isinstance(intent, CategoryIntent):
        return {"term": {"category": intent.category}}
    if isinstance(intent, CompoundIntent):
        return {
            "bool": {
                "must": [{"term": {"category": intent.detected_category}}],
                "should": [_multi_match(cleaned, BASE_MATCH_FIELDS)],
            }
        }
    return _multi_match(cleaned, BASE_MATCH_FIELDS)


def build_param_filters(params: Mapping[str, Any] | None) -> List[Query]:
    """Focal lengths become inclusive ranges, everything else an exact term."""
    clauses: List[Query] = []
    for field_name, value in (params or {}).items():
        if "focal_length_min" in field_name:
            clauses.append({"range": {"params.focal_length_min": {"lte": value}}})
        elif "focal_length_max" in field_name:
            clauses.append({"range": {"params.focal_length_max": {"gte": value}}})
        else:
            clauses.append({"term": {field_name: value}})
    return clauses


def build_filter_clauses(filters: SearchFilters) -> List[Query]:
    clauses: List[Query] = []
    if filters.brand:
        clauses.append({"term": {"brand": filters.brand}})
    if filters.category:
        clauses.append({"term": {"category": filters.category}})
    if filters.availability:
        clauses.append({"term": {"availability": filters.availability}})
    if filters.mount:
        clauses.append({"term": {"compatible_mounts": filters.mount}})
    if filters.price_min is not None or filters.price_max is not None:
        price_range: Dict[str, float] = {}
        if filters.price_min is not None:
            price_range["gte"] = filters.price_min
        if filters.price_max is not None:
            price_range["lte"] = filters.price_max
        clauses.append({"range": {"price": price_range}})
    return clauses


def build_sort_clause(sort: SortOrder | str) -> List[Any]:
    order = SortOrder(sort)
    if order is SortOrder.PRICE_ASC:
        return [{"price": "asc"}, "_score"]
    if order is SortOrder.PRICE_DESC:
        return [{"price": "desc"}, "_score"]
    if order is SortOrder.NEWEST:
        return [{"created_at": "desc"}, "_score"]
    if order is SortOrder.POPULAR:
        return [_script_sort(_POPULARITY_SORT_SOURCE), "_score"]
    if order is SortOrder.TRENDING:
        return [_script_sort(_TRENDING_SORT_SOURCE), "_score"]
    return ["_score"]


def _script_sort(source: str) -> Dict[str, Any]:
    return {"_script": {"type": "number", "script": {"source": source}, "order": "desc"}}


def _params_for(text: str, intent: Intent) -> Mapping[str, Any]:
    # COMPOUND applies its own parameter filters inside the intent query.
    if isinstance(intent, CompoundIntent):
        return {}
    if isinstance(intent, ParametricIntent):
        return extract_params(text)
    return getattr(intent, "params", None) or {}


def build_search_query(text: str | None, intent: Intent, options: SearchOptions | None = None) -> Dict[str, Any]:
    """Full search body: intent query, filters, facets, pagination and sort."""
    opts = options or SearchOptions()
    cleaned = (text or "").strip()
    filter_clauses = build_filter_clauses(opts.filters) + build_param_filters(_params_for(cleaned, intent))
    body: Dict[str, Any] = {
        "from": (opts.page - 1) * opts.per_page,
        "size": opts.per_page,
        "query": {
            "bool": {
                "must": [build_intent_query(cleaned, intent)],
                "filter": filter_clauses,
            }
        },
        "aggs": {
            "brands": {"terms": {"field": "brand", "size": 20}},
            "categories": {"terms": {"field": "category", "size": 20}},
            "availability_facet": {"terms": {"field": "availability", "size": 5}},
            "mounts": {"terms": {"field": "compatible_mounts", "size": 15}},
            "price_ranges": {"range": {"field": "price", "ranges": PRICE_RANGES}},
        },
        "_source": SEARCH_SOURCE_FIELDS,
    }
    if SortOrder(opts.sort) is not SortOrder.RELEVANCE:
        body["sort"] = build_sort_clause(opts.sort)
    logger.debug("search body intent=%s body=%s", intent.kind.value, body)
    return body


def build_autocomplete_query(text: str | None, intent: Intent, limit: int = 5) -> List[Dict[str, Any]]:
    """Header/body pairs for one ``msearch`` round trip.

    1. completion suggestions
    2. category aggregation
    3. brand aggregation
    4. in-stock product results
    """
    cleaned = (text or "").strip()
    header: Dict[str, Any] = {}
    return [
        header,
        {
            "suggest": {
                "product_suggest": {
                    "prefix": cleaned,
                    "completion": {
                        "field": "suggest",
                        "size": limit,
                        "skip_duplicates": True,
                        "fuzzy": {"fuzziness": "AUTO", "prefix_length": 1},
                    },
                }
            },
            "_source": False,
            "size": 0,
        },
        header,
        {
            "size": 0,
            "query": build_base_match_query(cleaned, intent),
            "aggs": {"categories": {"terms": {"field": "category", "size": 3}}},
        },
        header,
        {
            "size": 0,
            "query": build_base_match_query(cleaned, intent),
            "aggs": {"brands": {"terms": {"field": "brand", "size": 2}}},
        },
        header,
        {
            "size": limit,
            "query": {
                "bool": {
                    "must": [build_intent_query(cleaned, intent)],
                    "filter": [{"term": {"availability": "in_stock"}}],
                }
            },
            "_source": PRODUCT_SOURCE_FIELDS,
        },
    ]


def build_spell_check_query(text: str | None) -> Dict[str, Any]:
    return {
        "suggest": {
            "text": (text or "").strip(),
            "spell_check": {
                "phrase": {
                    "field": "name.folded",
                    "size": 1,
                    "gram_size": 3,
                    "direct_generator": [{"field": "name.folded", "suggest_mode": "missing"}],
                    "highlight": {"pre_tag": "<em>", "post_tag": "</em>"},
                }
            },
        },
        "size": 0,
    }


def build_sales_fallback_query(size: int, category: Optional[str] = None) -> Dict[str, Any]:
    """In-stock products by 30-day sales, optionally limited to one category."""
    bool_query: Dict[str, Any] = {"filter": [{"term": {"availability": "in_stock"}}]}
    if category:
        bool_query["must"] = [{"term": {"category": category}}]
    return {
        "size": size,
        "query": {"bool": bool_query},
        "sort": [{"sales_30d": "desc"}],
        "_source": FALLBACK_SOURCE_FIELDS,
    }


def build_trending_query(limit: int = 10) -> Dict[str, Any]:
    return {
        "size": limit,
        "query": {"bool": {"filter": [{"term": {"availability": "in_stock"}}]}},
        "sort": [_script_sort(_POPULARITY_SORT_SOURCE)],
        "_source": TRENDING_SOURCE_FIELDS,
        "aggs": {"top_categories": {"terms": {"field": "category", "size": 5}}},
    }
