"""Turn Elasticsearch hits, buckets and suggestions into API payloads."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


def format_product(hit: Dict[str, Any]) -> Dict[str, Any]:
    src = hit.get("_source") or {}
    product: Dict[str, Any] = {
        "id": src.get("id"),
        "sku": src.get("sku"),
        "ean": src.get("ean"),
        "name": src.get("name"),
        "description": src.get("description"),
        "brand": src.get("brand"),
        "category": src.get("category"),
        "category_path": src.get("category_path"),
        "price": src.get("price"),
        "sale_price": src.get("sale_price"),
        "is_promo": bool(src.get("is_promo")),
        "currency": src.get("currency") or "PLN",
        "availability": src.get("availability") or "in_stock",
        "image_url": src.get("image_url"),
        "product_url": src.get("product_url"),
        "has_image": src.get("has_image") is not False,
        "condition": src.get("condition"),
        "avg_rating": src.get("avg_rating"),
        "review_count": src.get("review_count"),
        "is_new": bool(src.get("is_new")),
        "is_bestseller": bool(src.get("is_bestseller")),
        "is_highlighted": bool(src.get("is_highlighted")),
        "is_pinned": False,
        "score": hit.get("_score"),
    }
    ga4 = src.get("ga4")
    if ga4:
        product["ga4"] = {
            "popularity_score": ga4.get("popularity_score") or 0,
            "conversion_score": ga4.get("conversion_score") or 0,
            "trending_score": ga4.get("trending_score") or 0,
        }
    return product


def format_products(hits: Optional[Iterable[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [format_product(hit) for hit in hits or []]


def format_buckets(aggregation: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    buckets = (aggregation or {}).get("buckets") or []
    return [{"name": bucket["key"], "count": bucket["doc_count"]} for bucket in buckets]


def format_facets(aggregations: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not aggregations:
        return {}
    facets: Dict[str, Any] = {}
    for agg_name, facet_name in (
        ("brands", "brand"),
        ("categories", "category"),
        ("availability_facet", "availability"),
        ("mounts", "mount"),
    ):
        if agg_name in aggregations:
            facets[facet_name] = format_buckets(aggregations[agg_name])
    if "price_ranges" in aggregations:
        facets["price_ranges"] = [
            {
                "key": bucket["key"],
                "from": bucket.get("from"),
                "to": bucket.get("to"),
                "count": bucket["doc_count"],
            }
            for bucket in aggregations["price_ranges"].get("buckets") or []
        ]
    return facets


def format_suggestions(response: Dict[str, Any], name: str = "product_suggest") -> List[Dict[str, Any]]:
    entries = (response.get("suggest") or {}).get(name) or []
    if not entries:
        return []
    return [
        {"text": option.get("text") or (option.get("_source") or {}).get("name"), "score": option.get("_score")}
        for option in entries[0].get("options") or []
    ]
