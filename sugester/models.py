"""Pydantic models for response payloads."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Ga4Scores(BaseModel):
    popularity_score: float = 0
    conversion_score: float = 0
    trending_score: float = 0


class ProductResult(BaseModel):
    id: str | int | None = None
    sku: str | None = None
    ean: str | None = None
    name: str | None = None
    description: str | None = None
    brand: str | None = None
    category: str | None = None
    category_path: str | List[str] | None = None
    price: float | None = None
    sale_price: float | None = None
    is_promo: bool = False
    currency: str = "PLN"
    availability: str = "in_stock"
    image_url: str | None = None
    product_url: str | None = None
    has_image: bool = True
    condition: str | None = None
    avg_rating: float | None = None
    review_count: int | None = None
    is_new: bool = False
    is_bestseller: bool = False
    is_highlighted: bool = False
    is_pinned: bool = False
    score: float | None = None
    ga4: Ga4Scores | None = None


class Bucket(BaseModel):
    name: str
    count: int


class PriceRangeBucket(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    from_: float | None = Field(default=None, alias="from")
    to: float | None = None
    count: int


class Facets(BaseModel):
    brand: List[Bucket] = Field(default_factory=list)
    category: List[Bucket] = Field(default_factory=list)
    availability: List[Bucket] = Field(default_factory=list)
    mount: List[Bucket] = Field(default_factory=list)
    price_ranges: List[PriceRangeBucket] = Field(default_factory=list)


class Suggestion(BaseModel):
    text: str | None = None
    score: float | None = None


class SearchResponse(BaseModel):
    query: str
    total: int
    page: int
    per_page: int
    products: List[ProductResult]
    facets: Facets
    did_you_mean: Optional[str] = None
    fallback_type: Optional[str] = None
    intent: Dict[str, Any]


class AutocompleteResponse(BaseModel):
    query: str
    suggestions: List[Suggestion]
    categories: List[Bucket]
    brands: List[Bucket]
    products: List[ProductResult]


class TrendingResponse(BaseModel):
    products: List[ProductResult]
    categories: List[Bucket]
    queries: List[str] = Field(default_factory=list)


class MerchandisingReloadResponse(BaseModel):
    status: str = "ok"
    pinned: int
    blacklisted: int
    cache_entries_flushed: int


class CacheFlushResponse(BaseModel):
    status: str = "ok"
    cache_entries_flushed: int
