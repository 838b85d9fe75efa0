"""Intent classification: an ordered rule cascade where the first match wins.

Each rule is a plain function taking a :class:`QueryContext` and returning an
intent or ``None``. Condition and accessory preferences are detected once,
before the cascade, and attached to whichever intent the cascade produces.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .brands import find_brand, infer_brand_from_model, is_body_model
from .categories import detect_accessory_category, lookup_category
from .intents import (
    BrandIntent,
    CategoryIntent,
    ConditionPref,
    EanIntent,
    GeneralIntent,
    Intent,
    ModelIntent,
    ParametricIntent,
    PriceIntent,
    SkuIntent,
)
from .params import has_parametric_token

logger = logging.getLogger(__name__)

EAN_PATTERN = re.compile(r"^\d{8}$|^\d{13}$")
# Manufacturer codes such as LP-E6NH, NP-FW50, BG-R10, EN-EL15c.
SKU_PATTERN = re.compile(r"^[A-Z]{2,4}[-_][A-Z]*\d[A-Z0-9]*", re.IGNORECASE)
PRICE_PATTERN = re.compile(r"do\s+(\d+)\s*(?:zł|pln)?|poniżej\s+(\d+)|tani[ae]?\b", re.IGNORECASE)
_ALNUM_RE = re.compile(r"[a-z0-9]", re.IGNORECASE)

# Partial words count so preferences apply while the user is still typing.
USED_PATTERN = re.compile(r"\b(?:używ\w*|uzyw\w*|second[\s-]?hand|poleasingow\w*)(?:\b|$)", re.IGNORECASE)
NEW_PATTERN = re.compile(r"\b(?:now[yaeio]|fabrycznie?\s*now[yaeio]|nówka)(?:\b|$)", re.IGNORECASE)
ACCESSORY_PATTERN = re.compile(
    r"\b(?:akceso\w*|accesso\w*|klatk[aię]\w*|grip\w*|osłon\w*|etui\w*|filtr\w*|torb[aęy]\w*"
    r"|plecak\w*|pasek\w*|ładowark\w*|akumulat\w*|bateri\w*)(?:\b|$)",
    re.IGNORECASE,
)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class QueryContext:
    text: str
    condition_pref: Optional[ConditionPref]
    wants_accessories: bool
    accessory_category: Optional[str]


def detect_condition_preference(text: str) -> Optional[ConditionPref]:
    if USED_PATTERN.search(text):
        return ConditionPref.USED
    if NEW_PATTERN.search(text):
        return ConditionPref.NEW
    return None


def detect_accessory_preference(text: str) -> bool:
    return bool(ACCESSORY_PATTERN.search(text))


def strip_condition_words(text: str) -> str:
    return NEW_PATTERN.sub("", USED_PATTERN.sub("", text, count=1), count=1).strip()


def strip_modifier_words(text: str) -> str:
    """Drop the first accessory and condition words: ``"eos r6 akumulator"`` -> ``"eos r6"``."""
    stripped = ACCESSORY_PATTERN.sub("", text, count=1)
    stripped = USED_PATTERN.sub("", stripped, count=1)
    stripped = NEW_PATTERN.sub("", stripped, count=1)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def _model_intent(ctx: QueryContext, brand: str, is_body: bool) -> ModelIntent:
    return ModelIntent(
        query=ctx.text,
        model_query=strip_modifier_words(ctx.text),
        brand=brand,
        # An explicit accessory request beats a body-looking model name.
        is_body_query=False if ctx.wants_accessories else is_body,
        accessory_category=ctx.accessory_category,
        condition_pref=ctx.condition_pref,
        wants_accessories=ctx.wants_accessories,
    )


def _rule_ean(ctx: QueryContext) -> Optional[Intent]:
    if EAN_PATTERN.search(ctx.text):
        return EanIntent(query=ctx.text, condition_pref=ctx.condition_pref, wants_accessories=ctx.wants_accessories)
    return None


def _rule_sku(ctx: QueryContext) -> Optional[Intent]:
    if SKU_PATTERN.search(ctx.text):
        return SkuIntent(query=ctx.text, condition_pref=ctx.condition_pref, wants_accessories=ctx.wants_accessories)
    return None


def _rule_brand(ctx: QueryContext) -> Optional[Intent]:
    found = find_brand(ctx.text)
    if found is None:
        return None
    if _ALNUM_RE.search(found.remainder):
        return _model_intent(ctx, found.brand, is_body_model(found.brand, found.remainder))
    return BrandIntent(
        query=ctx.text,
        brand=found.brand,
        accessory_category=ctx.accessory_category,
        condition_pref=ctx.condition_pref,
        wants_accessories=ctx.wants_accessories,
    )


def _rule_inferred_brand(ctx: QueryContext) -> Optional[Intent]:
    cleaned = strip_condition_words(ctx.text)
    brand = infer_brand_from_model(cleaned)
    if brand is None:
        return None
    return _model_intent(ctx, brand, is_body_model(brand, cleaned))


def _rule_parametric(ctx: QueryContext) -> Optional[Intent]:
    if has_parametric_token(ctx.text):
        return ParametricIntent(query=ctx.text, condition_pref=ctx.condition_pref, wants_accessories=ctx.wants_accessories)
    return None


def _rule_category(ctx: QueryContext) -> Optional[Intent]:
    category = lookup_category(ctx.text)
    if category is None:
        return None
    return CategoryIntent(
        query=ctx.text,
        category=category,
        condition_pref=ctx.condition_pref,
        wants_accessories=ctx.wants_accessories,
    )


def _rule_price(ctx: QueryContext) -> Optional[Intent]:
    match = PRICE_PATTERN.search(ctx.text)
    if not match:
        return None
    amount = match.group(1) or match.group(2)
    max_price = int(amount) if amount and int(amount) > 0 else None
    residual = PRICE_PATTERN.sub("", ctx.text, count=1).strip()
    return PriceIntent(
        query=residual or ctx.text,
        max_price=max_price,
        condition_pref=ctx.condition_pref,
        wants_accessories=ctx.wants_accessories,
    )


RULES: List[Tuple[str, Callable[[QueryContext], Optional[Intent]]]] = [
    ("ean", _rule_ean),
    ("sku", _rule_sku),
    ("brand", _rule_brand),
    ("inferred_brand", _rule_inferred_brand),
    ("parametric", _rule_parametric),
    ("category", _rule_category),
    ("price", _rule_price),
]


def build_context(text: str | None) -> QueryContext:
    cleaned = (text or "").strip()
    wants_accessories = detect_accessory_preference(cleaned)
    return QueryContext(
        text=cleaned,
        condition_pref=detect_condition_preference(cleaned),
        wants_accessories=wants_accessories,
        accessory_category=detect_accessory_category(cleaned) if wants_accessories else None,
    )


def classify_intent(text: str | None) -> Intent:
    """Label ``text`` with exactly one intent. Never raises."""
    ctx = build_context(text)
    for name, rule in RULES:
        intent = rule(ctx)
        if intent is not None:
            logger.debug("classify q=%r rule=%s intent=%s", ctx.text, name, intent)
            return intent
    logger.debug("classify q=%r rule=default intent=GENERAL", ctx.text)
    return GeneralIntent(query=ctx.text, condition_pref=ctx.condition_pref, wants_accessories=ctx.wants_accessories)
