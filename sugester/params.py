"""Structured photo/video parameter extraction from free query text.

Each extractor is an independent unit: a primary pattern, an optional context
pattern that must match the whole text, and a writer that turns the match into
``params.*`` fields. Extractors never short-circuit each other and are applied
in declaration order, so a later extractor overwrites a field an earlier one
already wrote. A bare two-digit ``NNmm`` token therefore feeds both the focal
length fields and, in a filter context, ``params.filter_diameter``.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

ExtractedParams = Dict[str, Any]


@dataclass(frozen=True)
class Extractor:
    name: str
    pattern: re.Pattern[str]
    write: Callable[[re.Match[str]], ExtractedParams]
    context: Optional[re.Pattern[str]] = None

    def apply(self, text: str) -> ExtractedParams:
        if self.context is not None and not self.context.search(text):
            return {}
        match = self.pattern.search(text)
        if not match:
            return {}
        return self.write(match)


def _focal(low: str, high: str) -> ExtractedParams:
    return {
        "params.focal_length_min": int(low),
        "params.focal_length_max": int(high),
    }


EXTRACTORS: tuple[Extractor, ...] = (
    Extractor(
        "aperture",
        re.compile(r"f/(\d+\.?\d*)", re.IGNORECASE),
        lambda m: {"params.aperture": f"f/{m.group(1)}"},
    ),
    Extractor(
        "focal_range",
        re.compile(r"(\d+)-(\d+)\s*mm", re.IGNORECASE),
        lambda m: _focal(m.group(1), m.group(2)),
    ),
    Extractor(
        "focal_single",
        re.compile(r"\b(\d+)\s*mm\b", re.IGNORECASE),
        lambda m: _focal(m.group(1), m.group(1)),
    ),
    Extractor(
        "video_resolution",
        re.compile(r"\b(\d+)[kK]\b"),
        lambda m: {"params.video_resolution": f"{m.group(1)}K"},
    ),
    Extractor(
        "video_fps",
        re.compile(r"(\d+)\s*fps", re.IGNORECASE),
        lambda m: {"params.video_fps": int(m.group(1))},
    ),
    Extractor(
        "sensor_size",
        re.compile(r"\b(full\s*frame|pełna\s*klatka|ff)\b", re.IGNORECASE),
        lambda m: {"params.sensor_size": "Full Frame"},
    ),
    Extractor(
        "sensor_size_apsc",
        re.compile(r"\b(aps-?c)\b", re.IGNORECASE),
        lambda m: {"params.sensor_size": "APS-C"},
    ),
    Extractor(
        "sensor_size_m43",
        re.compile(r"\b(micro\s*4/3|m43|mft)\b", re.IGNORECASE),
        lambda m: {"params.sensor_size": "Micro 4/3"},
    ),
    Extractor(
        "mount",
        re.compile(r"\b(RF|EF|FE|E-mount|Z-mount|X-mount|L-mount|MFT)\b", re.IGNORECASE),
        lambda m: {"params.mount": m.group(1).upper()},
    ),
    Extractor(
        "filter_diameter",
        re.compile(r"\b(\d{2})\s*mm\b", re.IGNORECASE),
        lambda m: {"params.filter_diameter": int(m.group(1))},
        context=re.compile(r"filtr|cpl|nd|uv|polaryz", re.IGNORECASE),
    ),
    Extractor(
        "megapixels",
        re.compile(r"(\d+(?:\.\d+)?)\s*(?:MP|Mpx|megapiksel)", re.IGNORECASE),
        lambda m: {"params.megapixels": float(m.group(1))},
    ),
)

# Spans removed to obtain the text-only part of a query. Independent of which
# extractors fired on the same text.
_STRIP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"f/\d+\.?\d*", re.IGNORECASE),
    re.compile(r"\d+-\d+\s*mm", re.IGNORECASE),
    re.compile(r"\b\d+\s*mm\b", re.IGNORECASE),
    re.compile(r"\b\d+[kK]\b"),
    re.compile(r"\d+\s*fps", re.IGNORECASE),
    re.compile(r"\b(?:full\s*frame|pełna\s*klatka|ff|aps-?c|micro\s*4/3|m43|mft)\b", re.IGNORECASE),
    re.compile(r"\b(?:RF|EF|FE|E-mount|Z-mount|X-mount|L-mount|MFT)\b", re.IGNORECASE),
    re.compile(r"\d+(?:\.\d+)?\s*(?:mpx|mp|megapiksel\w*)\b", re.IGNORECASE),
)

# Detection-only patterns: any hit makes a query parametric.
PARAMETRIC_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"f/\d+\.?\d*", re.IGNORECASE),
    re.compile(r"\d+(?:-\d+)?\s*mm", re.IGNORECASE),
    re.compile(r"\b\d+[kK]\b"),
    re.compile(r"\d+\s*fps", re.IGNORECASE),
    re.compile(r"\b(?:full\s*frame|aps-?c|micro\s*4/3|m43|pełna\s*klatka)\b", re.IGNORECASE),
    re.compile(r"\b(?:RF|EF|FE|E-mount|Z-mount|X-mount|L-mount|MFT)\b", re.IGNORECASE),
)

_WHITESPACE_RE = re.compile(r"\s+")


def extract_params(text: str | None) -> ExtractedParams:
    """Return ``params.*`` field values found in ``text``."""
    source = text or ""
    params: ExtractedParams = {}
    for extractor in EXTRACTORS:
        found = extractor.apply(source)
        if found:
            logger.debug("extractor %s matched %r -> %s", extractor.name, source, found)
            params.update(found)
    return params


def strip_params(text: str | None) -> str:
    """Remove every parameter-looking span, leaving the text-only query."""
    residual = text or ""
    for pattern in _STRIP_PATTERNS:
        residual = pattern.sub("", residual)
    return _WHITESPACE_RE.sub(" ", residual).strip()


def has_parametric_token(text: str | None) -> bool:
    source = text or ""
    return any(pattern.search(source) for pattern in PARAMETRIC_PATTERNS)
