"""Brand dictionary, model patterns and brand detection helpers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern

KNOWN_BRANDS: List[str] = [
    "canon",
    "sony",
    "nikon",
    "fujifilm",
    "fuji",
    "panasonic",
    "lumix",
    "olympus",
    "om system",
    "leica",
    "sigma",
    "tamron",
    "viltrox",
    "samyang",
    "godox",
    "profoto",
    "manfrotto",
    "benro",
    "gitzo",
    "peak design",
    "lowepro",
    "hoya",
    "b+w",
    "nisi",
    "dji",
    "gopro",
    "sandisk",
    "lexar",
    "kingston",
    "zhiyun",
    "rode",
    "sennheiser",
    "smallrig",
    "fomei",
    "patona",
    "newell",
    "savage",
    "marumi",
    "epson",
    "glareone",
    "hasselblad",
    "ricoh",
    "pentax",
    "zeiss",
    "tokina",
    "laowa",
    "joby",
    "tether tools",
    "elinchrom",
    "broncolor",
    "aputure",
]

# First listed brand wins when two alternatives start at the same position,
# so "fujifilm" is tried before "fuji".
BRAND_PATTERN = re.compile(
    r"\b(" + "|".join(re.escape(brand) for brand in KNOWN_BRANDS) + r")\b",
    re.IGNORECASE,
)

# What follows the brand name when the user is after the primary product
# (camera body, drone, action camera) rather than an accessory for it.
BODY_MODEL_PATTERNS: Dict[str, Pattern[str]] = {
    "sony": re.compile(r"^a[1-9]\b|^a7[crs]?\b|^a6[0-9]{3}\b|^a9\b|^alpha\b|^fx[0-9]", re.IGNORECASE),
    "canon": re.compile(
        r"^eos\b|^r[0-9]\b|^r5\b|^r6\b|^r7\b|^r8\b|^r10\b|^r50\b|^r100\b|^powershot\b"
        r"|^1d\b|^5d\b|^6d\b|^7d\b|^80d\b|^90d\b",
        re.IGNORECASE,
    ),
    "nikon": re.compile(
        r"^z[0-9]\b|^z5\b|^z6\b|^z7\b|^z8\b|^z9\b|^z30\b|^z50\b|^zf\b|^zfc\b|^d[0-9]{3,4}\b",
        re.IGNORECASE,
    ),
    "fujifilm": re.compile(r"^x-?[a-z][0-9]|^x-?[thsep]\d|^x100\b|^gfx\b", re.IGNORECASE),
    "fuji": re.compile(r"^x-?[a-z][0-9]|^x-?[thsep]\d|^x100\b|^gfx\b", re.IGNORECASE),
    "panasonic": re.compile(r"^s[0-9]\b|^s5\b|^gh[0-9]\b|^g[0-9]\b|^lumix\b", re.IGNORECASE),
    "lumix": re.compile(r"^s[0-9]\b|^s5\b|^gh[0-9]\b|^g[0-9]\b", re.IGNORECASE),
    "olympus": re.compile(r"^om-?[0-9]\b|^e-?m[0-9]\b|^pen\b", re.IGNORECASE),
    "om system": re.compile(r"^om-?[0-9]\b|^e-?m[0-9]\b", re.IGNORECASE),
    "leica": re.compile(r"^sl[0-9]?\b|^q[0-9]?\b|^m[0-9]{1,2}\b|^cl\b", re.IGNORECASE),
    "hasselblad": re.compile(r"^x[0-9]d\b|^907\b", re.IGNORECASE),
    "ricoh": re.compile(r"^gr\b|^theta\b", re.IGNORECASE),
    "pentax": re.compile(r"^k-?[0-9]\b", re.IGNORECASE),
    "dji": re.compile(r"^mavic\b|^mini\b|^air\b|^phantom\b|^osmo\b|^pocket\b|^avata\b|^action\b", re.IGNORECASE),
    "gopro": re.compile(r"^hero\b|^max\b", re.IGNORECASE),
}

# Reverse lookup for queries that name a model series without the brand.
# Evaluated top to bottom, first hit wins.
MODEL_TO_BRAND: List[tuple[Pattern[str], str]] = [
    (
        re.compile(
            r"\beos\b|^r[0-9]\b|^r5\b|^r6\b|^r7\b|^r8\b|^r10\b|^r50\b|^r100\b|^powershot\b"
            r"|\b1d\b|\b5d\b|\b6d\b|\b7d\b|\b80d\b|\b90d\b",
            re.IGNORECASE,
        ),
        "canon",
    ),
    (re.compile(r"\balpha\b|^a[1-9]\b|^a7[crs]?\b|^a6[0-9]{3}\b|^a9\b|^zv-?[0-9e]", re.IGNORECASE), "sony"),
    (re.compile(r"\blumix\b|^gh[0-9]\b|^g[0-9]\b|^s5\b", re.IGNORECASE), "panasonic"),
    (re.compile(r"^x-?t[0-9]|^x-?[hsep][0-9]|^x100\b|^gfx\b|^x-?pro", re.IGNORECASE), "fujifilm"),
    (re.compile(r"^z[5-9]\b|^z30\b|^z50\b|^zf\b|^zfc\b|^d[3-9][0-9]{2}\b|^d[0-9]{4}\b", re.IGNORECASE), "nikon"),
    (re.compile(r"\bmavic\b|\bosmo\b|\bphantom\b|\bavata\b", re.IGNORECASE), "dji"),
    (re.compile(r"\bhero\b", re.IGNORECASE), "gopro"),
    (re.compile(r"^om-?[0-9]\b|^e-?m[0-9]\b|^pen\b", re.IGNORECASE), "olympus"),
    (re.compile(r"^gr\b|^theta\b", re.IGNORECASE), "ricoh"),
    (re.compile(r"^k-?[0-9]\b", re.IGNORECASE), "pentax"),
]

# Brand keyword values as stored in the index. Brands missing here are stored
# in Title Case.
BRAND_CASE_MAP: Dict[str, str] = {
    "dji": "DJI",
    "nisi": "NISI",
    "nanlite": "NANLITE",
    "b+w": "B+W",
    "gopro": "GoPro",
    "glareone": "GlareOne",
    "peak design": "Peak Design",
    "om system": "OM System",
    "easycover": "EasyCover",
    "blackmagic": "Blackmagic",
    "venus optics": "Venus Optics",
    "insta360": "Insta360",
}

_WORD_START_RE = re.compile(r"\b[a-z0-9]")


@dataclass(frozen=True)
class BrandMatch:
    brand: str
    remainder: str


def find_brand(text: str) -> Optional[BrandMatch]:
    """Locate the first known brand in ``text`` and return it with the text after it."""
    match = BRAND_PATTERN.search(text or "")
    if not match:
        return None
    return BrandMatch(brand=match.group(1).lower(), remainder=text[match.end():].strip())


def is_body_model(brand: str, remainder: str) -> bool:
    """True when ``remainder`` names one of ``brand``'s primary products."""
    pattern = BODY_MODEL_PATTERNS.get(brand.lower())
    return bool(pattern and pattern.search(remainder))


def infer_brand_from_model(text: str) -> Optional[str]:
    for pattern, brand in MODEL_TO_BRAND:
        if pattern.search(text):
            return brand
    return None


def normalize_brand_case(brand: str) -> str:
    """Map a brand to the casing used by the ``brand`` keyword field."""
    lowered = brand.lower()
    if lowered in BRAND_CASE_MAP:
        return BRAND_CASE_MAP[lowered]
    return _WORD_START_RE.sub(lambda m: m.group(0).upper(), lowered)
