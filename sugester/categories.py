"""Category dictionaries shared by classification, query building and ranking."""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

# Whole-query category names (lowercase) -> category keyword in the index.
CATEGORY_NAMES: Dict[str, str] = {
    # Aparaty
    "aparaty": "Aparaty cyfrowe",
    "aparaty cyfrowe": "Aparaty cyfrowe",
    "aparaty bezlusterkowe": "Aparaty cyfrowe",
    "bezlusterkowce": "Aparaty cyfrowe",
    "mirrorless": "Aparaty cyfrowe",
    "lustrzanki": "Aparaty cyfrowe",
    "dslr": "Aparaty cyfrowe",
    "aparaty analogowe": "Aparaty analogowe",
    "analogowe": "Aparaty analogowe",
    # Obiektywy
    "obiektywy": "Obiektywy do bezlusterkowców",
    "obiektyw": "Obiektywy do bezlusterkowców",
    "obiektywy do bezlusterkowców": "Obiektywy do bezlusterkowców",
    "obiektywy do lustrzanek": "Obiektywy do lustrzanek",
    # Statywy
    "statywy": "Statywy i akcesoria",
    "statyw": "Statywy i akcesoria",
    # Oświetlenie
    "lampy błyskowe": "Lampy błyskowe",
    "lampy": "Lampy błyskowe",
    "flesz": "Lampy błyskowe",
    "flash": "Lampy błyskowe",
    "lampy studyjne": "Lampy błyskowe studyjne",
    "oświetlenie": "Lampy światła ciągłego",
    "lampy wideo": "Lampy wideo",
    "softboxy": "Softboxy i akcesoria",
    # Filtry
    "filtry": "Filtry, pokrywki",
    "filtr": "Filtry, pokrywki",
    "filtry nd": "Filtry, pokrywki",
    "filtry uv": "Filtry, pokrywki",
    "filtry prostokątne": "Filtry prostokątne",
    # Karty pamięci
    "karty pamięci": "Karty pamięci",
    "karty sd": "Karty pamięci",
    "karty cf": "Karty pamięci",
    # Torby, plecaki
    "torby": "Torby, plecaki, walizki",
    "plecaki": "Torby, plecaki, walizki",
    "plecak": "Torby, plecaki, walizki",
    "walizki": "Torby, plecaki, walizki",
    # Drony
    "drony": "Drony",
    "dron": "Drony",
    # Kamery
    "kamery": "Kamery cyfrowe",
    "kamera": "Kamery cyfrowe",
    "kamery sportowe": "Kamery sportowe",
    "gopro": "Kamery sportowe",
    "kamery internetowe": "Kamery internetowe",
    # Stabilizatory
    "gimbale": "Systemy stabilizacji",
    "gimbal": "Systemy stabilizacji",
    "stabilizatory": "Systemy stabilizacji",
    # Audio
    "audio": "Audio",
    "mikrofon": "Audio",
    "mikrofony": "Audio",
    "słuchawki": "Słuchawki",
    # Zasilanie
    "akumulatory": "Akumulatory",
    "akumulator": "Akumulatory",
    "baterie": "Akumulatory",
    "ładowarki": "Ładowarki",
    "zasilanie": "Zasilanie",
    # Optyka
    "lornetki": "Lornetki",
    "lornetka": "Lornetki",
    "lunety": "Lunety",
    "teleskopy": "Teleskopy",
    # Inne
    "monitory": "Monitory",
    "monitor": "Monitory",
    "drukarki": "Drukarki",
    "drukarka": "Drukarki",
    "skanery": "Skanery",
    "tablety": "Tablety",
    "etui": "Etui",
    "paski": "Paski i szelki",
    "adaptery": "Adaptery bagnetowe",
    "dyski": "Dyski twarde",
    "tła": "Tła i systemy zawieszania",
    "papier": "Papier fotograficzny",
    "używane": "Używane aparaty cyfrowe",
}

# Accessory keywords -> category used to narrow accessory searches. ``None``
# marks generic words that signal accessories without naming a category.
# Order matters for prefix lookups.
ACCESSORY_TO_CATEGORY: List[Tuple[str, Optional[str]]] = [
    ("akumulator", "Akumulatory"),
    ("akumulatory", "Akumulatory"),
    ("bateria", "Akumulatory"),
    ("baterie", "Akumulatory"),
    ("ładowarka", "Ładowarki"),
    ("ładowarki", "Ładowarki"),
    ("filtr", "Filtry, pokrywki"),
    ("filtry", "Filtry, pokrywki"),
    ("torba", "Torby, plecaki, walizki"),
    ("torby", "Torby, plecaki, walizki"),
    ("plecak", "Torby, plecaki, walizki"),
    ("plecaki", "Torby, plecaki, walizki"),
    ("etui", "Etui"),
    ("grip", "Akumulatory"),
    ("gripy", "Akumulatory"),
    ("klatka", "Rigi i akcesoria"),
    ("klatki", "Rigi i akcesoria"),
    ("osłona", "Akcesoria drobne"),
    ("osłony", "Akcesoria drobne"),
    ("pasek", "Paski i szelki"),
    ("paski", "Paski i szelki"),
    ("akcesoria", None),
]
_ACCESSORY_LOOKUP: Dict[str, Optional[str]] = dict(ACCESSORY_TO_CATEGORY)

MIN_ACCESSORY_PREFIX = 4

# Where the primary product lives (cameras, camcorders, drones).
BODY_CATEGORIES: List[str] = [
    "Aparaty cyfrowe",
    "Używane aparaty cyfrowe",
    "Kamery cyfrowe",
    "Kamery sportowe",
    "Drony",
]

# Lenses rank well next to bodies.
LENS_CATEGORIES: List[str] = [
    "Obiektywy do bezlusterkowców",
    "Obiektywy do lustrzanek",
    "Obiektywy do filmowania",
    "Używane obiektywy",
]

ACCESSORY_CATEGORIES: List[str] = [
    "Rigi i akcesoria",
    "Akumulatory",
    "Ładowarki",
    "Akcesoria drobne",
    "Osłony",
    "Torby, plecaki, walizki",
    "Filtry, pokrywki",
    "Paski i szelki",
    "Zasilanie",
    "Zasilacze",
    "Kable",
    "Etui",
    "Czytniki",
    "Lampy wideo",
    "Wyzwalanie lamp studyjnych",
    "Slidery",
    "Monitory podglądowe",
]

# Category path fragments of leftover accessory subcategories.
RESIDUAL_PATH_MARKERS: Tuple[str, ...] = ("pozostałe", "akcesoria drobne")

_WHITESPACE_RE = re.compile(r"\s+")


def lookup_category(text: str) -> Optional[str]:
    """Exact, case-insensitive match of the whole trimmed text."""
    return CATEGORY_NAMES.get((text or "").strip().lower())


def detect_accessory_category(text: str) -> Optional[str]:
    """Map the first accessory word in ``text`` to its category.

    Exact word lookup wins; otherwise a word of at least four characters is
    treated as a prefix being typed (``"akumulat"`` -> ``"Akumulatory"``).
    """
    for word in _WHITESPACE_RE.split((text or "").lower()):
        if word in _ACCESSORY_LOOKUP:
            return _ACCESSORY_LOOKUP[word]
        if len(word) < MIN_ACCESSORY_PREFIX:
            continue
        for keyword, category in ACCESSORY_TO_CATEGORY:
            if keyword.startswith(word):
                return category
    return None
