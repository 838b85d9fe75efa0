"""Pinned and blacklisted products per query.

Rules are read from ``pinned.json`` and ``blacklisted.json`` (``{query: [ids]}``)
into an immutable :class:`MerchandisingRules` snapshot. :class:`MerchandisingStore`
owns the current snapshot; a reload builds a new one and swaps the reference,
so a request always sees one consistent rule set.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import settings

logger = logging.getLogger(__name__)

PINNED_FILE = "pinned.json"
BLACKLISTED_FILE = "blacklisted.json"

Rules = Mapping[str, Tuple[str, ...]]


def _freeze(raw: Mapping[str, Any]) -> Rules:
    frozen: Dict[str, Tuple[str, ...]] = {}
    for key, ids in raw.items():
        if isinstance(ids, list):
            frozen[str(key).strip().lower()] = tuple(str(product_id) for product_id in ids)
    return MappingProxyType(frozen)


def _matching_ids(rules: Rules, query: str | None) -> Tuple[str, ...]:
    q = (query or "").lower().strip()
    for key, ids in rules.items():
        if q == key or q.startswith(key + " "):
            return ids
    return ()


@dataclass(frozen=True)
class MerchandisingRules:
    pinned: Rules = field(default_factory=lambda: MappingProxyType({}))
    blacklisted: Rules = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_mappings(cls, pinned: Mapping[str, Any], blacklisted: Mapping[str, Any]) -> "MerchandisingRules":
        return cls(pinned=_freeze(pinned), blacklisted=_freeze(blacklisted))

    def pinned_for(self, query: str | None) -> Tuple[str, ...]:
        return _matching_ids(self.pinned, query)

    def blacklisted_for(self, query: str | None) -> Tuple[str, ...]:
        return _matching_ids(self.blacklisted, query)

    def apply(
        self,
        products: Sequence[Dict[str, Any]],
        query: str | None,
        products_by_id: Optional[Mapping[str, Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Drop blacklisted products, then put pinned ones on top flagged ``is_pinned``.

        A pinned id found in ``products_by_id`` is inserted from there; otherwise
        it is moved up only if it is already among ``products``.
        """
        blacklisted = set(self.blacklisted_for(query))
        remaining = [product for product in products if str(product.get("id")) not in blacklisted]
        pinned_ids = self.pinned_for(query)
        if not pinned_ids:
            return remaining

        lookup = products_by_id or {}
        pinned: List[Dict[str, Any]] = []
        for product_id in pinned_ids:
            if product_id in lookup:
                pinned.append({**lookup[product_id], "is_pinned": True})
                remaining = [p for p in remaining if str(p.get("id")) != product_id]
                continue
            for index, product in enumerate(remaining):
                if str(product.get("id")) == product_id:
                    pinned.append({**remaining.pop(index), "is_pinned": True})
                    break
        return pinned + remaining

    def counts(self) -> Dict[str, int]:
        return {"pinned": len(self.pinned), "blacklisted": len(self.blacklisted)}


def _load_json(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        logger.info("No merchandising file at %s", path)
        return {}
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Could not read merchandising file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Merchandising file %s is not a JSON object", path)
        return {}
    return data


def load_rules(directory: str | Path) -> MerchandisingRules:
    base = Path(directory)
    return MerchandisingRules.from_mappings(
        _load_json(base / PINNED_FILE),
        _load_json(base / BLACKLISTED_FILE),
    )


class MerchandisingStore:
    def __init__(self, directory: str | Path, rules: Optional[MerchandisingRules] = None) -> None:
        self.directory = Path(directory)
        self._rules = rules if rules is not None else load_rules(self.directory)
        self._lock = threading.Lock()

    @property
    def rules(self) -> MerchandisingRules:
        return self._rules

    def reload(self) -> MerchandisingRules:
        rules = load_rules(self.directory)
        with self._lock:
            self._rules = rules
        logger.info("Merchandising rules reloaded pinned=%s blacklisted=%s", len(rules.pinned), len(rules.blacklisted))
        return rules


_store: MerchandisingStore | None = None


def get_merchandising_store() -> MerchandisingStore:
    global _store
    if _store is None:
        _store = MerchandisingStore(settings.merchandising_dir)
    return _store
