"""Search intents: one frozen dataclass per retrieval strategy."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Tuple, Union


class IntentType(str, Enum):
    EAN = "EAN"
    SKU = "SKU"
    MODEL = "MODEL"
    BRAND = "BRAND"
    COMPOUND = "COMPOUND"
    PARAMETRIC = "PARAMETRIC"
    CATEGORY = "CATEGORY"
    PRICE = "PRICE"
    GENERAL = "GENERAL"


class ConditionPref(str, Enum):
    USED = "used"
    NEW = "new"


@dataclass(frozen=True, kw_only=True)
class BaseIntent:
    """Fields every intent carries regardless of the strategy."""

    kind: ClassVar[IntentType]

    condition_pref: Optional[ConditionPref] = None
    wants_accessories: bool = False

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.kind.value}
        for name, value in self.__dict__.items():
            payload[name] = value.value if isinstance(value, Enum) else value
        return payload


@dataclass(frozen=True, kw_only=True)
class EanIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.EAN
    query: str


@dataclass(frozen=True, kw_only=True)
class SkuIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.SKU
    query: str


@dataclass(frozen=True, kw_only=True)
class ModelIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.MODEL
    query: str
    model_query: str
    brand: str
    is_body_query: bool = False
    accessory_category: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class BrandIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.BRAND
    query: str
    brand: str
    accessory_category: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class CompoundIntent(BaseIntent):
    """Category word plus brand and/or parameters, e.g. ``obiektyw Canon 50mm``.

    Not produced by the classifier yet; the query builder supports it.
    """

    kind: ClassVar[IntentType] = IntentType.COMPOUND
    detected_category: str
    brand: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)
    compat_mounts: Optional[Tuple[str, ...]] = None
    compatibility_mode: bool = False
    text_query: str = ""

    def __post_init__(self) -> None:
        if not self.detected_category:
            raise ValueError("COMPOUND intent requires a detected category")


@dataclass(frozen=True, kw_only=True)
class ParametricIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.PARAMETRIC
    query: str


@dataclass(frozen=True, kw_only=True)
class CategoryIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.CATEGORY
    query: str
    category: str


@dataclass(frozen=True, kw_only=True)
class PriceIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.PRICE
    query: str
    max_price: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class GeneralIntent(BaseIntent):
    kind: ClassVar[IntentType] = IntentType.GENERAL
    query: str
    params: Dict[str, Any] = field(default_factory=dict)


Intent = Union[
    EanIntent,
    SkuIntent,
    ModelIntent,
    BrandIntent,
    CompoundIntent,
    ParametricIntent,
    CategoryIntent,
    PriceIntent,
    GeneralIntent,
]
