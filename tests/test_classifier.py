"""Intent classification cascade."""

import pytest

from sugester.classifier import (
    RULES,
    build_context,
    classify_intent,
    detect_condition_preference,
    strip_modifier_words,
)
from sugester.intents import (
    BrandIntent,
    CategoryIntent,
    ConditionPref,
    EanIntent,
    GeneralIntent,
    IntentType,
    ModelIntent,
    ParametricIntent,
    PriceIntent,
    SkuIntent,
)


@pytest.mark.parametrize("text", ["12345678", "5901234123457", " 5901234123457 "])
def test_ean_digits(text):
    """Exactly 8 or 13 digits is an EAN."""

    assert isinstance(classify_intent(text), EanIntent)


def test_other_digit_counts_are_not_ean():
    """Twelve digits is not an EAN."""

    assert classify_intent("123456789012").kind is not IntentType.EAN


@pytest.mark.parametrize("text", ["LP-E6NH", "np-fw50", "EN-EL15c", "BG_R10", "NP-FW50 sony"])
def test_manufacturer_codes_are_sku(text):
    """Code shapes win over any brand in the same text."""

    assert isinstance(classify_intent(text), SkuIntent)


def test_brand_with_body_model():
    """A body model after the brand is a body query."""

    intent = classify_intent("sony a7 iv")

    assert isinstance(intent, ModelIntent)
    assert intent.brand == "sony"
    assert intent.is_body_query is True
    assert intent.wants_accessories is False


def test_brand_is_lowercased():
    """Brands are reported lowercase regardless of input case."""

    intent = classify_intent("Canon EOS R5")

    assert isinstance(intent, ModelIntent)
    assert intent.brand == "canon"
    assert intent.is_body_query is True


def test_brand_with_accessory_is_not_body_query():
    """Accessory words override a body-looking model."""

    intent = classify_intent("canon eos r5 klatka")

    assert isinstance(intent, ModelIntent)
    assert intent.wants_accessories is True
    assert intent.is_body_query is False
    assert intent.accessory_category == "Rigi i akcesoria"


def test_brand_alone():
    """Nothing meaningful after the brand gives a BRAND intent."""

    intent = classify_intent("Manfrotto")

    assert isinstance(intent, BrandIntent)
    assert intent.brand == "manfrotto"


def test_inferred_brand_with_accessory():
    """A model series implies the brand and the accessory word is split off."""

    intent = classify_intent("eos r6 akumulator")

    assert isinstance(intent, ModelIntent)
    assert intent.brand == "canon"
    assert intent.wants_accessories is True
    assert intent.is_body_query is False
    assert intent.accessory_category == "Akumulatory"
    assert intent.model_query == "eos r6"


def test_inferred_brand_ignores_condition_words():
    """Condition words do not hide the model series."""

    intent = classify_intent("używany a7 iii")

    assert isinstance(intent, ModelIntent)
    assert intent.brand == "sony"
    assert intent.condition_pref is ConditionPref.USED


def test_parametric():
    """Structured tokens without brand make a PARAMETRIC intent."""

    assert isinstance(classify_intent("obiektyw 50mm f/1.8"), ParametricIntent)


@pytest.mark.parametrize("text", ["statywy", "  STATYWY ", "Statywy"])
def test_category_is_case_and_space_insensitive(text):
    """Whole-text category names map to the index category."""

    intent = classify_intent(text)

    assert isinstance(intent, CategoryIntent)
    assert intent.category == "Statywy i akcesoria"


def test_price_with_amount():
    """The price phrase is parsed and removed from the query."""

    intent = classify_intent("statyw do 500 zł")

    assert isinstance(intent, PriceIntent)
    assert intent.max_price == 500
    assert intent.query == "statyw"


def test_price_without_amount():
    """"tani" is a price intent without a cap."""

    intent = classify_intent("tani statyw")

    assert isinstance(intent, PriceIntent)
    assert intent.max_price is None
    assert intent.query == "statyw"


def test_general_default():
    """Anything else falls through to GENERAL, including empty text."""

    assert isinstance(classify_intent("statyw carbon podróżny"), GeneralIntent)
    assert isinstance(classify_intent(""), GeneralIntent)
    assert isinstance(classify_intent(None), GeneralIntent)


def test_condition_preferences():
    """Used wins over new when both appear."""

    assert detect_condition_preference("nowy statyw") is ConditionPref.NEW
    assert detect_condition_preference("uzywany obiektyw") is ConditionPref.USED
    assert detect_condition_preference("statyw") is None
    assert detect_condition_preference("nowy czy używany") is ConditionPref.USED


def test_condition_attached_to_every_intent():
    """Preferences ride along on whatever the cascade returns."""

    intent = classify_intent("nowy statyw do 300")

    assert isinstance(intent, PriceIntent)
    assert intent.condition_pref is ConditionPref.NEW


def test_accessory_prefix_lookup():
    """A partially typed accessory word maps to its category."""

    ctx = build_context("eos r6 akumulat")

    assert ctx.wants_accessories is True
    assert ctx.accessory_category == "Akumulatory"


def test_strip_modifier_words():
    """Accessory and condition words are removed once each."""

    assert strip_modifier_words("używany eos r6 akumulator") == "eos r6"


def test_rule_order_is_fixed():
    """The cascade order is part of the contract."""

    assert [name for name, _ in RULES] == [
        "ean",
        "sku",
        "brand",
        "inferred_brand",
        "parametric",
        "category",
        "price",
    ]
