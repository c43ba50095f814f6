"""
Static taxonomies used by the query classifier and concept extractor.

All data is immutable and built once at import. Nothing here touches the
search backend.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

# ============================================================================
# Identifier patterns (checked in order; the first match names the type)
# ============================================================================

IDENTIFIER_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("sku", re.compile(r"^[A-Z0-9\-_]{3,20}$", re.IGNORECASE)),
    ("mpn", re.compile(r"^[A-Z0-9\-]{6,20}$", re.IGNORECASE)),
    ("gtin", re.compile(r"^\d{8,14}$")),
    ("upc", re.compile(r"^\d{12}$")),
    ("productId", re.compile(r"^(PROD|ID|P)[\-_]?\d{4,}$", re.IGNORECASE)),
    ("alphanumeric", re.compile(r"^[A-Z0-9]{4,15}$", re.IGNORECASE)),
)

# Single words that look like codes but are ordinary shopping terms
IDENTIFIER_STOPLIST = frozenset({"sale", "new", "all", "best", "top", "food"})

# Backend fields compared against an identifier query
IDENTIFIER_FIELDS = ("sku", "mpn", "gtin", "upc", "product_id")

# ============================================================================
# Context taxonomies
# ============================================================================

CONTEXT_KEYWORDS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "categories": (
        "chocolate", "cookies", "pasta", "sauce", "meat", "chicken", "beef",
        "vegetables", "fruit", "dairy", "cheese", "milk", "bread", "bakery",
        "frozen", "fresh", "canned", "snacks", "beverages", "coffee", "tea",
        "paper", "plates", "cups", "utensils", "napkins", "towels",
        "cleaning", "supplies", "equipment", "kitchen", "dessert", "appetizer",
        "salad", "soup", "entree", "side", "dish", "meal", "food", "drink",
    ),
    "attributes": (
        "organic", "gluten-free", "vegan", "vegetarian", "plant-based", "kosher",
        "halal", "sugar-free", "low-fat", "natural", "fresh", "frozen", "dried",
        "canned", "disposable", "recyclable", "biodegradable", "eco-friendly",
        "dairy-free", "nut-free", "non-gmo", "whole", "raw",
    ),
    "intents": (
        "healthy", "diet", "party", "catering", "bulk", "wholesale",
        "restaurant", "commercial", "industrial", "premium", "budget",
        "thanksgiving", "christmas", "holiday", "dinner", "lunch", "breakfast",
        "event", "celebration", "gathering", "meal", "occasion", "festive",
    ),
    "descriptors": (
        "best", "top", "quality", "cheap", "expensive", "large", "small",
        "heavy-duty", "light", "strong", "durable", "single-use", "good",
        "great", "perfect", "suitable", "ideal", "options", "alternatives",
    ),
})

# Substrings that signal a question or open-ended request (+0.15 each)
QUESTION_PATTERNS: tuple[str, ...] = (
    "what are", "where can", "how to", "which", "what kind",
    "looking for", "need", "want", "find", "suggest", "recommend",
    "options", "alternatives", "choices", "ideas",
)

# Phrases that strongly suggest a semantic request (+0.1 each)
SEMANTIC_PHRASES: tuple[str, ...] = (
    "for a", "for my", "for the", "suitable for", "good for",
    "options for", "alternatives", "something", "anything",
)

QUESTION_PREFIXES: tuple[str, ...] = ("what", "where", "how")

# ============================================================================
# Refinement chips for ambiguous keyword queries
# ============================================================================

CATEGORY_CHIPS = ("in Snacks", "in Beverages", "in Paper Products", "in Kitchen Equipment")
ATTRIBUTE_CHIPS = ("Organic", "Gluten-Free", "Bulk Size")
INTENT_CHIPS = ("for Restaurant", "for Home", "for Catering")
BRAND_PRICE_CHIPS = ("Premium Brands", "Budget Options", "On Sale")
POPULARITY_CHIPS = ("Most Popular", "New Arrivals", "Best Sellers")
MAX_CHIPS = 8

# ============================================================================
# Semantic concepts
# ============================================================================


@dataclass(frozen=True)
class ConceptTerm:
    """Canonical tag plus the phrases that map to it."""
    tag: str
    synonyms: tuple[str, ...]
    pattern: re.Pattern


def _concept(tag: str, *synonyms: str) -> ConceptTerm:
    phrases = (tag,) + synonyms
    # Longest first so "plant based" wins over "plant"
    ordered = sorted(set(phrases), key=len, reverse=True)
    pattern = re.compile(
        r"(?<![\w-])(?:" + "|".join(re.escape(p) for p in ordered) + r")(?![\w-])",
        re.IGNORECASE,
    )
    return ConceptTerm(tag=tag, synonyms=synonyms, pattern=pattern)


DIETARY_TERMS: tuple[ConceptTerm, ...] = (
    _concept("vegan", "plant-based", "plant based"),
    _concept("vegetarian", "veggie", "meatless", "meat-free", "meat free"),
    _concept("gluten-free", "gluten free", "celiac", "coeliac", "no gluten"),
    _concept("dairy-free", "dairy free", "non-dairy", "lactose-free", "lactose free"),
    _concept("keto", "low-carb", "low carb", "ketogenic"),
    _concept("kosher"),
    _concept("halal"),
    _concept("nut-free", "nut free", "peanut-free", "peanut free"),
    _concept("sugar-free", "sugar free", "no sugar", "diabetic"),
    _concept("organic"),
)

OCCASION_TERMS: tuple[ConceptTerm, ...] = (
    _concept("thanksgiving", "friendsgiving", "turkey day"),
    _concept("christmas", "xmas", "holiday dinner"),
    _concept("easter"),
    _concept("halloween"),
    _concept("hanukkah", "chanukah"),
    _concept("passover", "seder"),
    _concept("new year", "new years", "new year's", "nye"),
    _concept("fourth of july", "4th of july", "july 4th", "independence day"),
    _concept("super bowl", "game day", "gameday"),
    _concept("birthday", "bday"),
    _concept("wedding", "reception"),
    _concept("bbq", "barbecue", "cookout"),
)

TRADITIONAL_FOODS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "thanksgiving": ("turkey", "stuffing", "cranberry sauce", "gravy", "mashed potatoes", "pumpkin pie"),
    "christmas": ("ham", "roast", "eggnog", "fruitcake", "gingerbread", "cookies"),
    "easter": ("ham", "lamb", "deviled eggs", "hot cross buns", "chocolate eggs"),
    "halloween": ("candy", "caramel apples", "pumpkin"),
    "hanukkah": ("latkes", "brisket", "sufganiyot", "applesauce"),
    "passover": ("matzo", "brisket", "gefilte fish", "macaroons"),
    "new year": ("champagne", "black-eyed peas", "shrimp cocktail"),
    "fourth of july": ("hot dogs", "burgers", "potato salad", "apple pie"),
    "super bowl": ("chicken wings", "nachos", "chili", "dip"),
    "birthday": ("cake", "cupcakes", "ice cream"),
    "wedding": ("cake", "champagne", "hors d'oeuvres"),
    "bbq": ("burgers", "ribs", "hot dogs", "sausages", "coleslaw"),
})

INTENT_MODIFIERS: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "options": ("options", "option"),
    "alternatives": ("alternatives", "alternative"),
    "substitutes": ("substitutes", "substitute", "substitutions", "replacement"),
    "ideas": ("ideas", "idea"),
    "suggestions": ("suggestions", "suggestion"),
})

# Curated alternative-product search terms per (dietary, occasion) pair.
ALTERNATIVE_TERMS: Mapping[tuple[str, str], tuple[str, ...]] = MappingProxyType({
    ("vegan", "thanksgiving"): ("tofurky", "plant-based roast", "gardein turkey", "vegan stuffing", "mushroom gravy"),
    ("vegetarian", "thanksgiving"): ("field roast", "vegetarian roast", "meatless turkey", "vegetable stuffing"),
    ("gluten-free", "thanksgiving"): ("gluten-free stuffing", "gluten-free gravy", "gluten-free pie crust"),
    ("dairy-free", "thanksgiving"): ("dairy-free mashed potatoes", "vegan butter", "dairy-free pumpkin pie"),
    ("vegan", "christmas"): ("vegan ham", "plant-based roast", "vegan eggnog", "dairy-free cookies"),
    ("vegetarian", "christmas"): ("field roast", "vegetarian wellington", "meatless roast"),
    ("dairy-free", "christmas"): ("dairy-free eggnog", "oat nog", "dairy-free cookies"),
    ("vegan", "easter"): ("vegan ham", "dairy-free chocolate eggs", "vegan hot cross buns"),
    ("gluten-free", "easter"): ("gluten-free hot cross buns", "gluten-free cake"),
    ("vegan", "bbq"): ("beyond burger", "impossible burger", "vegan hot dogs", "plant-based sausages"),
    ("vegetarian", "bbq"): ("veggie burger", "meatless sausages", "grilled vegetables"),
    ("vegan", "fourth of july"): ("beyond burger", "vegan hot dogs", "plant-based sausages"),
    ("vegan", "super bowl"): ("vegan wings", "plant-based chili", "dairy-free nacho cheese"),
    ("gluten-free", "birthday"): ("gluten-free cake mix", "gluten-free cupcakes"),
    ("vegan", "birthday"): ("vegan cake", "dairy-free ice cream"),
})

GENERIC_ALTERNATIVE_TERMS: tuple[str, ...] = ("plant-based", "meat alternative")
GENERIC_ALTERNATIVE_DIETS = frozenset({"vegan", "vegetarian"})

# Prefixes that mark a product as a substitute for a traditional food
ALTERNATIVE_PREFIXES: tuple[str, ...] = ("plant-based", "meatless", "dairy-free")

ALTERNATIVE_BRANDS = frozenset({
    "tofurky", "gardein", "field roast", "beyond", "impossible", "daiya", "quorn",
})

# Backend predicates per dietary tag for the concept-aware keyword search
DIETARY_FILTERS: Mapping[str, str] = MappingProxyType({
    "vegan": "food_properties:vegan",
    "vegetarian": "food_properties:vegetarian",
    "gluten-free": "food_properties:`gluten-free`",
    "dairy-free": "food_properties:`dairy-free`",
    "keto": "food_properties:keto",
    "kosher": "food_properties:kosher",
    "halal": "food_properties:halal",
    "nut-free": "food_properties:`nut-free`",
    "sugar-free": "food_properties:`sugar-free`",
    "organic": "food_properties:organic",
})
