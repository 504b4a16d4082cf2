import logging
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import Optional

logger = logging.getLogger(__name__)

CATEGORY_ALIASES = {
    "produce": "produce",
    "fresh produce": "produce",
    "fruit": "produce",
    "fruits": "produce",
    "vegetable": "produce",
    "vegetables": "produce",
    "veggies": "produce",
    "greens": "produce",
    "herbs": "produce",
    "proteins": "proteins",
    "protein": "proteins",
    "meat": "proteins",
    "meats": "proteins",
    "poultry": "proteins",
    "chicken": "proteins",
    "beef": "proteins",
    "pork": "proteins",
    "seafood": "proteins",
    "fish": "proteins",
    "meat & seafood": "proteins",
    "dairy": "dairy",
    "dairy products": "dairy",
    "milk": "dairy",
    "cheese": "dairy",
    "cream": "dairy",
    "butter": "dairy",
    "eggs": "dairy",
    "dairy & eggs": "dairy",
    "dry goods": "dry_goods",
    "dry_goods": "dry_goods",
    "pantry": "dry_goods",
    "canned goods": "dry_goods",
    "baking": "dry_goods",
    "grains": "dry_goods",
    "pasta": "dry_goods",
    "rice": "dry_goods",
    "spices": "dry_goods",
    "condiments": "dry_goods",
    "sauces": "dry_goods",
    "oils": "dry_goods",
    "beverages": "beverages",
    "beverage": "beverages",
    "drinks": "beverages",
    "soda": "beverages",
    "coffee": "beverages",
    "tea": "beverages",
    "juice": "beverages",
    "beer": "beverages",
    "wine": "beverages",
    "liquor": "beverages",
    "spirits": "beverages",
    "frozen": "frozen",
    "frozen foods": "frozen",
    "frozen goods": "frozen",
    "ice cream": "frozen",
    "paper": "paper_disposables",
    "paper goods": "paper_disposables",
    "disposables": "paper_disposables",
    "paper_disposables": "paper_disposables",
    "to-go": "paper_disposables",
    "packaging": "paper_disposables",
    "cleaning": "cleaning_chemicals",
    "cleaning supplies": "cleaning_chemicals",
    "chemicals": "cleaning_chemicals",
    "cleaning_chemicals": "cleaning_chemicals",
    "sanitation": "cleaning_chemicals",
}

MIN_CONFIDENCE = 0.7


@dataclass(frozen=True)
class CategoryMatch:
    category: str
    confidence: float
    match_type: str  # 'exact' | 'fuzzy'


def _normalize(value: str) -> str:
    return " ".join(value.lower().split())


def map_category(raw: Optional[str]) -> Optional[CategoryMatch]:
    """Map a free-text POS/CSV category to an ingredient category, or None."""
    if not raw or not raw.strip():
        return None
    name = _normalize(raw)
    if name in CATEGORY_ALIASES:
        return CategoryMatch(CATEGORY_ALIASES[name], 1.0, "exact")

    best_alias, best_ratio = None, 0.0
    for alias in CATEGORY_ALIASES:
        ratio = SequenceMatcher(None, name, alias).ratio()
        if ratio > best_ratio:
            best_alias, best_ratio = alias, ratio

    if best_alias is not None and best_ratio >= MIN_CONFIDENCE:
        return CategoryMatch(CATEGORY_ALIASES[best_alias], round(best_ratio, 2), "fuzzy")

    logger.info("Unmapped category %r (closest=%r, ratio=%.2f)", raw, best_alias, best_ratio)
    return None
