"""Unit inference from POS item names and normalization to inventory units."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# (pattern, unit, confidence); the highest confidence match wins
UNIT_PATTERNS = [
    (re.compile(r"(\d+\s*)(fl\s*oz|fluid\s*ounces?)\b", re.I), "fl oz", 0.95),
    (re.compile(r"(\d+\s*)(oz|ounces?)\b", re.I), "oz", 0.95),
    (re.compile(r"(\d+\s*)(lbs?|pounds?)\b", re.I), "lb", 0.95),
    (re.compile(r"(\d+\s*)(kg|kilograms?)\b", re.I), "kg", 0.95),
    (re.compile(r"(\d+\s*)(g|grams?)\b", re.I), "g", 0.9),
    (re.compile(r"(\d+\s*)(gal|gallons?)\b", re.I), "gal", 0.95),
    (re.compile(r"(\d+\s*)(qt|quarts?)\b", re.I), "qt", 0.95),
    (re.compile(r"(\d+\s*)(pt|pints?)\b", re.I), "pt", 0.95),
    (re.compile(r"(\d+\s*)(ml|milliliters?)\b", re.I), "mL", 0.95),
    (re.compile(r"(\d+\s*)(l|liters?|litres?)\b", re.I), "L", 0.95),
    (re.compile(r"(\d+\s*)(cups?)\b", re.I), "cup", 0.9),
    (re.compile(r"(\d+\s*)(ea|each)\b", re.I), "ea", 0.9),
    (re.compile(r"(\d+\s*)(pcs?|pieces?)\b", re.I), "ea", 0.85),
    (re.compile(r"(\d+\s*)(count)\b", re.I), "ea", 0.85),
    (re.compile(r"\b(whole|individual)\b", re.I), "ea", 0.7),
    (re.compile(r"(\d+\s*)(cases?)\b", re.I), "case", 0.9),
    (re.compile(r"(\d+\s*)(box|boxes)\b", re.I), "box", 0.85),
    (re.compile(r"(\d+\s*)(bags?)\b", re.I), "bag", 0.85),
    (re.compile(r"(\d+\s*)(cans?)\b", re.I), "can", 0.85),
    (re.compile(r"(\d+\s*)(jars?)\b", re.I), "jar", 0.85),
    (re.compile(r"(\d+\s*)(bottles?)\b", re.I), "bottle", 0.85),
    (re.compile(r"(\d+\s*)(containers?)\b", re.I), "container", 0.8),
    (re.compile(r"\b(bulk|wholesale)\b", re.I), "bulk", 0.7),
]

CATEGORY_DEFAULT_UNITS = {
    "produce": "lb",
    "proteins": "lb",
    "dairy": "gal",
    "dry_goods": "lb",
    "beverages": "gal",
    "frozen": "lb",
    "paper_disposables": "ea",
    "cleaning_chemicals": "gal",
}

GLOBAL_DEFAULT_UNIT = "lb"

# Inferred/raw unit -> unit accepted by inventory_items
UNIT_NORMALIZATION = {
    "lb": "lbs",
    "lbs": "lbs",
    "pound": "lbs",
    "pounds": "lbs",
    "oz": "oz",
    "fl oz": "oz",
    "kg": "kg",
    "g": "g",
    "gal": "gallons",
    "gallon": "gallons",
    "gallons": "gallons",
    "l": "liters",
    "liter": "liters",
    "liters": "liters",
    "ml": "liters",
    "qt": "liters",
    "pt": "liters",
    "cup": "cups",
    "cups": "cups",
    "ea": "pieces",
    "each": "pieces",
    "pc": "pieces",
    "piece": "pieces",
    "pieces": "pieces",
    "count": "pieces",
    "box": "boxes",
    "boxes": "boxes",
    "case": "cases",
    "cases": "cases",
}


@dataclass(frozen=True)
class UnitInference:
    unit: str
    confidence: float
    match_type: str


def infer_unit(name: Optional[str], variation_name: Optional[str] = None, category: Optional[str] = None) -> UnitInference:
    text = " ".join(part for part in (name, variation_name) if part).lower()
    if not text:
        return UnitInference(GLOBAL_DEFAULT_UNIT, 0.5, "global_default")

    best = None
    for pattern, unit, confidence in UNIT_PATTERNS:
        if pattern.search(text) and (best is None or confidence > best.confidence):
            best = UnitInference(unit, confidence, "pattern")
    if best is not None:
        return best

    if category in CATEGORY_DEFAULT_UNITS:
        return UnitInference(CATEGORY_DEFAULT_UNITS[category], 0.6, "category_default")

    logger.info("No unit pattern for %r (category=%s), using %s", name, category, GLOBAL_DEFAULT_UNIT)
    return UnitInference(GLOBAL_DEFAULT_UNIT, 0.5, "global_default")


def normalize_unit(unit: Optional[str]) -> str:
    if not unit:
        return "pieces"
    return UNIT_NORMALIZATION.get(unit.strip().lower(), "pieces")
