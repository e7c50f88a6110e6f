# carshopper/criteria.py
"""Normalize saved interest criteria into a canonical filter set.

Interests were saved by two generations of the client, so the same constraint
can arrive as `max_price` or `maxPrice`, `min_year` or `minYear`, and body type
as a `body_types` list or a single `bodyType` string. Every spelling found is
kept as its own constraint: a criteria object carrying both `max_price=15000`
and `maxPrice=12000` filters on price <= 15000 AND price <= 12000. Existing
scoreboards depend on this, so the variants are never merged.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

# placeholder values the interest form submits for "no preference"
SENTINELS = {"any", "any make", "any model", "any body type"}

# accepted key -> canonical field
ALIASES = {
    "make": "make",
    "model": "model",
    "max_price": "max_prices",
    "maxPrice": "max_prices",
    "min_year": "min_years",
    "minYear": "min_years",
    "body_types": "body_types",
    "bodyType": "body_type_patterns",
}

@dataclass
class FilterSet:
    make: Optional[str] = None
    model: Optional[str] = None
    max_prices: List[float] = field(default_factory=list)
    min_years: List[int] = field(default_factory=list)
    body_types: Set[str] = field(default_factory=set)
    body_type_patterns: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.make or self.model or self.max_prices or self.min_years
                    or self.body_types or self.body_type_patterns)

def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in SENTINELS:
        return None
    return value

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip().replace(",", "").lstrip("$")
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # zero was always treated as "not set" by the interest form
    if number != number or number == 0:
        return None
    return number

def _as_dict(raw: Any) -> Dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if hasattr(raw, "model_dump"):
        return raw.model_dump(exclude_none=True)
    return {}

def normalize_criteria(raw: Any) -> FilterSet:
    """Compile a raw criteria object into a FilterSet. Never raises; bad values are dropped."""
    fs = FilterSet()
    for key, value in _as_dict(raw).items():
        target = ALIASES.get(key)
        if target is None:
            continue
        if target in ("make", "model"):
            setattr(fs, target, _text(value))
        elif target == "max_prices":
            price = _number(value)
            if price is not None:
                fs.max_prices.append(price)
        elif target == "min_years":
            year = _number(value)
            if year is not None:
                fs.min_years.append(int(year))
        elif target == "body_types":
            if isinstance(value, (list, tuple, set)):
                fs.body_types.update(t for t in (_text(v) for v in value) if t)
        elif target == "body_type_patterns":
            pattern = _text(value)
            if pattern:
                fs.body_type_patterns.append(pattern)
    return fs
