"""
Ingredient vocabulary: token normalization, exclusion families and irritant actives.
"""

import re
from typing import Any, Iterable

# Excluding any member of a family excludes the whole family.
INGREDIENT_FAMILIES: dict[str, frozenset[str]] = {
    "retinoids": frozenset({"retinol", "retinoid", "retinal", "retinaldehyde", "tretinoin", "adapalene"}),
    "aha": frozenset({"aha", "glycolic_acid", "lactic_acid", "mandelic_acid"}),
    "bha": frozenset({"bha", "salicylic_acid"}),
    "benzoyl_peroxide": frozenset({"benzoyl_peroxide", "bpo"}),
    "vitamin_c": frozenset({"vitamin_c", "ascorbic_acid"}),
}

# Actives that need gradual introduction (every other day while adapting).
IRRITANT_ACTIVES = (
    INGREDIENT_FAMILIES["retinoids"]
    | INGREDIENT_FAMILIES["aha"]
    | INGREDIENT_FAMILIES["bha"]
    | INGREDIENT_FAMILIES["benzoyl_peroxide"]
)

# Detailed step categories that imply an irritant even when actives are not tagged.
IRRITANT_STEPS = frozenset({
    "treatment_acne_bpo",
    "treatment_exfoliant_strong",
    "treatment_antiage",
    "toner_acid",
    "toner_aha",
    "toner_bha",
})

_SEPARATORS = re.compile(r"[\s\-]+")


def normalize_token(value: Any) -> str:
    """'Benzoyl Peroxide' -> 'benzoyl_peroxide'."""
    if value is None:
        return ""
    return _SEPARATORS.sub("_", str(value).strip().lower())


def normalize_tokens(values: Any) -> list[str]:
    """Normalize a scalar or iterable into a sorted list of unique tokens."""
    if values is None:
        return []
    if isinstance(values, (str, int, float)):
        values = [values]
    tokens = {normalize_token(v) for v in values}
    tokens.discard("")
    return sorted(tokens)


def expand_exclusions(excluded: Iterable[str]) -> frozenset[str]:
    expanded = set(excluded)
    for token in list(expanded):
        for family_name, members in INGREDIENT_FAMILIES.items():
            if token == family_name or token in members:
                expanded |= members
    return frozenset(expanded)


def is_irritant(active_ingredients: Iterable[str], step: str = "") -> bool:
    if step in IRRITANT_STEPS:
        return True
    return any(token in IRRITANT_ACTIVES for token in active_ingredients)


# (family kept in the evening, family moved to the morning) when one routine holds both
SEPARATE_TIME_CONFLICTS: tuple[tuple[str, str], ...] = (
    ("retinoids", "aha"),
    ("retinoids", "bha"),
    ("retinoids", "benzoyl_peroxide"),
    ("retinoids", "vitamin_c"),
)


def families_of(active_ingredients: Iterable[str]) -> frozenset[str]:
    tokens = set(active_ingredients)
    return frozenset(name for name, members in INGREDIENT_FAMILIES.items() if tokens & (members | {name}))


def moves_to_morning(families: frozenset[str], evening_families: frozenset[str]) -> bool:
    """True when a product with `families` clashes with an evening product.

    A product that carries the evening family itself cannot be separated and stays put.
    """
    return any(
        morning in families and evening in evening_families and evening not in families
        for evening, morning in SEPARATE_TIME_CONFLICTS
    )
