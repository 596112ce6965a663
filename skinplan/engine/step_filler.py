"""
Step Filler: picks up to `max_items` compatible products for one routine step.

Hard filters (never relaxed):
  * published product of an active brand, in one of the step's categories
  * no excluded active ingredient (ingredient families expanded)
  * no `avoid_if` tag that matches the profile's contraindications
  * required non-comedogenic / fragrance-free flags

Soft filters (relaxed rather than leaving the step empty):
  * skin type: universal products, or ones listing the profile's (or the
    step's) skin types; relaxed to "any" when nothing else fits
  * the step's required active ingredients: relaxed to a ranking hint

Candidates are scored `2*concern_match + is_hero + normalized_priority` and
ordered by score DESC, then product id ASC, so identical inputs always yield
identical output.
"""

import logging
from typing import Iterable

from skinplan.engine.ingredients import expand_exclusions
from skinplan.schemas import FilledStep, Product, SensitivityLevel, SkinProfile, StepSpec

logger = logging.getLogger(__name__)

CONCERN_WEIGHT = 2.0
HERO_WEIGHT = 1.0


def contraindication_tags(profile: SkinProfile) -> frozenset[str]:
    """Tags matched against `Product.avoid_if`."""
    tags = set(profile.contraindications) | set(profile.diagnoses)
    if profile.has_pregnancy:
        tags |= {"pregnant", "pregnancy"}
    if profile.sensitivity_level == SensitivityLevel.VERY_HIGH:
        tags.add("very_high_sensitivity")
    for ingredient in profile.excluded_ingredients:
        tags.add(f"{ingredient}_allergy")
    return frozenset(tags)


def _in_category(product: Product, spec: StepSpec) -> bool:
    return product.category in spec.category or (product.step is not None and product.step in spec.category)


def _passes_hard_filters(
    product: Product,
    spec: StepSpec,
    excluded: frozenset[str],
    tags: frozenset[str],
) -> bool:
    if not product.is_eligible or not _in_category(product, spec):
        return False
    if excluded.intersection(product.active_ingredients):
        return False
    if tags.intersection(product.avoid_if):
        return False
    if spec.is_non_comedogenic and not product.is_non_comedogenic:
        return False
    if spec.is_fragrance_free and not product.is_fragrance_free:
        return False
    return True


def _skin_type_ok(product: Product, allowed: set[str]) -> bool:
    # universal products always fit; with no known skin type only they do
    if not product.skin_types:
        return True
    return bool(allowed.intersection(product.skin_types))


def _rank(candidates: list[Product], spec: StepSpec) -> list[Product]:
    top_priority = max((p.priority for p in candidates), default=0)
    wanted = set(spec.concerns)

    def score(product: Product) -> float:
        concern_match = 1.0 if wanted.intersection(product.concerns) else 0.0
        normalized = max(0, product.priority) / top_priority if top_priority > 0 else 0.0
        return CONCERN_WEIGHT * concern_match + HERO_WEIGHT * product.is_hero + normalized

    return sorted(candidates, key=lambda p: (-score(p), p.id))


def fill_step(
    spec: StepSpec,
    profile: SkinProfile,
    catalog: Iterable[Product],
    alternatives: int = 0,
) -> FilledStep:
    excluded = expand_exclusions(profile.excluded_ingredients)
    tags = contraindication_tags(profile)

    safe = [p for p in catalog if _passes_hard_filters(p, spec, excluded, tags)]

    allowed_skin = set(spec.skin_types)
    if profile.skin_type is not None:
        allowed_skin.add(profile.skin_type.value)
    candidates = [p for p in safe if _skin_type_ok(p, allowed_skin)]

    skin_type_relaxed = False
    if not candidates and safe:
        logger.debug(f"Step '{spec.name}': no {sorted(allowed_skin)} products, relaxing skin type")
        candidates = safe
        skin_type_relaxed = True

    ingredients_relaxed = False
    if spec.active_ingredients and candidates:
        required = set(spec.active_ingredients)
        with_actives = [p for p in candidates if required.intersection(p.active_ingredients)]
        if with_actives:
            candidates = with_actives
        else:
            logger.debug(f"Step '{spec.name}': no product carries {sorted(required)}, relaxing actives")
            ingredients_relaxed = True

    ranked = _rank(candidates, spec)
    chosen = ranked[: spec.max_items]
    spare = ranked[spec.max_items : spec.max_items + max(0, alternatives)]

    return FilledStep(
        name=spec.name,
        product_ids=[p.id for p in chosen],
        alternatives=[p.id for p in spare],
        skin_type_relaxed=skin_type_relaxed,
        ingredients_relaxed=ingredients_relaxed,
    )
