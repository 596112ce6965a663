"""
Recommendation Assembler: fills every step of the winning rule and flattens
the picks into one ordered, de-duplicated product list.
"""

import logging
from typing import Iterable

from skinplan.engine.rule_selector import SelectedRule
from skinplan.engine.step_filler import fill_step
from skinplan.schemas import Product, RecommendationResult, SkinProfile

logger = logging.getLogger(__name__)


def assemble(
    profile: SkinProfile,
    selected: SelectedRule,
    catalog: Iterable[Product],
    alternatives: int = 0,
) -> RecommendationResult:
    """Build a RecommendationResult. Persisting it is the caller's job."""
    products = list(catalog)

    filled = []
    product_ids: list[str] = []
    seen: set[str] = set()

    # rule declaration order, never catalog order
    for spec in selected.rule.steps:
        step = fill_step(spec, profile, products, alternatives=alternatives)
        filled.append(step)

        if step.is_empty:
            logger.warning(
                f"Empty step '{spec.name}' for rule {selected.rule.id} "
                f"(profile {profile.id}, categories={spec.category}): catalog gap"
            )
            continue

        for product_id in step.product_ids:
            if product_id not in seen:
                seen.add(product_id)
                product_ids.append(product_id)

    logger.info(
        f"Assembled {len(product_ids)} products from {len(filled)} steps | "
        f"user={profile.user_id} profile={profile.id} rule={selected.rule_id or 'fallback'}"
    )
    return RecommendationResult(
        user_id=profile.user_id,
        profile_id=profile.id,
        profile_version=profile.version,
        rule_id=selected.rule_id,
        product_ids=product_ids,
        steps=filled,
    )
