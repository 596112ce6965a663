"""
Plan Builder: lays recommended products out over a 28-day calendar.

Phases:   days 1-7 adaptation, 8-21 active, 22-28 support.
Slots:    SPF mornings only; treatments, masks and irritant actives evenings
          only; everything else morning and evening. An acid, benzoyl peroxide
          or vitamin C product that shares the routine with a retinoid moves
          to the morning so the two never meet in one slot.
Pacing:   irritant actives (retinoids, benzoyl peroxide, AHA/BHA) every other
          day while adapting and daily afterwards; every other day for all 28
          days when sensitivity is high or very high. Masks once a week on the
          focus days. Everything else daily.

The builder is a pure function of (result, profile, catalog): no randomness and
no clock, so the same inputs always serialize to the same plan.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Optional

from skinplan.engine.ingredients import families_of, is_irritant, moves_to_morning
from skinplan.schemas import (
    Frequency,
    Plan28,
    PlanDay,
    PlanPhase,
    PlanStep,
    Product,
    RecommendationResult,
    SensitivityLevel,
    SkinProfile,
    TimeOfDay,
)

logger = logging.getLogger(__name__)

PLAN_DAYS = 28
ADAPTATION_LAST_DAY = 7
ACTIVE_LAST_DAY = 21
WEEKLY_FOCUS_DAYS = (3, 10, 17, 24)

# (prefix, routine category), checked in order
_CATEGORY_PREFIXES = (
    ("spot_treatment", "spot_treatment"),
    ("cleanser", "cleanser"),
    ("toner", "toner"),
    ("essence", "toner"),
    ("serum", "serum"),
    ("treatment", "treatment"),
    ("exfoliant", "treatment"),
    ("peel", "treatment"),
    ("eye", "eye_cream"),
    ("moisturizer", "moisturizer"),
    ("cream", "moisturizer"),
    ("balm", "moisturizer"),
    ("spf", "spf"),
    ("sunscreen", "spf"),
    ("mask", "mask"),
    ("lip", "lip_care"),
)

ROUTINE_ORDER = (
    "cleanser",
    "toner",
    "serum",
    "treatment",
    "spot_treatment",
    "eye_cream",
    "moisturizer",
    "lip_care",
    "spf",
    "mask",
)

BOTH = (TimeOfDay.MORNING, TimeOfDay.EVENING)
SLOTS_BY_CATEGORY: dict[str, tuple[TimeOfDay, ...]] = {
    "spf": (TimeOfDay.MORNING,),
    "treatment": (TimeOfDay.EVENING,),
    "spot_treatment": (TimeOfDay.EVENING,),
    "mask": (TimeOfDay.EVENING,),
}

SENSITIVE_LEVELS = frozenset({SensitivityLevel.HIGH, SensitivityLevel.VERY_HIGH})


@dataclass(frozen=True)
class ProductSchedule:
    product_id: str
    step: str
    category: Optional[str]
    slots: tuple[TimeOfDay, ...]
    irritant: bool
    weekly: bool
    alternatives: tuple[str, ...] = ()
    families: frozenset[str] = frozenset()

    @property
    def order(self) -> int:
        if self.category in ROUTINE_ORDER:
            return ROUTINE_ORDER.index(self.category)
        return len(ROUTINE_ORDER)


def phase_for_day(day: int) -> PlanPhase:
    if not 1 <= day <= PLAN_DAYS:
        raise ValueError(f"day must be between 1 and {PLAN_DAYS}, got {day}")
    if day <= ADAPTATION_LAST_DAY:
        return PlanPhase.ADAPTATION
    if day <= ACTIVE_LAST_DAY:
        return PlanPhase.ACTIVE
    return PlanPhase.SUPPORT


def routine_category(*names: Optional[str]) -> Optional[str]:
    """Resolve the first name that maps onto a known routine category."""
    for name in names:
        if not name:
            continue
        for prefix, category in _CATEGORY_PREFIXES:
            if name.startswith(prefix):
                return category
    return None


def schedule_for(
    product_id: str,
    step: str,
    product: Optional[Product] = None,
    alternatives: Iterable[str] = (),
) -> ProductSchedule:
    if product is not None:
        category = routine_category(product.category, product.step, step)
        irritant = is_irritant(product.active_ingredients, product.step or step)
    else:
        category = routine_category(step)
        irritant = is_irritant((), step)

    if irritant:
        slots = (TimeOfDay.EVENING,)
    else:
        # unknown categories go to the evening routine
        slots = SLOTS_BY_CATEGORY.get(category, BOTH if category else (TimeOfDay.EVENING,))

    return ProductSchedule(
        product_id=product_id,
        step=step,
        category=category,
        slots=slots,
        irritant=irritant,
        weekly=category == "mask",
        alternatives=tuple(alternatives),
        families=families_of(product.active_ingredients) if product is not None else frozenset(),
    )


def separate_conflicts(schedules: list[ProductSchedule]) -> list[ProductSchedule]:
    """Move products that clash with an evening retinoid to the morning routine."""
    evening = frozenset(
        family for s in schedules if TimeOfDay.EVENING in s.slots for family in s.families
    )
    separated = []
    for schedule in schedules:
        if moves_to_morning(schedule.families, evening):
            logger.debug(f"Moving {schedule.product_id} to the morning: clashes with an evening retinoid")
            schedule = replace(schedule, slots=(TimeOfDay.MORNING,))
        separated.append(schedule)
    return separated


def frequency_on(schedule: ProductSchedule, day: int, profile: SkinProfile) -> Optional[Frequency]:
    """Frequency of a product on a given day, or None if it is not used that day."""
    if schedule.weekly:
        return Frequency.WEEKLY if day in WEEKLY_FOCUS_DAYS else None

    if schedule.irritant:
        every_other_day = (
            profile.sensitivity_level in SENSITIVE_LEVELS
            or phase_for_day(day) == PlanPhase.ADAPTATION
        )
        if every_other_day:
            return Frequency.EVERY_OTHER_DAY if day % 2 == 1 else None

    return Frequency.DAILY


def _schedules(result: RecommendationResult, catalog: dict[str, Product]) -> list[ProductSchedule]:
    step_of: dict[str, tuple[str, tuple[str, ...]]] = {}
    for filled in result.steps:
        for product_id in filled.product_ids:
            step_of.setdefault(product_id, (filled.name, tuple(filled.alternatives)))

    schedules = []
    for product_id in result.product_ids:
        product = catalog.get(product_id)
        if product is None:
            logger.warning(f"Product {product_id} not in catalog snapshot; scheduling by step name")
        default_step = product.step or product.category if product else ""
        step, alternatives = step_of.get(product_id, (default_step, ()))
        schedules.append(schedule_for(product_id, step, product, alternatives))
    return schedules


def build_plan(
    result: RecommendationResult,
    profile: SkinProfile,
    catalog: Iterable[Product] = (),
) -> Plan28:
    by_id = {p.id: p for p in catalog}
    schedules = separate_conflicts(_schedules(result, by_id))

    # stable sort keeps recommendation order within one routine category
    ordered = sorted(schedules, key=lambda s: s.order)
    has_weekly = any(s.weekly for s in schedules)

    days = []
    for day in range(1, PLAN_DAYS + 1):
        steps = []
        for slot in (TimeOfDay.MORNING, TimeOfDay.EVENING):
            for schedule in ordered:
                if slot not in schedule.slots:
                    continue
                frequency = frequency_on(schedule, day, profile)
                if frequency is None:
                    continue
                steps.append(
                    PlanStep(
                        product_id=schedule.product_id,
                        step=schedule.step,
                        time_of_day=slot,
                        frequency=frequency,
                        alternatives=list(schedule.alternatives),
                    )
                )
        days.append(
            PlanDay(
                day_number=day,
                phase=phase_for_day(day),
                is_weekly_focus_day=has_weekly and day in WEEKLY_FOCUS_DAYS,
                steps=steps,
            )
        )

    return Plan28(
        user_id=result.user_id,
        profile_id=result.profile_id,
        profile_version=result.profile_version,
        main_goals=list(profile.main_goals),
        days=days,
    )
