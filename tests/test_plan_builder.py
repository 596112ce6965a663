"""
28-day plan layout: phases, slots, pacing of actives and weekly masks.
"""

import pytest

from skinplan.engine.plan_builder import (
    WEEKLY_FOCUS_DAYS,
    build_plan,
    phase_for_day,
    routine_category,
    schedule_for,
)
from skinplan.schemas import FilledStep, Frequency, PlanPhase, RecommendationResult, TimeOfDay
from tests.conftest import basic_catalog, make_product, make_profile


def _result(*steps: tuple[str, list[str]], **overrides) -> RecommendationResult:
    filled = [FilledStep(name=name, product_ids=ids) for name, ids in steps]
    product_ids = [pid for _, ids in steps for pid in ids]
    defaults = dict(user_id="user-1", profile_id="profile-1", profile_version=1, product_ids=product_ids, steps=filled)
    defaults.update(overrides)
    return RecommendationResult(**defaults)


ROUTINE = _result(
    ("cleanser", ["cl-oily"]),
    ("treatment", ["tr-bpo"]),
    ("moisturizer", ["mo-gel"]),
    ("spf", ["spf-50"]),
    ("mask", ["mask-clay"]),
)


def _used_on(plan, product_id: str, slot: TimeOfDay = TimeOfDay.EVENING) -> list[int]:
    return [
        d.day_number
        for d in plan.days
        if any(s.product_id == product_id and s.time_of_day == slot for s in d.steps)
    ]


class TestPhases:
    @pytest.mark.parametrize(
        "day,phase",
        [
            (1, PlanPhase.ADAPTATION),
            (7, PlanPhase.ADAPTATION),
            (8, PlanPhase.ACTIVE),
            (21, PlanPhase.ACTIVE),
            (22, PlanPhase.SUPPORT),
            (28, PlanPhase.SUPPORT),
        ],
    )
    def test_boundaries(self, day, phase):
        assert phase_for_day(day) == phase

    @pytest.mark.parametrize("day", [0, 29, -1])
    def test_out_of_range(self, day):
        with pytest.raises(ValueError):
            phase_for_day(day)

    def test_plan_has_28_consecutive_days(self):
        plan = build_plan(ROUTINE, make_profile(), basic_catalog())
        assert [d.day_number for d in plan.days] == list(range(1, 29))
        assert plan.day(8).phase == PlanPhase.ACTIVE
        assert plan.main_goals == ["acne", "glow"]


class TestSlots:
    def test_every_product_is_scheduled(self):
        plan = build_plan(ROUTINE, make_profile(), basic_catalog())
        assert plan.product_ids() == set(ROUTINE.product_ids)

    def test_spf_mornings_only(self):
        plan = build_plan(ROUTINE, make_profile(), basic_catalog())
        assert _used_on(plan, "spf-50", TimeOfDay.MORNING) == list(range(1, 29))
        assert _used_on(plan, "spf-50", TimeOfDay.EVENING) == []

    def test_treatment_evenings_only(self):
        plan = build_plan(ROUTINE, make_profile(), basic_catalog())
        assert _used_on(plan, "tr-bpo", TimeOfDay.MORNING) == []

    def test_cleanser_and_moisturizer_twice_daily(self):
        day = build_plan(ROUTINE, make_profile(), basic_catalog()).day(12)
        morning = [s.product_id for s in day.steps_for(TimeOfDay.MORNING)]
        evening = [s.product_id for s in day.steps_for(TimeOfDay.EVENING)]
        assert morning == ["cl-oily", "mo-gel", "spf-50"]
        assert evening == ["cl-oily", "tr-bpo", "mo-gel"]

    def test_morning_listed_before_evening(self):
        day = build_plan(ROUTINE, make_profile(), basic_catalog()).day(1)
        slots = [s.time_of_day for s in day.steps]
        assert slots == sorted(slots, key=lambda t: t != TimeOfDay.MORNING)

    def test_unknown_category_goes_to_evening(self):
        result = _result(("ritual", ["gua-sha"]))
        catalog = [make_product("gua-sha", "tool")]
        plan = build_plan(result, make_profile(), catalog)
        assert _used_on(plan, "gua-sha", TimeOfDay.EVENING) == list(range(1, 29))
        assert _used_on(plan, "gua-sha", TimeOfDay.MORNING) == []

    def test_product_missing_from_catalog_uses_step_name(self):
        plan = build_plan(_result(("spf", ["ghost-spf"])), make_profile(), catalog=[])
        assert _used_on(plan, "ghost-spf", TimeOfDay.MORNING) == list(range(1, 29))


class TestPacing:
    def test_irritant_every_other_day_while_adapting(self):
        plan = build_plan(ROUTINE, make_profile(sensitivity_level="low"), basic_catalog())
        assert _used_on(plan, "tr-bpo") == [1, 3, 5, 7] + list(range(8, 29))
        assert plan.day(3).steps_for(TimeOfDay.EVENING)[1].frequency == Frequency.EVERY_OTHER_DAY
        assert plan.day(9).steps_for(TimeOfDay.EVENING)[1].frequency == Frequency.DAILY

    @pytest.mark.parametrize("level", ["high", "very_high"])
    def test_irritant_stays_every_other_day_for_sensitive_skin(self, level):
        plan = build_plan(ROUTINE, make_profile(sensitivity_level=level), basic_catalog())
        assert _used_on(plan, "tr-bpo") == list(range(1, 29, 2))

    def test_irritant_detected_from_actives(self):
        schedule = schedule_for("x", "serum", make_product("x", "serum", active_ingredients=["retinol"]))
        assert schedule.irritant
        assert schedule.slots == (TimeOfDay.EVENING,)

    def test_gentle_actives_daily(self):
        result = _result(("treatment", ["tr-azelaic"]))
        plan = build_plan(result, make_profile(), basic_catalog())
        assert _used_on(plan, "tr-azelaic") == list(range(1, 29))

    def test_mask_weekly_on_focus_days(self):
        plan = build_plan(ROUTINE, make_profile(), basic_catalog())
        assert _used_on(plan, "mask-clay") == list(WEEKLY_FOCUS_DAYS)
        assert [d.day_number for d in plan.days if d.is_weekly_focus_day] == list(WEEKLY_FOCUS_DAYS)
        mask = [s for s in plan.day(10).steps if s.product_id == "mask-clay"]
        assert mask[0].frequency == Frequency.WEEKLY

    def test_no_focus_days_without_weekly_products(self):
        result = _result(("cleanser", ["cl-oily"]), ("spf", ["spf-50"]))
        plan = build_plan(result, make_profile(), basic_catalog())
        assert not any(d.is_weekly_focus_day for d in plan.days)


class TestDeterminism:
    def test_same_inputs_same_plan(self):
        first = build_plan(ROUTINE, make_profile(), basic_catalog())
        second = build_plan(ROUTINE, make_profile(), list(reversed(basic_catalog())))
        assert first.model_dump_json() == second.model_dump_json()

    def test_routine_category_prefixes(self):
        assert routine_category("treatment_acne_bpo") == "treatment"
        assert routine_category(None, "sunscreen_spf30") == "spf"
        assert routine_category("unknown") is None


class TestIngredientConflicts:
    def _plan(self, *products, sensitivity_level="low"):
        result = _result(*[(p.category, [p.id]) for p in products])
        return build_plan(result, make_profile(sensitivity_level=sensitivity_level), list(products))

    def test_acid_moves_to_morning_next_to_retinoid(self):
        retinol = make_product("ret", "serum", active_ingredients=["retinol"])
        bha = make_product("bha", "toner", active_ingredients=["salicylic_acid"])
        plan = self._plan(retinol, bha)
        shared_nights = [
            d.day_number
            for d in plan.days
            if {"ret", "bha"} <= {s.product_id for s in d.steps_for(TimeOfDay.EVENING)}
        ]
        assert shared_nights == []
        assert _used_on(plan, "ret", TimeOfDay.EVENING) == [1, 3, 5, 7] + list(range(8, 29))
        assert _used_on(plan, "bha", TimeOfDay.MORNING) == [1, 3, 5, 7] + list(range(8, 29))

    @pytest.mark.parametrize(
        "product",
        [
            make_product("bpo", "treatment", active_ingredients=["benzoyl_peroxide"]),
            make_product("vit-c", "serum", active_ingredients=["ascorbic_acid"]),
            make_product("aha", "toner", active_ingredients=["glycolic_acid"]),
        ],
    )
    def test_every_clashing_family_is_separated(self, product):
        plan = self._plan(make_product("ret", "serum", active_ingredients=["tretinoin"]), product)
        assert _used_on(plan, product.id, TimeOfDay.EVENING) == []
        assert _used_on(plan, product.id, TimeOfDay.MORNING) != []

    def test_acid_stays_in_evening_without_retinoid(self):
        plan = self._plan(make_product("bha", "toner", active_ingredients=["salicylic_acid"]))
        assert _used_on(plan, "bha", TimeOfDay.MORNING) == []

    def test_compatible_actives_untouched(self):
        retinol = make_product("ret", "serum", active_ingredients=["retinol"])
        niacinamide = make_product("nia", "serum", active_ingredients=["niacinamide"])
        plan = self._plan(retinol, niacinamide)
        assert _used_on(plan, "nia", TimeOfDay.MORNING) == list(range(1, 29))
        assert _used_on(plan, "nia", TimeOfDay.EVENING) == list(range(1, 29))
