"""
SkincareRepository against an in-memory SQLite database.
"""

import pytest
from sqlalchemy import func, select

from skinplan.models.db import RecommendationResultRecord, RecommendationRuleRecord
from skinplan.repository import SkincareRepository
from skinplan.schemas import FilledStep, PlanProgress, RecommendationResult
from tests.conftest import basic_catalog, make_profile

repo = SkincareRepository()


class TestProfiles:
    @pytest.mark.anyio
    async def test_current_profile_is_highest_version(self, db):
        await repo.save_profile(db, make_profile())
        await repo.save_profile(
            db, make_profile(id="profile-2", version=2, skin_type="dry", diagnoses=["rosacea"])
        )
        profile = await repo.get_current_profile(db, "user-1")
        assert profile.id == "profile-2"
        assert profile.skin_type.value == "dry"
        assert profile.diagnoses == ["rosacea"]
        assert profile.main_goals == ["acne", "glow"]

    @pytest.mark.anyio
    async def test_unknown_user(self, db):
        assert await repo.get_current_profile(db, "nobody") is None


class TestCatalogAndRules:
    @pytest.mark.anyio
    async def test_products_round_trip_sorted_by_id(self, db):
        for product in reversed(basic_catalog()):
            await repo.save_product(db, product)
        products = await repo.list_products(db)
        assert [p.id for p in products] == sorted(p.id for p in basic_catalog())
        bpo = next(p for p in products if p.id == "tr-bpo")
        assert bpo.avoid_if == ["pregnant"]
        assert bpo.active_ingredients == ["benzoyl_peroxide"]

    @pytest.mark.anyio
    async def test_rules_parsed_from_raw_json(self, db):
        await repo.save_rule(
            db,
            "r1",
            conditions={"skinType": ["oily"], "acne_level": {"gte": 2}},
            steps={"cleanser": {"categories": ["cleanser"], "maxItems": 2}, "spf": {}},
            priority=5,
        )
        (rule,) = await repo.list_active_rules(db)
        assert rule.priority == 5
        assert rule.specificity == 2
        assert [s.name for s in rule.steps] == ["cleanser", "spf"]
        assert rule.steps[0].max_items == 2
        assert rule.steps[1].category == ["spf"]

    @pytest.mark.anyio
    async def test_inactive_and_broken_rules_skipped(self, db):
        await repo.save_rule(db, "off", conditions={}, steps={}, is_active=False)
        await repo.save_rule(db, "ok", conditions={}, steps={"spf": {}})
        db.add(RecommendationRuleRecord(id="broken", conditions_json="not a mapping", steps_json="nope"))
        await db.commit()
        rules = await repo.list_active_rules(db)
        assert [r.id for r in rules] == ["ok"]


class TestResultsAndProgress:
    @pytest.mark.anyio
    async def test_result_upsert_keeps_one_row(self, db):
        result = RecommendationResult(
            user_id="user-1",
            profile_id="profile-1",
            profile_version=1,
            rule_id="r1",
            product_ids=["a", "b"],
            steps=[FilledStep(name="cleanser", product_ids=["a"]), FilledStep(name="spf", product_ids=["b"])],
        )
        await repo.save_result(db, result)
        await repo.save_result(db, result.model_copy(update={"rule_id": None, "product_ids": ["b"]}))

        count = await db.scalar(select(func.count()).select_from(RecommendationResultRecord))
        assert count == 1
        stored = await repo.get_existing_result(db, "user-1", "profile-1")
        assert stored.used_fallback
        assert stored.product_ids == ["b"]
        assert [s.name for s in stored.steps] == ["cleanser", "spf"]

    @pytest.mark.anyio
    async def test_progress_round_trip(self, db):
        assert await repo.get_progress(db, "user-1") is None
        await repo.save_progress(db, PlanProgress(user_id="user-1", current_day=4, completed_days=[1, 2, 3]))
        await repo.save_progress(db, PlanProgress(user_id="user-1", current_day=5, completed_days=[1, 2, 3, 4]))
        progress = await repo.get_progress(db, "user-1")
        assert progress.current_day == 5
        assert progress.completed_days == [1, 2, 3, 4]


class TestListRules:
    @pytest.mark.anyio
    async def test_list_rules_includes_inactive(self, db):
        await repo.save_rule(db, "b-on", conditions={}, steps={"spf": {}})
        await repo.save_rule(db, "a-off", conditions={}, steps={"spf": {}}, is_active=False)
        rules = await repo.list_rules(db)
        assert [(r.id, r.is_active) for r in rules] == [("a-off", False), ("b-on", True)]
