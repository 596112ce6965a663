"""
Skincare repository: all DB access in one place.

Rows are converted into frozen schema snapshots on the way out, so nothing
above this layer ever holds an ORM object.
"""

import logging
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skinplan.models.db import (
    PlanProgressRecord,
    ProductRecord,
    RecommendationResultRecord,
    RecommendationRuleRecord,
    SkinProfileRecord,
)
from skinplan.schemas import (
    FilledStep,
    PlanProgress,
    Product,
    RecommendationResult,
    Rule,
    SkinProfile,
)

logger = logging.getLogger(__name__)


def _profile_from_record(row: SkinProfileRecord) -> SkinProfile:
    markers = row.medical_markers or {}
    return SkinProfile(
        id=row.id,
        user_id=row.user_id,
        version=row.version,
        skin_type=row.skin_type,
        sensitivity_level=row.sensitivity_level or "low",
        acne_level=row.acne_level or 0,
        dehydration_level=row.dehydration_level or 0,
        rosacea_risk=row.rosacea_risk or "none",
        pigmentation_risk=row.pigmentation_risk or "none",
        age_group=row.age_group,
        has_pregnancy=bool(row.has_pregnancy),
        concerns=row.concerns or [],
        main_goals=row.main_goals or [],
        excluded_ingredients=row.excluded_ingredients or [],
        diagnoses=markers.get("diagnoses") or [],
        contraindications=markers.get("contraindications") or [],
    )


def _product_from_record(row: ProductRecord) -> Product:
    return Product(
        id=row.id,
        name=row.name or "",
        brand=row.brand or "",
        category=row.category,
        step=row.step,
        skin_types=row.skin_types or [],
        concerns=row.concerns or [],
        active_ingredients=row.active_ingredients or [],
        avoid_if=row.avoid_if or [],
        is_non_comedogenic=bool(row.is_non_comedogenic),
        is_fragrance_free=bool(row.is_fragrance_free),
        published=bool(row.published),
        brand_active=bool(row.brand_active),
        priority=row.priority or 0,
        is_hero=bool(row.is_hero),
    )


def _rule_from_record(row: RecommendationRuleRecord) -> Optional[Rule]:
    """Parse a stored rule; rules whose JSON cannot be parsed are skipped."""
    try:
        return Rule(
            id=row.id,
            name=row.name or "",
            conditions=row.conditions_json or {},
            steps=row.steps_json or {},
            priority=row.priority or 0,
            is_active=bool(row.is_active),
        )
    except ValidationError as e:
        logger.warning(f"Skipping rule {row.id}: invalid conditions/steps JSON ({e.error_count()} errors)")
        return None


def _result_from_record(row: RecommendationResultRecord) -> RecommendationResult:
    return RecommendationResult(
        user_id=row.user_id,
        profile_id=row.profile_id,
        profile_version=row.profile_version,
        rule_id=row.rule_id,
        product_ids=row.product_ids or [],
        steps=[FilledStep.model_validate(s) for s in row.steps_json or []],
    )


class SkincareRepository:
    """Single repository for all DB operations."""

    # ── Profiles ──

    async def get_current_profile(self, db: AsyncSession, user_id: str) -> Optional[SkinProfile]:
        result = await db.execute(
            select(SkinProfileRecord)
            .where(SkinProfileRecord.user_id == user_id)
            .order_by(SkinProfileRecord.version.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return _profile_from_record(row) if row else None

    async def save_profile(self, db: AsyncSession, profile: SkinProfile) -> None:
        """Insert a new profile version. Existing versions are never updated."""
        db.add(
            SkinProfileRecord(
                id=profile.id,
                user_id=profile.user_id,
                version=profile.version,
                skin_type=profile.skin_type.value if profile.skin_type else None,
                sensitivity_level=profile.sensitivity_level.value,
                acne_level=profile.acne_level,
                dehydration_level=profile.dehydration_level,
                rosacea_risk=profile.rosacea_risk.value,
                pigmentation_risk=profile.pigmentation_risk.value,
                age_group=profile.age_group,
                has_pregnancy=profile.has_pregnancy,
                concerns=profile.concerns,
                main_goals=profile.main_goals,
                excluded_ingredients=profile.excluded_ingredients,
                medical_markers={
                    "diagnoses": profile.diagnoses,
                    "contraindications": profile.contraindications,
                },
            )
        )
        await db.commit()

    # ── Catalog & rules ──

    async def list_products(self, db: AsyncSession) -> list[Product]:
        result = await db.execute(select(ProductRecord).order_by(ProductRecord.id))
        return [_product_from_record(row) for row in result.scalars().all()]

    async def save_product(self, db: AsyncSession, product: Product) -> None:
        await db.merge(ProductRecord(**product.model_dump()))
        await db.commit()

    async def list_rules(self, db: AsyncSession) -> list[Rule]:
        """Every parseable rule, inactive ones included (rule preview)."""
        result = await db.execute(select(RecommendationRuleRecord).order_by(RecommendationRuleRecord.id))
        rules = [_rule_from_record(row) for row in result.scalars().all()]
        return [r for r in rules if r is not None]

    async def list_active_rules(self, db: AsyncSession) -> list[Rule]:
        result = await db.execute(
            select(RecommendationRuleRecord).where(RecommendationRuleRecord.is_active.is_(True))
        )
        rules = [_rule_from_record(row) for row in result.scalars().all()]
        return [r for r in rules if r is not None]

    async def save_rule(
        self,
        db: AsyncSession,
        rule_id: str,
        conditions: dict,
        steps: dict | list,
        priority: int = 0,
        name: str = "",
        is_active: bool = True,
    ) -> None:
        """Store a rule with its raw JSON, as the admin console writes it."""
        await db.merge(
            RecommendationRuleRecord(
                id=rule_id,
                name=name,
                conditions_json=conditions,
                steps_json=steps,
                priority=priority,
                is_active=is_active,
            )
        )
        await db.commit()

    # ── Results ──

    async def get_existing_result(
        self, db: AsyncSession, user_id: str, profile_id: str
    ) -> Optional[RecommendationResult]:
        row = await self._get_result_row(db, user_id, profile_id)
        return _result_from_record(row) if row else None

    async def save_result(self, db: AsyncSession, result: RecommendationResult) -> None:
        """Create or overwrite the result for (user, profile)."""
        row = await self._get_result_row(db, result.user_id, result.profile_id)
        if row is None:
            row = RecommendationResultRecord(user_id=result.user_id, profile_id=result.profile_id)
            db.add(row)
        row.profile_version = result.profile_version
        row.rule_id = result.rule_id
        row.product_ids = list(result.product_ids)
        row.steps_json = [s.model_dump(mode="json") for s in result.steps]
        await db.commit()
        logger.info(f"Saved recommendation result | user={result.user_id} profile={result.profile_id}")

    async def _get_result_row(
        self, db: AsyncSession, user_id: str, profile_id: str
    ) -> Optional[RecommendationResultRecord]:
        result = await db.execute(
            select(RecommendationResultRecord).where(
                RecommendationResultRecord.user_id == user_id,
                RecommendationResultRecord.profile_id == profile_id,
            )
        )
        return result.scalar_one_or_none()

    # ── Progress ──

    async def get_progress(self, db: AsyncSession, user_id: str) -> Optional[PlanProgress]:
        row = await db.get(PlanProgressRecord, user_id)
        if row is None:
            return None
        return PlanProgress(
            user_id=row.user_id,
            current_day=row.current_day,
            completed_days=row.completed_days or [],
        )

    async def save_progress(self, db: AsyncSession, progress: PlanProgress) -> None:
        row = await db.get(PlanProgressRecord, progress.user_id)
        if row is None:
            row = PlanProgressRecord(user_id=progress.user_id)
            db.add(row)
        row.current_day = progress.current_day
        row.completed_days = list(progress.completed_days)
        await db.commit()
