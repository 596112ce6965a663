"""
RecommendationService: request-scoped glue between the repository and the engine.

Each call loads immutable snapshots (profile, active rules, catalog, stored
result), runs the synchronous engine over them and writes back whatever the
engine saved. Caching and retries belong to the caller.
"""

import logging
from typing import Any, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from skinplan.config import Settings, get_settings
from skinplan.engine.progress import mark_day_completed, normalize_progress
from skinplan.engine.providers import InMemoryCatalog, InMemoryResultStore, InMemoryRules
from skinplan.engine.recommendation_engine import RecommendationEngine
from skinplan.exceptions import ProfileNotFound, StaleResultConflict
from skinplan.repository import SkincareRepository
from skinplan.schemas import (
    Plan28,
    PlanProgress,
    RecommendationResult,
    RuleEvaluation,
    SkinProfile,
)

logger = logging.getLogger(__name__)


def ensure_fresh(result: RecommendationResult, profile: SkinProfile) -> RecommendationResult:
    if result.profile_version != profile.version:
        raise StaleResultConflict(result.profile_version, profile.version)
    return result


class RecommendationService:
    def __init__(self, repo: SkincareRepository | None = None, settings: Settings | None = None):
        self.repo = repo or SkincareRepository()
        self.settings = settings or get_settings()

    async def _load_profile(self, db: AsyncSession, user_id: str) -> SkinProfile:
        profile = await self.repo.get_current_profile(db, user_id)
        if profile is None:
            raise ProfileNotFound(user_id)
        return profile

    async def _engine_for(
        self, db: AsyncSession, profile: SkinProfile
    ) -> tuple[RecommendationEngine, InMemoryResultStore]:
        existing = await self.repo.get_existing_result(db, profile.user_id, profile.id)
        store = InMemoryResultStore([existing] if existing else [])
        engine = RecommendationEngine(
            rules=InMemoryRules(await self.repo.list_active_rules(db)),
            catalog=InMemoryCatalog(await self.repo.list_products(db)),
            results=store,
            alternatives_per_step=self.settings.alternatives_per_step,
        )
        return engine, store

    async def _flush(self, db: AsyncSession, writes: Iterable[RecommendationResult]) -> None:
        for result in writes:
            await self.repo.save_result(db, result)

    async def match(self, db: AsyncSession, user_id: str, force_rebuild: bool = False) -> RecommendationResult:
        profile = await self._load_profile(db, user_id)
        engine, store = await self._engine_for(db, profile)

        result = engine.match(profile, force_rebuild=force_rebuild)
        try:
            ensure_fresh(result, profile)
        except StaleResultConflict as e:
            logger.info(f"Rebuilding stale recommendations for user={user_id}: {e}")
            result = engine.match(profile, force_rebuild=True)

        await self._flush(db, store.writes)
        return result

    async def get_plan(self, db: AsyncSession, user_id: str) -> Plan28:
        """Plan for the current profile, matching first if no result exists yet."""
        profile = await self._load_profile(db, user_id)
        result = await self.match(db, user_id)
        engine, _ = await self._engine_for(db, profile)
        return engine.build_plan(result, profile)

    async def evaluate_rules(self, db: AsyncSession, user_id: str) -> list[RuleEvaluation]:
        profile = await self._load_profile(db, user_id)
        engine, _ = await self._engine_for(db, profile)
        return engine.evaluate_rules(profile, await self.repo.list_rules(db))

    async def get_progress(self, db: AsyncSession, user_id: str) -> PlanProgress:
        progress = await self.repo.get_progress(db, user_id)
        return progress or PlanProgress(user_id=user_id)

    async def save_progress(
        self, db: AsyncSession, user_id: str, current_day: Any, completed_days: list[Any]
    ) -> PlanProgress:
        progress = normalize_progress(user_id, current_day, completed_days)
        await self.repo.save_progress(db, progress)
        return progress

    async def complete_day(self, db: AsyncSession, user_id: str, day: int) -> PlanProgress:
        plan = await self.get_plan(db, user_id)
        progress = mark_day_completed(await self.get_progress(db, user_id), day, plan)
        await self.repo.save_progress(db, progress)
        return progress
