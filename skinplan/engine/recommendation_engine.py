"""
RecommendationEngine: wires the pure stages to injected providers.

    engine = RecommendationEngine(rules, catalog, results, profiles)
    result = engine.match(profile)                 # idempotent per (user, profile)
    result = engine.match(profile, force_rebuild=True)
    plan = engine.build_plan(result, profile)      # always recomputable
"""

import logging
from typing import Optional

from skinplan.engine.assembler import assemble
from skinplan.engine.fallback import FALLBACK_RULE, validate_fallback
from skinplan.engine.plan_builder import build_plan
from skinplan.engine.providers import CatalogProvider, ProfileProvider, ResultStore, RuleProvider
from skinplan.engine.rule_selector import evaluate_rules, select_rule
from skinplan.exceptions import ProfileNotFound
from skinplan.schemas import Plan28, RecommendationResult, Rule, RuleEvaluation, SkinProfile

logger = logging.getLogger(__name__)


class RecommendationEngine:
    def __init__(
        self,
        rules: RuleProvider,
        catalog: CatalogProvider,
        results: ResultStore,
        profiles: Optional[ProfileProvider] = None,
        fallback: Rule = FALLBACK_RULE,
        alternatives_per_step: int = 0,
    ):
        self.rules = rules
        self.catalog = catalog
        self.results = results
        self.profiles = profiles
        # a broken fallback is a configuration error, caught at construction
        self.fallback = validate_fallback(fallback)
        self.alternatives_per_step = alternatives_per_step

    def match(self, profile: Optional[SkinProfile], force_rebuild: bool = False) -> RecommendationResult:
        if profile is None:
            raise ProfileNotFound()

        if not force_rebuild:
            existing = self.results.get_existing_result(profile.user_id, profile.id)
            if existing is not None:
                logger.debug(f"Reusing stored result for user={profile.user_id} profile={profile.id}")
                return existing

        selected = select_rule(profile, self.rules.list_active_rules(), fallback=self.fallback)
        result = assemble(
            profile,
            selected,
            self.catalog.find_products(),
            alternatives=self.alternatives_per_step,
        )
        self.results.save_result(result)
        return result

    def match_for_user(self, user_id: str, force_rebuild: bool = False) -> RecommendationResult:
        if self.profiles is None:
            raise ProfileNotFound(user_id)
        profile = self.profiles.get_current_profile(user_id)
        if profile is None:
            raise ProfileNotFound(user_id)
        return self.match(profile, force_rebuild=force_rebuild)

    def build_plan(self, result: RecommendationResult, profile: SkinProfile) -> Plan28:
        return build_plan(result, profile, self.catalog.find_products())

    def evaluate_rules(self, profile: SkinProfile, rules: Optional[list[Rule]] = None) -> list[RuleEvaluation]:
        """Explain the active rules, or the given ones (inactive rules included)."""
        return evaluate_rules(profile, self.rules.list_active_rules() if rules is None else rules)
