"""
Rule Selector: ranks matching rules and picks exactly one winner.

Ranking key: (priority DESC, specificity DESC, rule id ASC). The id term makes
the winner independent of the order rules come back from storage.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from skinplan.engine.conditions import failed_conditions, matches
from skinplan.engine.fallback import FALLBACK_RULE
from skinplan.schemas import Rule, RuleEvaluation, SkinProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedRule:
    rule: Rule
    specificity: int
    is_fallback: bool = False

    @property
    def rule_id(self) -> str | None:
        """Id to persist with the result; None when the fallback applied."""
        return None if self.is_fallback else self.rule.id


def _ranking_key(rule: Rule) -> tuple:
    return (-rule.priority, -rule.specificity, rule.id)


def _log_unknown_operators(rule: Rule) -> None:
    for condition in rule.conditions:
        if condition.field is None:
            logger.warning(f"Rule {rule.id}: unknown condition key '{condition.key}' never matches")
        for op in condition.unknown_operators:
            logger.warning(f"Rule {rule.id}: unknown operator '{op}' on '{condition.key}' never matches")


def evaluate_rules(profile: SkinProfile, rules: Iterable[Rule]) -> list[RuleEvaluation]:
    """Explain every rule against a profile, in ranking order."""
    evaluations = []
    for rule in sorted(rules, key=_ranking_key):
        failed = failed_conditions(profile, rule.conditions)
        evaluations.append(
            RuleEvaluation(
                rule_id=rule.id,
                rule_name=rule.name,
                priority=rule.priority,
                is_active=rule.is_active,
                matched=rule.is_active and not failed,
                specificity=rule.specificity,
                failed_keys=failed,
                unknown_operators=[op for c in rule.conditions for op in c.unknown_operators],
            )
        )
    return evaluations


def select_rule(
    profile: SkinProfile,
    rules: Iterable[Rule],
    fallback: Rule = FALLBACK_RULE,
) -> SelectedRule:
    candidates = []
    for rule in rules:
        if not rule.is_active:
            continue
        _log_unknown_operators(rule)
        matched, specificity = matches(profile, rule.conditions)
        if matched:
            candidates.append((rule, specificity))

    if not candidates:
        logger.info(f"No rule matched profile {profile.id} (v{profile.version}); using fallback")
        return SelectedRule(rule=fallback, specificity=0, is_fallback=True)

    winner, specificity = min(candidates, key=lambda c: (-c[0].priority, -c[1], c[0].id))
    logger.debug(
        f"Rule {winner.id} won for profile {profile.id} "
        f"(priority={winner.priority}, specificity={specificity}, candidates={len(candidates)})"
    )
    return SelectedRule(rule=winner, specificity=specificity)
