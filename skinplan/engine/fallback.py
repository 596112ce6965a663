"""
Built-in fallback rule: guarantees a non-empty routine when no rule matches.
"""

from skinplan.exceptions import RuleConfigurationError
from skinplan.schemas import Rule

FALLBACK_RULE_ID = "fallback"

CORE_STEPS = ("cleanser", "moisturizer", "spf")

FALLBACK_RULE = Rule(
    id=FALLBACK_RULE_ID,
    name="Universal basic care",
    conditions={},
    steps={
        "cleanser": {"category": ["cleanser"], "maxItems": 1},
        "moisturizer": {"category": ["moisturizer"], "maxItems": 1},
        "spf": {"category": ["spf", "sunscreen"], "maxItems": 1},
    },
    priority=-1,
    is_active=True,
)


def validate_fallback(rule: Rule) -> Rule:
    """Check a fallback rule is unconditional and covers the core steps."""
    if rule.conditions:
        raise RuleConfigurationError(
            f"Fallback rule {rule.id!r} must not have conditions, got {len(rule.conditions)}"
        )
    covered = {category for step in rule.steps for category in step.category}
    missing = [step for step in CORE_STEPS if step not in covered]
    if missing:
        raise RuleConfigurationError(
            f"Fallback rule {rule.id!r} does not cover core steps: {', '.join(missing)}"
        )
    return rule
