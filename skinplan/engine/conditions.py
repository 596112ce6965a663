"""
Condition Matcher: decides whether a skin profile satisfies a rule's conditions.

Rule conditions arrive as loosely typed JSON from the admin console, e.g.

    {"skin_type": ["oily", "combination_oily"], "acne_level": {"gte": 2}}

`parse_conditions` turns that into typed `ConditionSpec` objects once, when the
rule is loaded. `matches` evaluates them against a profile. Evaluation fails
closed: a missing profile value, an unknown condition key or an unknown
operator never matches, and malformed operands never raise.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from skinplan.engine.ingredients import normalize_token

UNKNOWN = "unknown"

# Condition key (as written by admins / the quiz) -> canonical profile field
KEY_ALIASES: dict[str, str] = {
    "skin_type": "skin_type",
    "skintype": "skin_type",
    "sensitivity": "sensitivity_level",
    "sensitivity_level": "sensitivity_level",
    "sensitivitylevel": "sensitivity_level",
    "acne_level": "acne_level",
    "acnelevel": "acne_level",
    "acne": "acne_level",
    "dehydration_level": "dehydration_level",
    "dehydrationlevel": "dehydration_level",
    "rosacea_risk": "rosacea_risk",
    "rosacearisk": "rosacea_risk",
    "pigmentation_risk": "pigmentation_risk",
    "pigmentationrisk": "pigmentation_risk",
    "age_group": "age_group",
    "agegroup": "age_group",
    "age": "age_group",
    "has_pregnancy": "has_pregnancy",
    "haspregnancy": "has_pregnancy",
    "pregnant": "has_pregnancy",
    "concerns": "concerns",
    "main_goals": "main_goals",
    "maingoals": "main_goals",
    "goals": "main_goals",
    "primary_goal": "primary_goal",
    "primarygoal": "primary_goal",
    "diagnoses": "diagnoses",
    "contraindications": "contraindications",
    "excluded_ingredients": "excluded_ingredients",
}

OPERATOR_ALIASES: dict[str, str] = {
    "in": "in",
    "eq": "eq",
    "equals": "eq",
    "gte": "gte",
    "lte": "lte",
    "gt": "gt",
    "lt": "lt",
    "range": "range",
    "between": "range",
    "hassome": "has_some",
    "has_some": "has_some",
    "hasall": "has_all",
    "has_all": "has_all",
}

ORDINAL_SCALES: dict[str, dict[str, int]] = {
    "sensitivity_level": {"low": 0, "medium": 1, "high": 2, "very_high": 3},
    "rosacea_risk": {"none": 0, "low": 1, "medium": 2, "high": 3},
    "pigmentation_risk": {"none": 0, "low": 1, "medium": 2, "high": 3},
}

NUMERIC_FIELDS = frozenset({"acne_level", "dehydration_level"})
ORDERED_FIELDS = NUMERIC_FIELDS | frozenset(ORDINAL_SCALES)
SET_FIELDS = frozenset({"concerns", "main_goals", "diagnoses", "contraindications", "excluded_ingredients"})


class Clause(BaseModel):
    model_config = ConfigDict(frozen=True)

    operator: str
    value: Any = None


class ConditionSpec(BaseModel):
    """One condition key with one or more clauses (all must hold)."""

    model_config = ConfigDict(frozen=True)

    key: str
    field: Optional[str] = None  # canonical profile field; None for unknown keys
    clauses: list[Clause] = Field(default_factory=list)

    @property
    def unknown_operators(self) -> list[str]:
        return [str(c.value) for c in self.clauses if c.operator == UNKNOWN]


# ── Parsing ─────────────────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _normalize_operand(value: Any) -> Any:
    if isinstance(value, str):
        return normalize_token(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_operand(v) for v in value]
    return value


def _parse_clauses(field: Optional[str], raw: Any) -> list[Clause]:
    if isinstance(raw, (list, tuple)):
        operands = _normalize_operand(list(raw))
        if field in ORDERED_FIELDS and len(operands) == 2 and all(_is_number(v) for v in operands):
            return [Clause(operator="range", value=operands)]
        return [Clause(operator="in", value=operands)]

    if isinstance(raw, dict):
        if not raw:
            return [Clause(operator=UNKNOWN, value="{}")]
        clauses = []
        for op, operand in raw.items():
            canonical = OPERATOR_ALIASES.get(normalize_token(op))
            if canonical is None:
                clauses.append(Clause(operator=UNKNOWN, value=str(op)))
            else:
                clauses.append(Clause(operator=canonical, value=_normalize_operand(operand)))
        return clauses

    if raw is None:
        return [Clause(operator=UNKNOWN, value="null")]

    return [Clause(operator="eq", value=_normalize_operand(raw))]


def parse_conditions(raw: dict[str, Any]) -> list[ConditionSpec]:
    """Parse a raw conditions mapping, preserving key order."""
    specs = []
    for key, value in (raw or {}).items():
        token = normalize_token(key)
        field = KEY_ALIASES.get(token) or KEY_ALIASES.get(token.replace("_", ""))
        specs.append(ConditionSpec(key=str(key), field=field, clauses=_parse_clauses(field, value)))
    return specs


# ── Evaluation ──────────────────────────────────────────────────────────────


def profile_value(profile: Any, field: Optional[str]) -> Any:
    """Read a canonical field from a profile; enums are reduced to their values."""
    if field is None:
        return None
    if field == "primary_goal":
        goals = getattr(profile, "main_goals", None) or []
        return goals[0] if goals else None
    value = getattr(profile, field, None)
    if hasattr(value, "value"):
        value = value.value
    return value


def _rank(field: str, value: Any) -> Optional[float]:
    if _is_number(value):
        return float(value)
    scale = ORDINAL_SCALES.get(field)
    if scale is not None and isinstance(value, str):
        rank = scale.get(normalize_token(value))
        return float(rank) if rank is not None else None
    return None


def _as_list(value: Any) -> list:
    if isinstance(value, list):
        return value
    return [value]


def _clause_holds(field: str, clause: Clause, actual: Any) -> bool:
    op, operand = clause.operator, clause.value
    is_set = field in SET_FIELDS
    actual_norm = _normalize_operand(actual)

    if op in ("in", "has_some"):
        allowed = _as_list(operand)
        if is_set:
            return any(v in allowed for v in actual_norm)
        return actual_norm in allowed

    if op == "has_all":
        required = _as_list(operand)
        values = actual_norm if is_set else [actual_norm]
        return bool(required) and all(v in values for v in required)

    if op == "eq":
        if is_set:
            return operand in actual_norm
        if isinstance(actual_norm, bool) or isinstance(operand, bool):
            return actual_norm is operand
        if field in ORDERED_FIELDS:
            left, right = _rank(field, actual_norm), _rank(field, operand)
            return left is not None and left == right
        return actual_norm == operand

    if op in ("gte", "lte", "gt", "lt"):
        left, right = _rank(field, actual_norm), _rank(field, operand)
        if left is None or right is None:
            return False
        return {
            "gte": left >= right,
            "lte": left <= right,
            "gt": left > right,
            "lt": left < right,
        }[op]

    if op == "range":
        bounds = _as_list(operand)
        if len(bounds) != 2:
            return False
        low, high = _rank(field, bounds[0]), _rank(field, bounds[1])
        value = _rank(field, actual_norm)
        if low is None or high is None or value is None:
            return False
        return low <= value <= high

    return False


def condition_holds(profile: Any, condition: ConditionSpec) -> bool:
    if condition.field is None or not condition.clauses:
        return False
    actual = profile_value(profile, condition.field)
    if actual is None:
        return False
    if condition.field in SET_FIELDS and not actual:
        # an empty set cannot satisfy a requirement on its members
        return False
    try:
        return all(_clause_holds(condition.field, c, actual) for c in condition.clauses)
    except (TypeError, ValueError):
        # malformed operand (e.g. a dict where a list was expected)
        return False


def failed_conditions(profile: Any, conditions: list[ConditionSpec]) -> list[str]:
    return [c.key for c in conditions if not condition_holds(profile, c)]


def matches(profile: Any, conditions: list[ConditionSpec]) -> tuple[bool, int]:
    """Return (all conditions hold, number of condition keys)."""
    return not failed_conditions(profile, conditions), len(conditions)
