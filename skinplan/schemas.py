"""
Pydantic schemas: the single source of truth for all engine data contracts.

Everything the engine consumes (SkinProfile, Rule, Product) and produces
(RecommendationResult, Plan28) is a frozen snapshot. Set-like fields are
normalized to sorted, de-duplicated token lists so serialized output is stable.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from skinplan.engine.conditions import ConditionSpec, parse_conditions
from skinplan.engine.ingredients import normalize_token, normalize_tokens


# ── Enums ────────────────────────────────────────────────────────────────────


class SkinType(str, enum.Enum):
    DRY = "dry"
    OILY = "oily"
    COMBINATION_DRY = "combination_dry"
    COMBINATION_OILY = "combination_oily"
    NORMAL = "normal"


class SensitivityLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class RiskLevel(str, enum.Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PlanPhase(str, enum.Enum):
    ADAPTATION = "adaptation"
    ACTIVE = "active"
    SUPPORT = "support"


class TimeOfDay(str, enum.Enum):
    MORNING = "morning"
    EVENING = "evening"


class Frequency(str, enum.Enum):
    DAILY = "daily"
    EVERY_OTHER_DAY = "every_other_day"
    WEEKLY = "weekly"


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


# ── Profile ──────────────────────────────────────────────────────────────────


class SkinProfile(_Snapshot):
    """A user's skin state at one quiz version. Updates create a new version."""

    id: str
    user_id: str
    version: int = Field(default=1, ge=1)

    skin_type: Optional[SkinType] = None
    sensitivity_level: SensitivityLevel = SensitivityLevel.LOW
    acne_level: int = Field(default=0, ge=0, le=3)
    dehydration_level: int = Field(default=0, ge=0, le=3)
    rosacea_risk: RiskLevel = RiskLevel.NONE
    pigmentation_risk: RiskLevel = RiskLevel.NONE
    age_group: Optional[str] = None
    has_pregnancy: bool = False

    concerns: list[str] = Field(default_factory=list)
    main_goals: list[str] = Field(default_factory=list)  # ordered, first = primary
    excluded_ingredients: list[str] = Field(default_factory=list)
    diagnoses: list[str] = Field(default_factory=list)
    contraindications: list[str] = Field(default_factory=list)

    @field_validator(
        "concerns", "excluded_ingredients", "diagnoses", "contraindications", mode="before"
    )
    @classmethod
    def _normalize_sets(cls, v: Any) -> list[str]:
        return normalize_tokens(v)

    @field_validator("main_goals", mode="before")
    @classmethod
    def _normalize_goals(cls, v: Any) -> list[str]:
        seen: list[str] = []
        for goal in v or []:
            token = normalize_token(goal)
            if token and token not in seen:
                seen.append(token)
        return seen

    @property
    def primary_goal(self) -> Optional[str]:
        return self.main_goals[0] if self.main_goals else None


# ── Catalog ──────────────────────────────────────────────────────────────────


class Product(_Snapshot):
    """A catalog entry. Only published products of active brands are eligible."""

    id: str
    name: str = ""
    brand: str = ""
    category: str
    step: Optional[str] = None  # detailed step category, e.g. "treatment_acne_bpo"
    skin_types: list[str] = Field(default_factory=list)  # empty = universal
    concerns: list[str] = Field(default_factory=list)
    active_ingredients: list[str] = Field(default_factory=list)
    avoid_if: list[str] = Field(default_factory=list)
    is_non_comedogenic: bool = False
    is_fragrance_free: bool = False
    published: bool = True
    brand_active: bool = True
    priority: int = 0
    is_hero: bool = False

    @field_validator("category", "step", mode="before")
    @classmethod
    def _normalize_category(cls, v: Any) -> Any:
        return normalize_token(v) if isinstance(v, str) else v

    @field_validator("skin_types", "concerns", "active_ingredients", "avoid_if", mode="before")
    @classmethod
    def _normalize_sets(cls, v: Any) -> list[str]:
        return normalize_tokens(v)

    @property
    def is_eligible(self) -> bool:
        return self.published and self.brand_active


# ── Rules ────────────────────────────────────────────────────────────────────


class StepSpec(_Snapshot):
    """What a rule asks for in one routine step.

    Raw step JSON uses either camelCase (admin console) or snake_case keys;
    unknown keys are ignored and a broken ``maxItems`` falls back to 1.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    category: list[str] = Field(default_factory=list)
    skin_types: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    active_ingredients: list[str] = Field(default_factory=list)
    is_non_comedogenic: Optional[bool] = None
    is_fragrance_free: Optional[bool] = None
    max_items: int = 1

    @model_validator(mode="before")
    @classmethod
    def _from_raw(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        aliases = {
            "categories": "category",
            "skinTypes": "skin_types",
            "skinTypesAllowed": "skin_types",
            "activeIngredients": "active_ingredients",
            "isNonComedogenic": "is_non_comedogenic",
            "isFragranceFree": "is_fragrance_free",
            "maxItems": "max_items",
            "max": "max_items",
        }
        out = {}
        for key, value in data.items():
            out.setdefault(aliases.get(key, key), value)

        max_items = out.get("max_items", 1)
        if isinstance(max_items, bool) or not isinstance(max_items, (int, float, str)):
            max_items = 1
        try:
            out["max_items"] = max(1, int(max_items))
        except (ValueError, OverflowError):
            out["max_items"] = 1

        # a step without explicit categories accepts products of its own name
        if not out.get("category") and out.get("name"):
            out["category"] = [out["name"]]

        for flag in ("is_non_comedogenic", "is_fragrance_free"):
            if flag in out and not isinstance(out[flag], bool):
                out[flag] = None
        return out

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, v: Any) -> str:
        return normalize_token(v)

    @field_validator("category", "skin_types", "concerns", "active_ingredients", mode="before")
    @classmethod
    def _normalize_sets(cls, v: Any) -> list[str]:
        return normalize_tokens(v)


class Rule(_Snapshot):
    """A prioritized matching rule authored in the admin console."""

    id: str
    name: str = ""
    conditions: list[ConditionSpec] = Field(default_factory=list)
    steps: list[StepSpec] = Field(default_factory=list)
    priority: int = 0
    is_active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("conditions", mode="before")
    @classmethod
    def _parse_conditions(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return parse_conditions(v)
        return v or []

    @field_validator("steps", mode="before")
    @classmethod
    def _parse_steps(cls, v: Any) -> Any:
        """Accept {step_name: spec} in declared order, or a list of specs."""
        if isinstance(v, dict):
            steps = []
            for name, spec in v.items():
                spec = dict(spec) if isinstance(spec, dict) else {}
                spec.setdefault("name", name)
                steps.append(spec)
            return steps
        return v or []

    @property
    def specificity(self) -> int:
        return len(self.conditions)


# ── Engine output ────────────────────────────────────────────────────────────


class FilledStep(_Snapshot):
    name: str
    product_ids: list[str] = Field(default_factory=list)
    alternatives: list[str] = Field(default_factory=list)
    skin_type_relaxed: bool = False
    ingredients_relaxed: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.product_ids


class RecommendationResult(_Snapshot):
    """Output of matching. ``rule_id`` is None when the fallback rule applied."""

    user_id: str
    profile_id: str
    profile_version: int
    rule_id: Optional[str] = None
    product_ids: list[str] = Field(default_factory=list)
    steps: list[FilledStep] = Field(default_factory=list)

    @property
    def used_fallback(self) -> bool:
        return self.rule_id is None


class PlanStep(_Snapshot):
    product_id: str
    step: str
    time_of_day: TimeOfDay
    frequency: Frequency
    alternatives: list[str] = Field(default_factory=list)


class PlanDay(_Snapshot):
    day_number: int = Field(ge=1, le=28)
    phase: PlanPhase
    is_weekly_focus_day: bool = False
    steps: list[PlanStep] = Field(default_factory=list)

    def steps_for(self, time_of_day: TimeOfDay) -> list[PlanStep]:
        return [s for s in self.steps if s.time_of_day == time_of_day]


class Plan28(_Snapshot):
    user_id: str
    profile_id: str
    profile_version: int
    main_goals: list[str] = Field(default_factory=list)
    days: list[PlanDay] = Field(default_factory=list)

    def day(self, day_number: int) -> PlanDay:
        return self.days[day_number - 1]

    def product_ids(self) -> set[str]:
        return {step.product_id for d in self.days for step in d.steps}


class PlanProgress(_Snapshot):
    user_id: str
    current_day: int = Field(default=1, ge=1, le=28)
    completed_days: list[int] = Field(default_factory=list)


# ── API payloads ─────────────────────────────────────────────────────────────


class BuildRecommendationsRequest(BaseModel):
    user_id: str
    force_rebuild: bool = False


class ProgressUpdate(BaseModel):
    user_id: str
    current_day: Any = 1
    completed_days: list[Any] = Field(default_factory=list)


class RuleEvaluation(BaseModel):
    """Why a rule did or did not match a profile (rule preview)."""

    rule_id: str
    rule_name: str = ""
    priority: int = 0
    is_active: bool = True
    matched: bool
    specificity: int
    failed_keys: list[str] = Field(default_factory=list)
    unknown_operators: list[str] = Field(default_factory=list)
