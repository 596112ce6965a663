from skinplan.models.db import (
    PlanProgressRecord,
    ProductRecord,
    RecommendationResultRecord,
    RecommendationRuleRecord,
    SkinProfileRecord,
)

__all__ = [
    "SkinProfileRecord",
    "ProductRecord",
    "RecommendationRuleRecord",
    "RecommendationResultRecord",
    "PlanProgressRecord",
]
