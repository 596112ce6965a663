"""
SQLAlchemy models.

`skin_profiles`            one row per (user, quiz version); JSON blobs for set fields
`products`                 catalog entries with brand activity flattened in
`recommendation_rules`     admin-authored rules; conditions/steps stored as raw JSON
`recommendation_results`   one result per (user, profile)
`plan_progress`            completed days per user
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    JSON,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from skinplan.database import Base


class SkinProfileRecord(Base):
    __tablename__ = "skin_profiles"
    __table_args__ = (UniqueConstraint("user_id", "version", name="uq_skin_profiles_user_version"),)

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    skin_type = Column(String(32))
    sensitivity_level = Column(String(16), default="low")
    acne_level = Column(Integer, default=0)
    dehydration_level = Column(Integer, default=0)
    rosacea_risk = Column(String(16), default="none")
    pigmentation_risk = Column(String(16), default="none")
    age_group = Column(String(16))
    has_pregnancy = Column(Boolean, default=False)
    concerns = Column(JSON, default=list)
    main_goals = Column(JSON, default=list)
    excluded_ingredients = Column(JSON, default=list)
    medical_markers = Column(JSON, default=dict)  # {"diagnoses": [...], "contraindications": [...]}
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<SkinProfileRecord(id={self.id}, user={self.user_id}, v={self.version})>"


class ProductRecord(Base):
    __tablename__ = "products"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False, default="")
    brand = Column(String(100), default="")
    category = Column(String(64), nullable=False, index=True)
    step = Column(String(64))
    skin_types = Column(JSON, default=list)
    concerns = Column(JSON, default=list)
    active_ingredients = Column(JSON, default=list)
    avoid_if = Column(JSON, default=list)
    is_non_comedogenic = Column(Boolean, default=False)
    is_fragrance_free = Column(Boolean, default=False)
    published = Column(Boolean, default=True, index=True)
    brand_active = Column(Boolean, default=True)
    priority = Column(Integer, default=0)
    is_hero = Column(Boolean, default=False)

    def __repr__(self):
        return f"<ProductRecord(id={self.id}, category={self.category})>"


class RecommendationRuleRecord(Base):
    __tablename__ = "recommendation_rules"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), default="")
    conditions_json = Column(JSON, default=dict)
    steps_json = Column(JSON, default=dict)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<RecommendationRuleRecord(id={self.id}, priority={self.priority})>"


class RecommendationResultRecord(Base):
    __tablename__ = "recommendation_results"
    __table_args__ = (UniqueConstraint("user_id", "profile_id", name="uq_results_user_profile"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    profile_id = Column(String(64), nullable=False)
    profile_version = Column(Integer, nullable=False)
    rule_id = Column(String(64))  # NULL = fallback rule
    product_ids = Column(JSON, default=list)
    steps_json = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<RecommendationResultRecord(user={self.user_id}, profile={self.profile_id})>"


class PlanProgressRecord(Base):
    __tablename__ = "plan_progress"

    user_id = Column(String(64), primary_key=True)
    current_day = Column(Integer, nullable=False, default=1)
    completed_days = Column(JSON, default=list)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<PlanProgressRecord(user={self.user_id}, day={self.current_day})>"
