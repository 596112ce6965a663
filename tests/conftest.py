import os

# must be set before skinplan.database creates its engine
os.environ.setdefault("SKINPLAN_DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from skinplan.database import Base
from skinplan.models import db as _models  # noqa: F401
from skinplan.schemas import Product, Rule, SkinProfile


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def db(anyio_backend):
    """Fresh in-memory database per test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        yield session
    await engine.dispose()


# ── Builders ────────────────────────────────────────────────────────────────


def make_profile(**overrides) -> SkinProfile:
    defaults = dict(
        id="profile-1",
        user_id="user-1",
        version=1,
        skin_type="oily",
        sensitivity_level="low",
        acne_level=2,
        concerns=["acne", "pores"],
        main_goals=["acne", "glow"],
    )
    defaults.update(overrides)
    return SkinProfile(**defaults)


def make_product(id: str, category: str, **overrides) -> Product:
    return Product(id=id, name=id, category=category, **overrides)


def make_rule(id: str, conditions=None, steps=None, priority: int = 0, **overrides) -> Rule:
    return Rule(
        id=id,
        name=overrides.pop("name", id),
        conditions=conditions or {},
        steps=steps
        or {
            "cleanser": {"category": ["cleanser"], "maxItems": 1},
            "moisturizer": {"category": ["moisturizer"], "maxItems": 1},
            "spf": {"category": ["spf"], "maxItems": 1},
        },
        priority=priority,
        **overrides,
    )


def basic_catalog() -> list[Product]:
    return [
        make_product("cl-gentle", "cleanser", step="cleanser_gentle", priority=50),
        make_product(
            "cl-oily", "cleanser", step="cleanser_balancing",
            skin_types=["oily", "combination_oily"], concerns=["acne"], priority=70,
        ),
        make_product(
            "tr-bpo", "treatment", step="treatment_acne_bpo",
            concerns=["acne"], active_ingredients=["benzoyl_peroxide"], avoid_if=["pregnant"], priority=60,
        ),
        make_product(
            "tr-azelaic", "treatment", step="treatment_acne_azelaic",
            concerns=["acne", "pigmentation"], active_ingredients=["azelaic_acid"], priority=55,
        ),
        make_product(
            "mo-gel", "moisturizer", step="moisturizer_balancing",
            skin_types=["oily", "combination_oily"], is_non_comedogenic=True, priority=50,
        ),
        make_product(
            "mo-barrier", "moisturizer", step="moisturizer_barrier",
            skin_types=["dry", "normal"], concerns=["dryness"], priority=50,
        ),
        make_product("spf-50", "spf", step="spf_50_face", priority=80, is_hero=True),
        make_product("mask-clay", "mask", step="mask_clay", skin_types=["oily"], priority=10),
    ]


@pytest.fixture
def catalog() -> list[Product]:
    return basic_catalog()


@pytest.fixture
def profile() -> SkinProfile:
    return make_profile()
