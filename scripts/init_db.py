#!/usr/bin/env python3
"""
Database initialization script for SkinPlan
Creates all database tables and optionally loads a catalog/rules seed file

    python scripts/init_db.py --seed scripts/seed.json
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import logging

from skinplan.config import get_settings
from skinplan.database import SessionLocal, engine, init_db
from skinplan.repository import SkincareRepository
from skinplan.schemas import Product

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def load_seed(path: Path) -> None:
    """Load products and rules from a JSON file: {"products": [...], "rules": [...]}"""
    data = json.loads(path.read_text(encoding="utf-8"))
    repo = SkincareRepository()
    async with SessionLocal() as db:
        for raw in data.get("products", []):
            await repo.save_product(db, Product.model_validate(raw))
        for raw in data.get("rules", []):
            await repo.save_rule(
                db,
                rule_id=str(raw["id"]),
                name=raw.get("name", ""),
                conditions=raw.get("conditions", {}),
                steps=raw.get("steps", {}),
                priority=raw.get("priority", 0),
                is_active=raw.get("is_active", True),
            )
    logger.info(
        f"Seeded {len(data.get('products', []))} products and {len(data.get('rules', []))} rules"
    )


async def main(seed: Path | None = None):
    """Initialize the database"""
    try:
        logger.info("Starting database initialization...")
        settings = get_settings()
        logger.info(f"Database URL: {settings.database_url}")

        await init_db()
        if seed is not None:
            await load_seed(seed)
        logger.info("Database initialized successfully")

    except Exception as e:
        logger.error(f"Error initializing database: {str(e)}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", type=Path, default=None, help="JSON file with products and rules")
    args = parser.parse_args()
    asyncio.run(main(args.seed))
