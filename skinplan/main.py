from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from skinplan.config import get_settings
from skinplan.database import get_db
from skinplan.exceptions import InvalidPlanDay, ProfileNotFound
from skinplan.schemas import (
    BuildRecommendationsRequest,
    Plan28,
    PlanProgress,
    ProgressUpdate,
    RecommendationResult,
    RuleEvaluation,
)
from skinplan.services.recommendation import RecommendationService
import logging

settings = get_settings()

# Set up logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="SkinPlan")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services
recommendation_service = RecommendationService(settings=settings)


def get_service() -> RecommendationService:
    return recommendation_service


class CompleteDayRequest(BaseModel):
    user_id: str
    day: int


@app.get("/")
async def health_check():
    return {"status": "healthy", "service": "SkinPlan"}


@app.post("/api/recommendations/build", response_model=RecommendationResult)
async def build_recommendations(
    body: BuildRecommendationsRequest,
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_service),
):
    try:
        return await service.match(db, body.user_id, force_rebuild=body.force_rebuild)
    except ProfileNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/api/plan", response_model=Plan28)
async def get_plan(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_service),
):
    try:
        return await service.get_plan(db, user_id)
    except ProfileNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.get("/api/plan/progress", response_model=PlanProgress)
async def get_progress(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_service),
):
    return await service.get_progress(db, user_id)


@app.post("/api/plan/progress", response_model=PlanProgress)
async def save_progress(
    body: ProgressUpdate,
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_service),
):
    return await service.save_progress(db, body.user_id, body.current_day, body.completed_days)


@app.post("/api/plan/progress/complete", response_model=PlanProgress)
async def complete_day(
    body: CompleteDayRequest,
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_service),
):
    try:
        return await service.complete_day(db, body.user_id, body.day)
    except ProfileNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidPlanDay as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.get("/api/rules/evaluate", response_model=list[RuleEvaluation])
async def evaluate_rules(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    service: RecommendationService = Depends(get_service),
):
    try:
        return await service.evaluate_rules(db, user_id)
    except ProfileNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
