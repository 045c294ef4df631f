import logging
import os

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api import state
from api.dependencies import get_engine
from api.metrics import TASK_LIST_SIZE
from engine.commands import TaskCommandEngine

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(engine: TaskCommandEngine = Depends(get_engine)) -> dict:
    """Health check endpoint for container orchestration."""
    return {
        "status": "healthy",
        "profile": os.getenv("DEPLOYMENT_PROFILE", "unknown"),
        "tasks": len(state.tasks),
        "mutation_in_progress": engine.lock.held,
        "llm_enabled": engine.extractor.llm_client.enabled,
        "llm_tier": engine.llm_tier,
    }


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus scrape endpoint.
    """
    try:
        TASK_LIST_SIZE.set(len(state.tasks))
    except Exception:
        pass

    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
