from fastapi import APIRouter
from deploy_pipeline.api.routes_health import router as health_router
from deploy_pipeline.api.routes_runs import router as runs_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(runs_router, tags=["runs"])
