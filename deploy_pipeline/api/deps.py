from fastapi import Depends
from sqlalchemy.orm import Session
from deploy_pipeline.core.config import settings
from deploy_pipeline.core.engine import PipelineOrchestrator, build_orchestrator
from deploy_pipeline.db.session import get_db


def _enqueue(run_id: str) -> None:
    from deploy_pipeline.tasks.runs import execute_run
    execute_run.delay(run_id)


def get_orchestrator(db: Session = Depends(get_db)) -> PipelineOrchestrator:
    return build_orchestrator(db, settings, dispatcher=_enqueue)
