from __future__ import annotations
import logging
from sqlalchemy.orm import Session
from deploy_pipeline.tasks.celery_app import celery_app
from deploy_pipeline.db.session import SessionLocal
from deploy_pipeline.db.models import PipelineRun
from deploy_pipeline.core.config import settings
from deploy_pipeline.core.engine import build_orchestrator, fail_run
from deploy_pipeline.core.workflow import RunStatus

log = logging.getLogger(__name__)

@celery_app.task(name="execute_pipeline_run")
def execute_run(run_id: str) -> str | None:
    db: Session = SessionLocal()
    orchestrator = None
    try:
        run = db.get(PipelineRun, run_id)
        if not run:
            log.error("Run not found", extra={"run_id": run_id, "stage": "-"})
            return None

        log.info("Starting pipeline", extra={"run_id": run_id, "stage": "-"})
        orchestrator = build_orchestrator(db, settings)
        run = orchestrator.execute(run_id)
        return run.status.value

    except Exception as e:
        log.exception("Pipeline run crashed", extra={"run_id": run_id, "stage": "-"})
        db.rollback()
        run = db.get(PipelineRun, run_id)
        if run and not run.status.terminal:
            stage_names = orchestrator.definition.stage_names if orchestrator is not None else []
            fail_run(db, run, str(e), stage_names)
        return RunStatus.FAILED.value
    finally:
        db.close()
