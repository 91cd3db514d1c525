from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from deploy_pipeline.api.deps import get_orchestrator
from deploy_pipeline.core.engine import PipelineOrchestrator
from deploy_pipeline.core.errors import InvalidEventError, InvalidTransitionError, RunNotFoundError
from deploy_pipeline.core.workflow import TriggerEvent
from deploy_pipeline.schemas.runs import RunResponse, TriggerRequest, TriggerResponse

router = APIRouter(prefix="/runs")

@router.post("", response_model=TriggerResponse, status_code=status.HTTP_202_ACCEPTED)
def trigger_run(req: TriggerRequest, response: Response, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    try:
        handle = orchestrator.submit(TriggerEvent(branch=req.branch, commit=req.commit))
    except InvalidEventError as e:
        # a push to another branch is a no-op, not an error
        response.status_code = status.HTTP_200_OK
        return TriggerResponse(accepted=False, detail=e.message)
    return TriggerResponse(accepted=True, run=RunResponse.model_validate(handle.run))

@router.get("", response_model=list[RunResponse])
def list_runs(limit: int = Query(20, ge=1, le=100), orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    return [RunResponse.model_validate(run) for run in orchestrator.list_runs(limit=limit)]

@router.get("/{run_id}", response_model=RunResponse)
def get_run(run_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    try:
        run = orchestrator.get(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Run not found")
    return RunResponse.model_validate(run)

@router.post("/{run_id}/cancel", response_model=RunResponse)
def cancel_run(run_id: str, orchestrator: PipelineOrchestrator = Depends(get_orchestrator)):
    try:
        run = orchestrator.cancel(run_id)
    except RunNotFoundError:
        raise HTTPException(status_code=404, detail="Run not found")
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return RunResponse.model_validate(run)
