from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from deploy_pipeline.core.workflow import RunStatus, StageStatus

class TriggerRequest(BaseModel):
    branch: str = Field(..., min_length=1, examples=["main"])
    commit: str = Field(..., min_length=1, examples=["abc123"])

class StageResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    stage: str
    status: StageStatus
    log: List[str] = []
    exit_code: Optional[int] = None
    error_kind: Optional[str] = None
    message: Optional[str] = None
    artifact: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class RunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    branch: str
    commit: str
    status: RunStatus
    cancel_requested: bool = False
    error_message: Optional[str] = None
    artifact: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    stage_results: List[StageResultResponse] = []

class TriggerResponse(BaseModel):
    accepted: bool
    detail: Optional[str] = None
    run: Optional[RunResponse] = None
