from __future__ import annotations
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Mapping, Optional

from deploy_pipeline.core.errors import StageTimeoutError

if TYPE_CHECKING:
    from deploy_pipeline.workspace.manager import WorkspaceManager


class StageKind(str, Enum):
    CHECKOUT = "checkout"
    INSTALL = "install"
    TEST = "test"
    AUTHENTICATE = "authenticate"
    BUILD = "build"
    PUBLISH = "publish"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class StageStatus(str, Enum):
    SKIPPED = "skipped"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED})

# pending -> running -> {succeeded | failed | cancelled}; a pending run may be cancelled before it starts
ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING, RunStatus.CANCELLED}),
    RunStatus.RUNNING: frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED}),
    RunStatus.SUCCEEDED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
}


@dataclass(frozen=True)
class TriggerEvent:
    branch: str
    commit: str


@dataclass(frozen=True)
class ArtifactReference:
    repository: str
    tag: str = "latest"

    def __str__(self) -> str:
        return f"{self.repository}:{self.tag}"


@dataclass
class StageContext:
    """Accumulated state handed to each executor of a single Run."""
    run_id: str
    event: TriggerEvent
    workspace: WorkspaceManager
    secrets: Mapping[str, str]
    stage_name: str = ""
    command: Optional[list[str]] = None
    timeout_s: Optional[float] = None
    # time.monotonic() value at which the current stage runs out of time
    deadline: Optional[float] = None
    source_dir: Optional[Path] = None
    artifact: Optional[ArtifactReference] = None
    log: list[str] = field(default_factory=list)

    def remaining(self) -> Optional[float]:
        """Seconds left for the current stage; None when it is unbounded.

        Every command a stage starts gets this value as its timeout, so the
        commands of one stage share a single budget.
        """
        if self.deadline is None:
            return None
        left = self.deadline - time.monotonic()
        if left <= 0:
            raise StageTimeoutError(f"Stage '{self.stage_name}' exceeded its {self.timeout_s}s timeout", log=self.log)
        return left


@dataclass(frozen=True)
class StageOutcome:
    ok: bool
    message: str
    log: list[str] = field(default_factory=list)
    exit_code: Optional[int] = None
    artifact: Optional[ArtifactReference] = None
    source_dir: Optional[Path] = None
    error_kind: Optional[str] = None

    @classmethod
    def succeeded(cls, message: str, *, log=None, exit_code: int | None = 0,
                  artifact: ArtifactReference | None = None, source_dir: Path | None = None) -> "StageOutcome":
        return cls(True, message, list(log or []), exit_code, artifact, source_dir)

    @classmethod
    def failed(cls, message: str, *, log=None, exit_code: int | None = None,
               error_kind: str | None = None) -> "StageOutcome":
        return cls(False, message, list(log or []), exit_code, error_kind=error_kind)
