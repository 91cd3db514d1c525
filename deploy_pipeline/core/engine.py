from __future__ import annotations
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.orm import Session
from deploy_pipeline.core.config import Settings
from deploy_pipeline.core.definition import PipelineDefinition, StageSpec, resolve_definition
from deploy_pipeline.core.errors import (
    InvalidEventError,
    InvalidTransitionError,
    NotFoundError,
    PipelineError,
    RunNotFoundError,
    StageTimeoutError,
    UnexpectedStageFault,
)
from deploy_pipeline.core.logging import masking
from deploy_pipeline.core.secrets import EnvSecretResolver, SecretResolver, redact, redact_lines, resolve_all
from deploy_pipeline.core.workflow import (
    ALLOWED_TRANSITIONS,
    RunStatus,
    StageContext,
    StageOutcome,
    StageStatus,
    TriggerEvent,
)
from deploy_pipeline.db.models import PipelineRun, StageResult
from deploy_pipeline.workspace.manager import WorkspaceManager
from deploy_pipeline.agents.registry import ExecutorRegistry

log = logging.getLogger(__name__)

Dispatcher = Callable[[str], None]


def transition(run: PipelineRun, status: RunStatus) -> None:
    if status not in ALLOWED_TRANSITIONS[run.status]:
        raise InvalidTransitionError(f"Run {run.id}: {run.status.value} -> {status.value} is not allowed")
    run.status = status
    if status is RunStatus.RUNNING:
        run.started_at = datetime.utcnow()
    elif status.terminal:
        run.finished_at = datetime.utcnow()


def fail_run(db: Session, run: PipelineRun, message: str, stage_names: Sequence[str] = ()) -> None:
    """Close out a Run that stopped outside of a stage.

    A result left ``running`` is failed with ``message``, every stage without
    a result is recorded ``skipped`` and the Run ends ``failed``.
    """
    now = datetime.utcnow()
    for result in run.stage_results:
        if result.status is StageStatus.RUNNING:
            result.status = StageStatus.FAILED
            result.error_kind = UnexpectedStageFault.kind
            result.message = message
            result.finished_at = now
    start = len(run.stage_results)
    for position, name in enumerate(stage_names[start:], start=start):
        run.stage_results.append(StageResult(position=position, stage=name, status=StageStatus.SKIPPED, log=[]))
    run.error_message = message
    if run.status is RunStatus.PENDING:
        transition(run, RunStatus.RUNNING)
    transition(run, RunStatus.FAILED)
    db.commit()


class RunHandle:
    """Caller's view of a submitted Run."""

    def __init__(self, orchestrator: "PipelineOrchestrator", run_id: str):
        self.orchestrator = orchestrator
        self.run_id = run_id

    @property
    def run(self) -> PipelineRun:
        return self.orchestrator.get(self.run_id)

    @property
    def status(self) -> RunStatus:
        return self.refresh().status

    def refresh(self) -> PipelineRun:
        run = self.orchestrator.get(self.run_id)
        self.orchestrator.db.refresh(run)
        return run

    def cancel(self) -> PipelineRun:
        return self.orchestrator.cancel(self.run_id)


class PipelineOrchestrator:
    """Walks a Run through the pipeline's stages, halting at the first failure.

    ``dispatcher`` receives the id of every accepted Run; when it is None the
    Run executes inline inside ``submit``.
    """

    def __init__(
        self,
        db: Session,
        definition: PipelineDefinition,
        registry: ExecutorRegistry,
        secrets: SecretResolver,
        *,
        dispatcher: Optional[Dispatcher] = None,
        workspace_factory: Callable[[str], WorkspaceManager] = WorkspaceManager,
        default_timeout_s: Optional[float] = None,
        keep_workspaces: bool = False,
    ):
        registry.check(definition)
        self.db = db
        self.definition = definition
        self.registry = registry
        self.secrets = secrets
        self.dispatcher = dispatcher
        self.workspace_factory = workspace_factory
        self.default_timeout_s = default_timeout_s
        self.keep_workspaces = keep_workspaces

    # -- public API -------------------------------------------------------

    def submit(self, event: TriggerEvent) -> RunHandle:
        if event.branch != self.definition.trigger_branch:
            log.info("Ignoring push to %s (trigger branch is %s)", event.branch, self.definition.trigger_branch,
                     extra={"run_id": "-", "stage": "-"})
            raise InvalidEventError(
                f"Branch '{event.branch}' does not match trigger branch '{self.definition.trigger_branch}'"
            )
        if not event.commit:
            raise InvalidEventError("Trigger event has no commit")

        run = PipelineRun(branch=event.branch, commit=event.commit, status=RunStatus.PENDING, cancel_requested=False)
        self.db.add(run)
        self.db.commit()
        log.info("Accepted push %s@%s", event.branch, event.commit, extra={"run_id": run.id, "stage": "-"})

        if self.dispatcher is None:
            self.execute(run.id)
        else:
            self.dispatcher(run.id)
        return RunHandle(self, run.id)

    def get(self, run_id: str) -> PipelineRun:
        run = self.db.get(PipelineRun, run_id)
        if run is None:
            raise RunNotFoundError(f"Run not found: {run_id}")
        return run

    def list_runs(self, limit: int = 20) -> list[PipelineRun]:
        stmt = select(PipelineRun).order_by(PipelineRun.created_at.desc()).limit(limit)
        return list(self.db.scalars(stmt))

    def cancel(self, run_id: str) -> PipelineRun:
        run = self.get(run_id)
        self.db.refresh(run)
        if run.status.terminal:
            raise InvalidTransitionError(f"Run {run_id} is already {run.status.value}")
        if run.status is RunStatus.PENDING:
            self._skip_from(run, 0)
            self._set_status(run, RunStatus.CANCELLED)
        else:
            # honoured before the next stage starts
            run.cancel_requested = True
            self.db.commit()
        log.info("Cancellation requested", extra={"run_id": run_id, "stage": "-"})
        return run

    def execute(self, run_id: str) -> PipelineRun:
        run = self.get(run_id)
        self.db.refresh(run)
        if run.status is RunStatus.CANCELLED:
            log.info("Run was cancelled before it started", extra={"run_id": run_id, "stage": "-"})
            return run
        self._set_status(run, RunStatus.RUNNING)

        ws = self.workspace_factory(run.id)
        secrets: dict[str, str] = {}
        try:
            ws.ensure()
            try:
                secrets = resolve_all(self.secrets, self.definition.secrets)
            except NotFoundError as e:
                log.error("Secret resolution failed: %s", e.message, extra={"run_id": run_id, "stage": "-"})
                self._abort(run, e.message)
                return run

            context = StageContext(
                run_id=run.id,
                event=TriggerEvent(run.branch, run.commit),
                workspace=ws,
                secrets=secrets,
            )
            with masking(secrets.values()):
                self._run_stages(run, context)
        except Exception as e:
            with masking(secrets.values()):
                log.exception("Run aborted outside of a stage", extra={"run_id": run_id, "stage": "-"})
            self._abort(run, redact(f"{type(e).__name__}: {e}", secrets))
        finally:
            if not self.keep_workspaces:
                ws.cleanup()
        return run

    # -- internals --------------------------------------------------------

    def _set_status(self, run: PipelineRun, status: RunStatus) -> None:
        transition(run, status)
        self.db.commit()

    def _abort(self, run: PipelineRun, message: str) -> None:
        self.db.rollback()
        self.db.refresh(run)
        if run.status.terminal:
            return
        fail_run(self.db, run, message, self.definition.stage_names)

    def _skip_from(self, run: PipelineRun, start: int) -> None:
        for position, spec in enumerate(self.definition.stages[start:], start=start):
            run.stage_results.append(StageResult(position=position, stage=spec.name, status=StageStatus.SKIPPED, log=[]))
        self.db.commit()

    def _run_stages(self, run: PipelineRun, context: StageContext) -> None:
        for position, spec in enumerate(self.definition.stages):
            # another session may have asked for cancellation
            self.db.refresh(run, attribute_names=["cancel_requested"])
            if run.cancel_requested:
                log.info("Cancelling before stage", extra={"run_id": run.id, "stage": spec.name})
                self._skip_from(run, position)
                self._set_status(run, RunStatus.CANCELLED)
                return

            result = self._run_stage(run, position, spec, context)
            if result.status is StageStatus.FAILED:
                log.error("Stage failed: %s", result.message, extra={"run_id": run.id, "stage": spec.name})
                run.error_message = result.message
                self._skip_from(run, position + 1)
                self._set_status(run, RunStatus.FAILED)
                return

        log.info("Pipeline succeeded", extra={"run_id": run.id, "stage": "-"})
        self._set_status(run, RunStatus.SUCCEEDED)

    def _run_stage(self, run: PipelineRun, position: int, spec: StageSpec, context: StageContext) -> StageResult:
        result = StageResult(
            position=position,
            stage=spec.name,
            status=StageStatus.RUNNING,
            log=[],
            started_at=datetime.utcnow(),
        )
        run.stage_results.append(result)
        self.db.commit()

        context.stage_name = spec.name
        context.command = spec.argv
        context.timeout_s = spec.timeout_s or self.default_timeout_s
        context.deadline = None
        context.log = []
        log.info("Running stage", extra={"run_id": run.id, "stage": spec.name})

        executor = self.registry.get(spec.kind)
        try:
            outcome = self._call(executor, context)
        except PipelineError as e:
            if e.log is not context.log:
                context.log.extend(e.log)
            outcome = StageOutcome.failed(e.message, exit_code=e.exit_code, error_kind=e.kind)
        except Exception as e:
            log.exception("Unexpected fault in stage", extra={"run_id": run.id, "stage": spec.name})
            outcome = StageOutcome.failed(f"{type(e).__name__}: {e}", error_kind=UnexpectedStageFault.kind)

        if outcome.ok:
            if outcome.source_dir is not None:
                context.source_dir = outcome.source_dir
            if outcome.artifact is not None:
                context.artifact = outcome.artifact
                run.artifact = str(outcome.artifact)

        lines = list(context.log) + list(outcome.log)
        result.log = redact_lines(lines, context.secrets)
        result.message = redact(outcome.message, context.secrets)
        result.exit_code = outcome.exit_code
        result.error_kind = outcome.error_kind
        result.artifact = str(outcome.artifact) if outcome.artifact is not None else None
        result.status = StageStatus.SUCCEEDED if outcome.ok else StageStatus.FAILED
        result.finished_at = datetime.utcnow()
        self.db.commit()
        return result

    def _call(self, executor, context: StageContext) -> StageOutcome:
        timeout = context.timeout_s
        if timeout is None:
            return executor.execute(context)
        context.deadline = time.monotonic() + timeout
        done: dict = {}

        def target():
            try:
                done["outcome"] = executor.execute(context)
            except BaseException as e:
                done["error"] = e

        # daemon, so a stage that overran cannot hold the process open on exit
        worker = threading.Thread(target=target, name=f"stage-{context.stage_name}", daemon=True)
        worker.start()
        worker.join(timeout)
        if worker.is_alive():
            # the abandoned worker may still append to the old list
            context.log = list(context.log)
            raise StageTimeoutError(f"Stage '{context.stage_name}' exceeded its {timeout}s timeout")
        if "error" in done:
            raise done["error"]
        return done["outcome"]


def build_orchestrator(
    db: Session,
    settings: Settings,
    *,
    pipeline_file: Optional[Path] = None,
    dispatcher: Optional[Dispatcher] = None,
    secrets: Optional[SecretResolver] = None,
) -> PipelineOrchestrator:
    """Wire an orchestrator from settings with the git/docker collaborators."""
    definition = resolve_definition(settings, pipeline_file)
    return PipelineOrchestrator(
        db,
        definition,
        ExecutorRegistry.build(definition, settings),
        secrets or EnvSecretResolver(),
        dispatcher=dispatcher,
        workspace_factory=lambda run_id: WorkspaceManager(run_id, settings.workspaces_dir),
        default_timeout_s=settings.default_stage_timeout_s,
        keep_workspaces=settings.keep_workspaces,
    )
