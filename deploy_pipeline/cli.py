"""
Command-line entry point.

Usage:
    deploy-pipeline run --branch main --commit abc123 [--pipeline pipeline.yaml]
    deploy-pipeline status --run-id <id>

Exit codes: 0 pipeline succeeded, 1 pipeline failed or was cancelled,
2 invalid invocation (bad arguments, filtered branch, unknown run id).
"""
import argparse
import logging
import sys
from pathlib import Path
from deploy_pipeline.core.config import settings
from deploy_pipeline.core.engine import build_orchestrator
from deploy_pipeline.core.errors import InvalidEventError, PipelineDefinitionError, RunNotFoundError
from deploy_pipeline.core.logging import configure_logging
from deploy_pipeline.core.workflow import RunStatus, TriggerEvent
from deploy_pipeline.db.session import Base, SessionLocal, engine

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2

STATUS_MARKS = {
    "succeeded": "✓",
    "failed": "✗",
    "skipped": "-",
    "running": "…",
}


def print_run(run) -> None:
    print(f"Run {run.id}")
    print(f"  trigger:  {run.branch}@{run.commit}")
    print(f"  status:   {run.status.value}")
    if run.artifact:
        print(f"  artifact: {run.artifact}")
    if run.error_message:
        print(f"  error:    {run.error_message}")
    print("  stages:")
    for result in run.stage_results:
        line = f"    {STATUS_MARKS.get(result.status.value, '?')} {result.stage:<14} {result.status.value}"
        if result.error_kind:
            line += f" [{result.error_kind}]"
        if result.message and result.status.value == "failed":
            line += f" {result.message}"
        print(line)


def cmd_run(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        try:
            orchestrator = build_orchestrator(db, settings, pipeline_file=args.pipeline)
        except PipelineDefinitionError as e:
            print(f"Invalid pipeline definition: {e}", file=sys.stderr)
            return EXIT_USAGE
        try:
            handle = orchestrator.submit(TriggerEvent(branch=args.branch, commit=args.commit))
        except InvalidEventError as e:
            print(f"Not triggered: {e.message}", file=sys.stderr)
            return EXIT_USAGE
        run = handle.refresh()
        print_run(run)
        return EXIT_OK if run.status is RunStatus.SUCCEEDED else EXIT_FAILED
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        try:
            orchestrator = build_orchestrator(db, settings)
        except PipelineDefinitionError as e:
            print(f"Invalid pipeline definition: {e}", file=sys.stderr)
            return EXIT_USAGE
        try:
            run = orchestrator.get(args.run_id)
        except RunNotFoundError as e:
            print(str(e), file=sys.stderr)
            return EXIT_USAGE
        print_run(run)
        return EXIT_OK
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deploy-pipeline", description="Run the push-to-deploy pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Trigger a pipeline run for a push")
    run_p.add_argument("--branch", required=True, help="Branch that was pushed")
    run_p.add_argument("--commit", required=True, help="Commit hash to build")
    run_p.add_argument("--pipeline", type=Path, default=None, help="Pipeline definition YAML")
    run_p.set_defaults(func=cmd_run)

    status_p = sub.add_parser("status", help="Show a run and its stage outcomes")
    status_p.add_argument("--run-id", required=True, help="Run id printed by 'run'")
    status_p.set_defaults(func=cmd_status)
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.WARNING)
    Base.metadata.create_all(bind=engine)
    return args.func(args)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
