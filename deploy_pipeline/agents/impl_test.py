from deploy_pipeline.agents.base import BaseExecutor, require_source
from deploy_pipeline.core.process import run_command, split_command
from deploy_pipeline.core.workflow import StageKind, StageOutcome

class TestRunnerExecutor(BaseExecutor):
    """Runs the validation suite; a non-zero exit fails the stage."""
    __test__ = False
    kind = StageKind.TEST

    def __init__(self, command="npm test"):
        self.command = split_command(command)

    def execute(self, context):
        source_dir = require_source(context)
        argv = context.command or self.command
        context.log.append(f"$ {' '.join(argv)}")
        result = run_command(argv, cwd=source_dir, timeout=context.remaining())
        context.log.extend(result.lines)
        if not result.ok:
            return StageOutcome.failed(
                f"Tests failed with exit code {result.returncode}",
                exit_code=result.returncode,
            )
        return StageOutcome.succeeded("Tests passed", exit_code=result.returncode)
