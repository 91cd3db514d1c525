from deploy_pipeline.core.errors import UnexpectedStageFault
from deploy_pipeline.core.workflow import StageContext, StageKind, StageOutcome

class BaseExecutor:
    kind: StageKind
    def execute(self, context: StageContext) -> StageOutcome:
        raise NotImplementedError

def require_source(context: StageContext):
    if context.source_dir is None:
        raise UnexpectedStageFault(f"Stage '{context.stage_name}' needs a checked-out source tree")
    return context.source_dir
