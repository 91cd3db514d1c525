from deploy_pipeline.agents.base import BaseExecutor, require_source
from deploy_pipeline.collaborators.base import PackageInstaller, SourceControl
from deploy_pipeline.core.workflow import StageKind, StageOutcome

class CheckoutExecutor(BaseExecutor):
    kind = StageKind.CHECKOUT

    def __init__(self, source_control: SourceControl):
        self.source_control = source_control

    def execute(self, context):
        source_dir = self.source_control.checkout(
            context.event.commit, context.workspace.source_dir, log=context.log, timeout=context.remaining()
        )
        return StageOutcome.succeeded(f"Checked out {context.event.commit}", source_dir=source_dir)

class InstallExecutor(BaseExecutor):
    kind = StageKind.INSTALL

    def __init__(self, installer: PackageInstaller):
        self.installer = installer

    def execute(self, context):
        source_dir = require_source(context)
        self.installer.install(source_dir, log=context.log, timeout=context.remaining(), command=context.command)
        return StageOutcome.succeeded("Dependencies installed")
