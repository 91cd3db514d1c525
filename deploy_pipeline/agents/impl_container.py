from __future__ import annotations
import logging
from deploy_pipeline.agents.base import BaseExecutor, require_source
from deploy_pipeline.collaborators.base import ContainerBuilder, Registry
from deploy_pipeline.core.errors import AuthError, PublishError
from deploy_pipeline.core.workflow import ArtifactReference, StageKind, StageOutcome

log = logging.getLogger(__name__)


def _credentials(context, username_secret: str, password_secret: str) -> tuple[str, str]:
    try:
        return context.secrets[username_secret], context.secrets[password_secret]
    except KeyError as e:
        raise AuthError(f"Registry credential not resolved: {e.args[0]}") from None


class AuthenticateExecutor(BaseExecutor):
    """Logs in to the registry ahead of the build so bad credentials fail early."""
    kind = StageKind.AUTHENTICATE

    def __init__(self, registry: Registry, username_secret: str, password_secret: str):
        self.registry = registry
        self.username_secret = username_secret
        self.password_secret = password_secret

    def execute(self, context):
        username, password = _credentials(context, self.username_secret, self.password_secret)
        self.registry.login(username, password, log=context.log, timeout=context.remaining())
        return StageOutcome.succeeded("Logged in to registry")


class BuildExecutor(BaseExecutor):
    kind = StageKind.BUILD

    def __init__(self, builder: ContainerBuilder, repository: str, tag: str = "latest"):
        self.builder = builder
        self.repository = repository
        self.tag = tag

    def execute(self, context):
        source_dir = require_source(context)
        ref = ArtifactReference(self.repository, self.tag)
        artifact = self.builder.build(source_dir, ref, log=context.log, timeout=context.remaining())
        return StageOutcome.succeeded(f"Built {artifact}", artifact=artifact)


class PublishExecutor(BaseExecutor):
    """Pushes the built artifact, tagged ``tag`` (the build's own tag when None).

    Pushing overwrites an existing tag, so re-running a publish is always safe.
    """
    kind = StageKind.PUBLISH

    def __init__(self, registry: Registry, username_secret: str, password_secret: str, tag: str | None = None):
        self.registry = registry
        self.username_secret = username_secret
        self.password_secret = password_secret
        self.tag = tag

    def execute(self, context):
        artifact = context.artifact
        if artifact is None:
            raise PublishError("No artifact from a successful build stage to publish")

        username, password = _credentials(context, self.username_secret, self.password_secret)
        self.registry.login(username, password, log=context.log, timeout=context.remaining())

        target = artifact
        if self.tag and self.tag != artifact.tag:
            target = ArtifactReference(artifact.repository, self.tag)
            self.registry.tag(artifact, target, log=context.log, timeout=context.remaining())
            context.log.append(f"Tagged {artifact} as {target}")

        self.registry.push(target, log=context.log, timeout=context.remaining())
        log.info("Published %s", target, extra={"run_id": context.run_id, "stage": context.stage_name})
        return StageOutcome.succeeded(f"Published {target}", artifact=target)
