from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional
from deploy_pipeline.core.config import Settings
from deploy_pipeline.core.definition import PipelineDefinition
from deploy_pipeline.core.errors import PipelineDefinitionError
from deploy_pipeline.core.workflow import StageKind
from deploy_pipeline.agents.base import BaseExecutor
from deploy_pipeline.agents.impl_source import CheckoutExecutor, InstallExecutor
from deploy_pipeline.agents.impl_test import TestRunnerExecutor
from deploy_pipeline.agents.impl_container import AuthenticateExecutor, BuildExecutor, PublishExecutor
from deploy_pipeline.collaborators import (
    CommandInstaller,
    ContainerBuilder,
    DockerBuilder,
    DockerRegistry,
    GitSourceControl,
    PackageInstaller,
    Registry,
    SourceControl,
)

@dataclass
class ExecutorRegistry:
    mapping: Dict[StageKind, BaseExecutor]

    def get(self, kind: StageKind) -> BaseExecutor:
        return self.mapping[kind]

    def check(self, definition: PipelineDefinition) -> None:
        missing = sorted({s.kind.value for s in definition.stages} - {k.value for k in self.mapping})
        if missing:
            raise PipelineDefinitionError(f"No executor registered for stage kinds: {', '.join(missing)}")

    @staticmethod
    def build(
        definition: PipelineDefinition,
        settings: Settings,
        *,
        source_control: Optional[SourceControl] = None,
        installer: Optional[PackageInstaller] = None,
        builder: Optional[ContainerBuilder] = None,
        registry: Optional[Registry] = None,
    ) -> "ExecutorRegistry":
        source_control = source_control or GitSourceControl(settings.repo_url)
        installer = installer or CommandInstaller(settings.install_command)
        builder = builder or DockerBuilder(settings.docker_binary, settings.dockerfile)
        registry = registry or DockerRegistry(settings.docker_binary, settings.registry_host)
        username, password = settings.registry_username_secret, settings.registry_password_secret
        return ExecutorRegistry(mapping={
            StageKind.CHECKOUT: CheckoutExecutor(source_control),
            StageKind.INSTALL: InstallExecutor(installer),
            StageKind.TEST: TestRunnerExecutor(settings.test_command),
            StageKind.AUTHENTICATE: AuthenticateExecutor(registry, username, password),
            StageKind.BUILD: BuildExecutor(builder, definition.image_repository, definition.image_tag),
            StageKind.PUBLISH: PublishExecutor(registry, username, password, definition.image_tag),
        })
