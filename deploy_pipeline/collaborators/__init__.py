from deploy_pipeline.collaborators.base import ContainerBuilder, PackageInstaller, Registry, SourceControl
from deploy_pipeline.collaborators.container import DockerBuilder
from deploy_pipeline.collaborators.packages import CommandInstaller
from deploy_pipeline.collaborators.registry import DockerRegistry
from deploy_pipeline.collaborators.source import GitSourceControl

__all__ = [
    "CommandInstaller",
    "ContainerBuilder",
    "DockerBuilder",
    "DockerRegistry",
    "GitSourceControl",
    "PackageInstaller",
    "Registry",
    "SourceControl",
]
