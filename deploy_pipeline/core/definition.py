"""Pipeline definitions: the typed, ordered list of stages a Run walks through.

Definitions are validated when they are loaded so that a malformed file fails
before any Run is created.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from deploy_pipeline.core.config import Settings
from deploy_pipeline.core.errors import PipelineDefinitionError
from deploy_pipeline.core.process import split_command
from deploy_pipeline.core.workflow import StageKind

# kinds that need an earlier stage of another kind
_REQUIRES = {
    StageKind.INSTALL: StageKind.CHECKOUT,
    StageKind.TEST: StageKind.CHECKOUT,
    StageKind.BUILD: StageKind.CHECKOUT,
    StageKind.PUBLISH: StageKind.BUILD,
}


class StageSpec(BaseModel):
    """One stage of the pipeline."""

    name: str = Field("", description="Stage name, defaults to the kind")
    kind: StageKind = Field(..., description="Executor variant that runs this stage")
    command: Optional[Union[str, List[str]]] = Field(None, description="Command override for command-driven stages")
    timeout_s: Optional[float] = Field(None, gt=0, description="Seconds before the stage is failed with TimeoutError")

    @model_validator(mode="after")
    def default_name(self) -> "StageSpec":
        if not self.name:
            self.name = self.kind.value
        return self

    @property
    def argv(self) -> Optional[list[str]]:
        if self.command is None:
            return None
        return split_command(self.command)


class PipelineDefinition(BaseModel):
    """Ordered stage list plus the trigger filter and required secrets."""

    trigger_branch: str = Field("main", min_length=1)
    image_repository: str = Field("repo/app", min_length=1)
    image_tag: str = Field("latest", min_length=1)
    secrets: List[str] = Field(default_factory=list)
    stages: List[StageSpec] = Field(..., min_length=1)

    @field_validator("stages")
    @classmethod
    def validate_order(cls, stages: List[StageSpec]) -> List[StageSpec]:
        seen_names: set[str] = set()
        seen_kinds: set[StageKind] = set()
        for stage in stages:
            if stage.name in seen_names:
                raise ValueError(f"Duplicate stage name: {stage.name}")
            required = _REQUIRES.get(stage.kind)
            if required is not None and required not in seen_kinds:
                raise ValueError(f"Stage '{stage.name}' ({stage.kind.value}) must come after a {required.value} stage")
            seen_names.add(stage.name)
            seen_kinds.add(stage.kind)
        return stages

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]


def default_definition(settings: Settings) -> PipelineDefinition:
    """The push-to-deploy pipeline: checkout, install, test, build, publish."""
    return PipelineDefinition(
        trigger_branch=settings.trigger_branch,
        image_repository=settings.image_repository,
        image_tag=settings.image_tag,
        secrets=[settings.registry_username_secret, settings.registry_password_secret],
        stages=[
            StageSpec(kind=StageKind.CHECKOUT),
            StageSpec(kind=StageKind.INSTALL, command=settings.install_command),
            StageSpec(kind=StageKind.TEST, command=settings.test_command),
            StageSpec(kind=StageKind.BUILD),
            StageSpec(kind=StageKind.PUBLISH),
        ],
    )


def parse_definition(data: dict) -> PipelineDefinition:
    try:
        return PipelineDefinition(**data)
    except ValidationError as e:
        raise PipelineDefinitionError(f"Invalid pipeline definition: {e}") from e


def load_definition(path: Path) -> PipelineDefinition:
    """Load and validate a pipeline definition from YAML."""
    if not path.exists():
        raise PipelineDefinitionError(f"Pipeline file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PipelineDefinitionError(f"Invalid YAML in pipeline file: {e}") from e

    if not isinstance(data, dict):
        raise PipelineDefinitionError(f"Pipeline file must contain a mapping: {path}")
    return parse_definition(data)


def resolve_definition(settings: Settings, path: Optional[Path] = None) -> PipelineDefinition:
    if path is None and settings.pipeline_file:
        path = Path(settings.pipeline_file)
    if path is None:
        return default_definition(settings)
    return load_definition(path)
