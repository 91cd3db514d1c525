"""Narrow interfaces to the external systems a pipeline drives.

Every method may append human-readable output to ``log`` and raises the
declared error of its stage on failure.
"""
from __future__ import annotations
from pathlib import Path
from typing import Optional, Protocol

from deploy_pipeline.core.workflow import ArtifactReference


class SourceControl(Protocol):
    def checkout(self, commit: str, dest: Path, *, log: Optional[list[str]] = None,
                 timeout: Optional[float] = None) -> Path:
        ...


class PackageInstaller(Protocol):
    def install(self, source_dir: Path, *, log: Optional[list[str]] = None,
                timeout: Optional[float] = None, command: Optional[list[str]] = None) -> None:
        ...


class ContainerBuilder(Protocol):
    def build(self, source_dir: Path, ref: ArtifactReference, *, log: Optional[list[str]] = None,
              timeout: Optional[float] = None) -> ArtifactReference:
        ...


class Registry(Protocol):
    def login(self, username: str, password: str, *, log: Optional[list[str]] = None,
              timeout: Optional[float] = None) -> None:
        ...

    def tag(self, source: ArtifactReference, target: ArtifactReference, *, log: Optional[list[str]] = None,
            timeout: Optional[float] = None) -> None:
        ...

    def push(self, ref: ArtifactReference, *, log: Optional[list[str]] = None,
             timeout: Optional[float] = None) -> None:
        ...
