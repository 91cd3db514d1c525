from __future__ import annotations
import re
from pathlib import Path

from deploy_pipeline.core.errors import BuildError
from deploy_pipeline.core.process import run_command
from deploy_pipeline.core.workflow import ArtifactReference

# registry host (optional, may carry a port) followed by lowercase path components
_REPOSITORY_RE = re.compile(
    r"^(?:[a-zA-Z0-9.-]+(?::[0-9]+)?/)?[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*$"
)
_TAG_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")


def validate_reference(ref: ArtifactReference) -> None:
    if not _REPOSITORY_RE.match(ref.repository):
        raise BuildError(f"Invalid image repository: {ref.repository!r}")
    if not _TAG_RE.match(ref.tag):
        raise BuildError(f"Invalid image tag: {ref.tag!r}")


class DockerBuilder:
    """Builds an image from a Dockerfile with the docker CLI."""

    def __init__(self, docker_binary: str = "docker", dockerfile: str = "Dockerfile"):
        self.docker_binary = docker_binary
        self.dockerfile = dockerfile

    def build(self, source_dir: Path, ref: ArtifactReference, *, log=None, timeout=None) -> ArtifactReference:
        lines = log if log is not None else []
        validate_reference(ref)
        dockerfile = Path(source_dir) / self.dockerfile
        if not dockerfile.is_file():
            raise BuildError(f"Build config not found: {self.dockerfile}", log=lines)

        argv = [self.docker_binary, "build", "-f", str(dockerfile), "-t", str(ref), str(source_dir)]
        lines.append(f"$ {' '.join(argv)}")
        try:
            result = run_command(argv, cwd=source_dir, timeout=timeout)
        except OSError as e:
            lines.append(str(e))
            raise BuildError(f"Could not run {self.docker_binary}: {e}", log=lines) from e
        lines.extend(result.lines)
        if not result.ok:
            raise BuildError(
                f"Image build failed with exit code {result.returncode}",
                exit_code=result.returncode,
                log=lines,
            )
        return ref
