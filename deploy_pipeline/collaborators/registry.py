from __future__ import annotations
from typing import Optional

from deploy_pipeline.core.errors import AuthError, PublishError
from deploy_pipeline.core.process import run_command
from deploy_pipeline.core.workflow import ArtifactReference


class DockerRegistry:
    """Talks to a container registry through the docker CLI.

    ``docker push`` of an existing tag overwrites it, so pushing the same
    reference twice is safe.
    """

    def __init__(self, docker_binary: str = "docker", host: Optional[str] = None):
        self.docker_binary = docker_binary
        self.host = host

    def login(self, username: str, password: str, *, log=None, timeout=None) -> None:
        lines = log if log is not None else []
        argv = [self.docker_binary, "login", "--username", username, "--password-stdin"]
        if self.host:
            argv.append(self.host)
        lines.append(f"$ {' '.join(argv)}")
        try:
            result = run_command(argv, input=password, timeout=timeout)
        except OSError as e:
            raise AuthError(f"Could not run {self.docker_binary}: {e}", log=lines) from e
        lines.extend(result.lines)
        if not result.ok:
            raise AuthError(
                f"Registry login failed for {self.host or 'default registry'}",
                exit_code=result.returncode,
                log=lines,
            )

    def tag(self, source: ArtifactReference, target: ArtifactReference, *, log=None, timeout=None) -> None:
        lines = log if log is not None else []
        argv = [self.docker_binary, "tag", str(source), str(target)]
        lines.append(f"$ {' '.join(argv)}")
        try:
            result = run_command(argv, timeout=timeout)
        except OSError as e:
            lines.append(str(e))
            raise PublishError(f"Could not run {self.docker_binary}: {e}", log=lines) from e
        lines.extend(result.lines)
        if not result.ok:
            raise PublishError(f"Could not tag {source} as {target}", exit_code=result.returncode, log=lines)

    def push(self, ref: ArtifactReference, *, log=None, timeout=None) -> None:
        lines = log if log is not None else []
        argv = [self.docker_binary, "push", str(ref)]
        lines.append(f"$ {' '.join(argv)}")
        try:
            result = run_command(argv, timeout=timeout)
        except OSError as e:
            raise PublishError(f"Could not run {self.docker_binary}: {e}", log=lines) from e
        lines.extend(result.lines)
        if not result.ok:
            raise PublishError(
                f"Push of {ref} failed with exit code {result.returncode}",
                exit_code=result.returncode,
                log=lines,
            )
