from __future__ import annotations
from pathlib import Path
from typing import Sequence

from deploy_pipeline.core.errors import InstallError
from deploy_pipeline.core.process import run_command, split_command


class CommandInstaller:
    """Installs dependencies by running a package-manager command in the source tree."""

    def __init__(self, command: str | Sequence[str] = "npm ci"):
        self.command = split_command(command)

    def install(self, source_dir: Path, *, log=None, timeout=None, command=None) -> None:
        lines = log if log is not None else []
        argv = list(command or self.command)
        lines.append(f"$ {' '.join(argv)}")
        try:
            result = run_command(argv, cwd=source_dir, timeout=timeout)
        except OSError as e:
            lines.append(str(e))
            raise InstallError(f"Could not run {argv[0]}: {e}", log=lines) from e
        lines.extend(result.lines)
        if not result.ok:
            raise InstallError(
                f"Dependency install failed with exit code {result.returncode}",
                exit_code=result.returncode,
                log=lines,
            )
