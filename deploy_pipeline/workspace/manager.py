from __future__ import annotations
import shutil
from pathlib import Path
from deploy_pipeline.core.config import settings


class WorkspaceManager:
    """Scratch directory owned by a single Run."""

    def __init__(self, run_id: str, base_dir: str | Path | None = None):
        self.run_id = run_id
        self.root = Path(base_dir or settings.workspaces_dir) / run_id

    @property
    def source_dir(self) -> Path:
        return self.root / "source"

    def ensure(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def cleanup(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)
