import time
from pathlib import Path
from git import Git, Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from deploy_pipeline.core.errors import CheckoutError, StageTimeoutError


class GitSourceControl:
    """Clones ``repo_url`` into the run workspace and checks out one commit.

    ``timeout`` bounds the whole checkout; each git command is killed once
    the time left runs out.
    """

    def __init__(self, repo_url: str):
        self.repo_url = repo_url

    def checkout(self, commit, dest, *, log=None, timeout=None):
        lines = log if log is not None else []
        dest = Path(dest)
        deadline = None if timeout is None else time.monotonic() + timeout

        def left():
            if deadline is None:
                return None
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise StageTimeoutError(f"Checkout of {commit} timed out after {timeout}s", log=lines)
            return remaining

        try:
            if (dest / ".git").exists():
                repo = Repo(dest)
                lines.append(f"Reusing checkout at {dest}")
                repo.git.fetch("origin", kill_after_timeout=left())
            else:
                lines.append(f"Cloning {self.repo_url} into {dest}")
                dest.parent.mkdir(parents=True, exist_ok=True)
                Git().clone(self.repo_url, str(dest), kill_after_timeout=left())
                repo = Repo(dest)
            repo.git.checkout(commit, kill_after_timeout=left())
            head = repo.head.commit.hexsha
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError) as e:
            lines.append(str(e))
            if deadline is not None and time.monotonic() >= deadline:
                raise StageTimeoutError(f"Checkout of {commit} timed out after {timeout}s", log=lines) from e
            raise CheckoutError(f"Failed to check out {commit}: {e}", log=lines) from e
        lines.append(f"HEAD is now at {head}")
        return dest
