"""Shared fixtures: a throwaway SQLite database and in-process collaborator fakes."""
import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from deploy_pipeline.agents.registry import ExecutorRegistry
from deploy_pipeline.core.config import Settings
from deploy_pipeline.core.definition import PipelineDefinition, StageSpec
from deploy_pipeline.core.engine import PipelineOrchestrator
from deploy_pipeline.core.errors import AuthError, BuildError, CheckoutError, InstallError, PublishError
from deploy_pipeline.core.secrets import StaticSecretResolver
from deploy_pipeline.core.workflow import StageKind
from deploy_pipeline.db.session import Base, make_engine
from deploy_pipeline.workspace.manager import WorkspaceManager

USERNAME = "deploy-bot"
PASSWORD = "s3cr3t-token-value"

PASSING_TESTS = [sys.executable, "-c", "print('3 passed in 0.01s')"]
FAILING_TESTS = [sys.executable, "-c", "import sys; print('1 failed, 2 passed'); sys.exit(1)"]


class FakeSourceControl:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def checkout(self, commit, dest, *, log=None, timeout=None):
        self.calls.append(commit)
        if self.fail:
            raise CheckoutError(f"unknown revision {commit}")
        dest = Path(dest)
        dest.mkdir(parents=True, exist_ok=True)
        (dest / "Dockerfile").write_text("FROM nginx:alpine\nCOPY index.html /usr/share/nginx/html/\n")
        (dest / "index.html").write_text("<h1>hello</h1>\n")
        if log is not None:
            log.append(f"HEAD is now at {commit}")
        return dest


class FakeInstaller:
    def __init__(self, fail=False, side_effect=None):
        self.fail = fail
        self.side_effect = side_effect
        self.calls = []

    def install(self, source_dir, *, log=None, timeout=None, command=None):
        self.calls.append(source_dir)
        if self.side_effect is not None:
            self.side_effect()
        if log is not None:
            log.append("added 57 packages in 1s")
        if self.fail:
            raise InstallError("npm ERR! could not resolve dependency express@^9", exit_code=1, log=log)


class FakeBuilder:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def build(self, source_dir, ref, *, log=None, timeout=None):
        self.calls.append(ref)
        if self.fail:
            raise BuildError("Image build failed with exit code 1", exit_code=1)
        if log is not None:
            log.append(f"Successfully tagged {ref}")
        return ref


class FakeRegistry:
    """Registry keeping the pushed images in a dict keyed by (repository, tag)."""

    def __init__(self, username=USERNAME, password=PASSWORD, fail_push=False):
        self.username = username
        self.password = password
        self.fail_push = fail_push
        self.logged_in = False
        self.images = {}
        self.push_calls = 0
        self.tags = []

    def login(self, username, password, *, log=None, timeout=None):
        if (username, password) != (self.username, self.password):
            raise AuthError("unauthorized: incorrect username or password", exit_code=1)
        self.logged_in = True
        if log is not None:
            log.append("Login Succeeded")

    def tag(self, source, target, *, log=None, timeout=None):
        self.tags.append((str(source), str(target)))

    def push(self, ref, *, log=None, timeout=None):
        self.push_calls += 1
        if not self.logged_in:
            raise PublishError("denied: requested access to the resource is denied")
        if self.fail_push:
            raise PublishError("connection reset by peer", exit_code=1)
        self.images[(ref.repository, ref.tag)] = f"digest-of-{ref}"
        if log is not None:
            log.append(f"{ref.tag}: digest: digest-of-{ref}")


def make_definition(test_command=None, *, extra_stages=(), timeouts=None, trigger_branch="main"):
    timeouts = timeouts or {}
    stages = [
        StageSpec(kind=StageKind.CHECKOUT, timeout_s=timeouts.get("checkout")),
        StageSpec(kind=StageKind.INSTALL, timeout_s=timeouts.get("install")),
        StageSpec(kind=StageKind.TEST, command=test_command or PASSING_TESTS, timeout_s=timeouts.get("test")),
        *extra_stages,
        StageSpec(kind=StageKind.BUILD),
        StageSpec(kind=StageKind.PUBLISH),
    ]
    return PipelineDefinition(
        trigger_branch=trigger_branch,
        image_repository="repo/app",
        image_tag="latest",
        secrets=["REGISTRY_USERNAME", "REGISTRY_PASSWORD"],
        stages=stages,
    )


class Collaborators:
    def __init__(self):
        self.source = FakeSourceControl()
        self.installer = FakeInstaller()
        self.builder = FakeBuilder()
        self.registry = FakeRegistry()


@pytest.fixture
def db_engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'runs.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fakes():
    return Collaborators()


@pytest.fixture
def secrets():
    return StaticSecretResolver({"REGISTRY_USERNAME": USERNAME, "REGISTRY_PASSWORD": PASSWORD})


@pytest.fixture
def make_orchestrator(tmp_path, fakes, secrets):
    """Factory building an orchestrator over the fakes; keyword arguments override the defaults."""

    def factory(db, definition=None, *, dispatcher=None, secret_resolver=None, default_timeout_s=None,
                workspace_factory=None, keep_workspaces=False):
        definition = definition or make_definition()
        registry = ExecutorRegistry.build(
            definition,
            Settings(),
            source_control=fakes.source,
            installer=fakes.installer,
            builder=fakes.builder,
            registry=fakes.registry,
        )
        return PipelineOrchestrator(
            db,
            definition,
            registry,
            secret_resolver or secrets,
            dispatcher=dispatcher,
            workspace_factory=workspace_factory or (lambda run_id: WorkspaceManager(run_id, tmp_path / "workspaces")),
            default_timeout_s=default_timeout_s,
            keep_workspaces=keep_workspaces,
        )

    return factory
