"""Pytest configuration for tspublish tests."""

import json
import logging
import os

import pytest
from fakes import REPO_URL, FakeEngine, FakeGit, FakeTokens

from tspublish import Collaborators, LocalTree, Pipeline, PipelineConfig


@pytest.fixture(autouse=True)
def reset_state(monkeypatch: pytest.MonkeyPatch):
    """Reset output state between tests and disable colors and GHA markers."""
    from tspublish.output import reset_output_manager

    # Rich ignores NO_COLOR when FORCE_COLOR is set
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("GITHUB_ACTIONS", raising=False)
    for name in ("NPM_TOKEN", "ACTIONS_ID_TOKEN_REQUEST_URL", "ACTIONS_ID_TOKEN_REQUEST_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    for name in [name for name in os.environ if name.upper().startswith("TSPUBLISH_")]:
        monkeypatch.delenv(name)

    reset_output_manager()
    _remove_log_handlers()
    yield
    reset_output_manager()
    _remove_log_handlers()


def _remove_log_handlers():
    # The CLI attaches its handler to whatever stderr is current, which CliRunner closes afterwards
    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, "_tspublish", False)]:
        root.removeHandler(handler)


@pytest.fixture
def package_dir(tmp_path):
    """A minimal bun package: manifest, lockfile, and one source file."""
    root = tmp_path / "pkg"
    root.mkdir()
    (root / "package.json").write_text(json.dumps({"name": "x", "version": "0.0.0"}))
    (root / "bun.lockb").write_text("lockfile")
    (root / "src").mkdir()
    (root / "src" / "index.ts").write_text("export const x = 1;\n")
    return root


@pytest.fixture
def source(package_dir):
    return LocalTree(path=package_dir)


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def git(package_dir):
    return FakeGit(
        repositories={(REPO_URL, "main"): package_dir},
        tag_listing={REPO_URL: ["v0.9.0", "v1.0.0", "v1.1.0"]},
    )


@pytest.fixture
def tokens():
    return FakeTokens()


@pytest.fixture
def pipeline(engine, git, tokens):
    return Pipeline(Collaborators(engine=engine, git=git, tokens=tokens), PipelineConfig())
