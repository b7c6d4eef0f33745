"""Pipeline steps for bun-based TypeScript packages.

Every method composes an Environment; only the quality gates, the build, the
version bump, and the publish actually execute one (and print its output).
Composing steps never executes anything, so `mount_app_with` etc. are cheap.
"""

from __future__ import annotations

import json
import logging
import posixpath
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from .collaborators import Collaborators
from .config import PipelineConfig
from .environment import Environment
from .errors import (
    ConfigurationError,
    InstallFailed,
    PublishFailed,
    ResolutionError,
    StepExecutionError,
    VersionUpdateFailed,
)
from .inputs import ExplicitTag, LatestTag, LocalSource, RemoteSource, SourceSpec, TagSpec
from .output import OutputManager, get_output_manager
from .repository import latest_tag, normalize_tag
from .tree import GitTree, SourceTree

logger = logging.getLogger(__name__)

NPMRC_PATH = "/tmp/tspublish/.npmrc"


class Pipeline:
    """
    The building blocks of every entry point.

    Args:
        collaborators: Container engine, Git service, and token exchange to drive.
        config: Image versions, paths, and registry settings.
        output: Where step progress and command output are printed.

    """

    def __init__(
        self,
        collaborators: Collaborators,
        config: PipelineConfig | None = None,
        output: OutputManager | None = None,
    ):
        self.collaborators = collaborators
        self.config = config or PipelineConfig()
        self.output = output or get_output_manager()

    # -------------------------------------------------------------------------
    # Containers

    def bun_container(self, bun_version: str | None = None) -> Environment:
        """A container with bun installed."""
        return Environment(image=f"oven/bun:{bun_version or self.config.bun_version}")

    def node_container(self, node_version: str | None = None) -> Environment:
        """A container with node (and npm) installed."""
        return Environment(image=f"node:{node_version or self.config.node_version}")

    # -------------------------------------------------------------------------
    # Sources and tags

    def get_repository(self, url: str, branch: str | None = None) -> GitTree:
        return GitTree(url=url, branch=branch or self.config.default_branch)

    def get_latest_tag(self, url: str) -> str:
        return latest_tag(self.collaborators.git, url)

    def resolve_source(self, spec: SourceSpec) -> SourceTree:
        if isinstance(spec, LocalSource):
            return spec.tree
        if isinstance(spec, RemoteSource):
            return self.get_repository(spec.url, spec.branch)
        raise ConfigurationError(f"Unsupported source: {spec!r}")

    def resolve_tag(self, spec: TagSpec) -> str:
        """Normalized version for a tag spec. An explicit tag never consults the tag listing."""
        if isinstance(spec, ExplicitTag):
            return normalize_tag(spec.tag)
        if isinstance(spec, LatestTag):
            tag = self.get_latest_tag(spec.url)
            logger.info("Using latest tag %s of %s", tag, spec.url)
            return normalize_tag(tag)
        raise ConfigurationError(f"Unsupported tag: {spec!r}")

    def read_manifest(self, source: SourceTree) -> dict[str, Any]:
        """Parse the package manifest at the root of a tree."""
        with tempfile.TemporaryDirectory(prefix="tspublish-") as tmp:
            root = self.collaborators.export(source, Path(tmp))
            manifest = root / self.config.manifest
            if not manifest.is_file():
                raise ResolutionError(f"{self.config.manifest} not found in source tree")
            try:
                data = json.loads(manifest.read_text())
            except json.JSONDecodeError as e:
                raise ResolutionError(f"{self.config.manifest} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ResolutionError(f"{self.config.manifest} must contain a JSON object")
        return data

    # -------------------------------------------------------------------------
    # Dependencies and mounting

    def install_dependencies(self, source: SourceTree) -> Environment:
        """A bun container with the manifest and lockfile of `source` installed."""
        workdir = self.config.workdir
        files = [source.file(self.config.manifest), source.file(self.config.lockfile)]
        return (
            self.bun_container()
            .with_workdir(workdir)
            .with_files(workdir, files, error=InstallFailed)
            .with_exec(["bun", "install"], error=InstallFailed)
        )

    def mount_app_with(self, source: SourceTree) -> Environment:
        """A fresh bun container with `source` and its freshly installed dependencies mounted."""
        workdir = self.config.workdir
        node_modules_path = posixpath.join(workdir, "node_modules")
        node_modules = self.install_dependencies(source).directory(node_modules_path)

        return (
            self.bun_container()
            .with_workdir(workdir)
            .with_mounted_directory(workdir, source)
            .with_mounted_directory(node_modules_path, node_modules)
        )

    # -------------------------------------------------------------------------
    # Quality gates and build

    def lint(self, app: Environment) -> Environment:
        return self._run_step("lint", app, ["bun", "lint"])

    def test(self, app: Environment) -> Environment:
        return self._run_step("test", app, ["bun", "test"])

    def lint_and_test(self, source: SourceTree) -> Environment:
        """Mount `source`, then lint and test it. Returns the mounted app."""
        app = self.mount_app_with(source)
        self.lint(app)
        self.test(app)
        return app

    def build(self, source: SourceTree) -> Environment:
        """Mount `source` and run its build script. `.directory(".")` holds the artifacts."""
        return self._run_step("build", self.mount_app_with(source), ["bun", "run", "build"])

    # -------------------------------------------------------------------------
    # Version and publish

    def update_app_version(self, version: str, source: SourceTree) -> Environment:
        """Rewrite the manifest version without creating a git tag or running commit hooks."""
        workdir = self.config.workdir
        app = self.node_container().with_directory(workdir, source).with_workdir(workdir)
        command = ["npm", "version", version, "--commit-hooks", "false", "--git-tag-version", "false"]
        return self._run_step("version", app, command, error=VersionUpdateFailed)

    def publish_app(self, app: Environment, token: SecretStr | None = None) -> Environment:
        """
        Publish the package in `app` to the registry.

        With a token, it is exposed as a secret variable and referenced (by
        name only) from a user npmrc outside the package directory.
        """
        if token is not None:
            variable = self.config.token_variable
            app = (
                app.with_secret_variable(variable, token)
                .with_new_file(NPMRC_PATH, f"//{self.config.registry_host}/:_authToken=${{{variable}}}\n")
                .with_env_variable("NPM_CONFIG_USERCONFIG", NPMRC_PATH)
            )
        command = ["npm", "publish", "--access", self.config.access, "--registry", self.config.registry]
        return self._run_step("publish", app, command, error=PublishFailed)

    def bump_and_publish(self, tag: str, source: SourceTree, token: SecretStr | None = None) -> Environment:
        updated = self.update_app_version(tag, source)
        return self.publish_app(updated, token)

    def exchange_token(self, oidc_url: str, oidc_token: SecretStr, source: SourceTree) -> SecretStr:
        """Publish token for the package in `source`, obtained through the OIDC exchange."""
        name = self.read_manifest(source).get("name")
        if not isinstance(name, str) or not name:
            raise ResolutionError(f"{self.config.manifest} does not declare a package name")
        with self.output.step_scope("authenticate"):
            return self.collaborators.tokens.exchange(oidc_url, oidc_token, name)

    # -------------------------------------------------------------------------

    def _run_step(
        self,
        name: str,
        env: Environment,
        command: Sequence[str],
        error: type[StepExecutionError] = StepExecutionError,
    ) -> Environment:
        """Execute `command` on top of `env`, printing its output whether it succeeds or not."""
        ran = env.with_exec(command, error=error)
        with self.output.step_scope(name):
            try:
                result = self.collaborators.engine.execute(ran, self.collaborators)
            except StepExecutionError as e:
                self.output.command_output(e.stdout, e.stderr)
                raise
            self.output.command_output(result.stdout, result.stderr)
        return ran
