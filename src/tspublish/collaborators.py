"""The external services a pipeline drives, and the context that bundles them.

Nothing in tspublish reaches a process-wide connection: every step receives a
`Collaborators` value, so tests can swap in fakes for the container engine,
the Git service, and the token exchange.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import SecretStr

if TYPE_CHECKING:
    from .config import PipelineConfig
    from .environment import Environment
    from .tree import SourceTree


@dataclass(frozen=True)
class ExecOutput:
    """Output of the last command an environment ran."""

    stdout: str = ""
    stderr: str = ""


class ContainerEngine(Protocol):
    def execute(self, env: Environment, ctx: Collaborators) -> ExecOutput:
        """
        Run every layer of `env` in a fresh container.

        Raises the failing layer's error class (a StepExecutionError) when a
        command exits non-zero or a required file is missing.
        """
        ...

    def export(self, env: Environment, path: str, dest: Path, ctx: Collaborators) -> Path:
        """Run `env` and copy the directory at `path` out to `dest`."""
        ...


class GitService(Protocol):
    def checkout(self, url: str, branch: str, dest: Path) -> Path:
        """Write the branch's files (without `.git`) to `dest`. Raises RepositoryNotFound."""
        ...

    def tags(self, url: str) -> list[str]:
        """Tag names in the service's listing order."""
        ...


class TokenExchange(Protocol):
    def exchange(self, oidc_url: str, oidc_token: SecretStr, package: str) -> SecretStr:
        """Trade a CI identity token for a short-lived publish token. Raises AuthenticationError."""
        ...


@dataclass(frozen=True)
class Collaborators:
    engine: ContainerEngine
    git: GitService
    tokens: TokenExchange

    def export(self, tree: SourceTree, dest: Path) -> Path:
        """Materialize `tree` under `dest`, resolving it through whichever service owns it."""
        dest.mkdir(parents=True, exist_ok=True)
        return tree.export(self, dest)

    @classmethod
    def default(cls, config: PipelineConfig) -> Collaborators:
        """Docker for containers, GitPython for repositories, the npm registry for tokens."""
        from .docker import DockerEngine
        from .oidc import NpmTokenExchange
        from .repository import GitRepositories

        return cls(
            engine=DockerEngine(docker=config.docker),
            git=GitRepositories(),
            tokens=NpmTokenExchange(registry=config.registry),
        )
