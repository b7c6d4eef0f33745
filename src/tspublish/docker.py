"""Container engine backed by the `docker` CLI.

Each execution starts a throwaway container from the environment's image,
replays the layers with `docker cp` / `docker exec`, and removes the container
afterwards. Trees are always copied in, never bind-mounted, so a step can
never write back into a host source directory.
"""

from __future__ import annotations

import logging
import posixpath
import tempfile
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import SecretStr

from .collaborators import Collaborators, ExecOutput
from .environment import (
    Environment,
    Layer,
    WithDirectory,
    WithEnvVariable,
    WithExec,
    WithFiles,
    WithNewFile,
    WithSecretVariable,
    WithWorkdir,
)
from .errors import EngineError
from .subprocess import RunResult, SubprocessError, run
from .tree import SourceTree

logger = logging.getLogger(__name__)


@dataclass
class _Container:
    """State of a running container while layers are being applied."""

    id: str
    workdir: str = "/"
    variables: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, SecretStr] = field(default_factory=dict)
    output: ExecOutput = field(default_factory=ExecOutput)


class DockerEngine:
    def __init__(self, docker: str = "docker", scratch_dir: Path | None = None):
        self.docker = docker
        self.scratch_dir = scratch_dir

    def execute(self, env: Environment, ctx: Collaborators) -> ExecOutput:
        with self._started(env, ctx) as container:
            return container.output

    def export(self, env: Environment, path: str, dest: Path, ctx: Collaborators) -> Path:
        source = env.resolve_path(path)
        with self._started(env, ctx) as container:
            dest.mkdir(parents=True, exist_ok=True)
            self._docker("cp", f"{container.id}:{source}/.", str(dest))
        return dest

    @contextmanager
    def _started(self, env: Environment, ctx: Collaborators) -> Generator[_Container, None, None]:
        logger.debug("Starting %s with %d layers", env.image, len(env.layers))
        started = self._docker("run", "--detach", "--entrypoint", "tail", env.image, "-f", "/dev/null")
        container = _Container(id=started.stdout.strip())
        try:
            with tempfile.TemporaryDirectory(prefix="tspublish-", dir=self.scratch_dir) as scratch:
                exported: dict[int, Path] = {}
                for index, layer in enumerate(env.layers):
                    self._apply(container, layer, ctx, Path(scratch), index, exported)
            yield container
        finally:
            self._docker("rm", "--force", container.id, check=False)

    def _apply(
        self,
        container: _Container,
        layer: Layer,
        ctx: Collaborators,
        scratch: Path,
        index: int,
        exported: dict[int, Path],
    ) -> None:
        def export_once(tree: SourceTree) -> Path:
            # Several files of one layer usually share a tree; read it once.
            if id(tree) not in exported:
                exported[id(tree)] = ctx.export(tree, scratch / f"tree-{index}-{len(exported)}")
            return exported[id(tree)]

        if isinstance(layer, WithWorkdir):
            container.workdir = layer.path
            self._mkdir(container, layer.path)
        elif isinstance(layer, WithDirectory):
            host = export_once(layer.tree)
            if layer.mounted:
                self._docker("exec", container.id, "rm", "-rf", layer.path)
            self._mkdir(container, layer.path)
            self._docker("cp", f"{host}/.", f"{container.id}:{layer.path}")
        elif isinstance(layer, WithFiles):
            self._mkdir(container, layer.path)
            for source_file in layer.files:
                host_file = export_once(source_file.tree) / source_file.name
                if not host_file.is_file():
                    raise layer.error(message=f"{source_file.name} not found in source tree")
                self._docker("cp", str(host_file), f"{container.id}:{posixpath.join(layer.path, source_file.name)}")
        elif isinstance(layer, WithNewFile):
            host_file = scratch / f"new-file-{index}"
            host_file.write_text(layer.contents)
            self._mkdir(container, posixpath.dirname(layer.path))
            self._docker("cp", str(host_file), f"{container.id}:{layer.path}")
        elif isinstance(layer, WithEnvVariable):
            container.variables[layer.name] = layer.value
        elif isinstance(layer, WithSecretVariable):
            container.secrets[layer.name] = layer.secret
        elif isinstance(layer, WithExec):
            container.output = self._exec(container, layer)
        else:
            raise EngineError(f"Unsupported layer: {type(layer).__name__}")

    def _exec(self, container: _Container, layer: WithExec) -> ExecOutput:
        args = ["exec", "--workdir", container.workdir]
        for name, value in container.variables.items():
            args += ["--env", f"{name}={value}"]
        # Secrets are named on the command line; docker reads their values from our environment.
        for name in container.secrets:
            args += ["--env", name]
        args += [container.id, *layer.args]

        logger.info("Running %s", " ".join(layer.args))
        result = self._docker(
            *args,
            check=False,
            env={name: secret.get_secret_value() for name, secret in container.secrets.items()},
        )
        if result.failed:
            raise layer.error(
                command=layer.args,
                exit_code=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return ExecOutput(stdout=result.stdout, stderr=result.stderr)

    def _mkdir(self, container: _Container, path: str) -> None:
        self._docker("exec", container.id, "mkdir", "-p", path)

    def _docker(self, *args: str, check: bool = True, env: dict[str, str] | None = None) -> RunResult:
        try:
            return run(self.docker, *args, env=env, check=check)
        except FileNotFoundError as e:
            raise EngineError(f"Container engine not found: {self.docker}") from e
        except SubprocessError as e:
            detail = e.result.stderr.strip()
            raise EngineError(f"{self.docker} {args[0]} failed with exit code {e.result.returncode}: {detail}") from e
