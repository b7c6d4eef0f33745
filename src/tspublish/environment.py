"""Immutable execution environments.

An Environment describes a container as a base image plus an ordered tuple of
layers. Nothing runs while the description is built; a ContainerEngine
replays the layers when the environment's output or one of its directories is
read. Every `with_*` call returns a new Environment and leaves the receiver
untouched, so any intermediate stage can be re-executed and inspected.

    env = (
        Environment("oven/bun:latest")
        .with_workdir("/app")
        .with_mounted_directory("/app", tree)
        .with_exec(["bun", "test"])
    )
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from typing import Union

from pydantic import SecretStr

from .errors import StepExecutionError
from .tree import ContainerTree, SourceFile, SourceTree


@dataclass(frozen=True)
class WithWorkdir:
    path: str


@dataclass(frozen=True)
class WithDirectory:
    path: str
    tree: SourceTree
    mounted: bool = False


@dataclass(frozen=True)
class WithFiles:
    """Copy individual files into `path`. A missing file raises `error`."""

    path: str
    files: tuple[SourceFile, ...]
    error: type[StepExecutionError] = StepExecutionError


@dataclass(frozen=True)
class WithNewFile:
    path: str
    contents: str


@dataclass(frozen=True)
class WithEnvVariable:
    name: str
    value: str


@dataclass(frozen=True)
class WithSecretVariable:
    name: str
    secret: SecretStr


@dataclass(frozen=True)
class WithExec:
    """Run a command. A non-zero exit raises `error` with the captured output."""

    args: tuple[str, ...]
    error: type[StepExecutionError] = StepExecutionError


Layer = Union[WithWorkdir, WithDirectory, WithFiles, WithNewFile, WithEnvVariable, WithSecretVariable, WithExec]


@dataclass(frozen=True)
class Environment:
    """A container description: base image plus layers, applied in order."""

    image: str
    layers: tuple[Layer, ...] = ()

    def _with(self, layer: Layer) -> Environment:
        return replace(self, layers=(*self.layers, layer))

    def with_workdir(self, path: str) -> Environment:
        return self._with(WithWorkdir(path=self.resolve_path(path)))

    def with_directory(self, path: str, tree: SourceTree) -> Environment:
        """Copy a tree's files into `path`."""
        return self._with(WithDirectory(path=self.resolve_path(path), tree=tree))

    def with_mounted_directory(self, path: str, tree: SourceTree) -> Environment:
        """Mount a tree at `path`. Later mounts shadow earlier files at the same path."""
        return self._with(WithDirectory(path=self.resolve_path(path), tree=tree, mounted=True))

    def with_files(
        self,
        path: str,
        files: Iterable[SourceFile],
        *,
        error: type[StepExecutionError] = StepExecutionError,
    ) -> Environment:
        return self._with(WithFiles(path=self.resolve_path(path), files=tuple(files), error=error))

    def with_new_file(self, path: str, contents: str) -> Environment:
        return self._with(WithNewFile(path=self.resolve_path(path), contents=contents))

    def with_env_variable(self, name: str, value: str) -> Environment:
        return self._with(WithEnvVariable(name=name, value=value))

    def with_secret_variable(self, name: str, secret: SecretStr) -> Environment:
        return self._with(WithSecretVariable(name=name, secret=secret))

    def with_exec(
        self,
        args: Sequence[str],
        *,
        error: type[StepExecutionError] = StepExecutionError,
    ) -> Environment:
        return self._with(WithExec(args=tuple(args), error=error))

    def directory(self, path: str) -> ContainerTree:
        """Tree of the directory at `path` once this environment has run."""
        return ContainerTree(env=self, path=self.resolve_path(path))

    @property
    def workdir(self) -> str:
        for layer in reversed(self.layers):
            if isinstance(layer, WithWorkdir):
                return layer.path
        return "/"

    @property
    def execs(self) -> list[tuple[str, ...]]:
        """Commands this environment runs, in order."""
        return [layer.args for layer in self.layers if isinstance(layer, WithExec)]

    def resolve_path(self, path: str) -> str:
        """Absolute, normalized container path; relative paths are resolved against the workdir."""
        return posixpath.normpath(posixpath.join(self.workdir, path))
