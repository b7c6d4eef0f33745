"""Source trees: lazily resolved, immutable handles to sets of files."""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ResolutionError

if TYPE_CHECKING:
    from .collaborators import Collaborators
    from .environment import Environment


class SourceTree(ABC):
    """
    A set of files that is only read when a step needs it.

    Trees are never mutated; steps that change files produce a new
    environment, and a new tree is derived from that environment.
    """

    @abstractmethod
    def export(self, ctx: Collaborators, dest: Path) -> Path:
        """Write the tree's files under `dest` and return the directory holding them."""

    def file(self, name: str) -> SourceFile:
        """Handle to a single file at the root of this tree."""
        return SourceFile(tree=self, name=name)


@dataclass(frozen=True)
class SourceFile:
    """A named file inside a tree."""

    tree: SourceTree
    name: str


@dataclass(frozen=True)
class LocalTree(SourceTree):
    """A directory on the host running the pipeline."""

    path: Path
    exclude: tuple[str, ...] = ()

    def export(self, ctx: Collaborators, dest: Path) -> Path:
        if not self.path.is_dir():
            raise ResolutionError(f"Source directory does not exist: {self.path}")
        shutil.copytree(self.path, dest, ignore=shutil.ignore_patterns(*self.exclude), dirs_exist_ok=True)
        return dest


@dataclass(frozen=True)
class GitTree(SourceTree):
    """The file tree of a repository branch, checked out on first read."""

    url: str
    branch: str = "main"

    def export(self, ctx: Collaborators, dest: Path) -> Path:
        return ctx.git.checkout(self.url, self.branch, dest)


@dataclass(frozen=True)
class ContainerTree(SourceTree):
    """A directory inside an environment. Reading it executes the environment."""

    env: Environment
    path: str

    def export(self, ctx: Collaborators, dest: Path) -> Path:
        return ctx.engine.export(self.env, self.path, dest, ctx)
