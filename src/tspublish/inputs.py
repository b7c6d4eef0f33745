"""Entry-point inputs as tagged unions.

`on_publish` and `publish` accept loose optional arguments for CLI
compatibility; `source_spec` and `tag_spec` turn them into one of a few legal
shapes (or raise ConfigurationError) before anything external is touched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .errors import ConfigurationError
from .tree import SourceTree


@dataclass(frozen=True)
class LocalSource:
    """A tree supplied directly by the caller."""

    tree: SourceTree


@dataclass(frozen=True)
class RemoteSource:
    """A branch of a remote repository."""

    url: str
    branch: str


SourceSpec = Union[LocalSource, RemoteSource]


@dataclass(frozen=True)
class ExplicitTag:
    tag: str


@dataclass(frozen=True)
class LatestTag:
    """Use the latest tag listed by the repository at `url`."""

    url: str


TagSpec = Union[ExplicitTag, LatestTag]


def source_spec(
    source: SourceTree | None = None,
    git_url: str | None = None,
    branch: str | None = None,
) -> SourceSpec:
    """A supplied tree wins; otherwise both a git url and a branch are required."""
    if source is not None:
        return LocalSource(tree=source)
    if git_url and branch:
        return RemoteSource(url=git_url, branch=branch)
    raise ConfigurationError("Either a source directory or a git url and a branch name must be provided")


def tag_spec(tag: str | None = None, git_url: str | None = None) -> TagSpec:
    """An explicit tag always wins; otherwise the latest tag of `git_url` is used."""
    if tag:
        return ExplicitTag(tag=tag)
    if git_url:
        return LatestTag(url=git_url)
    raise ConfigurationError("Either a git url or a tag must be provided to be able to apply a version update")
