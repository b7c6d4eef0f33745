"""Repository and tag resolution."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import git

from .collaborators import GitService
from .errors import NoTagsFound, RepositoryNotFound, ResolutionError

logger = logging.getLogger(__name__)

TAG_PREFIX = "v"


def normalize_tag(tag: str) -> str:
    """
    Strip exactly one leading "v" from a tag.

        >>> normalize_tag("v1.2.3")
        '1.2.3'
        >>> normalize_tag("1.2.3")
        '1.2.3'
    """
    if tag.startswith(TAG_PREFIX):
        return tag[len(TAG_PREFIX) :]
    return tag


def latest_tag(service: GitService, url: str) -> str:
    """
    Most recently listed tag of a repository.

    This is the last entry of the service's listing, not the highest semantic
    version; with `git ls-remote` the listing is ordered by ref name.
    """
    tags = service.tags(url)
    if not tags:
        raise NoTagsFound(url)
    logger.debug("Found %d tags in %s", len(tags), url)
    return tags[-1]


class GitRepositories:
    """Git service backed by GitPython (which drives the `git` CLI)."""

    def checkout(self, url: str, branch: str, dest: Path) -> Path:
        logger.info("Checking out %s@%s", url, branch)
        try:
            git.Repo.clone_from(url, dest, branch=branch, depth=1, single_branch=True)
        except git.GitCommandError as e:
            raise RepositoryNotFound(url, branch, detail=str(e.stderr).strip()) from e
        shutil.rmtree(dest / ".git", ignore_errors=True)
        return dest

    def tags(self, url: str) -> list[str]:
        try:
            listing = git.cmd.Git().ls_remote("--tags", "--refs", url)
        except git.GitCommandError as e:
            raise ResolutionError(f"Could not list tags of {url}: {str(e.stderr).strip()}") from e

        tags = []
        for line in listing.splitlines():
            _, _, ref = line.partition("\t")
            if ref.startswith("refs/tags/"):
                tags.append(ref.removeprefix("refs/tags/"))
        return tags
