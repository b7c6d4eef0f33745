"""Pipeline entry points, one per CI trigger.

- `on_pull_request`: lint and test a branch
- `on_publish`: lint, test, build, bump the version, and publish with a static token
- `publish`: like `on_publish` without the build, for packages that cannot be built yet
- `publish_release`: like `on_publish` for the latest tag, authenticated through OIDC

Every state runs strictly after the previous one succeeded; the first error
aborts the invocation and propagates to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import SecretStr

from .config import CIContext
from .environment import Environment
from .errors import PipelineError
from .inputs import LatestTag, RemoteSource, SourceSpec, TagSpec, source_spec, tag_spec
from .result import Err, Ok, PipelineResult
from .steps import Pipeline
from .tree import SourceTree

logger = logging.getLogger(__name__)


def on_pull_request(pipeline: Pipeline, url: str, branch: str = "main") -> None:
    """Lint and test a branch. Nothing is kept; this is purely a gate."""
    source = pipeline.get_repository(url, branch)
    pipeline.lint_and_test(source)


def on_publish(
    pipeline: Pipeline,
    npm_token: SecretStr | None = None,
    source: SourceTree | None = None,
    git_url: str | None = None,
    branch: str | None = None,
    tag: str | None = None,
) -> None:
    """
    Lint, test, build, bump the version, and publish to the registry.

    Args:
        npm_token: Token used to publish.
        source: Tree to release. If not provided, `git_url` and `branch` are checked out.
        git_url: Repository to release from, and to read the latest tag from.
        branch: Branch to check out when no source is given.
        tag: Version to release. If not provided, the latest tag of `git_url` is used.

    Raises:
        ConfigurationError: If neither a source nor a git url and branch are given,
            or if neither a tag nor a git url is given.

    """
    release(pipeline, source_spec(source, git_url, branch), tag_spec(tag, git_url), npm_token, build=True)


def publish(
    pipeline: Pipeline,
    npm_token: SecretStr | None = None,
    source: SourceTree | None = None,
    git_url: str | None = None,
    branch: str | None = None,
    tag: str | None = None,
) -> None:
    """Same inputs as `on_publish`, but publishes the linted and tested tree without building it."""
    release(pipeline, source_spec(source, git_url, branch), tag_spec(tag, git_url), npm_token, build=False)


def publish_release(pipeline: Pipeline, oidc_url: str, oidc_token: SecretStr, git_url: str) -> None:
    """Release the latest tag of `git_url`, authenticating with a token obtained through OIDC."""
    source = RemoteSource(url=git_url, branch=pipeline.config.default_branch)
    version = pipeline.resolve_tag(LatestTag(url=git_url))
    tree = pipeline.resolve_source(source)

    built = _validate(pipeline, tree, build=True)
    token = pipeline.exchange_token(oidc_url, oidc_token, tree)
    pipeline.bump_and_publish(version, built.directory("."), token)


def get_latest_tag(pipeline: Pipeline, url: str) -> str:
    return pipeline.get_latest_tag(url)


def release(
    pipeline: Pipeline,
    source: SourceSpec,
    tag: TagSpec,
    token: SecretStr | None = None,
    *,
    build: bool = True,
) -> Environment:
    """Resolve, lint, test, (build,) bump, and publish. Returns the published environment."""
    version = pipeline.resolve_tag(tag)
    tree = pipeline.resolve_source(source)

    validated = _validate(pipeline, tree, build=build)
    return pipeline.bump_and_publish(version, validated.directory("."), token)


def _validate(pipeline: Pipeline, tree: SourceTree, *, build: bool) -> Environment:
    """Lint and test `tree`; return the build environment, or the mounted app when not building."""
    app = pipeline.lint_and_test(tree)
    if build:
        return pipeline.build(tree)
    return app


def run_entrypoint(
    pipeline: Pipeline,
    name: str,
    fn: Callable[..., Any],
    *args: Any,
    **kwargs: Any,
) -> PipelineResult:
    """
    Run `fn(pipeline, *args, **kwargs)` inside a top-level output scope.

    A PipelineError becomes a failed PipelineResult carrying the captured
    command output; any other exception propagates.
    """
    logger.info("%s: %s", name, CIContext.from_env().describe())
    try:
        with pipeline.output.entrypoint_scope(name):
            value = fn(pipeline, *args, **kwargs)
    except PipelineError as e:
        logger.debug("%s failed", name, exc_info=True)
        return Err(e)
    return Ok(value)
