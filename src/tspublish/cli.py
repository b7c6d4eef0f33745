"""Command line interface for the tspublish entry points."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import click
from pydantic import SecretStr

from . import entrypoints
from .collaborators import Collaborators
from .config import PipelineConfig
from .errors import ConfigurationError
from .gha import write_workflows
from .output import OutputManager, configure_logging, configure_output
from .result import PipelineResult
from .steps import Pipeline
from .tree import LocalTree


def _to_secret(ctx: click.Context, param: click.Parameter, value: str | None) -> SecretStr | None:
    return SecretStr(value) if value else None


def _report(output: OutputManager, name: str, result: PipelineResult) -> None:
    """Report a failed result and exit non-zero. The failing step already printed its output."""
    if result.ok:
        return

    output.error(f"{name} failed in step '{result.step}': {result.error}")
    sys.exit(1)


def _run(ctx: click.Context, name: str, fn: Any, **kwargs: Any) -> PipelineResult:
    pipeline: Pipeline = ctx.obj
    result = entrypoints.run_entrypoint(pipeline, name, fn, **kwargs)
    _report(pipeline.output, name, result)
    return result


def _local_source(pipeline: Pipeline, source: Path | None) -> LocalTree | None:
    if source is None:
        return None
    return LocalTree(path=source, exclude=pipeline.config.exclude)


def publish_options(fn: Any) -> Any:
    """Options shared by `on-publish` and `publish`."""
    options = [
        click.option(
            "--npm-token",
            envvar="NPM_TOKEN",
            callback=_to_secret,
            help="npm token used to publish (default: $NPM_TOKEN)",
        ),
        click.option(
            "--source",
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            help="Directory to release; if omitted, --git-url and --branch are checked out",
        ),
        click.option("--git-url", help="Repository to release from and to read the latest tag from"),
        click.option("--branch", help="Branch to check out when no --source is given"),
        click.option("--tag", help="Version to release (default: the latest tag of --git-url)"),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group(name="tspublish")
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option("--color/--no-color", default=None, help="Force colored output on or off (default: auto-detect)")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="TOML file with [tool.tspublish] settings",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, color: bool | None, config_path: Path | None) -> None:
    """Lint, test, build, and publish bun/TypeScript packages in containers."""
    configure_logging(debug)
    if ctx.obj is not None:
        return
    try:
        config = PipelineConfig.load(config_path)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e
    ctx.obj = Pipeline(Collaborators.default(config), config, configure_output(force_color=color))


@cli.command("on-pull-request")
@click.option("--url", required=True, help="Repository url (http or git)")
@click.option("--branch", default="main", show_default=True, help="Branch to lint and test")
@click.pass_context
def on_pull_request_command(ctx: click.Context, url: str, branch: str) -> None:
    """Lint and test a branch."""
    _run(ctx, "on-pull-request", entrypoints.on_pull_request, url=url, branch=branch)


@cli.command("on-publish")
@publish_options
@click.pass_context
def on_publish_command(
    ctx: click.Context,
    npm_token: SecretStr | None,
    source: Path | None,
    git_url: str | None,
    branch: str | None,
    tag: str | None,
) -> None:
    """Lint, test, build, bump the version, and publish to npm."""
    _run(
        ctx,
        "on-publish",
        entrypoints.on_publish,
        npm_token=npm_token,
        source=_local_source(ctx.obj, source),
        git_url=git_url,
        branch=branch,
        tag=tag,
    )


@cli.command("publish")
@publish_options
@click.pass_context
def publish_command(
    ctx: click.Context,
    npm_token: SecretStr | None,
    source: Path | None,
    git_url: str | None,
    branch: str | None,
    tag: str | None,
) -> None:
    """Lint, test, bump the version, and publish to npm without building."""
    _run(
        ctx,
        "publish",
        entrypoints.publish,
        npm_token=npm_token,
        source=_local_source(ctx.obj, source),
        git_url=git_url,
        branch=branch,
        tag=tag,
    )


@cli.command("publish-release")
@click.option(
    "--oidc-url",
    envvar="ACTIONS_ID_TOKEN_REQUEST_URL",
    required=True,
    help="Identity token endpoint (default: $ACTIONS_ID_TOKEN_REQUEST_URL)",
)
@click.option(
    "--oidc-token",
    envvar="ACTIONS_ID_TOKEN_REQUEST_TOKEN",
    required=True,
    callback=_to_secret,
    help="Bearer token for the identity endpoint (default: $ACTIONS_ID_TOKEN_REQUEST_TOKEN)",
)
@click.option("--git-url", required=True, help="Repository to release the latest tag of")
@click.pass_context
def publish_release_command(ctx: click.Context, oidc_url: str, oidc_token: SecretStr, git_url: str) -> None:
    """Release the latest tag using npm trusted publishing (OIDC)."""
    _run(
        ctx,
        "publish-release",
        entrypoints.publish_release,
        oidc_url=oidc_url,
        oidc_token=oidc_token,
        git_url=git_url,
    )


@cli.command("get-latest-tag")
@click.option("--url", required=True, help="Repository url (http or git)")
@click.pass_context
def get_latest_tag_command(ctx: click.Context, url: str) -> None:
    """Print the latest tag of a repository."""
    result = _run(ctx, "get-latest-tag", entrypoints.get_latest_tag, url=url)
    click.echo(result.value())


@cli.command("generate-gha")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path(".github/workflows"),
    show_default=True,
)
@click.option("--cli-command", default="tspublish", show_default=True, help="Command used in workflow steps")
def generate_gha_command(output_dir: Path, cli_command: str) -> None:
    """Write GitHub Actions workflows for every entry point."""
    for path in write_workflows(output_dir, cli_command=cli_command):
        click.echo(f"Wrote {path}")


def main() -> None:
    cli()
