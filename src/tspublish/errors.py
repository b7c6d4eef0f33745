"""Exceptions raised by tspublish pipelines.

Every exception derives from `PipelineError`; none of them is recovered from
inside a pipeline. Entry points let them propagate, and only `run_entrypoint`
turns them into a failed `PipelineResult`.
"""

from __future__ import annotations

from collections.abc import Sequence


class PipelineError(Exception):
    """Base class for every error that aborts a pipeline invocation."""

    step: str = "pipeline"


class ConfigurationError(PipelineError):
    """An entry point was called with an unusable combination of inputs."""

    step = "configuration"


class ResolutionError(PipelineError):
    """A repository, branch, or tag could not be resolved."""

    step = "resolve"


class RepositoryNotFound(ResolutionError):
    """The repository URL is unreachable or the branch does not exist."""

    def __init__(self, url: str, branch: str, detail: str = ""):
        self.url = url
        self.branch = branch
        self.detail = detail
        message = f"Could not resolve branch '{branch}' of {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NoTagsFound(ResolutionError):
    """The repository has no tags to release from."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No tags found in {url}")


class EngineError(PipelineError):
    """The container engine failed outside of a pipeline command (daemon, image pull, copy)."""

    step = "engine"


class StepExecutionError(PipelineError):
    """
    A command inside a container exited non-zero.

    The captured stdout/stderr are kept verbatim; they are the primary
    diagnostic shown to whoever invoked the pipeline.
    """

    step = "exec"

    def __init__(
        self,
        command: Sequence[str] = (),
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
        message: str | None = None,
    ):
        self.command = tuple(command)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        if message is None:
            cmd_str = " ".join(self.command)
            message = f"Command '{cmd_str}' failed with exit code {exit_code}"
        super().__init__(message)


class InstallFailed(StepExecutionError):
    """Dependency installation failed, or the manifest/lockfile is missing."""

    step = "install"


class VersionUpdateFailed(StepExecutionError):
    """The manifest version rewrite rejected the requested version."""

    step = "version"


class PublishFailed(StepExecutionError):
    """The registry publish command failed (e.g. the version already exists)."""

    step = "publish"


class AuthenticationError(PipelineError):
    """A static token was rejected or the OIDC token exchange failed."""

    step = "authenticate"
