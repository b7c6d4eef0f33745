"""
tspublish - container-based lint, test, build, and npm publish pipelines for
bun/TypeScript packages.

Basic usage:

    import tspublish
    from pydantic import SecretStr

    config = tspublish.PipelineConfig.load()
    pipeline = tspublish.Pipeline(tspublish.Collaborators.default(config), config)

    # Gate a pull request:
    tspublish.on_pull_request(pipeline, "https://github.com/org/pkg.git", branch="feature")

    # Release tag v1.2.0 of a local checkout:
    tspublish.on_publish(
        pipeline,
        npm_token=SecretStr(token),
        source=tspublish.LocalTree(Path(".")),
        tag="v1.2.0",
    )

    # Or use the CLI:
    #   tspublish on-publish --source . --tag v1.2.0
"""

from .collaborators import Collaborators, ContainerEngine, ExecOutput, GitService, TokenExchange
from .config import CIContext, PipelineConfig
from .entrypoints import get_latest_tag, on_publish, on_pull_request, publish, publish_release, release, run_entrypoint
from .environment import Environment
from .errors import (
    AuthenticationError,
    ConfigurationError,
    EngineError,
    InstallFailed,
    NoTagsFound,
    PipelineError,
    PublishFailed,
    RepositoryNotFound,
    ResolutionError,
    StepExecutionError,
    VersionUpdateFailed,
)
from .inputs import ExplicitTag, LatestTag, LocalSource, RemoteSource, SourceSpec, TagSpec, source_spec, tag_spec
from .repository import latest_tag, normalize_tag
from .result import Err, Ok, PipelineResult
from .steps import Pipeline
from .tree import ContainerTree, GitTree, LocalTree, SourceFile, SourceTree

__all__ = [
    # Entry points
    "on_pull_request",
    "on_publish",
    "publish",
    "publish_release",
    "get_latest_tag",
    "release",
    "run_entrypoint",
    # Steps
    "Pipeline",
    "PipelineConfig",
    "CIContext",
    # Collaborators
    "Collaborators",
    "ContainerEngine",
    "GitService",
    "TokenExchange",
    "ExecOutput",
    # Trees and environments
    "Environment",
    "SourceTree",
    "SourceFile",
    "LocalTree",
    "GitTree",
    "ContainerTree",
    # Inputs
    "SourceSpec",
    "LocalSource",
    "RemoteSource",
    "TagSpec",
    "ExplicitTag",
    "LatestTag",
    "source_spec",
    "tag_spec",
    # Tags
    "normalize_tag",
    "latest_tag",
    # Results
    "PipelineResult",
    "Ok",
    "Err",
    # Errors
    "PipelineError",
    "ConfigurationError",
    "ResolutionError",
    "RepositoryNotFound",
    "NoTagsFound",
    "EngineError",
    "StepExecutionError",
    "InstallFailed",
    "VersionUpdateFailed",
    "PublishFailed",
    "AuthenticationError",
]

__version__ = "0.1.0"
