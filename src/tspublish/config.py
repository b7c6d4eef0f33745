"""Configuration for tspublish pipelines."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    PyprojectTomlConfigSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "TSPUBLISH_"


class PipelineConfig(BaseSettings):
    """
    Settings shared by every pipeline step.

    Values come from (lowest to highest precedence) the defaults below, an
    optional TOML file, and `TSPUBLISH_<FIELD>` environment variables.
    """

    bun_version: str = "latest"
    node_version: str = "current-alpine3.21"
    workdir: str = "/app"
    manifest: str = "package.json"
    lockfile: str = "bun.lockb"
    default_branch: str = "main"
    registry: str = "https://registry.npmjs.org"
    token_variable: str = "NPM_TOKEN"
    access: Literal["public", "restricted"] = "public"
    docker: str = "docker"
    exclude: Annotated[tuple[str, ...], NoDecode] = (".git", "node_modules")

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        frozen=True,
        extra="forbid",
        pyproject_toml_table_header=("tool", "tspublish"),
    )

    @field_validator("exclude", mode="before")
    @classmethod
    def _split_exclude(cls, value: Any) -> Any:
        # TSPUBLISH_EXCLUDE=".git,node_modules"
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The environment wins over values handed in by `load` (the TOML file).
        return env_settings, init_settings

    @classmethod
    def load(cls, path: Path | None = None) -> PipelineConfig:
        """
        Load configuration from an optional TOML file and the environment.

        A `pyproject.toml` is read from its `[tool.tspublish]` table; any other
        file holds the settings at top level.

        Raises:
            ConfigurationError: If the file is missing or a value does not validate.

        """
        values: dict[str, Any] = {}
        if path is not None:
            if not path.is_file():
                raise ConfigurationError(f"Config file not found: {path}")
            if path.name == "pyproject.toml":
                source: PydanticBaseSettingsSource = PyprojectTomlConfigSettingsSource(cls, toml_file=path)
            else:
                source = TomlConfigSettingsSource(cls, toml_file=path)
            values = source()
            logger.debug("Loaded config from %s", path)

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @property
    def registry_host(self) -> str:
        """Registry URL without scheme, as used for npmrc auth keys."""
        return self.registry.split("://", 1)[-1].rstrip("/")


class CIContext(BaseModel):
    """Read-only identifiers provided by the CI runner. Logged, never branched on."""

    repository: str | None = None
    workflow: str | None = None
    sha: str | None = None
    run_id: str | None = None
    ref_name: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> CIContext:
        environ = os.environ if environ is None else environ
        return cls(
            repository=environ.get("GITHUB_REPOSITORY"),
            workflow=environ.get("GITHUB_WORKFLOW"),
            sha=environ.get("GITHUB_SHA"),
            run_id=environ.get("GITHUB_RUN_ID"),
            ref_name=environ.get("GITHUB_REF_NAME"),
        )

    def describe(self) -> str:
        parts = [f"{name}={value}" for name, value in self.model_dump().items() if value]
        return ", ".join(parts) if parts else "local run"
