"""Tests for configuration loading."""

import pytest

from tspublish import CIContext, ConfigurationError, PipelineConfig


def test_defaults():
    config = PipelineConfig.load()

    assert config.bun_version == "latest"
    assert config.node_version == "current-alpine3.21"
    assert config.workdir == "/app"
    assert config.lockfile == "bun.lockb"
    assert config.registry_host == "registry.npmjs.org"
    assert config.exclude == (".git", "node_modules")


def test_load_from_pyproject(tmp_path):
    path = tmp_path / "pyproject.toml"
    path.write_text('[project]\nname = "x"\n\n[tool.tspublish]\nbun_version = "1.1.38"\naccess = "restricted"\n')

    config = PipelineConfig.load(path)

    assert config.bun_version == "1.1.38"
    assert config.access == "restricted"


def test_pyproject_without_section_uses_defaults(tmp_path):
    path = tmp_path / "pyproject.toml"
    path.write_text("[tool.ruff]\nline-length = 120\n")

    assert PipelineConfig.load(path) == PipelineConfig()


def test_load_top_level_file(tmp_path):
    path = tmp_path / "tspublish.toml"
    path.write_text('registry = "https://npm.example.com/"\nlockfile = "bun.lock"\nexclude = [".git", "dist"]\n')

    config = PipelineConfig.load(path)

    assert config.lockfile == "bun.lock"
    assert config.registry_host == "npm.example.com"
    assert config.exclude == (".git", "dist")


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "tspublish.toml"
    path.write_text('node_version = "20"\nbun_version = "1.1"\n')
    monkeypatch.setenv("TSPUBLISH_NODE_VERSION", "22-alpine")
    monkeypatch.setenv("TSPUBLISH_EXCLUDE", ".git, dist ,")

    config = PipelineConfig.load(path)

    assert config.node_version == "22-alpine"
    assert config.bun_version == "1.1"
    assert config.exclude == (".git", "dist")


def test_unknown_key_is_rejected(tmp_path):
    path = tmp_path / "tspublish.toml"
    path.write_text("unknown = true\n")

    with pytest.raises(ConfigurationError, match="unknown"):
        PipelineConfig.load(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        PipelineConfig.load(tmp_path / "missing.toml")


def test_invalid_value(monkeypatch):
    monkeypatch.setenv("TSPUBLISH_ACCESS", "everyone")

    with pytest.raises(ConfigurationError, match="access"):
        PipelineConfig.load()


def test_config_is_frozen():
    config = PipelineConfig()
    with pytest.raises(Exception):  # Pydantic raises ValidationError
        config.workdir = "/srv"


def test_ci_context():
    environ = {"GITHUB_REPOSITORY": "org/pkg", "GITHUB_SHA": "abc123", "GITHUB_REF_NAME": "v1.0.0"}

    ctx = CIContext.from_env(environ)

    assert ctx.repository == "org/pkg"
    assert ctx.workflow is None
    assert ctx.describe() == "repository=org/pkg, sha=abc123, ref_name=v1.0.0"
    assert CIContext.from_env({}).describe() == "local run"
