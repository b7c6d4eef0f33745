"""GitHub Actions workflow generation for the tspublish entry points.

One workflow per trigger:

- pull-request.yml     -> `tspublish on-pull-request`
- release.yml          -> `tspublish on-publish` (static NPM_TOKEN secret)
- trusted-release.yml  -> `tspublish publish-release` (OIDC, id-token: write)
- manual-publish.yml   -> `tspublish publish` (workflow_dispatch)

Event values (branch names, tags, inputs) reach each `run` script through the
step `env:` and are referenced as quoted shell variables, so a crafted branch
name cannot inject commands.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

REPOSITORY_URL = "${{ github.server_url }}/${{ github.repository }}.git"
NPM_TOKEN = "${{ secrets.NPM_TOKEN }}"


@dataclass
class StepSpec:
    """A step within a GHA job."""

    name: str
    run: str | None = None
    uses: str | None = None
    with_: dict[str, Any] | None = None
    env: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for YAML serialization."""
        d: dict[str, Any] = {"name": self.name}
        if self.uses:
            d["uses"] = self.uses
        if self.with_:
            d["with"] = self.with_
        if self.run:
            d["run"] = self.run
        if self.env:
            d["env"] = self.env
        return d


@dataclass
class JobSpec:
    """A job within a GHA workflow."""

    name: str
    runs_on: str = "ubuntu-latest"
    steps: list[StepSpec] = field(default_factory=list)
    permissions: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for YAML serialization."""
        d: dict[str, Any] = {"name": self.name, "runs-on": self.runs_on}
        if self.permissions:
            d["permissions"] = self.permissions
        d["steps"] = [s.to_dict() for s in self.steps]
        return d


@dataclass
class WorkflowDispatchInput:
    """An input for workflow_dispatch trigger."""

    name: str
    description: str
    required: bool = False
    default: str | None = None
    type: str = "string"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for YAML serialization."""
        d: dict[str, Any] = {
            "description": self.description,
            "required": self.required,
            "type": self.type,
        }
        if self.default is not None:
            d["default"] = self.default
        return d


def generate_workflow_header(source: str) -> str:
    """Header comment prepended to every generated workflow file."""
    lines = [
        "# ============================================================================",
        "# GENERATED FILE - DO NOT EDIT MANUALLY",
        "#",
        "# This workflow is generated by tspublish. To modify:",
        "#   1. Change the tspublish version or options",
        "#   2. Run: tspublish generate-gha",
        "#   3. Commit the regenerated file",
        "#",
        f"# Source: {source}",
        "# ============================================================================",
        "",
    ]
    return "\n".join(lines)


@dataclass
class WorkflowSpec:
    """A complete GHA workflow."""

    name: str
    filename: str
    on: dict[str, Any]
    jobs: dict[str, JobSpec]

    def __str__(self) -> str:
        triggers = ", ".join(self.on.keys())
        return f"WorkflowSpec({self.name}) - {len(self.jobs)} job(s), on: {triggers} -> {self.filename}"

    __repr__ = __str__

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for YAML serialization."""
        return {
            "name": self.name,
            "on": self.on,
            "jobs": {name: job.to_dict() for name, job in self.jobs.items()},
        }

    def to_yaml(self, *, include_header: bool = False) -> str:
        yaml = YAML()
        yaml.default_flow_style = False

        stream = StringIO()
        yaml.dump(self.to_dict(), stream)
        yaml_content = stream.getvalue()

        if include_header:
            return generate_workflow_header(f"entry point: {self.name}") + yaml_content
        return yaml_content


def _setup_steps(install: str) -> list[StepSpec]:
    return [
        StepSpec(name="Checkout", uses="actions/checkout@v4"),
        StepSpec(name="Set up Python", uses="actions/setup-python@v5", with_={"python-version": "3.12"}),
        StepSpec(name="Install tspublish", run=install),
    ]


def render_workflows(cli_command: str = "tspublish", install: str = "pip install tspublish") -> list[WorkflowSpec]:
    """Workflow specs for every entry point."""
    pull_request = WorkflowSpec(
        name="on-pull-request",
        filename="pull-request.yml",
        on={"pull_request": {"branches": ["main"]}},
        jobs={
            "lint-and-test": JobSpec(
                name="Lint and test",
                steps=[
                    *_setup_steps(install),
                    StepSpec(
                        name="Lint and test",
                        run=(
                            f'{cli_command} on-pull-request'
                            ' --url "https://github.com/$HEAD_REPOSITORY.git" --branch "$HEAD_REF"'
                        ),
                        env={
                            "HEAD_REPOSITORY": "${{ github.event.pull_request.head.repo.full_name }}",
                            "HEAD_REF": "${{ github.head_ref }}",
                        },
                    ),
                ],
            )
        },
    )

    release = WorkflowSpec(
        name="on-publish",
        filename="release.yml",
        on={"release": {"types": ["published"]}},
        jobs={
            "publish": JobSpec(
                name="Build and publish",
                steps=[
                    *_setup_steps(install),
                    StepSpec(
                        name="Publish",
                        run=(
                            f'{cli_command} on-publish --git-url "$GIT_URL"'
                            ' --branch "$TARGET_BRANCH" --tag "$RELEASE_TAG"'
                        ),
                        env={
                            "GIT_URL": REPOSITORY_URL,
                            "TARGET_BRANCH": "${{ github.event.release.target_commitish }}",
                            "RELEASE_TAG": "${{ github.event.release.tag_name }}",
                            "NPM_TOKEN": NPM_TOKEN,
                        },
                    ),
                ],
            )
        },
    )

    trusted_release = WorkflowSpec(
        name="publish-release",
        filename="trusted-release.yml",
        on={"release": {"types": ["published"]}},
        jobs={
            "publish": JobSpec(
                name="Build and publish (trusted publishing)",
                permissions={"contents": "read", "id-token": "write"},
                steps=[
                    *_setup_steps(install),
                    StepSpec(
                        name="Publish",
                        run=f'{cli_command} publish-release --git-url "$GIT_URL"',
                        env={"GIT_URL": REPOSITORY_URL},
                    ),
                ],
            )
        },
    )

    dispatch_inputs = [
        WorkflowDispatchInput(name="tag", description="Version to publish (defaults to the latest tag)"),
        WorkflowDispatchInput(name="branch", description="Branch to publish from", default="main"),
    ]
    manual_publish = WorkflowSpec(
        name="publish",
        filename="manual-publish.yml",
        on={"workflow_dispatch": {"inputs": {i.name: i.to_dict() for i in dispatch_inputs}}},
        jobs={
            "publish": JobSpec(
                name="Publish without build",
                steps=[
                    *_setup_steps(install),
                    StepSpec(
                        name="Publish",
                        run=f'{cli_command} publish --git-url "$GIT_URL" --branch "$BRANCH" ${{TAG:+--tag "$TAG"}}',
                        env={
                            "GIT_URL": REPOSITORY_URL,
                            "BRANCH": "${{ inputs.branch }}",
                            "TAG": "${{ inputs.tag }}",
                            "NPM_TOKEN": NPM_TOKEN,
                        },
                    ),
                ],
            )
        },
    )

    return [pull_request, release, trusted_release, manual_publish]


def write_workflows(
    directory: Path,
    cli_command: str = "tspublish",
    install: str = "pip install tspublish",
) -> list[Path]:
    """Render every workflow into `directory` (e.g. `.github/workflows`)."""
    directory.mkdir(parents=True, exist_ok=True)
    written = []
    for spec in render_workflows(cli_command=cli_command, install=install):
        path = directory / spec.filename
        path.write_text(spec.to_yaml(include_header=True))
        written.append(path)
    return written
