"""Tests for GitHub Actions workflow generation."""

from ruamel.yaml import YAML

from tspublish.gha import (
    JobSpec,
    StepSpec,
    WorkflowDispatchInput,
    WorkflowSpec,
    render_workflows,
    write_workflows,
)


def _by_filename():
    return {spec.filename: spec for spec in render_workflows()}


def _run_lines(spec: WorkflowSpec) -> list[str]:
    return [step.run for job in spec.jobs.values() for step in job.steps if step.run]


class TestStepSpec:
    """Tests for StepSpec."""

    def test_run_step(self) -> None:
        """Test a step with a run command."""
        d = StepSpec(name="Publish", run="tspublish publish", env={"NPM_TOKEN": "x"}).to_dict()
        assert d == {"name": "Publish", "run": "tspublish publish", "env": {"NPM_TOKEN": "x"}}

    def test_uses_step(self) -> None:
        """Test a step with uses action and inputs."""
        d = StepSpec(name="Setup", uses="actions/setup-python@v5", with_={"python-version": "3.12"}).to_dict()
        assert d["uses"] == "actions/setup-python@v5"
        assert d["with"] == {"python-version": "3.12"}
        assert "run" not in d


class TestJobSpec:
    def test_permissions_are_optional(self) -> None:
        assert "permissions" not in JobSpec(name="Test").to_dict()
        job = JobSpec(name="Test", permissions={"id-token": "write"}).to_dict()
        assert job["permissions"] == {"id-token": "write"}
        assert job["runs-on"] == "ubuntu-latest"


def test_dispatch_input_to_dict() -> None:
    d = WorkflowDispatchInput(name="branch", description="Branch", default="main").to_dict()
    assert d == {"description": "Branch", "required": False, "type": "string", "default": "main"}


def test_one_workflow_per_entry_point() -> None:
    specs = _by_filename()
    assert sorted(specs) == ["manual-publish.yml", "pull-request.yml", "release.yml", "trusted-release.yml"]

    assert any("on-pull-request" in run for run in _run_lines(specs["pull-request.yml"]))
    assert any(run.startswith("tspublish on-publish") for run in _run_lines(specs["release.yml"]))
    assert any(run.startswith("tspublish publish-release") for run in _run_lines(specs["trusted-release.yml"]))
    assert any(run.startswith("tspublish publish ") for run in _run_lines(specs["manual-publish.yml"]))


def test_token_comes_from_secrets() -> None:
    release = _by_filename()["release.yml"]
    publish = release.jobs["publish"].steps[-1]

    assert publish.env["NPM_TOKEN"] == "${{ secrets.NPM_TOKEN }}"
    assert "NPM_TOKEN" not in publish.run
    assert publish.env["RELEASE_TAG"] == "${{ github.event.release.tag_name }}"
    assert '--tag "$RELEASE_TAG"' in publish.run


def test_trusted_release_requests_id_token() -> None:
    job = _by_filename()["trusted-release.yml"].jobs["publish"]

    assert job.permissions["id-token"] == "write"
    assert all("NPM_TOKEN" not in (step.env or {}) for step in job.steps)


def test_manual_publish_inputs() -> None:
    on = _by_filename()["manual-publish.yml"].on
    assert set(on["workflow_dispatch"]["inputs"]) == {"tag", "branch"}


def test_custom_cli_command() -> None:
    specs = render_workflows(cli_command="uvx tspublish")
    assert all(run.startswith("uvx tspublish") for spec in specs for run in _run_lines(spec)[1:])


def test_to_yaml_is_valid() -> None:
    spec = _by_filename()["trusted-release.yml"]
    text = spec.to_yaml(include_header=True)

    assert text.startswith("# ====")
    assert "GENERATED FILE" in text
    parsed = YAML(typ="safe").load(text)
    assert parsed["name"] == "publish-release"
    assert parsed["on"] == {"release": {"types": ["published"]}}
    assert parsed["jobs"]["publish"]["permissions"] == {"contents": "read", "id-token": "write"}


def test_write_workflows(tmp_path) -> None:
    written = write_workflows(tmp_path / "workflows", cli_command="tspublish")

    assert len(written) == 4
    for path in written:
        parsed = YAML(typ="safe").load(path.read_text())
        assert parsed["jobs"]
        assert parsed["jobs"][next(iter(parsed["jobs"]))]["steps"][0]["uses"] == "actions/checkout@v4"


def test_no_expressions_in_run_commands() -> None:
    for spec in render_workflows():
        for run in _run_lines(spec):
            assert "${{" not in run, f"{spec.filename}: {run}"


def test_pull_request_branch_is_passed_through_env() -> None:
    step = _by_filename()["pull-request.yml"].jobs["lint-and-test"].steps[-1]

    assert step.env["HEAD_REF"] == "${{ github.head_ref }}"
    assert step.env["HEAD_REPOSITORY"] == "${{ github.event.pull_request.head.repo.full_name }}"
    assert step.run.endswith('--branch "$HEAD_REF"')


def test_manual_publish_tag_is_optional() -> None:
    step = _by_filename()["manual-publish.yml"].jobs["publish"].steps[-1]

    assert step.env["TAG"] == "${{ inputs.tag }}"
    assert step.run.endswith('${TAG:+--tag "$TAG"}')
