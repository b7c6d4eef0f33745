"""In-memory collaborators for pipeline tests.

FakeEngine interprets environment layers against a dict of container files
and simulates the handful of bun/npm commands the pipeline runs.
"""

from __future__ import annotations

import json
import posixpath
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import SecretStr

from tspublish import Collaborators, ExecOutput
from tspublish.environment import (
    Environment,
    WithDirectory,
    WithEnvVariable,
    WithExec,
    WithFiles,
    WithNewFile,
    WithSecretVariable,
    WithWorkdir,
)
from tspublish.errors import AuthenticationError, RepositoryNotFound, ResolutionError

REPO_URL = "https://example.com/org/pkg.git"
VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(-[0-9A-Za-z.-]+)?$")


@dataclass
class Publication:
    """What `npm publish` saw."""

    manifest: dict
    files: set[str]
    variables: dict[str, str]
    args: tuple[str, ...]


@dataclass
class FakeEngine:
    failures: dict[str, tuple[int, str, str]] = field(default_factory=dict)
    executed: list[tuple[str, ...]] = field(default_factory=list)
    runs: list[Environment] = field(default_factory=list)
    published: list[Publication] = field(default_factory=list)

    def fail(self, command: str, exit_code: int = 1, stdout: str = "", stderr: str = "") -> None:
        self.failures[command] = (exit_code, stdout, stderr)

    def execute(self, env: Environment, ctx: Collaborators) -> ExecOutput:
        self.runs.append(env)
        _, output = self._materialize(env, ctx)
        return output

    def export(self, env: Environment, path: str, dest: Path, ctx: Collaborators) -> Path:
        files, _ = self._materialize(env, ctx)
        root = env.resolve_path(path).rstrip("/") + "/"
        for name, content in files.items():
            if name.startswith(root):
                target = dest / name[len(root) :]
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content)
        return dest

    def _materialize(self, env: Environment, ctx: Collaborators) -> tuple[dict[str, str], ExecOutput]:
        files: dict[str, str] = {}
        variables: dict[str, str] = {}
        workdir = "/"
        output = ExecOutput()

        for layer in env.layers:
            if isinstance(layer, WithWorkdir):
                workdir = layer.path
            elif isinstance(layer, WithDirectory):
                if layer.mounted:
                    files = {k: v for k, v in files.items() if not k.startswith(layer.path.rstrip("/") + "/")}
                files.update(_read_tree(ctx, layer.tree, layer.path))
            elif isinstance(layer, WithFiles):
                for source_file in layer.files:
                    tree_files = _read_tree(ctx, source_file.tree, "/")
                    key = f"/{source_file.name}"
                    if key not in tree_files:
                        raise layer.error(message=f"{source_file.name} not found in source tree")
                    files[posixpath.join(layer.path, source_file.name)] = tree_files[key]
            elif isinstance(layer, WithNewFile):
                files[layer.path] = layer.contents
            elif isinstance(layer, WithEnvVariable):
                variables[layer.name] = layer.value
            elif isinstance(layer, WithSecretVariable):
                variables[layer.name] = layer.secret.get_secret_value()
            elif isinstance(layer, WithExec):
                output = self._exec(layer, files, workdir, variables)

        return files, output

    def _exec(self, layer: WithExec, files: dict[str, str], workdir: str, variables: dict[str, str]) -> ExecOutput:
        args = layer.args
        command = " ".join(args)
        self.executed.append(args)

        if command in self.failures:
            exit_code, stdout, stderr = self.failures[command]
            raise layer.error(command=args, exit_code=exit_code, stdout=stdout, stderr=stderr)

        manifest_path = posixpath.join(workdir, "package.json")
        if args[:2] == ("bun", "install"):
            files[posixpath.join(workdir, "node_modules", ".bun-installed")] = "ok"
        elif args[:3] == ("bun", "run", "build"):
            files[posixpath.join(workdir, "dist", "index.js")] = "export {};\n"
        elif args[:2] == ("npm", "version"):
            version = args[2]
            if not VERSION_RE.match(version):
                raise layer.error(command=args, exit_code=1, stderr=f"npm error Invalid version: {version}\n")
            manifest = json.loads(files[manifest_path])
            manifest["version"] = version
            files[manifest_path] = json.dumps(manifest)
            return ExecOutput(stdout=f"v{version}\n")
        elif args[:2] == ("npm", "publish"):
            self.published.append(
                Publication(
                    manifest=json.loads(files[manifest_path]),
                    files=set(files),
                    variables=dict(variables),
                    args=args,
                )
            )
            return ExecOutput(stdout="+ published\n", stderr="npm notice Publishing\n")

        return ExecOutput(stdout=f"{command}: ok\n")

    def commands(self) -> list[str]:
        return [" ".join(args) for args in self.executed]


def _read_tree(ctx: Collaborators, tree, mount_path: str) -> dict[str, str]:
    with tempfile.TemporaryDirectory() as tmp:
        root = ctx.export(tree, Path(tmp))
        return {
            posixpath.join(mount_path, path.relative_to(root).as_posix()): path.read_text()
            for path in root.rglob("*")
            if path.is_file()
        }


@dataclass
class FakeGit:
    repositories: dict[tuple[str, str], Path] = field(default_factory=dict)
    tag_listing: dict[str, list[str]] = field(default_factory=dict)
    checkouts: list[tuple[str, str]] = field(default_factory=list)
    tag_calls: list[str] = field(default_factory=list)

    def checkout(self, url: str, branch: str, dest: Path) -> Path:
        self.checkouts.append((url, branch))
        if (url, branch) not in self.repositories:
            raise RepositoryNotFound(url, branch)
        shutil.copytree(self.repositories[(url, branch)], dest, dirs_exist_ok=True)
        return dest

    def tags(self, url: str) -> list[str]:
        self.tag_calls.append(url)
        if url not in self.tag_listing:
            raise ResolutionError(f"Could not list tags of {url}")
        return list(self.tag_listing[url])


@dataclass
class FakeTokens:
    token: str = "short-lived-token"
    error: str | None = None
    exchanges: list[tuple[str, str, str]] = field(default_factory=list)

    def exchange(self, oidc_url: str, oidc_token: SecretStr, package: str) -> SecretStr:
        self.exchanges.append((oidc_url, oidc_token.get_secret_value(), package))
        if self.error:
            raise AuthenticationError(self.error)
        return SecretStr(self.token)
