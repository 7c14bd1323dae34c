"""Shared fixtures: a throwaway prototype project, a fake registry and a fake npm."""

import json
from pathlib import Path
from typing import Dict, List, Optional

import httpx
import pytest

from kitconsole.plugins.launcher import ProcessLauncher
from kitconsole.plugins.packages import PackageResolver
from kitconsole.plugins.restart import RestartSignal, reset_for_tests
from kitconsole.plugins.service import PluginLifecycleService
from kitconsole.utils.registry_client import RegistryClient

PACKAGE_NAME = "test-package"
LATEST_VERSION = "2.0.0"
PREVIOUS_VERSION = "1.0.0"

REGISTRY_URL = "https://registry.test"

REGISTRY_DOCUMENTS = {
    PACKAGE_NAME: {
        "name": PACKAGE_NAME,
        "dist-tags": {"latest": LATEST_VERSION, "latest-1": PREVIOUS_VERSION},
        "versions": {PREVIOUS_VERSION: {}, LATEST_VERSION: {}},
    },
    "required-plugin": {
        "name": "required-plugin",
        "dist-tags": {"latest": "13.2.4"},
        "versions": {"13.1.0": {}, "13.2.4": {}},
    },
}


def registry_handler(request: httpx.Request) -> httpx.Response:
    name = request.url.path.lstrip("/")
    if name == "registry-down":
        raise httpx.ConnectError("connection refused", request=request)
    document = REGISTRY_DOCUMENTS.get(name)
    if document is None:
        return httpx.Response(404, json={"error": "Not found"})
    return httpx.Response(200, json=document)


def write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def write_manifest(project_dir: Path, dependencies: Dict[str, str]) -> None:
    write_json(
        project_dir / "package.json",
        {"name": "my-prototype", "version": "1.0.0", "dependencies": dependencies},
    )


def install_module(
    project_dir: Path,
    name: str,
    version: str,
    dependencies: Optional[Dict[str, str]] = None,
) -> None:
    write_json(
        project_dir / "node_modules" / name / "package.json",
        {"name": name, "version": version, "dependencies": dependencies or {}},
    )


class FakeProcess:
    def __init__(self, returncode: Optional[int] = None):
        self.pid = 4242
        self.returncode = returncode

    def poll(self) -> Optional[int]:
        return self.returncode


class FakePopen:
    """Records launches instead of running npm."""

    def __init__(self):
        self.calls: List[dict] = []
        self.error: Optional[OSError] = None
        self.returncode: Optional[int] = None

    def __call__(self, argv, **kwargs):
        if self.error is not None:
            raise self.error
        self.calls.append({"argv": list(argv), **kwargs})
        return FakeProcess(self.returncode)

    @property
    def command_lines(self) -> List[str]:
        return [" ".join(call["argv"]) for call in self.calls]


@pytest.fixture
def project_dir(tmp_path) -> Path:
    project = tmp_path / "prototype"
    project.mkdir()
    write_manifest(project, {"govuk-frontend": "5.0.0"})
    write_json(
        project / "known-plugins.json",
        {"plugins": {"available": [PACKAGE_NAME], "required": ["required-plugin"]}},
    )
    return project


@pytest.fixture
def registry() -> RegistryClient:
    return RegistryClient(REGISTRY_URL, transport=httpx.MockTransport(registry_handler))


@pytest.fixture
def resolver(project_dir, registry) -> PackageResolver:
    return PackageResolver(project_dir, project_dir / "known-plugins.json", registry)


@pytest.fixture
def fake_popen() -> FakePopen:
    return FakePopen()


@pytest.fixture
def launcher(tmp_path, fake_popen) -> ProcessLauncher:
    return ProcessLauncher(tmp_path / "logs", popen=fake_popen)


@pytest.fixture
def signal() -> RestartSignal:
    return RestartSignal()


@pytest.fixture
def service(resolver, launcher, signal) -> PluginLifecycleService:
    return PluginLifecycleService(resolver, launcher, signal=signal)


@pytest.fixture(autouse=True)
def _clear_restart_signal():
    reset_for_tests()
    yield
    reset_for_tests()
