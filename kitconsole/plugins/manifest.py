"""
Project manifest (package.json) reader.

Dependency values are classified once, when the manifest is parsed:
``"2.0.0"`` or ``"^1.4.0"`` is a registry version, ``"file:../my-plugin"``
is a local reference to a plugin on disk.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

from kitconsole.errors import ManifestReadFailure

logger = logging.getLogger(__name__)

LOCAL_REFERENCE_PREFIXES = ("file:", "link:")


@dataclass(frozen=True)
class RegistryVersion:
    value: str

    kind = "registryVersion"


@dataclass(frozen=True)
class LocalReference:
    path: str

    kind = "localReference"

    def resolve(self, project_dir: Path) -> Path:
        return (project_dir / self.path).resolve()


DependencyEntry = Union[RegistryVersion, LocalReference]


def parse_dependency_entry(value: str) -> DependencyEntry:
    for prefix in LOCAL_REFERENCE_PREFIXES:
        if value.startswith(prefix):
            return LocalReference(path=value[len(prefix):])
    return RegistryVersion(value=value)


@dataclass
class ProjectManifest:
    name: Optional[str] = None
    version: Optional[str] = None
    dependencies: Dict[str, DependencyEntry] = field(default_factory=dict)

    def get(self, package_name: str) -> Optional[DependencyEntry]:
        return self.dependencies.get(package_name)

    def has(self, package_name: str) -> bool:
        return package_name in self.dependencies


def read_json_file(path: Path) -> dict:
    """Read a JSON object from disk, raising ManifestReadFailure on any problem."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ManifestReadFailure(f"Manifest file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ManifestReadFailure(f"Failed to parse {path.name}: {e}") from e
    except OSError as e:
        raise ManifestReadFailure(f"Failed to read {path}: {e}") from e

    if not isinstance(data, dict):
        raise ManifestReadFailure(f"{path.name} must contain a JSON object")
    return data


def read_manifest(manifest_path: Path) -> ProjectManifest:
    """
    Parse the project's package.json.

    The file is read on every call; callers rely on seeing what npm last
    wrote to disk.

    Raises:
        ManifestReadFailure: If the file is missing, unreadable or malformed
    """
    data = read_json_file(manifest_path)

    raw_dependencies = data.get("dependencies") or {}
    if not isinstance(raw_dependencies, dict):
        raise ManifestReadFailure("'dependencies' in package.json must be an object")

    dependencies: Dict[str, DependencyEntry] = {}
    for name, value in raw_dependencies.items():
        if not isinstance(value, str):
            raise ManifestReadFailure(
                f"Dependency '{name}' in package.json must be a string, got {value!r}"
            )
        dependencies[name] = parse_dependency_entry(value)

    logger.debug(f"Read {len(dependencies)} dependencies from {manifest_path}")

    return ProjectManifest(
        name=data.get("name"),
        version=data.get("version"),
        dependencies=dependencies,
    )


def read_package_version(package_dir: Path) -> Optional[str]:
    """Version from ``<package_dir>/package.json``, or None if it cannot be read."""
    try:
        data = read_json_file(package_dir / "package.json")
    except ManifestReadFailure as e:
        logger.debug(f"No readable package.json in {package_dir}: {e.message}")
        return None
    version = data.get("version")
    return version if isinstance(version, str) else None


def read_plugin_config(package_dir: Path) -> Optional[dict]:
    """Plugin configuration (``kit.json``) shipped by an installed package."""
    config_path = package_dir / "kit.json"
    if not config_path.exists():
        return None
    try:
        return read_json_file(config_path)
    except ManifestReadFailure as e:
        logger.warning(f"Ignoring unreadable plugin config {config_path}: {e.message}")
        return None
