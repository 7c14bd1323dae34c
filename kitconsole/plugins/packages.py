"""
Package info resolution.

Combines three sources into a PackageInfo, fresh on every call:
- the project's package.json (what is installed, and how)
- the known-plugins catalog (what is offered / required)
- the npm registry (which versions exist)
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from kitconsole.errors import ManifestReadFailure
from kitconsole.plugins.manifest import (
    LocalReference,
    ProjectManifest,
    RegistryVersion,
    read_json_file,
    read_manifest,
    read_package_version,
    read_plugin_config,
)
from kitconsole.plugins.schemas import PackageInfo
from kitconsole.plugins.versions import sort_versions
from kitconsole.utils.registry_client import RegistryClient

logger = logging.getLogger(__name__)


@dataclass
class KnownPlugins:
    available: List[str] = field(default_factory=list)
    required: List[str] = field(default_factory=list)

    def is_known(self, package_name: str) -> bool:
        return package_name in self.available or package_name in self.required


def load_known_plugins(path: Path) -> KnownPlugins:
    """Read ``{"plugins": {"available": [...], "required": [...]}}``."""
    if not path.exists():
        logger.warning(f"Known plugins catalog not found at {path}")
        return KnownPlugins()

    data = read_json_file(path)
    plugins = data.get("plugins") or {}
    return KnownPlugins(
        available=list(plugins.get("available") or []),
        required=list(plugins.get("required") or []),
    )


class PackageResolver:
    def __init__(
        self,
        project_dir: Path,
        known_plugins_path: Path,
        registry: RegistryClient,
    ):
        self.project_dir = Path(project_dir)
        self.known_plugins_path = Path(known_plugins_path)
        self.registry = registry

    @property
    def manifest_path(self) -> Path:
        return self.project_dir / "package.json"

    def read_manifest(self) -> ProjectManifest:
        return read_manifest(self.manifest_path)

    def known_plugins(self) -> KnownPlugins:
        return load_known_plugins(self.known_plugins_path)

    def module_dir(self, package_name: str) -> Path:
        return self.project_dir / "node_modules" / package_name

    async def lookup(
        self, package_name: str, manifest: Optional[ProjectManifest] = None
    ) -> Optional[PackageInfo]:
        """
        Resolve everything known about a package.

        Returns:
            PackageInfo, or None when the package is neither installed nor
            known to the registry

        Raises:
            ManifestReadFailure: If package.json cannot be read
            RegistryError: If the registry cannot be reached
        """
        if manifest is None:
            manifest = self.read_manifest()
        known = self.known_plugins()
        entry = manifest.get(package_name)

        if isinstance(entry, LocalReference):
            return self._local_package_info(package_name, entry, manifest, known)

        metadata = await self.registry.fetch_registry_metadata(package_name)
        if metadata is None and entry is None:
            return None

        versions = sort_versions(metadata.versions) if metadata else []
        latest_version = metadata.latest if metadata else None
        if latest_version is None and versions:
            latest_version = versions[0]

        info = PackageInfo(
            package_name=package_name,
            available=package_name in known.available,
            required=package_name in known.required,
            latest_version=latest_version,
            versions=versions,
        )

        if isinstance(entry, RegistryVersion):
            module_dir = self.module_dir(package_name)
            info.installed = True
            # node_modules is the truth once npm finished; package.json may hold a range
            info.installed_version = read_package_version(module_dir) or entry.value
            info.plugin_config = read_plugin_config(module_dir)

        info.dependent_packages = self.get_dependent_packages(package_name, manifest)
        info.dependency_packages = self.get_dependency_packages(package_name, manifest)
        return info

    def _local_package_info(
        self,
        package_name: str,
        entry: LocalReference,
        manifest: ProjectManifest,
        known: KnownPlugins,
    ) -> PackageInfo:
        package_dir = entry.resolve(self.project_dir)
        version = read_package_version(package_dir)
        return PackageInfo(
            package_name=package_name,
            installed=True,
            installed_locally=True,
            local_path=str(package_dir),
            available=package_name in known.available,
            required=package_name in known.required,
            installed_version=version,
            latest_version=version,
            versions=[version] if version else [],
            plugin_config=read_plugin_config(package_dir),
            dependent_packages=self.get_dependent_packages(package_name, manifest),
            dependency_packages=self.get_dependency_packages(package_name, manifest),
        )

    def _installed_package_dir(self, package_name: str, manifest: ProjectManifest) -> Path:
        entry = manifest.get(package_name)
        if isinstance(entry, LocalReference):
            return entry.resolve(self.project_dir)
        return self.module_dir(package_name)

    def _declared_dependencies(self, package_dir: Path) -> List[str]:
        try:
            data = read_json_file(package_dir / "package.json")
        except ManifestReadFailure:
            return []
        names: List[str] = []
        for key in ("dependencies", "peerDependencies"):
            section = data.get(key) or {}
            if isinstance(section, dict):
                names.extend(section.keys())
        return names

    def get_dependent_packages(
        self, package_name: str, manifest: Optional[ProjectManifest] = None
    ) -> List[str]:
        """Installed packages whose own package.json depends on ``package_name``."""
        if manifest is None:
            manifest = self.read_manifest()
        dependents = []
        for name in manifest.dependencies:
            if name == package_name:
                continue
            package_dir = self._installed_package_dir(name, manifest)
            if package_name in self._declared_dependencies(package_dir):
                dependents.append(name)
        return sorted(dependents)

    def get_dependency_packages(
        self, package_name: str, manifest: Optional[ProjectManifest] = None
    ) -> List[str]:
        """Installed packages that ``package_name`` itself depends on."""
        if manifest is None:
            manifest = self.read_manifest()
        if not manifest.has(package_name):
            return []
        package_dir = self._installed_package_dir(package_name, manifest)
        declared = self._declared_dependencies(package_dir)
        return sorted(name for name in declared if manifest.has(name))

    async def get_installed_packages(self) -> List[PackageInfo]:
        """Installed plugins: catalogued packages, local references, or anything shipping kit.json."""
        manifest = self.read_manifest()
        known = self.known_plugins()
        names = [
            name
            for name, entry in manifest.dependencies.items()
            if known.is_known(name)
            or isinstance(entry, LocalReference)
            or (self._installed_package_dir(name, manifest) / "kit.json").exists()
        ]
        infos = await asyncio.gather(*(self.lookup(name, manifest) for name in names))
        return [info for info in infos if info is not None]

    async def get_all_packages(self) -> List[PackageInfo]:
        """Catalogued plugins plus every installed plugin, catalogue order first."""
        manifest = self.read_manifest()
        known = self.known_plugins()
        names = list(dict.fromkeys(known.available + known.required))
        installed = await self.get_installed_packages()
        extra = [info for info in installed if info.package_name not in names]
        infos = await asyncio.gather(*(self.lookup(name, manifest) for name in names))
        return [info for info in infos if info is not None] + extra


def dump_known_plugins(path: Path, known: KnownPlugins) -> None:
    """Write a catalog file; used by ``kitconsole init``."""
    path.write_text(
        json.dumps(
            {"plugins": {"available": known.available, "required": known.required}},
            indent=2,
        )
        + "\n",
        encoding="utf-8",
    )
