import pytest

from kitconsole.errors import ManifestReadFailure, RegistryError
from kitconsole.plugins.packages import KnownPlugins, dump_known_plugins, load_known_plugins
from kitconsole.plugins.versions import is_valid_version, sort_versions

from .conftest import (
    LATEST_VERSION,
    PACKAGE_NAME,
    PREVIOUS_VERSION,
    install_module,
    write_json,
    write_manifest,
)


class TestVersions:
    def test_valid_versions(self):
        assert is_valid_version("1.2.3")
        assert is_valid_version("2.0.0-beta.1")

    def test_invalid_versions(self):
        assert not is_valid_version("not-a-version")
        assert not is_valid_version("1.2")
        assert not is_valid_version(None)

    def test_sort_newest_first(self):
        assert sort_versions(["1.0.0", "10.0.0", "2.0.0", "junk"]) == [
            "10.0.0",
            "2.0.0",
            "1.0.0",
        ]


class TestKnownPlugins:
    def test_missing_catalog_is_empty(self, tmp_path):
        known = load_known_plugins(tmp_path / "known-plugins.json")

        assert known.available == []
        assert known.required == []

    def test_dump_and_load(self, tmp_path):
        path = tmp_path / "known-plugins.json"
        dump_known_plugins(path, KnownPlugins(available=["a"], required=["b"]))

        known = load_known_plugins(path)

        assert known.is_known("a")
        assert known.is_known("b")
        assert not known.is_known("c")


class TestLookup:
    @pytest.mark.asyncio
    async def test_available_not_installed(self, resolver):
        info = await resolver.lookup(PACKAGE_NAME)

        assert info.available
        assert not info.installed
        assert info.installed_version is None
        assert info.latest_version == LATEST_VERSION
        assert info.versions == [LATEST_VERSION, PREVIOUS_VERSION]

    @pytest.mark.asyncio
    async def test_unknown_package(self, resolver):
        assert await resolver.lookup("no-such-plugin") is None

    @pytest.mark.asyncio
    async def test_installed_version_from_node_modules(self, resolver, project_dir):
        write_manifest(project_dir, {PACKAGE_NAME: "^1.0.0"})
        install_module(project_dir, PACKAGE_NAME, PREVIOUS_VERSION)

        info = await resolver.lookup(PACKAGE_NAME)

        assert info.installed
        assert info.installed_version == PREVIOUS_VERSION

    @pytest.mark.asyncio
    async def test_installed_version_falls_back_to_manifest(self, resolver, project_dir):
        write_manifest(project_dir, {PACKAGE_NAME: PREVIOUS_VERSION})

        info = await resolver.lookup(PACKAGE_NAME)

        assert info.installed_version == PREVIOUS_VERSION

    @pytest.mark.asyncio
    async def test_installed_but_unknown_to_registry(self, resolver, project_dir):
        write_manifest(project_dir, {"private-plugin": "1.0.0"})

        info = await resolver.lookup("private-plugin")

        assert info.installed
        assert info.latest_version is None
        assert info.versions == []

    @pytest.mark.asyncio
    async def test_local_reference_skips_registry(self, resolver, project_dir, tmp_path):
        write_json(tmp_path / "my-plugin" / "package.json", {"version": "0.1.0"})
        write_json(tmp_path / "my-plugin" / "kit.json", {"meta": {"name": "My Plugin"}})
        # Would raise if the registry were consulted
        write_manifest(project_dir, {"registry-down": "file:../my-plugin"})

        info = await resolver.lookup("registry-down")

        assert info.installed
        assert info.installed_locally
        assert info.installed_version == "0.1.0"
        assert info.local_path == str((tmp_path / "my-plugin").resolve())
        assert info.display_name == "My Plugin"

    @pytest.mark.asyncio
    async def test_registry_failure_propagates(self, resolver):
        with pytest.raises(RegistryError):
            await resolver.lookup("registry-down")

    @pytest.mark.asyncio
    async def test_unreadable_manifest(self, resolver, project_dir):
        (project_dir / "package.json").unlink()

        with pytest.raises(ManifestReadFailure):
            await resolver.lookup(PACKAGE_NAME)

    @pytest.mark.asyncio
    async def test_required_plugin(self, resolver):
        info = await resolver.lookup("required-plugin")

        assert info.required
        assert not info.available


class TestDependencies:
    def test_dependents_and_dependencies(self, resolver, project_dir):
        write_manifest(
            project_dir,
            {"base-plugin": "1.0.0", "addon-plugin": "1.0.0", "other": "1.0.0"},
        )
        install_module(project_dir, "base-plugin", "1.0.0")
        install_module(project_dir, "addon-plugin", "1.0.0", {"base-plugin": "^1.0.0"})
        install_module(project_dir, "other", "1.0.0")

        assert resolver.get_dependent_packages("base-plugin") == ["addon-plugin"]
        assert resolver.get_dependency_packages("addon-plugin") == ["base-plugin"]
        assert resolver.get_dependency_packages("base-plugin") == []

    def test_not_installed_has_no_dependencies(self, resolver):
        assert resolver.get_dependency_packages(PACKAGE_NAME) == []


class TestListing:
    @pytest.mark.asyncio
    async def test_installed_packages(self, resolver, project_dir):
        write_manifest(
            project_dir,
            {PACKAGE_NAME: LATEST_VERSION, "govuk-frontend": "5.0.0", "kit-extension": "1.0.0"},
        )
        install_module(project_dir, PACKAGE_NAME, LATEST_VERSION)
        write_json(project_dir / "node_modules" / "kit-extension" / "kit.json", {})

        names = [info.package_name for info in await resolver.get_installed_packages()]

        assert sorted(names) == ["kit-extension", PACKAGE_NAME]

    @pytest.mark.asyncio
    async def test_all_packages(self, resolver, project_dir):
        write_manifest(project_dir, {"kit-extension": "1.0.0"})
        write_json(project_dir / "node_modules" / "kit-extension" / "kit.json", {})

        names = [info.package_name for info in await resolver.get_all_packages()]

        assert names == [PACKAGE_NAME, "required-plugin", "kit-extension"]
