"""
Command resolution for plugin operations.

Turns (mode, package, version) into the exact npm invocation. Validation
always happens here, before anything is launched: a request that fails
validation never reaches the process launcher.
"""

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from kitconsole.errors import InvalidPackage, InvalidVersion
from kitconsole.plugins.manifest import ProjectManifest
from kitconsole.plugins.schemas import Mode, PackageInfo
from kitconsole.plugins.versions import is_valid_version

logger = logging.getLogger(__name__)

SAVE_EXACT_FLAG = "--save-exact"


@dataclass(frozen=True)
class CommandPlan:
    mode: Mode
    package_name: str
    argv: List[str] = field(hash=False)
    cwd: Path
    version: Optional[str] = None

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)


def package_spec(package_name: str, version: Optional[str] = None) -> str:
    return f"{package_name}@{version}" if version else package_name


def build_argv(
    mode: Union[Mode, str],
    package_name: str,
    version: Optional[str] = None,
    npm_command: str = "npm",
) -> List[str]:
    mode = Mode(mode)
    if mode == Mode.UNINSTALL:
        return [npm_command, "uninstall", package_name]
    if mode in (Mode.INSTALL, Mode.UPDATE):
        return [npm_command, "install", package_spec(package_name, version), SAVE_EXACT_FLAG]
    raise ValueError(f"No command for mode '{mode.value}'")


def describe_command(
    mode: Union[Mode, str],
    package_name: str,
    version: Optional[str] = None,
    npm_command: str = "npm",
) -> str:
    """Command line shown to the user before they confirm an operation."""
    return shlex.join(build_argv(mode, package_name, version, npm_command))


def validate_version(info: PackageInfo, requested_version: Optional[str]) -> None:
    if requested_version is None:
        return
    if not is_valid_version(requested_version):
        raise InvalidVersion(
            f"'{requested_version}' is not a valid version",
            info.package_name,
            requested_version,
        )
    if requested_version not in info.versions:
        raise InvalidVersion(
            f"Version {requested_version} of {info.package_name} does not exist",
            info.package_name,
            requested_version,
        )


def validate_request(
    mode: Union[Mode, str],
    package_name: str,
    requested_version: Optional[str],
    info: Optional[PackageInfo],
    manifest: Optional[ProjectManifest] = None,
) -> None:
    """
    Check a request against current package state.

    Raises:
        InvalidPackage: Unknown package (install/update) or not an installed,
            removable dependency (uninstall)
        InvalidVersion: Version is malformed or not published
    """
    mode = Mode(mode)

    if mode == Mode.UNINSTALL:
        installed = (manifest is not None and manifest.has(package_name)) or (
            info is not None and info.installed
        )
        if not installed:
            raise InvalidPackage(f"{package_name} is not installed", package_name)
        if info is not None and info.required:
            raise InvalidPackage(
                f"{package_name} is required by the kit and cannot be uninstalled",
                package_name,
            )
        return

    if info is None:
        raise InvalidPackage(f"{package_name} is not a known plugin", package_name)

    if mode == Mode.UPDATE and not info.installed:
        raise InvalidPackage(
            f"{package_name} is not installed, install it instead", package_name
        )

    validate_version(info, requested_version)


def resolve_command(
    mode: Union[Mode, str],
    package_name: str,
    requested_version: Optional[str],
    info: Optional[PackageInfo],
    project_dir: Path,
    manifest: Optional[ProjectManifest] = None,
    npm_command: str = "npm",
) -> CommandPlan:
    """
    Validate a request and build the npm command for it.

    Installs without a version leave the choice to npm (which picks the
    ``latest`` tag); updates without a version are pinned to the latest
    known version. Both record an exact version in package.json.
    """
    mode = Mode(mode)
    if mode == Mode.STATUS:
        raise ValueError("Status requests do not launch a command")

    validate_request(mode, package_name, requested_version, info, manifest)

    version = requested_version
    if mode == Mode.UPDATE and version is None:
        version = info.latest_version

    plan = CommandPlan(
        mode=mode,
        package_name=package_name,
        argv=build_argv(mode, package_name, version, npm_command),
        cwd=Path(project_dir),
        version=version,
    )
    logger.debug(f"Resolved {mode.value} {package_name}: {plan.command_line}")
    return plan
