"""
Status reconciliation for plugin operations.

The exit code of npm cannot decide completion: the HTTP response is sent
before npm finishes, and the kit restarts part-way through. Each poll
instead compares the on-disk manifest and a fresh package lookup with what
was asked for, gated on the kit restart signal.

Decision table (``restarted`` is the kit restart signal):

    install / update   completed  restarted and installed and version matches
                                  (local references always match)
    uninstall          completed  restarted and (not installed or gone from
                                  package.json)
    anything else      processing

Errors (unknown package, unpublished version, unreadable manifest, registry
down, npm failed to start or exited non-zero) report ``error``.
"""

import logging
from typing import Optional

from kitconsole.errors import ConsoleError, InvalidPackage
from kitconsole.plugins.commands import validate_version
from kitconsole.plugins.launcher import ProcessLauncher
from kitconsole.plugins.manifest import LocalReference, ProjectManifest, RegistryVersion
from kitconsole.plugins.packages import PackageResolver
from kitconsole.plugins.schemas import (
    Mode,
    OperationRequest,
    OperationStatus,
    PackageInfo,
    StatusReport,
)

logger = logging.getLogger(__name__)

PROCESSING = StatusReport(status=OperationStatus.PROCESSING)
COMPLETED = StatusReport(status=OperationStatus.COMPLETED)


def error_report(error: ConsoleError) -> StatusReport:
    return StatusReport(
        status=OperationStatus.ERROR,
        message=error.message,
        error=error.category.value,
    )


def is_install_complete(
    request: OperationRequest,
    info: PackageInfo,
    manifest: ProjectManifest,
) -> bool:
    entry = manifest.get(request.package_name)
    if isinstance(entry, LocalReference):
        return True

    installed = info.installed or info.installed_version is not None
    if not installed:
        return False

    if request.requested_version is not None:
        return info.installed_version == request.requested_version

    # No version asked for: npm wrote an exact version, node_modules must agree
    if isinstance(entry, RegistryVersion):
        return info.installed_version == entry.value
    return False


def is_uninstall_complete(
    request: OperationRequest,
    info: Optional[PackageInfo],
    manifest: ProjectManifest,
) -> bool:
    if not manifest.has(request.package_name):
        return True
    return info is None or not info.installed


def decide(
    request: OperationRequest,
    restarted: bool,
    info: Optional[PackageInfo],
    manifest: ProjectManifest,
) -> StatusReport:
    """Pure decision from already-gathered state."""
    mode = request.mode

    if mode in (Mode.INSTALL, Mode.UPDATE):
        if info is None:
            return error_report(
                InvalidPackage(
                    f"{request.package_name} is not a known plugin", request.package_name
                )
            )
        if not isinstance(manifest.get(request.package_name), LocalReference):
            try:
                validate_version(info, request.requested_version)
            except ConsoleError as e:
                return error_report(e)
        if restarted and is_install_complete(request, info, manifest):
            return COMPLETED
        return PROCESSING

    if mode == Mode.UNINSTALL:
        if restarted and is_uninstall_complete(request, info, manifest):
            return COMPLETED
        return PROCESSING

    raise ValueError(f"Cannot reconcile mode '{mode.value}'")


async def reconcile(
    request: OperationRequest,
    restarted: bool,
    resolver: PackageResolver,
    launcher: Optional[ProcessLauncher] = None,
) -> StatusReport:
    """
    Report the current status of an operation. Safe to call any number of times.

    Never raises for expected failures; they come back as an ``error`` report.
    """
    if launcher is not None:
        failure = launcher.last_failure(request.package_name)
        if failure is not None:
            return error_report(failure)

    try:
        manifest = resolver.read_manifest()
        info = None
        # A removed entry settles an uninstall without asking the registry
        if request.mode != Mode.UNINSTALL or manifest.has(request.package_name):
            info = await resolver.lookup(request.package_name, manifest)
    except ConsoleError as e:
        logger.error(f"Status check for {request.package_name} failed: {e.message}")
        return error_report(e)

    report = decide(request, restarted, info, manifest)
    logger.debug(
        f"status poll {request.mode.value} {request.package_name}: {report.status.value}"
    )
    return report
