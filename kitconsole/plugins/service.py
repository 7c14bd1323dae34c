import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Union
from urllib.parse import urlencode

from kitconsole.errors import InvalidPackage
from kitconsole.plugins.commands import describe_command, resolve_command, validate_request
from kitconsole.plugins.launcher import ProcessLauncher
from kitconsole.plugins.packages import PackageResolver
from kitconsole.plugins.restart import RestartSignal, restart_signal
from kitconsole.plugins.schemas import (
    Mode,
    OperationRequest,
    OperationStatus,
    PackageInfo,
    PluginListResponse,
    PluginModeView,
    PluginSummary,
    ReturnLink,
    StatusReport,
)
from kitconsole.plugins.status import PROCESSING, reconcile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationRecord:
    mode: Mode
    version: Optional[str] = None


class PluginLifecycleService:
    """
    Entry point for plugin operations coming from the console UI.

    Remembers the last operation started for each package so that status
    polls can be evaluated against the mode and version that were actually
    launched.
    """

    def __init__(
        self,
        resolver: PackageResolver,
        launcher: ProcessLauncher,
        signal: RestartSignal = restart_signal,
        npm_command: str = "npm",
        base_path: str = "/manage-prototype",
    ):
        self.resolver = resolver
        self.launcher = launcher
        self.signal = signal
        self.npm_command = npm_command
        self.base_path = base_path.rstrip("/")
        self._lock = threading.Lock()
        self._operations: Dict[str, OperationRecord] = {}

    # Operation lifecycle

    def previous_operation(self, package_name: str) -> Optional[OperationRecord]:
        with self._lock:
            return self._operations.get(package_name)

    def _remember(self, package_name: str, mode: Mode, version: Optional[str]) -> None:
        with self._lock:
            self._operations[package_name] = OperationRecord(mode=mode, version=version)

    async def start_operation(
        self,
        mode: Union[Mode, str],
        package_name: str,
        version: Optional[str] = None,
    ) -> StatusReport:
        """
        Validate, launch and answer ``processing``.

        Raises:
            InvalidPackage, InvalidVersion: Request rejected, nothing launched
            ManifestReadFailure, RegistryError: Package state could not be read
        """
        mode = Mode(mode)
        manifest = self.resolver.read_manifest()
        info = await self.resolver.lookup(package_name, manifest)
        plan = resolve_command(
            mode,
            package_name,
            version,
            info,
            self.resolver.project_dir,
            manifest=manifest,
            npm_command=self.npm_command,
        )

        self._remember(package_name, mode, plan.version)
        # Spawn failures are reported by the next status poll
        self.launcher.launch(plan)
        return PROCESSING

    def relabel_mode_after_restart(self, mode: Union[Mode, str], package_name: str) -> Mode:
        """
        Compatibility shim for kits upgraded from 13.1 to 13.2.4 and later.

        The 13.1 console page, still open in the browser while the kit
        updates itself, keeps polling with ``mode=status``. Once the kit has
        restarted such a poll is evaluated as an update. Only applies when
        the package's last recorded operation was an update, or when nothing
        was recorded (the update was started by the old console).
        """
        mode = Mode(mode)
        if mode != Mode.STATUS or not self.signal.is_set():
            return mode

        previous = self.previous_operation(package_name)
        if previous is None or previous.mode == Mode.UPDATE:
            logger.info(f"Treating status poll for {package_name} as an update after kit restart")
            return Mode.UPDATE
        return mode

    async def check_status(
        self,
        mode: Union[Mode, str],
        package_name: str,
        version: Optional[str] = None,
    ) -> StatusReport:
        mode = Mode(mode)
        previous = self.previous_operation(package_name)

        if mode == Mode.STATUS:
            if previous is None:
                # No operation known to this process and no restart yet
                return PROCESSING
            mode = previous.mode

        if version is None and previous is not None and previous.mode == mode:
            version = previous.version

        request = OperationRequest(
            mode=mode, package_name=package_name, requested_version=version
        )
        return await reconcile(request, self.signal.is_set(), self.resolver, self.launcher)

    # Listing and confirmation pages

    def link(self, mode: Union[Mode, str], package_name: str, version: Optional[str] = None) -> str:
        query = {"package": package_name}
        if version:
            query["version"] = version
        return f"{self.base_path}/plugins/{Mode(mode).value}?{urlencode(query)}"

    def summarize(self, info: PackageInfo) -> PluginSummary:
        name = info.package_name
        can_update = (
            info.installed
            and not info.installed_locally
            and info.latest_version is not None
            and info.installed_version != info.latest_version
        )
        can_uninstall = info.installed and not info.required
        return PluginSummary(
            package_name=name,
            name=info.display_name,
            latest_version=info.latest_version,
            installed_version=info.installed_version,
            installed=info.installed,
            required=info.required,
            install_command=describe_command(Mode.INSTALL, name, npm_command=self.npm_command),
            update_command=(
                describe_command(Mode.UPDATE, name, info.latest_version, self.npm_command)
                if can_update
                else None
            ),
            uninstall_command=(
                describe_command(Mode.UNINSTALL, name, npm_command=self.npm_command)
                if can_uninstall
                else None
            ),
            install_link=self.link(Mode.INSTALL, name),
            update_link=self.link(Mode.UPDATE, name) if can_update else None,
            uninstall_link=self.link(Mode.UNINSTALL, name) if can_uninstall else None,
        )

    async def list_plugins(
        self, installed_only: bool = False, search: Optional[str] = None
    ) -> PluginListResponse:
        if installed_only:
            packages = await self.resolver.get_installed_packages()
        else:
            packages = await self.resolver.get_all_packages()

        if search:
            packages = [info for info in packages if matches_search(info, search)]

        return PluginListResponse(
            status="installed" if installed_only else "search",
            is_search_page=not installed_only,
            is_installed_page=installed_only,
            search=search,
            plugins=[self.summarize(info) for info in packages],
        )

    async def mode_view(
        self,
        mode: Union[Mode, str],
        package_name: str,
        version: Optional[str] = None,
    ) -> PluginModeView:
        """
        Data for the confirmation page shown before an operation starts.

        Raises:
            InvalidPackage, InvalidVersion: Same checks as start_operation
        """
        mode = Mode(mode)
        if mode == Mode.STATUS:
            raise InvalidPackage("Status has no confirmation page", package_name)

        manifest = self.resolver.read_manifest()
        info = await self.resolver.lookup(package_name, manifest)
        validate_request(mode, package_name, version, info, manifest)
        if info is None:
            # Uninstalling something the registry has never heard of
            info = PackageInfo(package_name=package_name, installed=True)

        command_version = version
        if mode == Mode.UPDATE and command_version is None:
            command_version = info.latest_version

        return PluginModeView(
            mode=mode,
            page_name=f"{mode.value.capitalize()} {info.display_name}",
            chosen_plugin=self.summarize(info),
            command=describe_command(mode, package_name, command_version, self.npm_command),
            version=command_version,
            dependent_plugins=info.dependent_packages if mode == Mode.UNINSTALL else [],
            return_link=ReturnLink(
                href=f"{self.base_path}/plugins-installed"
                if info.installed
                else f"{self.base_path}/plugins",
                text="Back to plugins",
            ),
        )


def matches_search(info: PackageInfo, search: str) -> bool:
    haystack = f"{info.package_name} {info.display_name}".lower()
    terms: List[str] = [term for term in search.lower().split() if term]
    return all(term in haystack for term in terms)


def is_terminal(report: StatusReport) -> bool:
    return report.status != OperationStatus.PROCESSING
