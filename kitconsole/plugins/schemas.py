from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class Mode(str, Enum):
    INSTALL = "install"
    UNINSTALL = "uninstall"
    UPDATE = "update"
    STATUS = "status"


class OperationStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class PackageInfo(BaseModel):
    package_name: str
    installed: bool = False
    installed_locally: bool = False
    available: bool = False
    required: bool = False
    latest_version: Optional[str] = None
    versions: List[str] = Field(default_factory=list)  # newest first
    installed_version: Optional[str] = None
    local_path: Optional[str] = None
    plugin_config: Optional[Dict[str, Any]] = None
    dependent_packages: List[str] = Field(default_factory=list)
    dependency_packages: List[str] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        """``govuk-task-list`` -> ``Govuk Task List``; plugins may override via kit.json."""
        if self.plugin_config and isinstance(self.plugin_config.get("meta"), dict):
            name = self.plugin_config["meta"].get("name")
            if name:
                return name
        base = self.package_name.split("/")[-1]
        return " ".join(word.capitalize() for word in base.replace("_", "-").split("-") if word)


class OperationRequest(BaseModel):
    mode: Mode
    package_name: str
    requested_version: Optional[str] = None


class PluginActionRequest(BaseModel):
    """Body of ``POST /plugins/{mode}`` as sent by the console's JavaScript."""

    package: str
    version: Optional[str] = None


class StatusReport(BaseModel):
    status: OperationStatus
    message: Optional[str] = None
    error: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PluginSummary(BaseModel):
    package_name: str
    name: str
    latest_version: Optional[str] = None
    installed_version: Optional[str] = None
    installed: bool = False
    required: bool = False
    install_command: str
    update_command: Optional[str] = None
    uninstall_command: Optional[str] = None
    install_link: str
    update_link: Optional[str] = None
    uninstall_link: Optional[str] = None


class PluginListResponse(BaseModel):
    status: Literal["search", "installed"]
    is_search_page: bool
    is_installed_page: bool
    search: Optional[str] = None
    plugins: List[PluginSummary]


class ReturnLink(BaseModel):
    href: str
    text: str


class PluginModeView(BaseModel):
    mode: Mode
    page_name: str
    chosen_plugin: PluginSummary
    command: str
    version: Optional[str] = None
    dependent_plugins: List[str] = Field(default_factory=list)
    return_link: ReturnLink
