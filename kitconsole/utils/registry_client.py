"""
npm registry client.

Only the package document (``GET {registry}/{name}``) is used: its
``dist-tags`` give the latest version and the keys of ``versions`` give the
set of installable versions.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from kitconsole.errors import RegistryError

logger = logging.getLogger(__name__)


@dataclass
class RegistryMetadata:
    name: str
    dist_tags: Dict[str, str] = field(default_factory=dict)
    versions: List[str] = field(default_factory=list)

    @property
    def latest(self) -> Optional[str]:
        return self.dist_tags.get("latest")


class RegistryClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def package_url(self, package_name: str) -> str:
        # Scoped names keep their leading @ but the slash must be encoded
        return f"{self.base_url}/{quote(package_name, safe='@')}"

    async def fetch_registry_metadata(self, package_name: str) -> Optional[RegistryMetadata]:
        """
        Fetch the registry document for a package.

        Returns:
            RegistryMetadata, or None when the registry does not know the package

        Raises:
            RegistryError: On network failure or an unexpected response
        """
        url = self.package_url(package_name)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            logger.error(f"Registry request for {package_name} failed: {e}")
            raise RegistryError(
                f"Could not reach the package registry for {package_name}",
                package_name,
            ) from e

        if response.status_code == 404:
            logger.debug(f"Registry does not know {package_name}")
            return None

        if response.status_code != 200:
            raise RegistryError(
                f"Registry answered {response.status_code} for {package_name}",
                package_name,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(
                f"Registry returned invalid JSON for {package_name}", package_name
            ) from e

        dist_tags = data.get("dist-tags") or {}
        versions = data.get("versions") or {}
        return RegistryMetadata(
            name=data.get("name", package_name),
            dist_tags={k: v for k, v in dist_tags.items() if isinstance(v, str)},
            versions=list(versions.keys()),
        )
