"""Version source backed by the real package registries."""

from pathlib import Path

import httpx

from .errors import VersionSourceError
from .registry_npm import NpmRegistryClient
from .registry_pub import PubRegistryClient


class RegistryVersionSource:
    """Dispatches version lookups to the npm or pub registry client."""

    def __init__(
        self,
        timeout: float = 10.0,
        project_dir: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the registry clients.

        Args:
            timeout: Request timeout in seconds
            project_dir: Directory holding the project's .npmrc
            transport: Optional httpx transport, mainly for tests
        """
        self.clients = {
            "npm": NpmRegistryClient(timeout=timeout, project_dir=project_dir, transport=transport),
            "pub": PubRegistryClient(timeout=timeout, transport=transport),
        }

    async def list_versions(
        self, package_name: str, ecosystem: str, registry_override: str | None = None
    ) -> set[str]:
        client = self.clients.get(ecosystem)
        if client is None:
            raise VersionSourceError(f"unsupported ecosystem: {ecosystem}")
        return await client.list_versions(package_name, registry_override)
