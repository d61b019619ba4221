"""The contract between the core and registry clients."""

from typing import Protocol


class VersionSource(Protocol):
    """Lists every published version of a package."""

    async def list_versions(
        self, package_name: str, ecosystem: str, registry_override: str | None = None
    ) -> set[str]:
        """Return all published version strings.

        Raises:
            VersionSourceError: The registry could not be queried
        """
        ...
