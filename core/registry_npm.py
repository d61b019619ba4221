"""npm registry client and .npmrc handling."""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .errors import VersionSourceError
from .http_client import extract_hostname, fetch_json

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org"


@dataclass
class NpmrcConfig:
    """Scope registries and auth tokens collected from .npmrc files."""

    scope_registries: dict[str, str] = field(default_factory=dict)  # "@scope" -> URL
    auth_tokens: dict[str, str] = field(default_factory=dict)  # "host[/path]" -> token

    def merge(self, other: "NpmrcConfig") -> None:
        self.scope_registries.update(other.scope_registries)
        self.auth_tokens.update(other.auth_tokens)

    def registry_for(self, package_name: str) -> str:
        """Return the registry URL for a package, honouring scope registries."""
        if package_name.startswith("@") and "/" in package_name:
            scope = package_name.split("/", 1)[0]
            if scope in self.scope_registries:
                return self.scope_registries[scope]
        return DEFAULT_REGISTRY

    def token_for(self, registry_url: str) -> str | None:
        """Find the auth token for a registry, most specific path first."""
        without_scheme = registry_url.split("://", 1)[-1].rstrip("/")
        if without_scheme in self.auth_tokens:
            return self.auth_tokens[without_scheme]
        return self.auth_tokens.get(extract_hostname(registry_url))


def parse_npmrc(content: str) -> NpmrcConfig:
    """Parse scope registries and auth tokens out of .npmrc content."""
    config = NpmrcConfig()
    for line in content.splitlines():
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith(("#", ";")) or "=" not in line:
            continue

        key, value = (part.strip() for part in line.split("=", 1))

        # @scope:registry=https://registry.example.com
        if key.startswith("@") and key.endswith(":registry"):
            config.scope_registries[key[: -len(":registry")]] = value

        # //registry.example.com/:_authToken=token
        elif key.endswith(":_authToken"):
            registry = key[: -len(":_authToken")].removeprefix("//").rstrip("/")
            config.auth_tokens[registry] = value.strip("\"'")

    return config


def _read_npmrc(path: Path) -> NpmrcConfig:
    try:
        return parse_npmrc(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return NpmrcConfig()


def load_npmrc(project_dir: Path | None = None, home: Path | None = None) -> NpmrcConfig:
    """Merge the global ~/.npmrc with the project's .npmrc; the project wins.

    Raises:
        VersionSourceError: The project .npmrc exists but cannot be read
    """
    config = NpmrcConfig()

    home = Path.home() if home is None else home
    try:
        config.merge(_read_npmrc(home / ".npmrc"))
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Ignoring unreadable global .npmrc: %s", e)

    project_dir = Path.cwd() if project_dir is None else project_dir
    try:
        config.merge(_read_npmrc(project_dir / ".npmrc"))
    except (OSError, UnicodeDecodeError) as e:
        raise VersionSourceError(f"failed to parse .npmrc: {e}") from e

    return config


class NpmRegistryClient:
    """Lists package versions from an npm registry."""

    def __init__(
        self,
        timeout: float = 10.0,
        npmrc: NpmrcConfig | None = None,
        project_dir: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.project_dir = project_dir
        self.transport = transport
        self._npmrc = npmrc

    @property
    def npmrc(self) -> NpmrcConfig:
        if self._npmrc is None:
            self._npmrc = load_npmrc(self.project_dir)
        return self._npmrc

    async def list_versions(self, package_name: str, registry_override: str | None = None) -> set[str]:
        """Return all non-deprecated versions from the package's packument."""
        registry = (registry_override or self.npmrc.registry_for(package_name)).rstrip("/")
        headers = {"Accept": "application/json"}
        token = self.npmrc.token_for(registry)
        if token:
            headers["Authorization"] = f"Bearer {token}"
            logger.debug("Using authentication for registry: %s", registry)

        logger.debug("Checking npm package: %s (registry: %s)", package_name, registry)
        data = await fetch_json(
            f"{registry}/{package_name}",
            package_name=package_name,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

        versions = data.get("versions") if isinstance(data, dict) else None
        if not isinstance(versions, dict):
            raise VersionSourceError(f"no versions found for {package_name}")

        return {
            version
            for version, info in versions.items()
            if not (isinstance(info, dict) and info.get("deprecated"))
        }
