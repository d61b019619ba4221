"""pub.dev (and private pub registry) client."""

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .errors import VersionSourceError
from .http_client import extract_hostname, fetch_json

logger = logging.getLogger(__name__)

DEFAULT_PUB_URL = "https://pub.dev"


@dataclass
class RegistryConfig:
    """A pub registry and its optional bearer token."""

    url: str
    auth_token: str | None = None


@dataclass
class PubConfig:
    """Known pub registries, keyed by hostname."""

    registries: dict[str, RegistryConfig] = field(
        default_factory=lambda: {"pub.dev": RegistryConfig(url=DEFAULT_PUB_URL)}
    )

    def registry_for(self, hosted_url: str | None) -> RegistryConfig:
        if not hosted_url:
            return self.registries.get("pub.dev") or RegistryConfig(url=DEFAULT_PUB_URL)
        known = self.registries.get(extract_hostname(hosted_url))
        return RegistryConfig(url=hosted_url, auth_token=known.auth_token if known else None)


def pub_tokens_path(
    home: Path | None = None, platform: str | None = None, environ: dict[str, str] | None = None
) -> Path:
    """Return where `dart pub token add` stores credentials on this platform."""
    home = Path.home() if home is None else home
    platform = sys.platform if platform is None else platform
    environ = os.environ if environ is None else environ

    if platform == "darwin":
        base = home / "Library" / "Application Support"
    elif platform.startswith("win"):
        base = Path(environ["APPDATA"]) if environ.get("APPDATA") else home / "AppData" / "Roaming"
    else:
        base = Path(environ["XDG_CONFIG_HOME"]) if environ.get("XDG_CONFIG_HOME") else home / ".config"
    return base / "dart" / "pub-tokens.json"


def parse_pub_tokens(content: str, config: PubConfig) -> None:
    """Add the tokens of a pub-tokens.json document to the config.

    Raises:
        ValueError: The document is not valid JSON
    """
    data = json.loads(content)
    for hosted in data.get("hosted") or []:
        url = hosted.get("url")
        if not url:
            continue
        hostname = extract_hostname(url)
        existing = config.registries.get(hostname)
        if existing:
            existing.auth_token = hosted.get("token")
        else:
            config.registries[hostname] = RegistryConfig(url=url.rstrip("/"), auth_token=hosted.get("token"))


def load_pub_config(tokens_path: Path | None = None) -> PubConfig:
    """Build the pub config, adding tokens when a token file exists.

    A missing or unreadable token file only loses the tokens.
    """
    config = PubConfig()
    tokens_path = pub_tokens_path() if tokens_path is None else tokens_path
    try:
        parse_pub_tokens(tokens_path.read_text(encoding="utf-8"), config)
    except FileNotFoundError:
        pass
    except (OSError, ValueError, AttributeError) as e:
        logger.warning("Ignoring unreadable pub token file %s: %s", tokens_path, e)
    return config


class PubRegistryClient:
    """Lists package versions from pub.dev or a hosted pub registry."""

    def __init__(
        self,
        timeout: float = 10.0,
        config: PubConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self._config = config

    @property
    def config(self) -> PubConfig:
        if self._config is None:
            self._config = load_pub_config()
        return self._config

    async def list_versions(self, package_name: str, registry_override: str | None = None) -> set[str]:
        registry = self.config.registry_for(registry_override)
        headers = {"Accept": "application/vnd.pub.v2+json"}
        if registry.auth_token:
            headers["Authorization"] = f"Bearer {registry.auth_token}"
            logger.debug("Using authentication for registry: %s", registry.url)

        logger.debug("Checking Dart package: %s (registry: %s)", package_name, registry.url)
        data = await fetch_json(
            f"{registry.url.rstrip('/')}/api/packages/{package_name}",
            package_name=package_name,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

        entries = data.get("versions") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise VersionSourceError(f"no versions found for {package_name}")
        return {entry["version"] for entry in entries if isinstance(entry, dict) and entry.get("version")}
