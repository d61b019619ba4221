"""Ecosystem detection for dependency manifests."""

import re
from pathlib import Path

from .dialect import ManifestDialect
from .errors import ManifestNotFoundError
from .parse_dart import DartDialect
from .parse_node import NodeDialect

DIALECTS: dict[str, ManifestDialect] = {
    "npm": NodeDialect(),
    "pub": DartDialect(),
}


def get_dialect(ecosystem: str) -> ManifestDialect:
    """Return the dialect for an ecosystem.

    Raises:
        ValueError: The ecosystem is not supported
    """
    try:
        return DIALECTS[ecosystem]
    except KeyError:
        raise ValueError(f"Unsupported ecosystem: {ecosystem}") from None


def identify(content: str, filename: str | None = None) -> str:
    """Detect ecosystem from content and filename hints.

    Args:
        content: The manifest file content
        filename: Optional filename for additional context

    Returns:
        Detected ecosystem: 'npm', 'pub', or 'unknown'
    """
    # Filename-based detection (takes precedence)
    if filename:
        if filename.endswith("package.json"):
            return "npm"
        if filename.endswith(("pubspec.yaml", "pubspec.yml")):
            return "pub"

    # Content-based detection
    node_patterns = [
        r'"dependencies"\s*:',
        r'"devDependencies"\s*:',
        r'"peerDependencies"\s*:',
    ]
    for pattern in node_patterns:
        if re.search(pattern, content):
            return "npm"

    dart_patterns = [
        r"^dependencies:\s*$",
        r"^dev_dependencies:\s*$",
        r"^environment:\s*\n\s+sdk:",
    ]
    for pattern in dart_patterns:
        if re.search(pattern, content, re.MULTILINE):
            return "pub"

    return "unknown"


def find_manifest(directory: Path) -> tuple[Path, str]:
    """Look for package.json, then pubspec.yaml, in a directory.

    Raises:
        ManifestNotFoundError: Neither file exists
    """
    for dialect in DIALECTS.values():
        candidate = directory / dialect.filename
        if candidate.is_file():
            return candidate, dialect.ecosystem
    raise ManifestNotFoundError(f"no package.json or pubspec.yaml found in {directory}")
