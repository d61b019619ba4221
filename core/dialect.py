"""Shared capability set of the manifest dialects."""

from abc import ABC, abstractmethod
from typing import NamedTuple

from .constraints import clean_version, is_registry_constraint
from .models import Anchor, Dependency, DependencySection, Manifest, Shape


class TokenSpan(NamedTuple):
    """Position of a version token in the manifest text (end exclusive)."""

    start: int
    end: int
    value: str


class ManifestDialect(ABC):
    """One manifest format: how to parse it and how to find tokens in it again."""

    ecosystem: str
    filename: str
    sections: dict[str, DependencySection]

    @abstractmethod
    def parse(self, content: str) -> Manifest:
        """Parse manifest text into a Manifest.

        Raises:
            ManifestParseError: The text is structurally invalid
        """

    @abstractmethod
    def detect_shape(self, content: str, dependency: Dependency) -> Shape | None:
        """Return how the dependency is written at its anchor, or None if it is not there."""

    @abstractmethod
    def locate(self, content: str, dependency: Dependency) -> TokenSpan:
        """Find the version token of a dependency at its anchor.

        Raises:
            AnchorNotFoundError: The anchor no longer points at this dependency
        """


def line_number_at(content: str, offset: int) -> int:
    return content.count("\n", 0, offset) + 1


def iter_lines(content: str):
    """Yield (line_number, line_start_offset, text) with any trailing CR removed."""
    offset = 0
    for number, line in enumerate(content.split("\n"), start=1):
        yield number, offset, line.rstrip("\r")
        offset += len(line) + 1


def build_dependency(
    name: str,
    raw: str,
    section: DependencySection,
    anchor: Anchor,
    registry_override: str | None = None,
) -> Dependency | None:
    """Create a Dependency, or None when the value is not a registry version."""
    if not is_registry_constraint(raw):
        return None
    return Dependency(
        name=name,
        raw_constraint=raw,
        cleaned_version=clean_version(raw),
        section=section,
        anchor=anchor,
        registry_override=registry_override,
    )
