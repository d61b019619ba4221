"""Node.js package.json parsing."""

import json
import re
from json.decoder import scanstring
from typing import Iterator, NamedTuple

from .dialect import ManifestDialect, TokenSpan, build_dependency, line_number_at
from .errors import AnchorNotFoundError, ManifestParseError
from .models import Anchor, Dependency, DependencySection, Manifest, Shape

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_decoder = json.JSONDecoder()
_BOM = "\ufeff"


class _Member(NamedTuple):
    key: str
    start: int  # first character of the value
    end: int  # one past the last character of the value


class _Entry(NamedTuple):
    section: str
    name: str
    offset: int  # first character inside the value's quotes
    raw: str


def _skip(content: str, index: int) -> int:
    return _WHITESPACE.match(content, index).end()


def _members(content: str, index: int) -> Iterator[_Member]:
    """Yield the members of the JSON object whose "{" is at index."""
    index = _skip(content, index + 1)
    if content.startswith("}", index):
        return
    while True:
        key, index = scanstring(content, index + 1)
        index = _skip(content, index)
        index = _skip(content, index + 1)  # ':'
        _, end = _decoder.raw_decode(content, index)
        yield _Member(key, index, end)
        index = _skip(content, end)
        if not content.startswith(",", index):
            return
        index = _skip(content, index + 1)


def _entries(content: str, sections: dict[str, DependencySection]) -> Iterator[_Entry]:
    """Walk the dependency sections of a valid package.json, keeping token positions."""
    start = _skip(content, 1 if content.startswith(_BOM) else 0)
    if not content.startswith("{", start):
        return
    for member in _members(content, start):
        if member.key not in sections or not content.startswith("{", member.start):
            continue
        for entry in _members(content, member.start):
            if not content.startswith('"', entry.start):
                continue  # not a string; nothing to check
            raw, _ = scanstring(content, entry.start + 1)
            # Escaped values cannot be rewritten in place.
            if content[entry.start + 1 : entry.end - 1] != raw:
                continue
            yield _Entry(member.key, entry.key, entry.start + 1, raw)


class NodeDialect(ManifestDialect):
    """Parser for Node.js package.json files."""

    ecosystem = "npm"
    filename = "package.json"
    sections = {
        "dependencies": DependencySection.RUNTIME,
        "devDependencies": DependencySection.DEV,
        "peerDependencies": DependencySection.PEER,
    }

    def parse(self, content: str) -> Manifest:
        try:
            data = json.loads(content.removeprefix(_BOM))
        except json.JSONDecodeError as e:
            raise ManifestParseError(f"failed to parse JSON: {e}") from e
        if not isinstance(data, dict):
            raise ManifestParseError("package.json must contain a JSON object")

        dependencies: list[Dependency] = []
        for entry in _entries(content, self.sections):
            anchor = Anchor(
                line=line_number_at(content, entry.offset),
                offset=entry.offset,
                shape=Shape.INLINE,
            )
            dependency = build_dependency(entry.name, entry.raw, self.sections[entry.section], anchor)
            if dependency:
                dependencies.append(dependency)

        return Manifest(ecosystem=self.ecosystem, raw=content, dependencies=dependencies)

    def _find(self, content: str, dependency: Dependency) -> _Entry | None:
        try:
            for entry in _entries(content, self.sections):
                if entry.offset == dependency.anchor.offset:
                    return entry if entry.name == dependency.name else None
        except (ValueError, IndexError):
            # No longer valid JSON
            return None
        return None

    def detect_shape(self, content: str, dependency: Dependency) -> Shape | None:
        return Shape.INLINE if self._find(content, dependency) else None

    def locate(self, content: str, dependency: Dependency) -> TokenSpan:
        entry = self._find(content, dependency)
        if entry is None:
            raise AnchorNotFoundError(dependency.name, dependency.anchor.line)
        if entry.raw != dependency.raw_constraint:
            raise AnchorNotFoundError(
                dependency.name,
                dependency.anchor.line,
                f"expected {dependency.raw_constraint!r}, found {entry.raw!r}",
            )
        return TokenSpan(entry.offset, entry.offset + len(entry.raw), entry.raw)


def parse_package_json(content: str) -> Manifest:
    """Parse package.json content into Manifest.

    Args:
        content: The package.json file content

    Returns:
        Parsed Manifest object
    """
    return NodeDialect().parse(content)
