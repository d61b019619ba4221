"""Dart/Flutter pubspec.yaml parsing."""

import re
from dataclasses import dataclass

import yaml

from .dialect import ManifestDialect, TokenSpan, build_dependency, iter_lines
from .errors import AnchorNotFoundError, ManifestParseError
from .models import Anchor, Dependency, DependencySection, Manifest, Shape

PUB_DEV_HOST = "pub.dev"

_KEY_LINE = re.compile(r"^(?P<indent>[ \t]*)(?P<key>[A-Za-z0-9_.\-]+)[ \t]*:(?=\s|$)")
_VERSION_LINE = re.compile(r"^[ \t]+version[ \t]*:(?=\s|$)")

# Sub-keys that point a dependency somewhere other than a registry.
_NON_REGISTRY_KEYS = {"sdk", "path", "git"}


def read_scalar(text: str, start: int) -> tuple[str, int]:
    """Read an inline YAML scalar beginning at start.

    Returns the unquoted value and the column where it begins. Trailing
    comments are dropped.
    """
    column = start
    while column < len(text) and text[column] in " \t":
        column += 1
    if column >= len(text):
        return "", column

    quote = text[column]
    if quote in ("'", '"'):
        closing = text.find(quote, column + 1)
        if closing == -1:
            return text[column + 1 :], column + 1
        return text[column + 1 : closing], column + 1

    value = text[column:]
    comment = re.search(r"\s#", value)
    if comment:
        value = value[: comment.start()]
    if value.startswith("#"):
        return "", column
    return value.rstrip(), column


@dataclass
class _PendingPackage:
    name: str
    line: int
    version: str = ""
    version_line: int = 0
    version_offset: int = 0
    shape: Shape = Shape.INLINE
    hosted_url: str = ""
    awaiting_hosted_url: bool = False
    block_indent: int | None = None
    excluded: bool = False


class DartDialect(ManifestDialect):
    """Parser for Dart pubspec.yaml files."""

    ecosystem = "pub"
    filename = "pubspec.yaml"
    sections = {
        "dependencies": DependencySection.RUNTIME,
        "dev_dependencies": DependencySection.DEV,
    }

    def parse(self, content: str) -> Manifest:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ManifestParseError(f"failed to parse YAML: {e}") from e
        if data is not None and not isinstance(data, dict):
            raise ManifestParseError("pubspec.yaml must contain a mapping")

        dependencies: list[Dependency] = []
        section: DependencySection | None = None
        package_indent: int | None = None
        current: _PendingPackage | None = None

        def finish() -> None:
            if current is not None:
                dependency = self._to_dependency(current, section)
                if dependency:
                    dependencies.append(dependency)

        for number, line_start, text in iter_lines(content):
            stripped = text.strip()
            if not stripped or stripped.startswith("#"):
                continue

            match = _KEY_LINE.match(text)
            indent = len(text) - len(text.lstrip(" \t"))

            # Leaving or entering a top-level section
            if indent == 0:
                finish()
                current = None
                package_indent = None
                section = self.sections.get(match.group("key")) if match else None
                continue

            if section is None or match is None:
                continue

            key = match.group("key")
            if package_indent is None:
                package_indent = indent

            if indent == package_indent:
                finish()
                current = _PendingPackage(name=key, line=number)
                value, column = read_scalar(text, match.end())
                if value:
                    current.version = value
                    current.version_line = number
                    current.version_offset = line_start + column
                continue

            if current is None or indent < package_indent:
                continue

            if current.block_indent is None:
                current.block_indent = indent

            if indent == current.block_indent:
                current.awaiting_hosted_url = False
                value, column = read_scalar(text, match.end())
                if key == "version":
                    current.version = value
                    current.version_line = number
                    current.version_offset = line_start + column
                    current.shape = Shape.BLOCK
                elif key == "hosted":
                    current.hosted_url = value
                    current.awaiting_hosted_url = not value
                elif key in _NON_REGISTRY_KEYS:
                    current.excluded = True
            elif current.awaiting_hosted_url and key == "url":
                current.hosted_url = read_scalar(text, match.end())[0]

        finish()
        return Manifest(ecosystem=self.ecosystem, raw=content, dependencies=dependencies)

    @staticmethod
    def _to_dependency(package: _PendingPackage, section: DependencySection | None) -> Dependency | None:
        # Skip the Flutter SDK and path/git/sdk references
        if section is None or package.excluded or package.name == "flutter":
            return None
        if not package.version:
            return None

        registry_override = None
        if package.hosted_url and PUB_DEV_HOST not in package.hosted_url:
            registry_override = package.hosted_url

        anchor = Anchor(line=package.version_line, offset=package.version_offset, shape=package.shape)
        return build_dependency(package.name, package.version, section, anchor, registry_override)

    @staticmethod
    def _line(content: str, number: int) -> tuple[int, str] | None:
        for line_number, line_start, text in iter_lines(content):
            if line_number == number:
                return line_start, text
        return None

    @staticmethod
    def _match(text: str, dependency: Dependency, shape: Shape) -> re.Match | None:
        if shape == Shape.BLOCK:
            return _VERSION_LINE.match(text)
        return re.match(rf"^[ \t]+{re.escape(dependency.name)}[ \t]*:(?=\s|$)", text)

    def detect_shape(self, content: str, dependency: Dependency) -> Shape | None:
        found = self._line(content, dependency.anchor.line)
        if found is None:
            return None
        # A package may itself be called "version", so its own key wins
        for shape in (Shape.INLINE, Shape.BLOCK):
            if self._match(found[1], dependency, shape):
                return shape
        return None

    def locate(self, content: str, dependency: Dependency) -> TokenSpan:
        anchor = dependency.anchor
        found = self._line(content, anchor.line)
        if found is None:
            raise AnchorNotFoundError(dependency.name, anchor.line, "line does not exist")

        line_start, text = found
        match = self._match(text, dependency, anchor.shape)
        if match is None:
            other = Shape.INLINE if anchor.shape == Shape.BLOCK else Shape.BLOCK
            if self._match(text, dependency, other):
                raise AnchorNotFoundError(
                    dependency.name, anchor.line, f"expected a {anchor.shape.value} version, found {other.value}"
                )
            raise AnchorNotFoundError(dependency.name, anchor.line)

        value, column = read_scalar(text, match.end())
        start = line_start + column
        if value != dependency.raw_constraint or start != anchor.offset:
            raise AnchorNotFoundError(
                dependency.name,
                anchor.line,
                f"expected {dependency.raw_constraint!r}, found {value!r}",
            )
        return TokenSpan(start, start + len(value), value)


def parse_pubspec(content: str) -> Manifest:
    """Parse pubspec.yaml content into Manifest."""
    return DartDialect().parse(content)
