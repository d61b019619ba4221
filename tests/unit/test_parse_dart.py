"""Tests for pubspec.yaml parsing."""

import pytest

from core.errors import AnchorNotFoundError, ManifestParseError
from core.models import DependencySection, Shape
from core.parse_dart import DartDialect, parse_pubspec, read_scalar


class TestReadScalar:
    """Test reading inline YAML values."""

    def test_plain_value(self):
        """Should return the value and where it starts."""
        assert read_scalar("  http: ^0.13.0", 7) == ("^0.13.0", 8)

    def test_quoted_values(self):
        """Should strip quotes and point inside them."""
        assert read_scalar("  a: '1.0.0'", 4) == ("1.0.0", 6)
        assert read_scalar('  a: ">=1.0.0 <2.0.0"', 4) == (">=1.0.0 <2.0.0", 6)

    def test_trailing_comment(self):
        """Should drop trailing comments."""
        assert read_scalar("  a: ^1.0.0  # pinned for now", 4) == ("^1.0.0", 5)
        assert read_scalar("  a: # nothing here", 4)[0] == ""

    def test_empty_value(self):
        """Should return an empty value for block keys."""
        assert read_scalar("  a:", 4)[0] == ""


class TestPubspecParsing:
    """Test parsing of pubspec.yaml files."""

    def test_parse_sample(self, sample_pubspec):
        """Should collect registry dependencies and skip SDK ones."""
        manifest = parse_pubspec(sample_pubspec)

        assert manifest.ecosystem == "pub"
        assert [dep.name for dep in manifest.dependencies] == ["http", "provider", "private_pkg", "lints"]

        http, provider, private_pkg, lints = manifest.dependencies
        assert http.raw_constraint == "^0.13.0"
        assert http.section == DependencySection.RUNTIME
        assert http.anchor.line == 11
        assert http.anchor.shape == Shape.INLINE
        assert provider.raw_constraint == "6.0.0"
        assert lints.section == DependencySection.DEV
        assert lints.anchor.line == 20

    def test_anchor_offsets(self, sample_pubspec):
        """Offsets point at the unquoted token, even inside quotes."""
        manifest = parse_pubspec(sample_pubspec)

        for dep in manifest.dependencies:
            start = dep.anchor.offset
            assert sample_pubspec[start:start + len(dep.raw_constraint)] == dep.raw_constraint

    def test_block_form_with_hosted_registry(self, sample_pubspec):
        """Should read the version line of a block dependency and its registry."""
        private_pkg = parse_pubspec(sample_pubspec).dependencies[2]

        assert private_pkg.raw_constraint == "^1.2.0"
        assert private_pkg.anchor.shape == Shape.BLOCK
        assert private_pkg.anchor.line == 15
        assert private_pkg.registry_override == "https://pub.example.com"

    def test_hosted_map_form(self):
        """Should read the url of a hosted map."""
        content = """name: app
dependencies:
  internal:
    hosted:
      name: internal
      url: https://dart.example.com
    version: ^3.1.0
"""
        dep = parse_pubspec(content).dependencies[0]
        assert dep.registry_override == "https://dart.example.com"
        assert dep.raw_constraint == "^3.1.0"
        assert dep.anchor.line == 7

    def test_pub_dev_hosted_is_default_registry(self):
        """A hosted url on pub.dev does not override the registry."""
        content = """dependencies:
  http:
    hosted: https://pub.dev
    version: ^1.0.0
"""
        dep = parse_pubspec(content).dependencies[0]
        assert dep.registry_override is None

    def test_non_registry_dependencies_are_skipped(self):
        """Should skip path, git, sdk and unconstrained dependencies."""
        content = """dependencies:
  local:
    path: ../local
  from_git:
    git:
      url: https://github.com/user/repo.git
  anything: any
  nothing:
  flutter_localizations:
    sdk: flutter
  kept: ^1.0.0
"""
        manifest = parse_pubspec(content)
        assert [dep.name for dep in manifest.dependencies] == ["kept"]

    def test_four_space_indent(self):
        """Should follow the file's own indentation."""
        content = "dependencies:\n    http: ^1.1.0\n    path: ^1.8.0\n"
        manifest = parse_pubspec(content)
        assert [dep.name for dep in manifest.dependencies] == ["http", "path"]

    def test_compound_quoted_constraint(self):
        """Should keep compound constraints intact."""
        content = "dependencies:\n  meta: '>=1.7.0 <2.0.0'\n"
        dep = parse_pubspec(content).dependencies[0]
        assert dep.raw_constraint == ">=1.7.0 <2.0.0"
        assert dep.cleaned_version == "1.7.0"

    def test_other_sections_are_ignored(self):
        """Only dependencies and dev_dependencies are read."""
        content = """dependency_overrides:
  http: ^0.13.5
flutter:
  uses-material-design: true
"""
        assert parse_pubspec(content).dependencies == []

    def test_crlf_line_endings(self):
        """Should ignore the carriage return of Windows line endings."""
        content = "dependencies:\r\n  http: ^1.1.0\r\n"
        dep = parse_pubspec(content).dependencies[0]
        assert dep.raw_constraint == "^1.1.0"
        assert content[dep.anchor.offset:dep.anchor.offset + 6] == "^1.1.0"

    def test_empty_file(self):
        """An empty pubspec has no dependencies."""
        assert parse_pubspec("").dependencies == []

    def test_invalid_yaml(self):
        """Should raise ManifestParseError for invalid YAML."""
        with pytest.raises(ManifestParseError):
            parse_pubspec("dependencies:\n  http: [unclosed\n")

    def test_non_mapping_yaml(self):
        """Should raise ManifestParseError when the document is not a mapping."""
        with pytest.raises(ManifestParseError):
            parse_pubspec("- http\n- path\n")


class TestPubspecLocate:
    """Test locating version tokens again before rewriting."""

    def setup_method(self):
        """Setup test fixtures."""
        self.dialect = DartDialect()

    def test_detect_shape(self, sample_pubspec):
        """Should report inline and block shapes."""
        http, _, private_pkg, _ = self.dialect.parse(sample_pubspec).dependencies
        assert self.dialect.detect_shape(sample_pubspec, http) == Shape.INLINE
        assert self.dialect.detect_shape(sample_pubspec, private_pkg) == Shape.BLOCK

    def test_locate_block_version(self, sample_pubspec):
        """Should find the token on the version line."""
        private_pkg = self.dialect.parse(sample_pubspec).dependencies[2]
        span = self.dialect.locate(sample_pubspec, private_pkg)
        assert span.value == "^1.2.0"
        assert sample_pubspec[span.start:span.end] == "^1.2.0"

    def test_locate_changed_line_fails(self, sample_pubspec):
        """Should fail when the anchor line no longer holds the dependency."""
        http = self.dialect.parse(sample_pubspec).dependencies[0]
        shifted = "# comment\n" + sample_pubspec

        with pytest.raises(AnchorNotFoundError) as exc_info:
            self.dialect.locate(shifted, http)
        assert "could not find http on line 11" in str(exc_info.value)

    def test_locate_missing_line_fails(self, sample_pubspec):
        """Should fail when the file became shorter."""
        lints = self.dialect.parse(sample_pubspec).dependencies[3]

        with pytest.raises(AnchorNotFoundError):
            self.dialect.locate("dependencies:\n", lints)
