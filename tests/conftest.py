"""Pytest configuration and fixtures."""


import pytest

from core.errors import VersionSourceError


class FakeVersionSource:
    """In-memory version source that records every lookup."""

    def __init__(self, versions=None, failures=None):
        self.versions = versions or {}
        self.failures = failures or {}
        self.calls = []

    async def list_versions(self, package_name, ecosystem, registry_override=None):
        self.calls.append((package_name, ecosystem, registry_override))
        if package_name in self.failures:
            raise self.failures[package_name]
        if package_name not in self.versions:
            raise VersionSourceError(f"registry returned status 404 for {package_name}")
        return set(self.versions[package_name])


@pytest.fixture
def fake_source():
    """Factory for fake version sources."""
    return FakeVersionSource


@pytest.fixture
def sample_package_json():
    """Sample package.json content for testing."""
    return """{
  "name": "test-project",
  "version": "1.0.0",
  "dependencies": {
    "express": "^4.18.0",
    "lodash": "~4.17.20"
  },
  "devDependencies": {
    "jest": "29.0.0"
  }
}
"""


@pytest.fixture
def sample_pubspec():
    """Sample pubspec.yaml content for testing."""
    return """name: test_app
description: A test application.
version: 1.0.0+1

environment:
  sdk: ">=3.0.0 <4.0.0"

dependencies:
  flutter:
    sdk: flutter
  http: ^0.13.0  # networking
  provider: '6.0.0'
  private_pkg:
    hosted: https://pub.example.com
    version: ^1.2.0

dev_dependencies:
  flutter_test:
    sdk: flutter
  lints: ^2.0.0
"""


@pytest.fixture
def temp_manifest_file(tmp_path, sample_package_json):
    """Create a temporary package.json for testing."""
    manifest = tmp_path / "package.json"
    manifest.write_text(sample_package_json)
    return manifest
