"""Tests for the dependency check pipeline."""

import asyncio
from datetime import timedelta

import pytest

from core.cache import ResolutionCache
from core.check import DependencyChecker
from core.errors import VersionSourceError
from core.models import CacheKey, ChangeKind, SkipReason
from core.parse_dart import parse_pubspec
from core.parse_node import parse_package_json

NODE_VERSIONS = {"22.15.0", "22.16.0", "22.17.0", "24.0.0", "24.1.0"}


def package_json(**dependencies):
    body = ", ".join(f'"{name}": "{constraint}"' for name, constraint in dependencies.items())
    return parse_package_json(f'{{"dependencies": {{{body}}}}}')


class TestDependencyChecker:
    """Test resolving manifests into outdated, skipped and failed dependencies."""

    @pytest.mark.asyncio
    async def test_latest_mode_takes_newest_release(self, fake_source):
        """Outside semver mode the absolute latest wins."""
        source = fake_source({"node": NODE_VERSIONS})
        checker = DependencyChecker(source)

        result = await checker.check(package_json(node="^22.16.0"))

        assert len(result.outdated) == 1
        assert result.outdated[0].latest_version == "24.1.0"
        assert result.outdated[0].change == ChangeKind.MAJOR
        assert result.semver_skipped == []
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_semver_mode_respects_constraint(self, fake_source):
        """Semver mode takes the constraint latest and reports the newer release."""
        source = fake_source({"node": NODE_VERSIONS})
        checker = DependencyChecker(source, semver=True)

        result = await checker.check(package_json(node="^22.16.0"))

        assert len(result.outdated) == 1
        assert result.outdated[0].latest_version == "22.17.0"
        assert result.outdated[0].change == ChangeKind.MINOR
        assert len(result.semver_skipped) == 1
        skipped = result.semver_skipped[0]
        assert skipped.name == "node"
        assert skipped.latest_version == "24.1.0"
        assert skipped.original_version == "^22.16.0"
        assert skipped.reason == SkipReason.INCOMPATIBLE_WITH_CONSTRAINT

        outcome = result.outcomes[0]
        assert outcome.absolute_latest == "24.1.0"
        assert outcome.constraint_latest == "22.17.0"
        assert outcome.is_outdated

    @pytest.mark.asyncio
    async def test_caret_zero_zero(self, fake_source):
        """^0.0.1 only moves to later 0.0.x patches in semver mode."""
        source = fake_source({"tiny": {"0.0.1", "0.0.2", "0.1.0"}})
        checker = DependencyChecker(source, semver=True)

        result = await checker.check(package_json(tiny="^0.0.1"))

        assert result.outdated[0].latest_version == "0.0.2"

    @pytest.mark.asyncio
    async def test_hardcoded_skipped_in_semver_mode(self, fake_source):
        """Pinned versions are skipped without a registry lookup."""
        source = fake_source({"jest": {"29.0.0", "29.7.0"}})
        checker = DependencyChecker(source, semver=True)

        result = await checker.check(package_json(jest="29.0.0"))

        assert result.outdated == []
        assert source.calls == []
        assert result.semver_skipped[0].reason == SkipReason.HARDCODED
        assert result.outcomes[0].skipped_reason == SkipReason.HARDCODED

    @pytest.mark.asyncio
    async def test_hardcoded_updated_in_latest_mode(self, fake_source):
        """Pinned versions still move outside semver mode."""
        source = fake_source({"jest": {"29.0.0", "29.7.0"}})
        checker = DependencyChecker(source)

        result = await checker.check(package_json(jest="29.0.0"))

        assert result.outdated[0].latest_version == "29.7.0"

    @pytest.mark.asyncio
    async def test_compound_constraint_stays_in_range(self, fake_source):
        """Explicit ranges keep their bounds even outside semver mode."""
        source = fake_source({"lib": {"1.0.0", "1.5.0", "2.1.0"}})
        checker = DependencyChecker(source)

        result = await checker.check(package_json(lib=">=1.0.0 <2.0.0"))

        assert result.outdated[0].latest_version == "1.5.0"
        assert result.semver_skipped[0].latest_version == "2.1.0"

    @pytest.mark.asyncio
    async def test_up_to_date(self, fake_source):
        """Nothing is reported when the current version is the latest."""
        source = fake_source({"express": {"4.17.0", "4.18.0"}})
        checker = DependencyChecker(source, semver=True)

        result = await checker.check(package_json(express="^4.18.0"))

        assert result.outdated == []
        assert result.semver_skipped == []
        assert not result.outcomes[0].is_outdated

    @pytest.mark.asyncio
    async def test_downgrade_is_never_proposed(self, fake_source):
        """A registry whose newest release is older than ours yields a skip, not an update."""
        source = fake_source({"yanked": {"2.0.0", "2.5.0"}})
        checker = DependencyChecker(source)

        result = await checker.check(package_json(yanked="^3.0.0"))

        assert result.outdated == []
        assert len(result.semver_skipped) == 1
        assert result.semver_skipped[0].latest_version == "2.5.0"

    @pytest.mark.asyncio
    async def test_nothing_satisfies_constraint_in_semver_mode(self, fake_source):
        """A newer release outside the constraint is reported as skipped."""
        source = fake_source({"lib": {"2.0.0"}})
        checker = DependencyChecker(source, semver=True)

        result = await checker.check(package_json(lib="^1.0.0"))

        assert result.outdated == []
        assert result.errors == []
        assert result.semver_skipped[0].latest_version == "2.0.0"
        assert result.outcomes[0].constraint_latest == ""

    @pytest.mark.asyncio
    async def test_errors_are_isolated(self, fake_source):
        """A failing lookup never affects the other dependencies."""
        source = fake_source(
            {"express": {"4.18.0", "4.21.2"}, "beta-only": {"1.0.0-beta"}},
            failures={"broken": RuntimeError("connection reset")},
        )
        checker = DependencyChecker(source)

        result = await checker.check(
            package_json(broken="^1.0.0", missing="^1.0.0", express="^4.18.0", **{"beta-only": "^0.9.0"})
        )

        assert [item.name for item in result.outdated] == ["express"]
        errors = {error.name: error.message for error in result.errors}
        assert set(errors) == {"broken", "missing", "beta-only"}
        assert errors["broken"] == "connection reset"
        assert "404" in errors["missing"]
        assert "no stable versions" in errors["beta-only"]

    @pytest.mark.asyncio
    async def test_results_keep_manifest_order(self, fake_source):
        """Outcomes come back in the order the manifest lists them."""
        names = ["zeta", "alpha", "mid"]
        source = fake_source({name: {"1.0.0", "1.1.0"} for name in names})
        checker = DependencyChecker(source)

        result = await checker.check(package_json(**{name: "^1.0.0" for name in names}))

        assert [outcome.name for outcome in result.outcomes] == names
        assert [item.name for item in result.outdated] == names

    @pytest.mark.asyncio
    async def test_cache_hit_skips_lookup(self, fake_source):
        """A fresh cache entry answers without asking the source."""
        cache = ResolutionCache()
        key = CacheKey("express", "npm", "4.18.0", "^4.18.0")
        cache.set(cache.new_entry(key, "5.0.0", "4.21.2", ttl=timedelta(minutes=10)))
        source = fake_source({})
        checker = DependencyChecker(source, cache, semver=True)

        result = await checker.check(package_json(express="^4.18.0"))

        assert source.calls == []
        assert result.outdated[0].latest_version == "4.21.2"

    @pytest.mark.asyncio
    async def test_results_are_cached(self, fake_source):
        """A second check reuses the first resolution."""
        source = fake_source({"express": {"4.18.0", "4.21.2"}})
        cache = ResolutionCache()
        checker = DependencyChecker(source, cache)
        manifest = package_json(express="^4.18.0")

        first = await checker.check(manifest)
        second = await checker.check(manifest)

        assert len(source.calls) == 1
        assert first.outdated[0].latest_version == second.outdated[0].latest_version == "4.21.2"
        assert cache.get(CacheKey("express", "npm", "4.18.0", "^4.18.0")) is not None

    @pytest.mark.asyncio
    async def test_errors_are_not_cached(self, fake_source):
        """Failed lookups are retried on the next check."""
        source = fake_source({}, failures={"flaky": VersionSourceError("timeout fetching package info for flaky")})
        cache = ResolutionCache()
        checker = DependencyChecker(source, cache)
        manifest = package_json(flaky="^1.0.0")

        await checker.check(manifest)
        await checker.check(manifest)

        assert len(source.calls) == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_registry_override_is_passed_on(self, fake_source):
        """Hosted pub dependencies are looked up on their own registry."""
        manifest = parse_pubspec(
            "dependencies:\n  private_pkg:\n    hosted: https://pub.example.com\n    version: ^1.0.0\n"
        )
        source = fake_source({"private_pkg": {"1.0.0", "1.2.0"}})
        checker = DependencyChecker(source)

        result = await checker.check(manifest)

        assert source.calls == [("private_pkg", "pub", "https://pub.example.com")]
        assert result.outdated[0].latest_version == "1.2.0"

    @pytest.mark.asyncio
    async def test_progress_callback(self, fake_source):
        """Progress is reported once per dependency."""
        source = fake_source({"a": {"1.0.0"}, "b": {"1.0.0"}, "c": {"1.0.0"}})
        progress = []
        checker = DependencyChecker(source, progress=lambda done, total: progress.append((done, total)))

        await checker.check(package_json(a="^1.0.0", b="^1.0.0", c="^1.0.0"))

        assert progress == [(1, 3), (2, 3), (3, 3)]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        """No more than max_concurrency lookups run at once."""

        class SlowSource:
            def __init__(self):
                self.active = 0
                self.peak = 0

            async def list_versions(self, package_name, ecosystem, registry_override=None):
                self.active += 1
                self.peak = max(self.peak, self.active)
                await asyncio.sleep(0.01)
                self.active -= 1
                return {"1.0.0", "1.1.0"}

        source = SlowSource()
        checker = DependencyChecker(source, max_concurrency=2)

        result = await checker.check(package_json(**{f"pkg{i}": "^1.0.0" for i in range(6)}))

        assert len(result.outdated) == 6
        assert source.peak == 2
