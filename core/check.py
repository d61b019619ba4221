"""Check manifest dependencies against a version source."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from .cache import ResolutionCache
from .constraints import classify_change, is_compound, is_downgrade, is_hardcoded
from .errors import NoVersionSatisfiesConstraintError
from .models import (
    CacheKey,
    CheckResult,
    Dependency,
    DependencyError,
    Manifest,
    OutdatedDependency,
    ResolvedOutcome,
    SemverSkipped,
    SkipReason,
)
from .resolve import Resolution, resolve_both
from .version_source import VersionSource

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class DependencyReport:
    """Everything learned about one dependency during a check."""

    outcome: ResolvedOutcome
    outdated: OutdatedDependency | None = None
    error: DependencyError | None = None
    skipped: SemverSkipped | None = None


class DependencyChecker:
    """Resolves every dependency of a manifest and decides which ones are outdated."""

    def __init__(
        self,
        source: VersionSource,
        cache: ResolutionCache | None = None,
        semver: bool = False,
        cache_ttl: int = 600,
        max_concurrency: int = 6,
        progress: ProgressCallback | None = None,
    ):
        """Initialize the checker.

        Args:
            source: Where published versions come from
            cache: Resolution cache; a memory-only one is used when omitted
            semver: Only accept versions allowed by each constraint
            cache_ttl: Lifetime of new cache entries in seconds
            max_concurrency: Maximum concurrent version lookups
            progress: Called with (done, total) after each dependency
        """
        self.source = source
        self.cache = cache if cache is not None else ResolutionCache()
        self.semver = semver
        self.cache_ttl = timedelta(seconds=cache_ttl)
        self.max_concurrency = max_concurrency
        self.progress = progress

    async def check(self, manifest: Manifest) -> CheckResult:
        """Check all dependencies of a manifest.

        Lookups run concurrently, but one failing lookup never affects the
        others. Results keep manifest order.
        """
        total = len(manifest.dependencies)
        done = 0
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(dependency: Dependency) -> DependencyReport:
            nonlocal done
            async with semaphore:
                report = await self.check_dependency(dependency, manifest.ecosystem)
            done += 1
            if self.progress:
                self.progress(done, total)
            return report

        reports = await asyncio.gather(*(run(dependency) for dependency in manifest.dependencies))

        result = CheckResult()
        for report in reports:
            result.outcomes.append(report.outcome)
            if report.outdated:
                result.outdated.append(report.outdated)
            if report.error:
                result.errors.append(report.error)
            if report.skipped:
                result.semver_skipped.append(report.skipped)
        return result

    async def check_dependency(self, dependency: Dependency, ecosystem: str) -> DependencyReport:
        name = dependency.name
        raw = dependency.raw_constraint
        current = dependency.cleaned_version
        report = DependencyReport(outcome=ResolvedOutcome(name=name, current_version=current))

        # A pinned version never moves in semver mode, so don't look it up
        if self.semver and is_hardcoded(raw):
            logger.debug("Skipping hardcoded version: %s (%s)", name, raw)
            report.outcome.skipped_reason = SkipReason.HARDCODED
            report.skipped = SemverSkipped(name, current, "", raw, SkipReason.HARDCODED)
            return report

        try:
            resolution = await self._resolve(dependency, ecosystem)
        except Exception as e:
            logger.debug("Error checking %s: %s", name, e, exc_info=True)
            report.error = DependencyError(name=name, message=str(e) or type(e).__name__)
            return report

        absolute_latest, constraint_latest = resolution
        report.outcome.absolute_latest = absolute_latest
        report.outcome.constraint_latest = constraint_latest

        # Explicit ranges keep their bounds even outside semver mode
        constrained = self.semver or is_compound(raw)
        target = constraint_latest if constrained else absolute_latest

        if (
            constrained
            and absolute_latest != constraint_latest
            and absolute_latest != current
            and not is_downgrade(current, absolute_latest)
        ):
            logger.debug(
                "Skipping %s: latest version %s not compatible with constraint %s", name, absolute_latest, raw
            )
            self._skip(report, dependency, absolute_latest)

        if not target or target == current:
            return report

        if is_downgrade(current, target):
            logger.debug("Not downgrading %s from %s to %s", name, current, target)
            if report.skipped is None:
                self._skip(report, dependency, target)
            return report

        report.outcome.is_outdated = True
        report.outdated = OutdatedDependency(
            dependency=dependency,
            latest_version=target,
            change=classify_change(current, target),
        )
        return report

    @staticmethod
    def _skip(report: DependencyReport, dependency: Dependency, latest: str) -> None:
        reason = SkipReason.INCOMPATIBLE_WITH_CONSTRAINT
        report.outcome.skipped_reason = reason
        report.skipped = SemverSkipped(
            name=dependency.name,
            current_version=dependency.cleaned_version,
            latest_version=latest,
            original_version=dependency.raw_constraint,
            reason=reason,
        )

    async def _resolve(self, dependency: Dependency, ecosystem: str) -> Resolution:
        key = CacheKey(dependency.name, ecosystem, dependency.cleaned_version, dependency.raw_constraint)
        entry = self.cache.get(key)
        if entry is not None:
            logger.debug("Cache hit: %s", dependency.name)
            return Resolution(entry.absolute_latest, entry.constraint_latest)

        logger.debug("Cache miss: %s", dependency.name)
        versions = await self.source.list_versions(dependency.name, ecosystem, dependency.registry_override)
        try:
            resolution = resolve_both(versions, dependency.raw_constraint)
        except NoVersionSatisfiesConstraintError as e:
            resolution = Resolution(e.absolute_latest, "")

        self.cache.set(self.cache.new_entry(key, *resolution, ttl=self.cache_ttl))
        return resolution
