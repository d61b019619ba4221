"""Core data models for depbump."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple


class DependencySection(Enum):
    """Manifest section a dependency is declared in."""

    RUNTIME = "dependencies"
    DEV = "dev"
    PEER = "peer"


class Shape(Enum):
    """How a dependency's version is written at its anchor."""

    INLINE = "inline"  # name: version
    BLOCK = "block"  # name:\n  version: ...


class SkipReason(Enum):
    """Why a dependency was left alone in semver mode."""

    HARDCODED = "hardcoded version"
    INCOMPATIBLE_WITH_CONSTRAINT = "incompatible with constraint"


class ChangeKind(Enum):
    """Semantic size of a version change, used for display."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


@dataclass(frozen=True)
class Anchor:
    """Location of one dependency's version token in the manifest text."""

    line: int  # 1-based
    offset: int  # absolute character offset of the unquoted token
    shape: Shape = Shape.INLINE


@dataclass
class Dependency:
    """A single dependency occurrence in a manifest file."""

    name: str
    raw_constraint: str  # e.g. "^1.2.3"
    cleaned_version: str  # e.g. "1.2.3"
    section: DependencySection
    anchor: Anchor
    registry_override: str | None = None


@dataclass
class Manifest:
    """A parsed dependency manifest."""

    ecosystem: str  # npm, pub
    raw: str
    dependencies: list[Dependency]


@dataclass
class ResolvedOutcome:
    """Resolution of one dependency against its version source."""

    name: str
    current_version: str
    absolute_latest: str = ""
    constraint_latest: str = ""
    is_outdated: bool = False
    skipped_reason: SkipReason | None = None


@dataclass
class OutdatedDependency:
    """A dependency that has a newer version to move to."""

    dependency: Dependency
    latest_version: str
    change: ChangeKind = ChangeKind.PATCH

    @property
    def name(self) -> str:
        return self.dependency.name

    @property
    def current_version(self) -> str:
        return self.dependency.cleaned_version


@dataclass
class DependencyError:
    """An error that occurred while checking a dependency."""

    name: str
    message: str


@dataclass
class SemverSkipped:
    """A dependency not updated because of its constraint."""

    name: str
    current_version: str
    latest_version: str
    original_version: str
    reason: SkipReason


@dataclass
class CheckResult:
    """Results of checking all dependencies of a manifest."""

    outdated: list[OutdatedDependency] = field(default_factory=list)
    errors: list[DependencyError] = field(default_factory=list)
    semver_skipped: list[SemverSkipped] = field(default_factory=list)
    outcomes: list[ResolvedOutcome] = field(default_factory=list)


class CacheKey(NamedTuple):
    """Identity of a cached resolution."""

    package_name: str
    ecosystem: str
    current_version: str
    constraint: str


@dataclass
class CacheEntry:
    """A memoized resolution with its expiry time."""

    package_name: str
    ecosystem: str
    current_version: str
    constraint: str
    absolute_latest: str
    constraint_latest: str
    expiry: datetime

    @property
    def key(self) -> CacheKey:
        return CacheKey(self.package_name, self.ecosystem, self.current_version, self.constraint)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expiry
