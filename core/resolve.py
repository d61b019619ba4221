"""Pick the absolute latest and the constraint-compatible latest version."""

import logging
from typing import Iterable, NamedTuple

from .constraints import is_prerelease_constraint, parse_version, satisfies
from .errors import NoStableVersionsError, NoVersionSatisfiesConstraintError

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    absolute_latest: str
    constraint_latest: str


def resolve_both(versions: Iterable[str], constraint: str) -> Resolution:
    """Find both the absolute latest version and the latest satisfying a constraint.

    Args:
        versions: All published version strings
        constraint: Raw constraint from the manifest, e.g. "^1.2.3"

    Returns:
        Resolution with both versions

    Raises:
        NoStableVersionsError: Nothing usable is left after filtering
        NoVersionSatisfiesConstraintError: Versions exist but none satisfies
            the constraint; the absolute latest is carried on the exception
    """
    include_prereleases = is_prerelease_constraint(constraint)

    pool = []
    for text in set(versions):
        parsed = parse_version(text)
        if parsed is None:
            continue  # Skip invalid versions
        if parsed.prerelease and not include_prereleases:
            continue
        pool.append((parsed, text))

    if not pool:
        raise NoStableVersionsError("no stable versions available")

    pool.sort(key=lambda item: (item[0], item[1]))
    absolute_latest = pool[-1][1]

    for _, text in reversed(pool):
        if satisfies(constraint, text):
            return Resolution(absolute_latest, text)

    logger.debug("No version satisfies %s (latest is %s)", constraint, absolute_latest)
    raise NoVersionSatisfiesConstraintError(constraint, absolute_latest)
