"""Format-preserving manifest rewriting."""

import logging
from typing import Iterable

from .constraints import bump_token
from .dialect import ManifestDialect
from .errors import AnchorNotFoundError, RewriteError
from .models import DependencySection, OutdatedDependency

logger = logging.getLogger(__name__)


def select_for_update(
    outdated: Iterable[OutdatedDependency], include_peer: bool = False
) -> list[OutdatedDependency]:
    """Drop peer dependencies unless they were asked for."""
    selected = []
    for item in outdated:
        if item.dependency.section == DependencySection.PEER and not include_peer:
            logger.debug("Skipping peer dependency %s (%s -> %s)", item.name, item.current_version, item.latest_version)
            continue
        selected.append(item)
    return selected


def apply_updates(content: str, outdated: Iterable[OutdatedDependency], dialect: ManifestDialect) -> str:
    """Return the manifest text with the version token of each outdated dependency replaced.

    Only the version tokens change; comments, quoting, ordering and whitespace
    are kept as they are. Nothing is returned unless every dependency could be
    located, so the caller never ends up with a partial rewrite.

    Raises:
        AnchorNotFoundError: A dependency is no longer where it was parsed
        RewriteError: Two updates target the same token
    """
    replacements = []
    for item in outdated:
        dependency = item.dependency
        span = dialect.locate(content, dependency)
        new_token = bump_token(span.value, item.latest_version)
        if new_token is None:
            raise AnchorNotFoundError(
                dependency.name, dependency.anchor.line, f"unrecognized version token {span.value!r}"
            )
        replacements.append((span, new_token, dependency))

    replacements.sort(key=lambda replacement: replacement[0].start)
    for previous, following in zip(replacements, replacements[1:]):
        if following[0].start < previous[0].end:
            raise RewriteError(
                f"conflicting updates for {previous[2].name} and {following[2].name} "
                f"on line {following[2].anchor.line}"
            )

    parts = []
    position = 0
    for span, new_token, dependency in replacements:
        parts.append(content[position : span.start])
        parts.append(new_token)
        position = span.end
        logger.debug(
            "Updated %s (%s): %s -> %s", dependency.name, dependency.section.value, span.value, new_token
        )
    parts.append(content[position:])
    return "".join(parts)
