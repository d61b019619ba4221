"""Version constraint parsing and matching.

Constraints are written the way npm and pub write them:

- exact versions ("1.2.3" or "=1.2.3")
- caret ranges ^x.y.z, stricter as leading components are zero
- tilde ranges ~x.y.z → >=x.y.z,<x.y+1.0
- comparator sets split by spaces, e.g. ">=1.0.0 <2.0.0"
"""

import re

import semantic_version

from .models import ChangeKind

# Longest first, so ">=" wins over ">".
PREFIXES = (">=", "<=", "^", "~", ">", "<", "=")
EXACT_PREFIXES = ("", "=")

VERSION_TOKEN = re.compile(
    r"(?P<prefix>>=|<=|\^|~|>|<|=)?"
    r"(?P<version>\d+(?:\.\d+)*(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?)"
    r"(?=\s|$)"
)


def parse_prefix(raw: str) -> tuple[str, str]:
    """Split a single clause into its comparator and base version."""
    clause = raw.strip()
    for prefix in PREFIXES:
        if clause.startswith(prefix):
            return prefix, clause[len(prefix):].strip()
    return "", clause


def split_clauses(raw: str) -> list[str]:
    return raw.split()


def clean_version(raw: str) -> str:
    """Return the base version of the first clause of a constraint."""
    clauses = split_clauses(raw)
    if not clauses:
        return ""
    return parse_prefix(clauses[0])[1]


def get_prefix(raw: str) -> str:
    clauses = split_clauses(raw)
    if not clauses:
        return ""
    return parse_prefix(clauses[0])[0]


def is_hardcoded(raw: str) -> bool:
    """A pinned version carries no comparator that would allow a bump."""
    return len(split_clauses(raw)) == 1 and get_prefix(raw) in EXACT_PREFIXES


def is_compound(raw: str) -> bool:
    return len(split_clauses(raw)) > 1


def is_registry_constraint(raw: str) -> bool:
    """Whether a manifest value is a version constraint we know how to bump.

    Wildcards, x-ranges, hyphen ranges, "||" unions, tags and path/git/url
    references are not.
    """
    clauses = split_clauses(raw)
    return bool(clauses) and all(VERSION_TOKEN.fullmatch(clause) for clause in clauses)


def parse_version(version: str) -> semantic_version.Version | None:
    try:
        return semantic_version.Version(version.strip())
    except ValueError:
        return None


def is_prerelease_constraint(constraint: str) -> bool:
    """Whether any clause of the constraint is based on a pre-release."""
    for clause in split_clauses(constraint):
        base = parse_version(parse_prefix(clause)[1])
        if base is not None and base.prerelease:
            return True
    return False


def _triple(version: semantic_version.Version) -> tuple[int, int, int]:
    return version.major, version.minor, version.patch


def _caret(base: semantic_version.Version, candidate: semantic_version.Version) -> bool:
    if base.major > 0:
        return candidate.major == base.major and _triple(candidate) >= _triple(base)
    if base.minor > 0:
        return (
            candidate.major == 0
            and candidate.minor == base.minor
            and candidate.patch >= base.patch
        )
    return candidate.major == 0 and candidate.minor == 0 and candidate.patch >= base.patch


def _tilde(base: semantic_version.Version, candidate: semantic_version.Version) -> bool:
    return (
        candidate.major == base.major
        and candidate.minor == base.minor
        and candidate.patch >= base.patch
    )


def _clause_holds(
    comparator: str,
    base_text: str,
    base: semantic_version.Version,
    candidate_text: str,
    candidate: semantic_version.Version,
) -> bool:
    if comparator == "^":
        return _caret(base, candidate)
    if comparator == "~":
        return _tilde(base, candidate)
    if comparator == ">=":
        return _triple(candidate) >= _triple(base)
    if comparator == ">":
        return _triple(candidate) > _triple(base)
    if comparator == "<=":
        return _triple(candidate) <= _triple(base)
    if comparator == "<":
        return _triple(candidate) < _triple(base)
    # exact
    return candidate_text.strip() == base_text


def satisfies(constraint: str, candidate: str) -> bool:
    """Check whether a candidate version satisfies every clause of a constraint.

    Unparsable constraints or candidates never match. Pre-release candidates
    only match constraints that are themselves based on a pre-release.
    """
    clauses = split_clauses(constraint)
    if not clauses:
        return False

    parsed_candidate = parse_version(candidate)
    if parsed_candidate is None:
        return False

    parsed_clauses = []
    for clause in clauses:
        comparator, base_text = parse_prefix(clause)
        base = parse_version(base_text)
        if base is None:
            return False
        parsed_clauses.append((comparator, base_text, base))

    if parsed_candidate.prerelease and not any(base.prerelease for _, _, base in parsed_clauses):
        return False

    return all(
        _clause_holds(comparator, base_text, base, candidate, parsed_candidate)
        for comparator, base_text, base in parsed_clauses
    )


def classify_change(current: str, latest: str) -> ChangeKind:
    """Classify the move from current to latest as a major, minor or patch change.

    Anything that is not a strict upgrade counts as a patch; the result is
    only a display hint.
    """
    current_version = parse_version(clean_version(current))
    latest_version = parse_version(clean_version(latest))
    if current_version is None or latest_version is None:
        return ChangeKind.PATCH

    if _triple(latest_version) <= _triple(current_version):
        return ChangeKind.PATCH
    if latest_version.major != current_version.major:
        return ChangeKind.MAJOR
    if latest_version.minor != current_version.minor:
        return ChangeKind.MINOR
    return ChangeKind.PATCH


def is_downgrade(current: str, target: str) -> bool:
    current_version = parse_version(current)
    target_version = parse_version(target)
    if current_version is None or target_version is None:
        return False
    return target_version < current_version


def bump_token(old: str, new_version: str) -> str | None:
    """Swap the version of the first clause, keeping its prefix and the other clauses.

    Returns None when the token does not look like a version constraint.
    """
    match = VERSION_TOKEN.match(old)
    if not match:
        return None
    return old[: match.start("version")] + new_version + old[match.end("version"):]
