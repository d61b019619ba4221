"""Exception types raised by the depbump core."""


class DepBumpError(Exception):
    """Base class for all depbump errors."""


class ManifestNotFoundError(DepBumpError):
    """No supported manifest file was found."""


class ManifestParseError(DepBumpError):
    """The manifest could not be read or is structurally invalid."""


class VersionSourceError(DepBumpError):
    """A version source could not list the versions of a package."""


class NoStableVersionsError(DepBumpError):
    """No usable version is left once pre-releases and invalid strings are dropped."""


class NoVersionSatisfiesConstraintError(DepBumpError):
    """Versions exist, but none of them satisfies the constraint.

    The absolute latest version is still known and carried on the exception.
    """

    def __init__(self, constraint: str, absolute_latest: str):
        super().__init__(f"no versions satisfy the constraint {constraint}")
        self.constraint = constraint
        self.absolute_latest = absolute_latest


class RewriteError(DepBumpError):
    """The manifest could not be rewritten."""


class AnchorNotFoundError(RewriteError):
    """A dependency could not be located again at its recorded anchor."""

    def __init__(self, name: str, line: int, detail: str = ""):
        message = f"could not find {name} on line {line} for updating"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.name = name
        self.line = line
