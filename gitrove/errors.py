"""Error types raised while scanning."""

from __future__ import annotations


class GitroveError(Exception):
    """Base class for every error the scan reports to the user."""


class TraversalError(GitroveError):
    """A directory could not be read while walking the tree."""

    def __init__(self, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"cannot read {path!r}: {cause.strerror or cause}")


class ProbeError(GitroveError):
    """A git command failed for one repository."""

    def __init__(self, path: str, step: str, detail: str) -> None:
        self.path = path
        self.step = step
        self.detail = detail
        super().__init__(f"{path}: {step} probe failed: {detail}")


class ConfigError(GitroveError):
    """The output template is malformed."""
