"""Output template — renders a RepoStatus into a single display line."""

from __future__ import annotations

import string

from gitrove.errors import ConfigError
from gitrove.status import Modification, RepoStatus, SyncState

DEFAULT_FORMAT = "[{U}{A}{M}{R}{D}{S} {State}] {Path} ({Upstream})"

FLAG_MARKERS: dict[Modification, str] = {
    Modification.UNKNOWN: "U",
    Modification.ADDED: "A",
    Modification.MODIFIED: "M",
    Modification.REMOVED: "R",
    Modification.DELETED: "D",
    Modification.STASHED: "S",
}

STATE_GLYPHS: dict[SyncState, str] = {
    SyncState.DIVERGED: "↔",
    SyncState.AHEAD: "→",
    SyncState.BEHIND: "←",
    SyncState.UPTODATE: "=",
}

FIELDS = frozenset(FLAG_MARKERS.values()) | {"State", "Path", "Remote", "Branch", "Upstream"}

# Non-empty values so indexing such as {Branch[0]} validates
SAMPLE_STATUS = RepoStatus(
    path="projects/sample",
    branch="main",
    remote="git@example.com:sample.git",
    sync=SyncState.UPTODATE,
)


def template_fields(status: RepoStatus) -> dict[str, str]:
    """All template values for one status."""
    values = {
        "State": STATE_GLYPHS[status.sync],
        "Path": status.path,
        "Remote": status.remote,
        "Branch": status.branch,
        "Upstream": f"{status.remote} » {status.branch}" if status.remote else status.branch,
    }
    for flag, marker in FLAG_MARKERS.items():
        values[marker] = marker if status.has(flag) else " "
    return values


class OutputTemplate:
    """A validated ``str.format`` template over the fields in FIELDS.

    Raises ConfigError on syntax errors, positional fields or unknown names.
    """

    def __init__(self, fmt: str = DEFAULT_FORMAT) -> None:
        self.fmt = fmt
        self._validate()

    def _validate(self) -> None:
        try:
            parsed = list(string.Formatter().parse(self.fmt))
        except ValueError as exc:
            raise ConfigError(f"invalid format {self.fmt!r}: {exc}") from exc

        for _, name, _, _ in parsed:
            if name is None:
                continue
            root = name.split(".", 1)[0].split("[", 1)[0]
            if root not in FIELDS:
                known = ", ".join(sorted(FIELDS))
                raise ConfigError(f"unknown field {{{name}}} in format (known: {known})")

        # Catch bad format specs such as {Path:d} before scanning starts
        self.render(SAMPLE_STATUS)

    def render(self, status: RepoStatus) -> str:
        try:
            return self.fmt.format(**template_fields(status))
        except (ValueError, TypeError, AttributeError, IndexError, KeyError) as exc:
            raise ConfigError(f"cannot render format {self.fmt!r}: {exc}") from exc
