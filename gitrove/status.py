"""Repository status probing — subprocess git calls parsed into a RepoStatus."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from enum import Enum

from gitrove.errors import ProbeError

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 60

REMOTE_RE = re.compile(r"^origin\s+(\S+) \(push\)$")


class SyncState(str, Enum):
    """Relationship between the local branch and its upstream."""

    UPTODATE = "uptodate"
    AHEAD = "ahead"
    BEHIND = "behind"
    DIVERGED = "diverged"


class Modification(str, Enum):
    """Working-tree and index change categories."""

    UNKNOWN = "unknown"
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    DELETED = "deleted"
    STASHED = "stashed"
    CHANGED = "changed"  # set whenever any other flag is


class ProbeStep(str, Enum):
    BRANCH = "branch"
    REMOTE = "remote"
    MODIFICATIONS = "modifications"


# Two-character porcelain status codes. AM and AD keep only the worktree side.
PORCELAIN_FLAGS: dict[str, Modification] = {
    "??": Modification.UNKNOWN,
    "A ": Modification.ADDED,
    "M ": Modification.ADDED,
    " M": Modification.MODIFIED,
    "AM": Modification.MODIFIED,
    " T": Modification.MODIFIED,
    "R ": Modification.REMOVED,
    " D": Modification.DELETED,
    "D ": Modification.DELETED,
    "AD": Modification.DELETED,
}


@dataclass
class RepoStatus:
    path: str
    branch: str = ""
    remote: str = ""
    sync: SyncState = SyncState.UPTODATE
    modifications: set[Modification] = field(default_factory=set)

    def has(self, flag: Modification) -> bool:
        return flag in self.modifications

    @property
    def changed(self) -> bool:
        return Modification.CHANGED in self.modifications

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "path": self.path,
            "branch": self.branch,
            "remote": self.remote,
            "sync": self.sync.value,
            "modifications": sorted(m.value for m in self.modifications),
        }


def _run_git(repo_path: str, args: list[str], step: ProbeStep, timeout: int = GIT_TIMEOUT) -> str:
    """Run a git command in repo_path and return stdout.

    Raises ProbeError when git cannot be started, times out or exits non-zero.
    """
    try:
        result = subprocess.run(
            ["git"] + args,
            cwd=repo_path,
            capture_output=True,
            text=True,
            timeout=timeout,
            errors="replace",
        )
    except subprocess.TimeoutExpired:
        raise ProbeError(repo_path, step.value, f"git {args[0]} timed out after {timeout}s") from None
    except OSError as exc:
        raise ProbeError(repo_path, step.value, f"cannot run git: {exc}") from exc

    if result.returncode != 0:
        detail = result.stderr.strip() or f"git {args[0]} exited with status {result.returncode}"
        raise ProbeError(repo_path, step.value, detail)
    return result.stdout


def get_branch(repo_path: str) -> str:
    """Current branch name, or the short commit id on a detached HEAD."""
    try:
        output = _run_git(repo_path, ["symbolic-ref", "--quiet", "HEAD"], ProbeStep.BRANCH)
    except ProbeError:
        output = _run_git(repo_path, ["rev-parse", "--short", "HEAD"], ProbeStep.BRANCH)
    return output.strip().removeprefix("refs/heads/")


def get_remote(repo_path: str) -> str:
    """Push URL of the origin remote, or an empty string."""
    output = _run_git(repo_path, ["remote", "-v"], ProbeStep.REMOTE)
    for line in output.split("\n"):
        match = REMOTE_RE.match(line)
        if match:
            return match.group(1)
    return ""


def parse_porcelain(output: str) -> tuple[SyncState, set[Modification]]:
    """Parse `git status --porcelain -b` output.

    Returns the sync state from the ``##`` header and the set of modification
    flags found in the file lines. Unknown status codes are ignored.
    """
    sync = SyncState.UPTODATE
    flags: set[Modification] = set()

    for line in output.split("\n"):
        if len(line) < 3:
            continue

        code = line[:2]
        if code == "##":
            ahead = "ahead" in line
            behind = "behind" in line
            if ahead and behind:
                sync = SyncState.DIVERGED
            elif ahead:
                sync = SyncState.AHEAD
            elif behind:
                sync = SyncState.BEHIND
            else:
                sync = SyncState.UPTODATE
            continue

        flag = PORCELAIN_FLAGS.get(code)
        if flag is not None:
            flags.add(flag)

    if flags:
        flags.add(Modification.CHANGED)
    return sync, flags


def has_stash(repo_path: str) -> bool:
    try:
        _run_git(repo_path, ["rev-parse", "--verify", "refs/stash"], ProbeStep.MODIFICATIONS)
    except ProbeError:
        return False
    return True


def get_modifications(repo_path: str) -> tuple[SyncState, set[Modification]]:
    """Sync state and modification flags, including the stash check."""
    output = _run_git(repo_path, ["status", "--porcelain", "-b"], ProbeStep.MODIFICATIONS)
    sync, flags = parse_porcelain(output)

    if has_stash(repo_path):
        flags.add(Modification.STASHED)
        flags.add(Modification.CHANGED)

    return sync, flags


def probe_repo(repo_path: str) -> RepoStatus:
    """Full probe of a single repo — branch, remote, then modifications."""
    logger.debug("probing %s", repo_path)
    status = RepoStatus(path=repo_path)
    status.branch = get_branch(repo_path)
    status.remote = get_remote(repo_path)
    status.sync, status.modifications = get_modifications(repo_path)
    return status
