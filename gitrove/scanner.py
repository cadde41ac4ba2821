"""Repo discovery — lazily walk a directory tree and yield git repository roots."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterable, Iterator
from typing import Optional

from gitrove.errors import TraversalError

logger = logging.getLogger(__name__)

GIT_DIR = ".git"


def iter_repos(
    root: str,
    *,
    exclude: Iterable[str] = (),
    max_depth: Optional[int] = None,
    on_error: Optional[Callable[[TraversalError], None]] = None,
) -> Iterator[str]:
    """Yield every directory under root that directly contains a .git directory.

    Paths are yielded as they are found, joined onto root as given and
    normalized, so a root of "." yields "foo" rather than "./foo". The walk
    keeps descending below a repository, so nested repos are reported too,
    but never enters a .git directory or follows symlinked directories.

    A directory that cannot be read raises TraversalError, unless on_error is
    given, in which case it receives the error and the walk moves on.
    """
    skip = frozenset(exclude)
    pending: list[tuple[str, int]] = [(root, 0)]

    while pending:
        path, depth = pending.pop()
        try:
            with os.scandir(path) as it:
                entries = list(it)
        except OSError as exc:
            error = TraversalError(path, exc)
            if on_error is None:
                raise error from exc
            on_error(error)
            continue

        is_repo = False
        subdirs: list[str] = []
        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                continue
            if entry.name == GIT_DIR:
                is_repo = True
            elif entry.name not in skip:
                subdirs.append(entry.path)

        if is_repo:
            repo = os.path.normpath(path)
            logger.debug("found repo %s", repo)
            yield repo

        if max_depth is not None and depth >= max_depth:
            continue
        # Reversed so the stack pops in directory order
        for sub in reversed(sorted(subdirs)):
            pending.append((sub, depth + 1))
