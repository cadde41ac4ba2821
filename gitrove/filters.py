"""Filter algebra over RepoStatus plus the rendered-line search predicate."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from gitrove.status import Modification, RepoStatus, SyncState

logger = logging.getLogger(__name__)

NEGATION_PREFIX = "no-"
REMOTE_KEYWORD = "remote"

SYNC_KEYWORDS = {s.value: s for s in SyncState}
MODIFICATION_KEYWORDS = {m.value: m for m in Modification}


class FilterMode(str, Enum):
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class Filter:
    """A recognized filter keyword and whether it was negated."""

    target: Union[SyncState, Modification, str]
    negate: bool = False

    def test(self, status: RepoStatus) -> bool:
        if isinstance(self.target, SyncState):
            raw = status.sync == self.target
        elif isinstance(self.target, Modification):
            raw = status.has(self.target)
        else:
            raw = status.remote != ""
        return raw != self.negate


def parse_filter(token: str) -> Optional[Filter]:
    """Parse a filter token such as ``ahead`` or ``no-remote``.

    Returns None for blank tokens and unknown keywords.
    """
    token = token.strip()
    if not token:
        return None

    negate = token.startswith(NEGATION_PREFIX)
    keyword = token[len(NEGATION_PREFIX):] if negate else token

    if keyword in SYNC_KEYWORDS:
        return Filter(SYNC_KEYWORDS[keyword], negate)
    if keyword in MODIFICATION_KEYWORDS:
        return Filter(MODIFICATION_KEYWORDS[keyword], negate)
    if keyword == REMOTE_KEYWORD:
        return Filter(REMOTE_KEYWORD, negate)

    logger.debug("ignoring unknown filter %r", token)
    return None


def matches(
    status: RepoStatus,
    filters: Iterable[str],
    mode: FilterMode = FilterMode.AND,
) -> bool:
    """Fold the recognized filters over status with AND or OR."""
    result = mode is FilterMode.AND
    for token in filters:
        flt = parse_filter(token)
        if flt is None:
            continue
        if mode is FilterMode.OR:
            result = result or flt.test(status)
        else:
            result = result and flt.test(status)
    return result


def search_matches(line: str, search: str) -> bool:
    return search in line
