"""Shared visual constants and helpers for gitrove."""

from __future__ import annotations

from typing import Optional

from rich.color import ColorSystem
from rich.style import Style

from gitrove.status import RepoStatus, SyncState

# ── Color Palette (GitHub Dark + Neon Accents) ──────────────────────────

MUTED = "#8b949e"
CYAN = "#58a6ff"
GREEN = "#39d353"
YELLOW = "#e3b341"
RED = "#f85149"

STATE_COLORS: dict[SyncState, str] = {
    SyncState.UPTODATE: GREEN,
    SyncState.AHEAD: YELLOW,
    SyncState.BEHIND: CYAN,
    SyncState.DIVERGED: RED,
}

# Console.color_system names
COLOR_SYSTEMS: dict[str, ColorSystem] = {
    "standard": ColorSystem.STANDARD,
    "256": ColorSystem.EIGHT_BIT,
    "truecolor": ColorSystem.TRUECOLOR,
    "windows": ColorSystem.WINDOWS,
}


def color_system_for(name: Optional[str]) -> Optional[ColorSystem]:
    return COLOR_SYSTEMS.get(name) if name else None


def styled_line(line: str, status: RepoStatus, color_system: ColorSystem = ColorSystem.TRUECOLOR) -> str:
    """Wrap a rendered line in ANSI codes for its sync state; bold when the tree has changes.

    The text itself is passed through untouched, tabs included.
    """
    style = Style(color=STATE_COLORS[status.sync], bold=status.changed)
    return style.render(line, color_system=color_system)
