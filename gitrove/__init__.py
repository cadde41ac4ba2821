"""gitrove — find git repositories and report their sync and working-tree state."""

__version__ = "0.3.0"
