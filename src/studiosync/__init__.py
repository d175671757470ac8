"""studiosync - keep a local project tree in sync with a remote studio."""

__version__ = "0.1.0"
