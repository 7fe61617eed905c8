"""Keep a project's YAML config files, snapshot, and live state in sync."""

__version__ = "0.1.0"
