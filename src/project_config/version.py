"""Detect an installed package that lags behind its checkout."""

import tomllib
from pathlib import Path


def _source_pyproject() -> Path:
    # src/project_config/version.py -> repository root
    return Path(__file__).parent.parent.parent / "pyproject.toml"


def check_version_consistency() -> tuple[bool, str]:
    """Compare ``__version__`` with the version declared in pyproject.toml.

    An editable install keeps the metadata it was installed with, so after
    a version bump the running code can claim an old version until it is
    reinstalled.

    Returns:
        ``(consistent, message)``; *message* is suitable for logging as-is.
    """
    from . import __version__ as runtime_version

    pyproject = _source_pyproject()
    if not pyproject.exists():
        return False, "Cannot find pyproject.toml for version comparison"

    try:
        with open(pyproject, "rb") as fh:
            declared = tomllib.load(fh).get("project", {}).get("version", "unknown")
    except (OSError, tomllib.TOMLDecodeError) as e:
        return False, f"Failed to read version from pyproject.toml: {e}"

    if runtime_version == declared:
        return True, f"Version verified: {runtime_version}"
    return False, (
        f"Version mismatch detected: running {runtime_version}, "
        f"pyproject.toml declares {declared}. Reinstall with: pip install -e ."
    )
