"""Settings file discovery and loading.

Settings are YAML.  Several files may apply at once (an explicit path, the
project's ``.project_config/settings.yml``, and a per-user file); they are
merged so that the most specific file decides each top-level section.
Values may reference the environment with ``${VAR}`` or
``${VAR:-default}``, and a file may pull another in with ``!include``.

Usage:
    from project_config.config_loader import load_hierarchical_settings

    raw = load_hierarchical_settings()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

SETTINGS_ENV_VAR = "PROJECT_CONFIG_SETTINGS"
SETTINGS_DIR_NAME = ".project_config"

# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------

# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<fallback>.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand environment references in *value*.

    An unset or empty variable expands to its fallback, or to ``""`` when
    there is none.  Text that merely starts with ``${`` and never closes
    is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or m["fallback"] or "", value
    )


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(item) for key, item in obj.items()}
    if isinstance(obj, list):
        return list(map(_interpolate_recursive, obj))
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    return obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class SettingsLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    The tag is registered on this subclass only, so ``yaml.safe_load``
    elsewhere in the process is unaffected.  ``include_stack`` holds the
    chain of files being loaded and catches include cycles.
    """

    def __init__(self, stream, include_stack: list[Path]):
        super().__init__(stream)
        self.include_stack = include_stack


def _include_constructor(loader: SettingsLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        # Relative to the including file, not the CWD
        target = loader.include_stack[-1].parent / target
    target = target.resolve()

    if target in loader.include_stack:
        chain = " -> ".join(map(str, [*loader.include_stack, target]))
        raise ValueError(f"Circular include detected: {chain}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {loader.include_stack[-1]})"
        )
    return _load_yaml_with_includes(target, [*loader.include_stack, target])


SettingsLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path, include_stack: list[Path] | None = None
) -> Any:
    """Parse one settings file, following ``!include`` directives."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = SettingsLoader(fh, include_stack or [path])
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    """All settings locations, most specific first."""
    candidates = []
    explicit = os.environ.get(SETTINGS_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    project_dir = Path.cwd() / SETTINGS_DIR_NAME
    candidates += [project_dir / "settings.yml", project_dir / "settings.yaml"]
    candidates.append(Path.home() / ".config" / "project_config" / "settings.yml")
    return candidates


def discover_settings_files() -> list[Path]:
    """Return the settings files that exist, most specific first.

    Looked for, in order:

    1. the path in ``PROJECT_CONFIG_SETTINGS``
    2. ``./.project_config/settings.yml`` (or ``settings.yaml``)
    3. ``~/.config/project_config/settings.yml``
    """
    return [path for path in _candidate_paths() if path.exists()]


_STARTER_SETTINGS = """\
# project-config settings
#
# Paths are relative to the working directory.  They can also be set via
# environment variables: PROJECT_CONFIG_DIR, PROJECT_CONFIG_STATE_DIR.
#
# project:
#   config_dir: config
#   state_dir: .project_config
#   mounts:
#     - prefix: ""
#       location: project.yaml
#     - prefix: sections
#       location: sections/
#
# Operations run only for an admin with an elevated session:
#
# access:
#   admin: ${PROJECT_CONFIG_ADMIN:-false}
#   elevated_session: false
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_settings_path() -> Path:
    """Return the settings file in effect, or where a new one belongs.

    Nothing is created; see ``ensure_settings()``.
    """
    found = discover_settings_files()
    return found[0] if found else Path.cwd() / SETTINGS_DIR_NAME / "settings.yml"


def ensure_settings(target: Path | None = None) -> Path:
    """Return the settings file in effect, writing a commented starter
    file (to *target*, or the project location) when none exists."""
    found = discover_settings_files()
    if found:
        logger.debug("Using existing settings file %s", found[0])
        return found[0]

    path = target or resolve_settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_SETTINGS, encoding="utf-8")
    logger.info("Created starter settings: %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_settings() -> dict[str, Any]:
    """Load every discovered settings file into one dict.

    The most specific file wins per top-level key: a ``project`` section
    in the project file replaces the user file's ``project`` section as a
    whole.  Environment references are expanded after merging.  With no
    settings files at all the result is ``{}``.

    Raises:
        yaml.YAMLError: If a settings file is malformed.
        ValueError: On an include cycle.
        FileNotFoundError: On a missing include.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_settings_files()):
        logger.debug("Loading settings: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error("Failed to load settings file %s: %s", path, e)
            raise
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring settings file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
            continue
        merged.update(data)
    return _interpolate_recursive(merged)
