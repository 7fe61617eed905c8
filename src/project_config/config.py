"""Runtime configuration for the CLI and the MCP server.

Reads the project layout and access flags from CLI args, environment
variables, .env files, and the YAML settings file.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML settings > Built-in defaults

Environment variables:
    PROJECT_CONFIG_DIR: Directory holding the YAML config files
    PROJECT_CONFIG_STATE_DIR: Directory for snapshot and path map state
    PROJECT_CONFIG_ADMIN: Caller is an admin (optional, default: false)
    PROJECT_CONFIG_ELEVATED: Caller holds an elevated session (optional, default: false)
    PROJECT_CONFIG_DEBUG: Enable debug logging (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from project_config.config_schema import UnifiedConfig
from project_config.sync.models import MountRule

logger = logging.getLogger(__name__)


@dataclass
class Config:
    config_dir: str
    state_dir: str
    mounts: tuple[MountRule, ...] = field(default_factory=tuple)
    admin: bool = False
    elevated_session: bool = False
    debug: bool = False


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If a directory is empty, the two directories coincide,
            or two mounts share a prefix.
    """
    config.config_dir = config.config_dir.strip()
    config.state_dir = config.state_dir.strip()

    if not config.config_dir:
        raise ValueError(
            "Config directory cannot be empty. Set PROJECT_CONFIG_DIR or "
            "'project.config_dir' in settings.yml."
        )

    if not config.state_dir:
        raise ValueError(
            "State directory cannot be empty. Set PROJECT_CONFIG_STATE_DIR "
            "or 'project.state_dir' in settings.yml."
        )

    if Path(config.config_dir).resolve() == Path(config.state_dir).resolve():
        raise ValueError(
            f"State directory '{config.state_dir}' must differ from the "
            "config directory"
        )

    prefixes = [m.prefix for m in config.mounts]
    duplicates = sorted({p for p in prefixes if prefixes.count(p) > 1})
    if duplicates:
        raise ValueError(
            f"Mount prefix '{duplicates[0]}' is declared more than once"
        )

    if config.admin != config.elevated_session:
        logger.debug(
            "Access gate half-open (admin=%s, elevated=%s): operations will "
            "be refused",
            config.admin,
            config.elevated_session,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    config_dir: str | None = None,
    state_dir: str | None = None,
    debug: bool = False,
    settings: UnifiedConfig | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > settings file > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        config_dir: Override config directory.
        state_dir: Override state directory.
        debug: Enable debug logging (CLI flag).
        settings: Parsed settings file, used as fallback.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    unified = settings or UnifiedConfig()

    final_config_dir = (
        config_dir
        or os.getenv("PROJECT_CONFIG_DIR")
        or unified.project.config_dir
    )
    final_state_dir = (
        state_dir
        or os.getenv("PROJECT_CONFIG_STATE_DIR")
        or unified.project.state_dir
    )

    env_admin = _get_bool_env("PROJECT_CONFIG_ADMIN")
    final_admin = env_admin if env_admin is not None else unified.access.admin

    env_elevated = _get_bool_env("PROJECT_CONFIG_ELEVATED")
    final_elevated = (
        env_elevated
        if env_elevated is not None
        else unified.access.elevated_session
    )

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("PROJECT_CONFIG_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = unified.logging.level.upper() == "DEBUG"

    config = Config(
        config_dir=final_config_dir,
        state_dir=final_state_dir,
        mounts=tuple(m.to_rule() for m in unified.project.mounts),
        admin=final_admin,
        elevated_session=final_elevated,
        debug=final_debug,
    )

    validate_config(config)

    return config
