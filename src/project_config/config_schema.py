"""Tool settings schema for project_config.

Defines Pydantic models for the settings file, with dedicated sections for
the project layout, the access gate, and logging. ``config.load_config()``
layers CLI and environment overrides on top.

Usage:
    from project_config.config_loader import load_hierarchical_settings
    from project_config.config_schema import build_config

    unified = build_config(load_hierarchical_settings())
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from project_config.sync.models import MountRule

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class MountRuleConfig(BaseModel):
    """One mount rule as written in the settings file.

    Example::

        mounts:
          - prefix: ""
            location: project.yaml
          - prefix: sections
            location: sections/
    """

    prefix: str = Field(default="", description="Tree path prefix")
    location: str = Field(
        description="File, or directory ending in '/', relative to config_dir"
    )

    model_config = {"frozen": True}

    def to_rule(self) -> MountRule:
        return MountRule(prefix=self.prefix, location=self.location)


class ProjectSettings(BaseModel):
    """Where the config files and engine state live, and how they mount.

    All fields have defaults so an empty settings file is valid.
    """

    config_dir: str = Field(
        default="config", description="Directory holding the YAML files"
    )
    state_dir: str = Field(
        default=".project_config",
        description="Directory for snapshot and path map state",
    )
    mounts: list[MountRuleConfig] = Field(
        default_factory=lambda: [MountRuleConfig(location="project.yaml")],
        description="Ordered mount rules",
    )

    model_config = {"frozen": True}

    @field_validator("mounts")
    @classmethod
    def _unique_prefixes(
        cls, value: list[MountRuleConfig]
    ) -> list[MountRuleConfig]:
        seen: set[str] = set()
        for mount in value:
            if mount.prefix in seen:
                raise ValueError(
                    f"Duplicate mount prefix '{mount.prefix}': each prefix "
                    "may be mounted once"
                )
            seen.add(mount.prefix)
        return value


class AccessConfig(BaseModel):
    """Access gate inputs.

    Operations run only when both flags are true.  Both default to false so
    a missing section fails closed.
    """

    admin: bool = Field(default=False, description="Caller is an admin")
    elevated_session: bool = Field(
        default=False, description="Caller holds an elevated session"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level settings.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    project: ProjectSettings = Field(default_factory=ProjectSettings)
    access: AccessConfig = Field(default_factory=AccessConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the merged settings dict.

    Missing sections get defaults.

    Args:
        raw_data: Merged settings dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)

