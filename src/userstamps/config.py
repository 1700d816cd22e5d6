"""
Configuration for userstamps.

A single immutable StampConfig is active per process. It is built through
`configure()` (or `StampConfig.from_env()`), which always validates, and is
read by the mixin, the migration helpers and the reverse-association manager.
Every component also accepts an explicit `config=` argument.

Usage:
    from userstamps import configure

    configure(user_class="Account", creator_column="created_by_id")

    # or callback style
    def tweak(settings):
        settings["soft_delete_column"] = "deleted_at"
        settings["column_data_type"] = "uuid"

    configure(tweak)
"""
from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from userstamps.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ROLES = ("creator", "updater", "deleter")

# Keys accepted in a model's __userstamps__ map on top of the StampConfig fields
MODEL_ONLY_SETTINGS = frozenset({"reverse_associations"})

COLUMN_TYPES: dict[str, Callable[[], sa.types.TypeEngine]] = {
    "bigint": sa.BigInteger,
    "integer": sa.Integer,
    "smallint": sa.SmallInteger,
    "string": lambda: sa.String(255),
    "text": sa.Text,
    "uuid": sa.Uuid,
}

_NULL_STRINGS = {"", "none", "null"}


def resolve_column_type(column_type: Any) -> sa.types.TypeEngine:
    """Turn a configured type name (or a SQLAlchemy type) into a type instance."""
    if isinstance(column_type, sa.types.TypeEngine):
        return column_type
    if isinstance(column_type, type) and issubclass(column_type, sa.types.TypeEngine):
        return column_type()

    factory = COLUMN_TYPES.get(str(column_type).lower())
    if factory is None:
        raise ConfigurationError(
            f"Unknown stamp column type {column_type!r}. "
            f"Use one of: {', '.join(sorted(COLUMN_TYPES))}"
        )
    return factory()


class StampConfig(BaseModel):
    """Validated userstamps settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # User model
    user_class: str = "User"
    user_primary_key: str = "id"

    # Stamp columns (None disables the column)
    creator_column: Optional[str] = "creator_id"
    updater_column: Optional[str] = "updater_id"
    deleter_column: Optional[str] = "deleter_id"

    # Soft delete
    soft_delete_column: Optional[str] = None
    detect_soft_delete: bool = False

    # Migrations
    auto_inject_stamps: bool = True
    column_data_type: str = "bigint"
    creator_column_type: Optional[str] = None
    updater_column_type: Optional[str] = None
    deleter_column_type: Optional[str] = None

    # Reverse associations on the user model
    auto_setup_reverse_associations: bool = True
    reverse_association_prefix: str = ""
    reverse_association_suffix: str = ""

    @field_validator(
        "creator_column", "updater_column", "deleter_column", "soft_delete_column",
        mode="before",
    )
    @classmethod
    def _blank_means_disabled(cls, value):
        if isinstance(value, str) and value.strip().lower() in _NULL_STRINGS:
            return None
        return value

    @field_validator(
        "column_data_type", "creator_column_type", "updater_column_type", "deleter_column_type",
    )
    @classmethod
    def _known_column_type(cls, value):
        if value is None:
            return value
        value = value.lower()
        if value not in COLUMN_TYPES:
            raise ConfigurationError(
                f"Unknown stamp column type {value!r}. "
                f"Use one of: {', '.join(sorted(COLUMN_TYPES))}"
            )
        return value

    @model_validator(mode="after")
    def _require_creator_or_updater(self) -> "StampConfig":
        if self.creator_column is None and self.updater_column is None:
            raise ConfigurationError(
                "At least one of creator_column or updater_column must be configured. "
                "Disabling both would turn off all stamping."
            )
        return self

    # ------------------------------------------------------------------
    # Derived settings
    # ------------------------------------------------------------------
    @property
    def creator_enabled(self) -> bool:
        return self.creator_column is not None

    @property
    def updater_enabled(self) -> bool:
        return self.updater_column is not None

    @property
    def deleter_enabled(self) -> bool:
        return self.deleter_column is not None

    @property
    def soft_delete_enabled(self) -> bool:
        return self.soft_delete_column is not None

    def column_for(self, role: str) -> Optional[str]:
        """Configured column name for creator/updater/deleter."""
        _check_role(role)
        return getattr(self, f"{role}_column")

    def data_type_for(self, role: str) -> str:
        """Type name for a stamp column; the per-column override wins."""
        _check_role(role)
        return getattr(self, f"{role}_column_type") or self.column_data_type

    def column_type_for(self, role: str) -> sa.types.TypeEngine:
        return resolve_column_type(self.data_type_for(role))

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------
    @classmethod
    def from_env(cls, prefix: str = "USERSTAMPS_") -> "StampConfig":
        """
        Build a config from environment variables.

        USERSTAMPS_CREATOR_COLUMN=created_by_id
        USERSTAMPS_SOFT_DELETE_COLUMN=deleted_at
        USERSTAMPS_UPDATER_COLUMN=none      -> disables the updater column
        """
        values = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return _build(values)


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise ValueError(f"Unknown stamp role {role!r}; expected one of {ROLES}")


def _build(values: dict) -> StampConfig:
    try:
        return StampConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid userstamps configuration: {e}") from e


# ---------------------------------------------------------
# Active configuration
# ---------------------------------------------------------
_active_config = StampConfig()


def get_config() -> StampConfig:
    return _active_config


def set_config(config: StampConfig) -> StampConfig:
    global _active_config
    _active_config = config
    return config


def configure(func: Optional[Callable[[dict], Any]] = None, **changes: Any) -> StampConfig:
    """
    Validate and install a new active configuration.

    Keyword changes are applied first, then `func` receives the draft
    settings dict for in-place edits. The active configuration is only
    replaced when the result validates.
    """
    draft = get_config().model_dump()
    draft.update(changes)
    if func is not None:
        func(draft)

    config = _build(draft)
    set_config(config)
    logger.debug(f"userstamps configured: {config.model_dump()}")
    return config


def reset_config() -> StampConfig:
    """Restore the default configuration."""
    return set_config(StampConfig())


@contextmanager
def use_config(config: StampConfig) -> Iterator[StampConfig]:
    """Install `config` for the duration of a block."""
    previous = get_config()
    set_config(config)
    try:
        yield config
    finally:
        set_config(previous)


# ---------------------------------------------------------
# Per-model overrides
# ---------------------------------------------------------
def model_overrides(model: type) -> dict:
    """Return the model's __userstamps__ map, rejecting unknown keys."""
    overrides = getattr(model, "__userstamps__", None) or {}
    unknown = set(overrides) - set(StampConfig.model_fields) - MODEL_ONLY_SETTINGS
    if unknown:
        raise ConfigurationError(
            f"{model.__name__}.__userstamps__ has unknown settings: {', '.join(sorted(unknown))}"
        )
    return dict(overrides)


def effective_config(model: type, config: Optional[StampConfig] = None) -> StampConfig:
    """Global configuration with the model's overrides applied and validated."""
    config = config or get_config()
    overrides = {
        key: value
        for key, value in model_overrides(model).items()
        if key not in MODEL_ONLY_SETTINGS
    }
    if not overrides:
        return config

    try:
        return StampConfig(**{**config.model_dump(), **overrides})
    except ConfigurationError as e:
        raise ConfigurationError(f"{model.__name__}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid userstamps settings on {model.__name__}: {e}") from e


def model_setting(model: type, key: str, config: Optional[StampConfig] = None) -> Any:
    """Look a setting up on the model first, then fall back to the global config."""
    config = config or get_config()
    overrides = model_overrides(model)
    if key in overrides:
        return overrides[key]
    if key == "reverse_associations":
        return config.auto_setup_reverse_associations
    if key not in StampConfig.model_fields:
        raise ConfigurationError(f"Unknown userstamps setting {key!r}")
    return getattr(config, key)
