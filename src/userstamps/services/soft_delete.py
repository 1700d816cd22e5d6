# src/userstamps/services/soft_delete.py

"""
Soft-delete resolution for stamped models and tables.

An explicitly configured `soft_delete_column` (globally or in a model's
__userstamps__) always wins. Only when none is configured and
`detect_soft_delete` is on does the heuristic chain run, first match wins:

  1. a soft-delete mixin in the class hierarchy (SoftDelete*, Paranoid*, Discard*)
  2. soft-delete capability methods (soft_delete, discard, undelete, undiscard)
  3. a conventional timestamp column (deleted_at, discarded_at, ...) of date/time type
  4. one of those names exposed as a non-column attribute (property, hybrid)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect

from userstamps.config import StampConfig, effective_config

logger = logging.getLogger(__name__)

SOFT_DELETE_COLUMN_NAMES = (
    "deleted_at",
    "destroyed_at",
    "discarded_at",
    "archived_at",
    "soft_deleted_at",
    "soft_destroyed_at",
    "removed_at",
)

SOFT_DELETE_MIXIN_MARKERS = ("SoftDelete", "Paranoid", "Discard")

SOFT_DELETE_METHODS = ("soft_delete", "discard", "undelete", "undiscard")


@dataclass(frozen=True)
class SoftDeleteInfo:
    enabled: bool
    attribute: Optional[str] = None  # mapped attribute key holding the timestamp
    source: str = "none"             # "config", "mixin", "methods", "column", "attribute" or "none"


def _mapped_columns(model: type) -> dict[str, sa.Column]:
    # column_attrs would configure the registry while classes are still being declared
    mapper = sa_inspect(model, raiseerr=False)
    if mapper is None:
        return {}
    return {
        key: column
        for key, column in mapper.columns.items()
        if isinstance(column, sa.Column)
    }


def column_attributes(model: type) -> dict[str, str]:
    """Map database column name -> mapped attribute key for a mapped class."""
    return {column.name: key for key, column in _mapped_columns(model).items()}


def _mapped_column(model: type, name: str) -> Optional[sa.Column]:
    for column in _mapped_columns(model).values():
        if column.name == name:
            return column
    return None


def is_timestamp_type(column_type: sa.types.TypeEngine) -> bool:
    return isinstance(column_type, (sa.DateTime, sa.Date))


# ---------------------------------------------------------
# Heuristics
# ---------------------------------------------------------
def uses_soft_delete_mixin(model: type) -> bool:
    return any(
        marker in base.__name__
        for base in model.__mro__[1:]
        for marker in SOFT_DELETE_MIXIN_MARKERS
    )


def has_soft_delete_methods(model: type) -> bool:
    return any(callable(getattr(model, name, None)) for name in SOFT_DELETE_METHODS)


def conventional_timestamp_column(model: type) -> Optional[str]:
    """Attribute key of the first conventional soft-delete column with a date/time type."""
    for name in SOFT_DELETE_COLUMN_NAMES:
        column = _mapped_column(model, name)
        if column is not None and is_timestamp_type(column.type):
            return column_attributes(model)[name]
    return None


def conventional_attribute(model: type) -> Optional[str]:
    columns = column_attributes(model)
    for name in SOFT_DELETE_COLUMN_NAMES:
        if name not in columns and hasattr(model, name):
            return name
    return None


def detect(model: type) -> bool:
    """Best-effort guess whether a model soft-deletes."""
    return detect_info(model).enabled


def detected_column(model: type) -> Optional[str]:
    """Timestamp attribute found by the heuristics, if any."""
    return conventional_timestamp_column(model)


def detect_info(model: type) -> SoftDeleteInfo:
    column = conventional_timestamp_column(model)

    if uses_soft_delete_mixin(model):
        return SoftDeleteInfo(True, column, "mixin")
    if has_soft_delete_methods(model):
        return SoftDeleteInfo(True, column, "methods")
    if column is not None:
        return SoftDeleteInfo(True, column, "column")
    if conventional_attribute(model) is not None:
        return SoftDeleteInfo(True, None, "attribute")
    return SoftDeleteInfo(False)


# ---------------------------------------------------------
# Resolution
# ---------------------------------------------------------
def resolve(model: type, config: Optional[StampConfig] = None) -> SoftDeleteInfo:
    """
    Decide whether `model` soft-deletes and which attribute carries the timestamp.

    A configured column only counts when the model actually maps it.
    """
    config = effective_config(model, config)

    if config.soft_delete_column is not None:
        attribute = column_attributes(model).get(config.soft_delete_column)
        if attribute is None:
            logger.debug(
                f"{model.__name__} has no '{config.soft_delete_column}' column; soft delete disabled"
            )
            return SoftDeleteInfo(False)
        return SoftDeleteInfo(True, attribute, "config")

    if config.detect_soft_delete:
        info = detect_info(model)
        if info.enabled:
            logger.debug(f"Soft delete detected on {model.__name__} via {info.source}")
        return info

    return SoftDeleteInfo(False)


def table_has_soft_delete(inspector: sa.Inspector, table_name: str, config: StampConfig) -> bool:
    """Same decision for a live table, used by the migration helpers."""
    if not inspector.has_table(table_name):
        return False

    columns = {column["name"] for column in inspector.get_columns(table_name)}
    if config.soft_delete_column is not None:
        return config.soft_delete_column in columns
    if config.detect_soft_delete:
        return any(name in columns for name in SOFT_DELETE_COLUMN_NAMES)
    return False
