# src/userstamps/db/migration_helpers.py

"""
Alembic helpers for stamp columns.

Inside a migration:

    from userstamps.db.migration_helpers import add_stamps, remove_stamps

    def upgrade():
        add_stamps("posts")                      # creator_id, updater_id (+ deleter_id if soft-deleting)
        add_stamps("comments", include_deleter=True, creator_type="uuid")

    def downgrade():
        remove_stamps("posts")

For new tables:

    create_stamped_table(
        "posts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
    )
"""
from __future__ import annotations

import logging
import re
from typing import Any, Optional, Union

import sqlalchemy as sa
from alembic import op

from userstamps.config import ROLES, StampConfig, get_config, resolve_column_type
from userstamps.exceptions import MigrationError
from userstamps.services.soft_delete import table_has_soft_delete
from userstamps.utils.inflection import pluralize, underscore

logger = logging.getLogger(__name__)

IncludeDeleter = Union[bool, str]

_CREATE_PATTERN = re.compile(r"^Create(\w+)$")
_ADD_TO_PATTERN = re.compile(r"^Add\w*To(\w+)$")


def index_name(table_name: str, column_name: str) -> str:
    return f"ix_{table_name}_{column_name}"


def _inspector() -> sa.Inspector:
    return sa.inspect(op.get_bind())


def _existing_columns(inspector: sa.Inspector, table_name: str) -> set[str]:
    if not inspector.has_table(table_name):
        return set()
    return {column["name"] for column in inspector.get_columns(table_name)}


def _include_deleter(inspector: sa.Inspector, table_name: str, include_deleter: IncludeDeleter, config: StampConfig) -> bool:
    if include_deleter == "auto":
        return table_has_soft_delete(inspector, table_name, config)
    return include_deleter is True


def _type_overrides(creator_type: Any, updater_type: Any, deleter_type: Any) -> dict[str, Any]:
    return {"creator": creator_type, "updater": updater_type, "deleter": deleter_type}


# ---------------------------------------------------------
# Existing tables
# ---------------------------------------------------------
def add_stamps(
    table_name: str,
    include_deleter: IncludeDeleter = "auto",
    creator_type: Any = None,
    updater_type: Any = None,
    deleter_type: Any = None,
    config: Optional[StampConfig] = None,
) -> list[str]:
    """
    Add the enabled stamp columns (nullable) and one index per column.

    include_deleter: "auto" adds the deleter column when the table soft-deletes,
    True always adds it, False never does. Columns already present are skipped.
    Returns the names of the columns added.
    """
    config = config or get_config()
    inspector = _inspector()
    existing = _existing_columns(inspector, table_name)
    with_deleter = _include_deleter(inspector, table_name, include_deleter, config)
    types = _type_overrides(creator_type, updater_type, deleter_type)

    added = []
    for role in ROLES:
        column_name = config.column_for(role)
        if column_name is None:
            continue
        if role == "deleter" and not with_deleter:
            continue
        if column_name in existing:
            logger.info(f"{table_name}.{column_name} already exists; skipping")
            continue

        column_type = resolve_column_type(types[role] or config.data_type_for(role))
        op.add_column(table_name, sa.Column(column_name, column_type, nullable=True))
        added.append(column_name)

    for column_name in added:
        op.create_index(index_name(table_name, column_name), table_name, [column_name])

    logger.info(f"Added stamp columns to {table_name}: {added}")
    return added


def remove_stamps(
    table_name: str,
    include_deleter: IncludeDeleter = "auto",
    config: Optional[StampConfig] = None,
) -> list[str]:
    """Drop the stamp columns (and their indexes) that currently exist."""
    config = config or get_config()
    inspector = _inspector()
    existing = _existing_columns(inspector, table_name)
    if not existing:
        return []

    with_deleter = _include_deleter(inspector, table_name, include_deleter, config)
    indexes = {index["name"] for index in inspector.get_indexes(table_name)}

    removed = []
    for role in ROLES:
        column_name = config.column_for(role)
        if column_name is None or column_name not in existing:
            continue
        if role == "deleter" and not with_deleter:
            continue

        if index_name(table_name, column_name) in indexes:
            op.drop_index(index_name(table_name, column_name), table_name=table_name)
        op.drop_column(table_name, column_name)
        removed.append(column_name)

    logger.info(f"Removed stamp columns from {table_name}: {removed}")
    return removed


# ---------------------------------------------------------
# New tables
# ---------------------------------------------------------
def stamp_columns(
    table_name: str,
    include_deleter: bool = False,
    creator_type: Any = None,
    updater_type: Any = None,
    deleter_type: Any = None,
    config: Optional[StampConfig] = None,
) -> list[sa.schema.SchemaItem]:
    """
    Columns and indexes to pass to op.create_table.

    There is nothing to inspect on a table that does not exist yet, so the
    deleter column is only included when explicitly requested.
    """
    config = config or get_config()
    types = _type_overrides(creator_type, updater_type, deleter_type)

    columns = []
    for role in ROLES:
        column_name = config.column_for(role)
        if column_name is None:
            continue
        if role == "deleter" and include_deleter is not True:
            continue
        column_type = resolve_column_type(types[role] or config.data_type_for(role))
        columns.append(sa.Column(column_name, column_type, nullable=True))

    indexes = [sa.Index(index_name(table_name, column.name), column.name) for column in columns]
    return [*columns, *indexes]


def create_stamped_table(
    table_name: str,
    *elements: Any,
    skip_stamps: bool = False,
    include_deleter: bool = False,
    creator_type: Any = None,
    updater_type: Any = None,
    deleter_type: Any = None,
    config: Optional[StampConfig] = None,
    **kw: Any,
):
    """
    op.create_table that appends stamp columns when `auto_inject_stamps` is on.

    Nothing is injected when `skip_stamps` is set or any stamp column is
    already among `elements`.
    """
    config = config or get_config()
    elements = list(elements)

    if config.auto_inject_stamps and not skip_stamps:
        stamp_names = {config.column_for(role) for role in ROLES} - {None}
        declared = {element.name for element in elements if isinstance(element, sa.Column)}
        if stamp_names & declared:
            logger.debug(f"{table_name} already declares stamp columns; not injecting")
        else:
            elements.extend(
                stamp_columns(
                    table_name,
                    include_deleter=include_deleter,
                    creator_type=creator_type,
                    updater_type=updater_type,
                    deleter_type=deleter_type,
                    config=config,
                )
            )

    return op.create_table(table_name, *elements, **kw)


# ---------------------------------------------------------
# Table name inference
# ---------------------------------------------------------
def infer_table_name(migration_name: Optional[str]) -> Optional[str]:
    """
    Guess the table from a migration name.

    CreatePosts -> posts, CreateBlogPost -> blog_posts, AddStampsToUsers -> users.
    Anything else -> None.
    """
    if not migration_name:
        return None

    match = _CREATE_PATTERN.match(migration_name)
    if match:
        return pluralize(underscore(match.group(1)))

    match = _ADD_TO_PATTERN.match(migration_name)
    if match:
        return underscore(match.group(1))

    return None


def stamps(
    table_name: Optional[str] = None,
    migration_name: Optional[str] = None,
    **kwargs: Any,
) -> list[str]:
    """add_stamps on an explicit table, or on the one named by `migration_name`."""
    table_name = table_name or infer_table_name(migration_name)
    if table_name is None:
        raise MigrationError(
            f"Cannot infer a table name from {migration_name!r}; "
            "pass table_name explicitly (e.g. stamps('posts'))"
        )
    return add_stamps(table_name, **kwargs)
