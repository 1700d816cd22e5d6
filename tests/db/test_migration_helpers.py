"""
Tests for the Alembic stamp helpers.

add_stamps/create_stamped_table run against a real SQLite connection through
an Alembic MigrationContext; remove_stamps is checked against a mocked `op`.
"""
from unittest.mock import MagicMock, call, patch

import pytest
import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations

from userstamps import MigrationError, configure
from userstamps.config import StampConfig
from userstamps.db import migration_helpers
from userstamps.db.migration_helpers import (
    add_stamps,
    create_stamped_table,
    infer_table_name,
    remove_stamps,
    stamp_columns,
    stamps,
)


@pytest.fixture
def connection():
    engine = sa.create_engine("sqlite://")
    with engine.begin() as conn:
        conn.execute(sa.text(
            "CREATE TABLE posts (id INTEGER PRIMARY KEY, title VARCHAR, deleted_at DATETIME)"
        ))
        conn.execute(sa.text("CREATE TABLE tags (id INTEGER PRIMARY KEY, name VARCHAR)"))
        yield conn


@pytest.fixture
def migration(connection):
    ctx = MigrationContext.configure(connection)
    with Operations.context(ctx) as operations:
        yield operations


def columns_of(connection, table_name):
    return {column["name"]: column for column in sa.inspect(connection).get_columns(table_name)}


def indexes_of(connection, table_name):
    return {index["name"] for index in sa.inspect(connection).get_indexes(table_name)}


# ---------------------------------------------------------
# add_stamps
# ---------------------------------------------------------
def test_add_stamps_adds_creator_and_updater(connection, migration):
    added = add_stamps("posts")

    assert added == ["creator_id", "updater_id"]
    columns = columns_of(connection, "posts")
    assert columns["creator_id"]["nullable"] is True
    assert str(columns["creator_id"]["type"]) == "BIGINT"
    assert "deleter_id" not in columns
    assert indexes_of(connection, "posts") == {"ix_posts_creator_id", "ix_posts_updater_id"}


def test_add_stamps_includes_deleter_for_soft_deleting_table(connection, migration):
    configure(soft_delete_column="deleted_at")

    assert add_stamps("posts") == ["creator_id", "updater_id", "deleter_id"]
    assert "ix_posts_deleter_id" in indexes_of(connection, "posts")


def test_add_stamps_auto_skips_deleter_without_soft_delete_column(connection, migration):
    configure(soft_delete_column="deleted_at")

    assert add_stamps("tags") == ["creator_id", "updater_id"]


def test_add_stamps_forced_deleter(connection, migration):
    assert add_stamps("tags", include_deleter=True) == ["creator_id", "updater_id", "deleter_id"]


def test_add_stamps_deleter_opt_out(connection, migration):
    configure(soft_delete_column="deleted_at")

    assert add_stamps("posts", include_deleter=False) == ["creator_id", "updater_id"]


def test_add_stamps_detected_soft_delete(connection, migration):
    configure(detect_soft_delete=True)

    assert "deleter_id" in add_stamps("posts")


def test_add_stamps_skips_existing_columns(connection, migration):
    add_stamps("posts")

    assert add_stamps("posts") == []


def test_add_stamps_column_types(connection, migration):
    configure(column_data_type="integer")

    add_stamps("posts", updater_type="string")

    columns = columns_of(connection, "posts")
    assert str(columns["creator_id"]["type"]) == "INTEGER"
    assert str(columns["updater_id"]["type"]) == "VARCHAR(255)"


def test_add_stamps_respects_disabled_columns(connection, migration):
    configure(updater_column=None)

    assert add_stamps("posts") == ["creator_id"]


def test_add_stamps_custom_names(connection, migration):
    config = StampConfig(creator_column="created_by_id", updater_column="updated_by_id")

    assert add_stamps("posts", config=config) == ["created_by_id", "updated_by_id"]
    assert "ix_posts_created_by_id" in indexes_of(connection, "posts")


def test_stamps_infers_table_from_migration_name(connection, migration):
    assert stamps(migration_name="AddStampsToTags") == ["creator_id", "updater_id"]


# ---------------------------------------------------------
# remove_stamps
# ---------------------------------------------------------
def mock_inspector(columns, indexes=()):
    inspector = MagicMock()
    inspector.has_table.return_value = True
    inspector.get_columns.return_value = [{"name": name} for name in columns]
    inspector.get_indexes.return_value = [{"name": name} for name in indexes]
    return inspector


def test_remove_stamps_drops_indexes_then_columns():
    inspector = mock_inspector(
        ["id", "creator_id", "updater_id"],
        ["ix_posts_creator_id", "ix_posts_updater_id"],
    )

    with patch.object(migration_helpers, "_inspector", return_value=inspector), \
            patch.object(migration_helpers, "op") as op:
        removed = remove_stamps("posts")

    assert removed == ["creator_id", "updater_id"]
    assert op.mock_calls == [
        call.drop_index("ix_posts_creator_id", table_name="posts"),
        call.drop_column("posts", "creator_id"),
        call.drop_index("ix_posts_updater_id", table_name="posts"),
        call.drop_column("posts", "updater_id"),
    ]


def test_remove_stamps_keeps_deleter_unless_soft_deleting():
    inspector = mock_inspector(["id", "creator_id", "updater_id", "deleter_id"])

    with patch.object(migration_helpers, "_inspector", return_value=inspector), \
            patch.object(migration_helpers, "op") as op:
        removed = remove_stamps("posts")

    assert removed == ["creator_id", "updater_id"]
    op.drop_index.assert_not_called()


def test_remove_stamps_with_deleter():
    inspector = mock_inspector(["id", "creator_id", "deleter_id"])

    with patch.object(migration_helpers, "_inspector", return_value=inspector), \
            patch.object(migration_helpers, "op") as op:
        removed = remove_stamps("posts", include_deleter=True)

    assert removed == ["creator_id", "deleter_id"]
    op.drop_column.assert_any_call("posts", "deleter_id")


def test_remove_stamps_missing_table():
    inspector = MagicMock()
    inspector.has_table.return_value = False

    with patch.object(migration_helpers, "_inspector", return_value=inspector), \
            patch.object(migration_helpers, "op") as op:
        assert remove_stamps("ghosts") == []

    op.drop_column.assert_not_called()


# ---------------------------------------------------------
# New tables
# ---------------------------------------------------------
def test_create_stamped_table_injects_stamps(connection, migration):
    create_stamped_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("body", sa.Text(), nullable=False),
    )

    assert set(columns_of(connection, "comments")) == {"id", "body", "creator_id", "updater_id"}
    assert indexes_of(connection, "comments") == {"ix_comments_creator_id", "ix_comments_updater_id"}


def test_create_stamped_table_with_deleter(connection, migration):
    create_stamped_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        include_deleter=True,
        deleter_type="uuid",
    )

    assert "deleter_id" in columns_of(connection, "comments")


def test_create_stamped_table_skip_stamps(connection, migration):
    create_stamped_table("comments", sa.Column("id", sa.Integer(), primary_key=True), skip_stamps=True)

    assert set(columns_of(connection, "comments")) == {"id"}


def test_create_stamped_table_respects_auto_inject_setting(connection, migration):
    configure(auto_inject_stamps=False)

    create_stamped_table("comments", sa.Column("id", sa.Integer(), primary_key=True))

    assert set(columns_of(connection, "comments")) == {"id"}


def test_create_stamped_table_keeps_declared_stamp_columns(connection, migration):
    create_stamped_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("creator_id", sa.Integer(), nullable=False),
    )

    columns = columns_of(connection, "comments")
    assert set(columns) == {"id", "creator_id"}
    assert columns["creator_id"]["nullable"] is False


def test_stamp_columns():
    elements = stamp_columns("posts", include_deleter=True, creator_type=sa.Integer)

    columns = [element for element in elements if isinstance(element, sa.Column)]
    indexes = [element for element in elements if isinstance(element, sa.Index)]
    assert [column.name for column in columns] == ["creator_id", "updater_id", "deleter_id"]
    assert isinstance(columns[0].type, sa.Integer)
    assert isinstance(columns[1].type, sa.BigInteger)
    assert all(column.nullable for column in columns)
    assert [index.name for index in indexes] == [
        "ix_posts_creator_id",
        "ix_posts_updater_id",
        "ix_posts_deleter_id",
    ]


def test_stamp_columns_without_deleter_by_default():
    configure(soft_delete_column="deleted_at")

    names = [element.name for element in stamp_columns("posts") if isinstance(element, sa.Column)]

    assert names == ["creator_id", "updater_id"]


# ---------------------------------------------------------
# Table name inference
# ---------------------------------------------------------
@pytest.mark.parametrize(
    "migration_name,expected",
    [
        ("CreatePosts", "posts"),
        ("CreatePost", "posts"),
        ("CreateBlogPost", "blog_posts"),
        ("CreateCategory", "categories"),
        ("AddStampsToUsers", "users"),
        ("AddUserstampsToBlogPosts", "blog_posts"),
        ("SomeOtherMigration", None),
        ("", None),
        (None, None),
    ],
)
def test_infer_table_name(migration_name, expected):
    assert infer_table_name(migration_name) == expected


def test_stamps_without_table_raises():
    with pytest.raises(MigrationError):
        stamps(migration_name="SomeOtherMigration")


def test_stamps_with_explicit_table_passes_options():
    with patch.object(migration_helpers, "add_stamps", return_value=["creator_id"]) as add:
        assert stamps("posts", include_deleter=True) == ["creator_id"]

    add.assert_called_once_with("posts", include_deleter=True)
