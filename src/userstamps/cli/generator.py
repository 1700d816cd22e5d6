# src/userstamps/cli/generator.py

"""
File generation for `userstamps install`: the configuration template and the
declarative base patch.
"""
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "userstamps_config.py"

PROJECT_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg")

BASE_FILE_CANDIDATES = (
    "app/models/base.py",
    "app/db/base.py",
    "models/base.py",
    "db/base.py",
)

MIXIN_NAME = "StampableMixin"
MIXIN_IMPORT = "from userstamps import StampableMixin\n"

_PRIMARY_PATTERN = re.compile(r"^(\s*)class Base\(DeclarativeBase\):", re.MULTILINE)
_FALLBACK_PATTERN = re.compile(r"^(\s*)class Base\((.+)\):", re.MULTILINE)
_IMPORT_PATTERN = re.compile(r"^(?:from|import) ", re.MULTILINE)

CONFIG_TEMPLATE = '''"""
userstamps configuration.

Generated by `userstamps install`. Import this module once at startup, before
your models are imported, and uncomment the options you want to change.
Settings can also come from USERSTAMPS_* environment variables
(see StampConfig.from_env).
"""
from userstamps import configure

configure(
    # User model
    # user_class="Account",            # Default: "User" (class name or dotted path)
    # user_primary_key="id",           # Default: "id"

    # Stamp columns (None disables a column; creator and updater can't both be None)
    # creator_column="created_by_id",  # Default: "creator_id"
    # updater_column="updated_by_id",  # Default: "updater_id"
    # deleter_column="deleted_by_id",  # Default: "deleter_id"

    # Soft delete
    # soft_delete_column="deleted_at", # Default: None (disabled)
    # detect_soft_delete=True,         # Default: False; guess from deleted_at/discarded_at/... columns

    # Migrations
    # auto_inject_stamps=False,        # Default: True; create_stamped_table adds stamp columns
    # column_data_type="integer",      # Default: "bigint" (bigint, integer, smallint, string, text, uuid)
    # creator_column_type="uuid",      # Default: None (uses column_data_type)
    # updater_column_type="uuid",      # Default: None (uses column_data_type)
    # deleter_column_type="uuid",      # Default: None (uses column_data_type)

    # Reverse associations (User.created_posts, User.updated_posts, ...)
    # auto_setup_reverse_associations=False,  # Default: True
    # reverse_association_prefix="",   # Default: ""
    # reverse_association_suffix="",   # Default: ""
)
'''

NEXT_STEPS = """
Next steps:
  1. Edit {config_file} and uncomment the options you want to change
  2. Import it at startup, before your models
  3. Add stamp columns with an Alembic migration:
       alembic revision -m "add stamps to posts"
       # then in upgrade(): add_stamps("posts")
  4. Mix StampableMixin into the models you want stamped
"""


def is_python_project(root: Path) -> bool:
    return any((root / marker).exists() for marker in PROJECT_MARKERS)


def write_config(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE)
    logger.info(f"Wrote userstamps configuration to {path}")
    return path


def find_base_file(root: Path, base_file: Optional[str] = None) -> Optional[Path]:
    if base_file:
        path = root / base_file
        return path if path.exists() else None
    for candidate in BASE_FILE_CANDIDATES:
        path = root / candidate
        if path.exists():
            return path
    return None


def mixin_already_included(content: str) -> bool:
    return MIXIN_NAME in content


def patch_declarative_base(content: str) -> Optional[str]:
    """
    Put StampableMixin first in the bases of `class Base(...)` and import it.
    Returns None when no Base class declaration can be found.
    """
    if _PRIMARY_PATTERN.search(content):
        updated = _PRIMARY_PATTERN.sub(rf"\1class Base({MIXIN_NAME}, DeclarativeBase):", content, count=1)
    elif _FALLBACK_PATTERN.search(content):
        updated = _FALLBACK_PATTERN.sub(rf"\1class Base({MIXIN_NAME}, \2):", content, count=1)
    else:
        return None

    return _add_import(updated)


def _add_import(content: str) -> str:
    match = _IMPORT_PATTERN.search(content)
    if match is None:
        return MIXIN_IMPORT + content
    return content[: match.start()] + MIXIN_IMPORT + content[match.start():]
