"""Standard stamp column definitions for consistency."""
from typing import Any, Optional

from sqlalchemy import Column, ForeignKey

from userstamps.config import StampConfig, get_config, resolve_column_type
from userstamps.exceptions import ConfigurationError


def stamp_column(
    role: str,
    *,
    config: Optional[StampConfig] = None,
    column_type: Any = None,
    user_table: Optional[str] = None,
    ondelete: str = "SET NULL",
) -> Column:
    """
    Nullable, indexed stamp column named and typed from the configuration.
    Pass `user_table` to add a foreign key to the user table's primary key.
    """
    config = config or get_config()
    name = config.column_for(role)
    if name is None:
        raise ConfigurationError(f"The {role} column is disabled in the userstamps configuration")

    args = [resolve_column_type(column_type or config.data_type_for(role))]
    if user_table:
        args.append(ForeignKey(f"{user_table}.{config.user_primary_key}", ondelete=ondelete))

    return Column(name, *args, nullable=True, index=True)


def creator_id_column(**kwargs):
    return stamp_column("creator", **kwargs)


def updater_id_column(**kwargs):
    return stamp_column("updater", **kwargs)


def deleter_id_column(**kwargs):
    return stamp_column("deleter", **kwargs)
