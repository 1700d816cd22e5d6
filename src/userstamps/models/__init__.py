from .mixins import StampableMixin
from .columns import stamp_column, creator_id_column, updater_id_column, deleter_id_column

__all__ = [
    "StampableMixin",
    "stamp_column",
    "creator_id_column",
    "updater_id_column",
    "deleter_id_column",
]
