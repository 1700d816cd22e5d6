"""
userstamps: creator/updater/deleter tracking for SQLAlchemy models.

    from userstamps import StampableMixin, as_user, configure

    configure(soft_delete_column="deleted_at")

    class Post(Base, StampableMixin):
        __tablename__ = "posts"
        ...

    with as_user(current_user):
        session.add(Post(title="Hello"))
        session.commit()  # post.creator_id == current_user.id
"""

from userstamps.config import (
    StampConfig,
    configure,
    get_config,
    model_setting,
    reset_config,
    use_config,
)
from userstamps.context import (
    as_user,
    get_user_id,
    reset,
    set_user,
    without_user,
)
from userstamps.exceptions import (
    ConfigurationError,
    MigrationError,
    UserstampsError,
)
from userstamps.models import (
    StampableMixin,
    creator_id_column,
    deleter_id_column,
    stamp_column,
    updater_id_column,
)
from userstamps.services.reverse_associations import (
    model_registry,
    register_model,
    setup_all_reverse_associations,
    setup_reverse_associations_for_model,
)
from userstamps.services.stamping import (
    is_soft_delete_transition,
    restore,
    soft_delete,
    stamp_profile,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "StampConfig",
    "configure",
    "get_config",
    "model_setting",
    "reset_config",
    "use_config",

    # Current user
    "as_user",
    "get_user_id",
    "reset",
    "set_user",
    "without_user",

    # Errors
    "ConfigurationError",
    "MigrationError",
    "UserstampsError",

    # Models
    "StampableMixin",
    "creator_id_column",
    "deleter_id_column",
    "stamp_column",
    "updater_id_column",

    # Stamping
    "is_soft_delete_transition",
    "restore",
    "soft_delete",
    "stamp_profile",

    # Reverse associations
    "model_registry",
    "register_model",
    "setup_all_reverse_associations",
    "setup_reverse_associations_for_model",
]
