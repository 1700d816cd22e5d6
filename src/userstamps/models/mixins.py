"""
Mixins for SQLAlchemy models.
Provides user stamping (creator / updater / deleter) for declarative models.
"""
from typing import Any

from userstamps.config import model_overrides, model_setting
from userstamps.services import stamping
from userstamps.services.reverse_associations import unregister_model


class StampableMixin:
    """
    Stamps rows with the current user on insert, update and delete.

    Works with the stamp columns the table actually has: a missing or disabled
    column is simply never written.

    Usage:
        class Post(Base, StampableMixin):
            __tablename__ = "posts"
            id = Column(Integer, primary_key=True)
            creator_id = creator_id_column()
            updater_id = updater_id_column()

        class Invoice(Base, StampableMixin):
            __tablename__ = "invoices"
            __userstamps__ = {
                "creator_column": "created_by_id",
                "soft_delete_column": "voided_at",
                "reverse_associations": False,
            }

    The mixin can also sit on the declarative base itself, which stamps every
    model:
        class Base(StampableMixin, DeclarativeBase):
            pass
    """

    __userstamps__ = {}

    def __init_subclass__(cls, **kw: Any) -> None:
        super().__init_subclass__(**kw)
        # DeclarativeBase maps the class before we get here
        stamping.setup_stampable(cls)

    @classmethod
    def __declare_first__(cls) -> None:
        # Classes mapped after __init_subclass__ (legacy declarative_base()),
        # and user relationships whose user class was declared later
        stamping.setup_stampable(cls)

    @classmethod
    def userstamps_setting(cls, key: str) -> Any:
        return model_setting(cls, key)

    @classmethod
    def userstamps_profile(cls) -> "stamping.StampProfile":
        return stamping.stamp_profile(cls)

    @classmethod
    def disable_reverse_associations(cls) -> None:
        """Opt this model out of reverse associations on the user class."""
        cls.__userstamps__ = {**model_overrides(cls), "reverse_associations": False}
        unregister_model(cls)
