# src/userstamps/services/stamping.py

"""
Row stamping for models that mix in StampableMixin.

Each stamped class gets a StampProfile: the stamp attributes that are both
enabled (global config + __userstamps__) and mapped on the class, plus the
soft-delete attribute. Profiles are cached per class and rebuilt whenever the
active configuration object changes.

Mapper listeners:
- before_insert: creator
- before_update: updater, or deleter when the update is a soft delete
- before_delete: deleter (set on the instance before the row goes away)
"""
from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import foreign, object_session, relationship, remote

from userstamps import context
from userstamps.config import ROLES, StampConfig, effective_config, get_config
from userstamps.exceptions import ConfigurationError
from userstamps.metrics import stamps_written_total
from userstamps.services import soft_delete as soft_delete_service
from userstamps.services.soft_delete import SOFT_DELETE_COLUMN_NAMES, column_attributes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StampProfile:
    """Capability flags for one stamped class under one configuration."""

    config: StampConfig
    creator_attr: Optional[str]
    updater_attr: Optional[str]
    deleter_attr: Optional[str]
    soft_delete_attr: Optional[str]
    soft_delete_enabled: bool

    @property
    def user_class(self) -> str:
        return self.config.user_class

    def attr_for(self, role: str) -> Optional[str]:
        return getattr(self, f"{role}_attr")

    def stamps(self, role: str) -> bool:
        return self.attr_for(role) is not None


# class -> (config the profile was built from, profile)
_profiles: "weakref.WeakKeyDictionary[type, tuple[StampConfig, StampProfile]]" = weakref.WeakKeyDictionary()
_history_tracked: "weakref.WeakKeyDictionary[type, set[str]]" = weakref.WeakKeyDictionary()
_set_up: "weakref.WeakSet[type]" = weakref.WeakSet()


def build_profile(model: type, config: Optional[StampConfig] = None) -> StampProfile:
    config = effective_config(model, config)
    columns = column_attributes(model)

    attrs = {}
    for role in ROLES:
        column = config.column_for(role)
        attrs[role] = columns.get(column) if column is not None else None

    soft_delete = soft_delete_service.resolve(model, config)

    return StampProfile(
        config=config,
        creator_attr=attrs["creator"],
        updater_attr=attrs["updater"],
        deleter_attr=attrs["deleter"],
        soft_delete_attr=soft_delete.attribute,
        soft_delete_enabled=soft_delete.enabled,
    )


def stamp_profile(model: type, config: Optional[StampConfig] = None) -> StampProfile:
    """Cached profile for `model` under the given (or active) configuration."""
    config = config or get_config()
    cached = _profiles.get(model)
    if cached is not None and cached[0] is config:
        return cached[1]

    profile = build_profile(model, config)
    _profiles[model] = (config, profile)
    if profile.soft_delete_attr is not None:
        track_history(model, profile.soft_delete_attr)
    return profile


def track_history(model: type, attribute: str) -> None:
    """Load the previous value whenever `attribute` is set, so history sees it."""
    tracked = _history_tracked.setdefault(model, set())
    if attribute in tracked:
        return
    event.listen(getattr(model, attribute), "set", _on_soft_delete_column_set, active_history=True)
    tracked.add(attribute)


def _on_soft_delete_column_set(target, value, oldvalue, initiator):
    logger.debug(f"{type(target).__name__}.{initiator.key} set from {oldvalue!r} to {value!r}")


# ---------------------------------------------------------
# Soft-delete transitions
# ---------------------------------------------------------
def _is_empty(value: Any) -> bool:
    return value is None or value == ""


def is_soft_delete_transition(instance: Any) -> bool:
    """
    True only when the soft-delete column moves from empty to a value.

    Restoring (value -> empty) and touching (value -> other value) are not
    soft deletes.
    """
    profile = stamp_profile(type(instance))
    if profile.soft_delete_attr is None:
        return False

    history = sa_inspect(instance).attrs[profile.soft_delete_attr].history
    if not history.has_changes():
        return False

    previous = history.deleted[0] if history.deleted else None
    current = history.added[0] if history.added else None
    return _is_empty(previous) and not _is_empty(current) and current != previous


def soft_delete(instance: Any, when: Optional[datetime] = None) -> datetime:
    """Mark `instance` as soft-deleted; the deleter is stamped on the next flush."""
    attribute = _require_soft_delete_attr(instance)
    when = when or datetime.now(timezone.utc)
    setattr(instance, attribute, when)
    return when


def restore(instance: Any) -> None:
    """Clear the soft-delete timestamp."""
    setattr(instance, _require_soft_delete_attr(instance), None)


def _require_soft_delete_attr(instance: Any) -> str:
    profile = stamp_profile(type(instance))
    if profile.soft_delete_attr is None:
        raise ConfigurationError(
            f"{type(instance).__name__} has no soft-delete column configured"
        )
    return profile.soft_delete_attr


# ---------------------------------------------------------
# Mapper listeners
# ---------------------------------------------------------
def _write_stamp(target: Any, attribute: str, user_id: Any, action: str) -> None:
    setattr(target, attribute, user_id)
    stamps_written_total.add(1, {"action": action})
    logger.debug(f"Stamped {type(target).__name__}.{attribute}={user_id} ({action})")


def stamp_creator(mapper, connection, target) -> None:
    user_id = context.get_user_id()
    profile = stamp_profile(type(target))
    if user_id is None or profile.creator_attr is None:
        return
    _write_stamp(target, profile.creator_attr, user_id, "create")


def only_stamps_changed(target: Any, profile: StampProfile) -> bool:
    """True when the pending changes on `target` touch nothing but stamp attributes."""
    stamp_attrs = {profile.creator_attr, profile.updater_attr, profile.deleter_attr} - {None}
    changed = {attr.key for attr in sa_inspect(target).attrs if attr.history.has_changes()}
    return bool(changed) and changed <= stamp_attrs


def stamp_updater(mapper, connection, target) -> None:
    user_id = context.get_user_id()
    if user_id is None:
        return

    state = sa_inspect(target)
    if not state.has_identity:
        return

    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return

    profile = stamp_profile(type(target))
    if only_stamps_changed(target, profile):
        # e.g. stamp columns nulled when the referenced user is deleted
        return

    if is_soft_delete_transition(target):
        if profile.deleter_attr is not None:
            _write_stamp(target, profile.deleter_attr, user_id, "soft_delete")
        return

    if profile.updater_attr is not None:
        _write_stamp(target, profile.updater_attr, user_id, "update")


def stamp_deleter(mapper, connection, target) -> None:
    user_id = context.get_user_id()
    profile = stamp_profile(type(target))
    if user_id is None or profile.deleter_attr is None:
        return
    _write_stamp(target, profile.deleter_attr, user_id, "delete")


# ---------------------------------------------------------
# Class setup
# ---------------------------------------------------------
def is_mapped(model: type) -> bool:
    return sa_inspect(model, raiseerr=False) is not None and "__abstract__" not in model.__dict__


def setup_stampable(model: type) -> bool:
    """
    Wire a mapped class for stamping: listeners, user relationships and
    registry entry. Safe to call repeatedly; returns False when nothing was done.
    """
    if not is_mapped(model):
        return False

    # Imported here: reverse_associations imports this module
    from userstamps.services.reverse_associations import (
        model_registry,
        register_model,
        setup_reverse_associations_for_model,
    )

    if model in _set_up:
        setup_user_relationships(model, stamp_profile(model))
        if model in model_registry:
            setup_reverse_associations_for_model(model)
        return False

    profile = stamp_profile(model)

    event.listen(model, "before_insert", stamp_creator)
    event.listen(model, "before_update", stamp_updater)
    event.listen(model, "before_delete", stamp_deleter)

    for name in SOFT_DELETE_COLUMN_NAMES:
        attribute = column_attributes(model).get(name)
        if attribute is not None:
            track_history(model, attribute)

    setup_user_relationships(model, profile)
    _set_up.add(model)
    logger.info(
        f"Stamping enabled on {model.__name__} "
        f"(creator={profile.creator_attr}, updater={profile.updater_attr}, "
        f"deleter={profile.deleter_attr}, soft_delete={profile.soft_delete_attr})"
    )

    register_model(model)
    return True


def setup_user_relationships(model: type, profile: StampProfile) -> list[str]:
    """
    Add view-only many-to-one relationships from the model to the user class.

    Skipped while the user class cannot be resolved (declared later, or mapped
    in another registry under a bare name); setup_stampable retries from
    __declare_first__.
    """
    # Imported here: reverse_associations imports this module
    from userstamps.services.reverse_associations import resolve_user_class

    roles = [
        role
        for role in ROLES
        if profile.attr_for(role) is not None
        and (role != "deleter" or profile.soft_delete_enabled)
        and not hasattr(model, role)
    ]
    if not roles:
        return []

    user_class = resolve_user_class(model, profile.config)
    if user_class is None or not is_mapped(user_class):
        logger.debug(
            f"User class {profile.user_class} not resolvable from {model.__name__}; "
            f"skipping {', '.join(roles)} relationships"
        )
        return []

    primary_key = profile.config.user_primary_key
    for role in roles:
        setattr(
            model,
            role,
            relationship(
                user_class,
                primaryjoin=_user_join(model, profile.attr_for(role), user_class, primary_key),
                viewonly=True,
            ),
        )

    logger.debug(f"Added {', '.join(roles)} relationships from {model.__name__} to {user_class.__name__}")
    return roles


def _user_join(model: type, attribute: str, user_class: type, primary_key: str):
    return lambda: foreign(getattr(model, attribute)) == remote(getattr(user_class, primary_key))
