# src/userstamps/services/reverse_associations.py

"""
Reverse associations on the user model.

For every registered stamped model, the user class gains one-to-many
relationships such as `User.created_posts`, `User.updated_posts` and (for
soft-deleting models) `User.deleted_posts`. Deleting a user nulls the stamp
column on the rows it points at.
"""
from __future__ import annotations

import importlib
import logging
from typing import Iterator, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import foreign, relationship, remote

from userstamps.config import StampConfig, get_config, model_setting
from userstamps.services.stamping import stamp_profile
from userstamps.utils.inflection import pluralize, underscore

logger = logging.getLogger(__name__)

ACTIONS = (("creator", "created"), ("updater", "updated"), ("deleter", "deleted"))


class ModelRegistry:
    """Ordered, duplicate-free collection of stamped model classes."""

    def __init__(self):
        self._models: list[type] = []

    def add(self, model: type) -> bool:
        if model in self._models:
            return False
        self._models.append(model)
        return True

    def remove(self, model: type) -> bool:
        if model not in self._models:
            return False
        self._models.remove(model)
        return True

    def clear(self) -> None:
        self._models.clear()

    def __contains__(self, model: object) -> bool:
        return model in self._models

    def __iter__(self) -> Iterator[type]:
        return iter(list(self._models))

    def __len__(self) -> int:
        return len(self._models)

    def __repr__(self) -> str:
        return f"<ModelRegistry {[model.__name__ for model in self._models]}>"


model_registry = ModelRegistry()


def reverse_association_name(action: str, model_plural: str, config: Optional[StampConfig] = None) -> str:
    config = config or get_config()
    return f"{config.reverse_association_prefix}{action}_{model_plural}{config.reverse_association_suffix}"


def reverse_associations_enabled(model: type, config: Optional[StampConfig] = None) -> bool:
    config = config or get_config()
    return config.auto_setup_reverse_associations and bool(
        model_setting(model, "reverse_associations", config)
    )


def resolve_user_class(model: type, config: Optional[StampConfig] = None) -> Optional[type]:
    """
    Find the user class for `model`: a dotted import path, or a class name
    mapped in the same declarative registry. Returns None when not found.
    """
    name = model_setting(model, "user_class", config)

    if "." in name:
        module_name, _, class_name = name.rpartition(".")
        try:
            return getattr(importlib.import_module(module_name), class_name, None)
        except ImportError:
            logger.warning(f"Could not import user class {name}")
            return None

    registry = getattr(model, "registry", None)
    if registry is None:
        return None
    for mapper in registry.mappers:
        if mapper.class_.__name__ == name:
            return mapper.class_
    return None


def register_model(model: type, config: Optional[StampConfig] = None) -> bool:
    """Add `model` to the registry and set up its reverse associations."""
    config = config or get_config()
    if not reverse_associations_enabled(model, config):
        return False
    if not model_registry.add(model):
        return False

    logger.info(f"Registered {model.__name__} for reverse associations")
    setup_reverse_associations_for_model(model, config)
    return True


def unregister_model(model: type) -> bool:
    return model_registry.remove(model)


def setup_reverse_associations_for_model(model: type, config: Optional[StampConfig] = None) -> list[str]:
    """Add the missing reverse relationships for one model; returns the names added."""
    config = config or get_config()
    if not reverse_associations_enabled(model, config):
        return []

    user_class = resolve_user_class(model, config)
    if user_class is None or sa_inspect(user_class, raiseerr=False) is None:
        logger.debug(f"User class for {model.__name__} not available yet; skipping reverse associations")
        return []

    profile = stamp_profile(model, config)
    model_plural = pluralize(underscore(model.__name__))
    primary_key = profile.config.user_primary_key
    added = []

    for role, action in ACTIONS:
        attribute = profile.attr_for(role)
        if attribute is None:
            continue
        if role == "deleter" and not profile.soft_delete_enabled:
            continue

        name = reverse_association_name(action, model_plural, config)
        if hasattr(user_class, name):
            continue

        setattr(
            user_class,
            name,
            relationship(
                model,
                primaryjoin=_join(user_class, primary_key, model, attribute),
            ),
        )
        added.append(name)
        logger.info(f"Added {user_class.__name__}.{name} -> {model.__name__}.{attribute}")

    return added


def setup_all_reverse_associations(config: Optional[StampConfig] = None) -> dict[type, list[str]]:
    """Replay setup for every registered model, e.g. once the user class exists."""
    return {
        model: setup_reverse_associations_for_model(model, config)
        for model in model_registry
    }


def _join(user_class: type, primary_key: str, model: type, attribute: str):
    return lambda: getattr(user_class, primary_key) == remote(foreign(getattr(model, attribute)))
