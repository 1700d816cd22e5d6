"""Current user context for stamping.

The acting user's identifier lives in a ContextVar, so every thread and every
asyncio task sees its own value. The web layer binds it for the lifetime of a
request (see userstamps.auth); jobs and scripts use `as_user()`.

    with as_user(admin):
        post.title = "Edited by admin"
        session.commit()

    with without_user():
        session.commit()  # nothing is stamped
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Any, Iterator, Optional

from userstamps.config import get_config

logger = logging.getLogger(__name__)

_current_user_id: ContextVar[Optional[Any]] = ContextVar("userstamps_current_user_id", default=None)

_RAW_ID_TYPES = (int, str, uuid.UUID)


def normalize_user_id(user: Any) -> Optional[Any]:
    """Return the identifier of a user object, or the value itself if it is already an id."""
    if user is None or isinstance(user, _RAW_ID_TYPES):
        return user
    primary_key = get_config().user_primary_key
    return getattr(user, primary_key, user)


def set_user(user: Any) -> Token:
    """Set the acting user (object or id). Returns a token for `reset()`."""
    user_id = normalize_user_id(user)
    logger.debug(f"Current user set to {user_id}")
    return _current_user_id.set(user_id)


def get_user_id() -> Optional[Any]:
    """Identifier of the acting user, or None."""
    return _current_user_id.get()


def reset(token: Optional[Token] = None) -> None:
    """Clear the current user, or restore the value captured by `token`."""
    if token is None:
        _current_user_id.set(None)
    else:
        _current_user_id.reset(token)


@contextmanager
def as_user(user: Any) -> Iterator[Optional[Any]]:
    """Stamp as `user` inside the block, then restore whoever was set before."""
    previous = _current_user_id.get()
    _current_user_id.set(normalize_user_id(user))
    try:
        yield _current_user_id.get()
    finally:
        _current_user_id.set(previous)


def without_user():
    """Suppress stamping inside the block."""
    return as_user(None)
