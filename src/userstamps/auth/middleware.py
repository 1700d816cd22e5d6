import inspect
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from starlette.types import ASGIApp, Receive, Scope, Send

from userstamps import context

logger = logging.getLogger(__name__)

UserGetter = Callable[[Scope], Union[Any, Awaitable[Any]]]


def find_request_user(scope: Scope) -> Optional[Any]:
    """
    Locate the authenticated principal for a request.

    Looks at scope["user"] (set by Starlette's AuthenticationMiddleware), then
    request.state.user. Unauthenticated users are ignored.
    """
    user = scope.get("user")
    if user is None:
        state = scope.get("state") or {}
        user = state.get("user")

    if user is None or getattr(user, "is_authenticated", True) is False:
        return None
    return user


class UserstampMiddleware:
    """
    ASGI middleware that binds the request's user as the current stamping user.

    Add it *inside* your authentication middleware so the user is already
    resolved:

        app.add_middleware(UserstampMiddleware, exclude_paths=["/health"])
        app.add_middleware(AuthenticationMiddleware, backend=...)

    The current user is always cleared when the request finishes.
    """

    def __init__(
        self,
        app: ASGIApp,
        user_getter: Optional[UserGetter] = None,
        exclude_paths: Iterable[str] = (),
        include_paths: Optional[Iterable[str]] = None,
    ) -> None:
        self.app = app
        self.user_getter = user_getter
        self.exclude_paths = tuple(exclude_paths)
        self.include_paths = tuple(include_paths) if include_paths is not None else None

    def applies_to(self, path: str) -> bool:
        if any(path.startswith(prefix) for prefix in self.exclude_paths):
            return False
        if self.include_paths is not None:
            return any(path.startswith(prefix) for prefix in self.include_paths)
        return True

    async def resolve_user(self, scope: Scope) -> Optional[Any]:
        if self.user_getter is None:
            return find_request_user(scope)
        user = self.user_getter(scope)
        if inspect.isawaitable(user):
            user = await user
        return user

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket") or not self.applies_to(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        user = await self.resolve_user(scope)
        if user is not None:
            context.set_user(user)

        try:
            await self.app(scope, receive, send)
        finally:
            context.reset()
