from typing import Any, AsyncIterator, Callable

from fastapi import Depends

from userstamps import context


def current_user_dependency(get_current_user: Callable[..., Any]) -> Callable[..., AsyncIterator[Any]]:
    """
    Wrap an existing "current user" dependency so the user is also bound for
    stamping during the request.

        stamp_user = current_user_dependency(get_current_user_id)

        @router.post("/posts", dependencies=[Depends(stamp_user)])
        def create_post(...):
            ...
    """

    async def bind_current_user(user: Any = Depends(get_current_user)) -> AsyncIterator[Any]:
        context.set_user(user)
        try:
            yield user
        finally:
            context.reset()

    return bind_current_user
