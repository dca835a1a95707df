from fastapi import Header, Request

from .container import Container
from .errors import AuthError


def get_container(request: Request) -> Container:
    return request.app.state.container


async def get_actor_id(x_actor_id: str | None = Header(default=None)) -> str:
    """Acting admin id, set by the authenticating proxy in front of the API."""
    actor_id = (x_actor_id or "").strip()
    if not actor_id:
        raise AuthError("Not authenticated", details={"header": "X-Actor-Id"})
    return actor_id
