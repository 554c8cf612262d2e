import re
import uuid

from fastapi import Depends, Request
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware

from .api_client import BackendClient
from .config import settings
from .context import AuthContext
from .database import get_db_session
from .storage import DatabaseStorage


CLIENT_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


class ClientIdMiddleware(BaseHTTPMiddleware):
    """Gives every browser an opaque id that keys its durable session storage."""

    async def dispatch(self, request: Request, call_next):
        client_id = request.cookies.get(settings.client_cookie_name, "")
        issued = not CLIENT_ID_PATTERN.match(client_id)
        if issued:
            client_id = uuid.uuid4().hex
        request.state.client_id = client_id

        response = await call_next(request)
        if issued:
            response.set_cookie(
                settings.client_cookie_name,
                client_id,
                max_age=settings.client_cookie_days * 24 * 60 * 60,
                httponly=True,
                samesite="lax",
                secure=settings.cookie_secure,
            )
        return response


def get_client_id(request: Request) -> str:
    client_id = getattr(request.state, "client_id", None)
    if not client_id:
        raise RuntimeError("ClientIdMiddleware is not installed")
    return client_id


async def get_auth_context(
    client_id: str = Depends(get_client_id),
    db: Session = Depends(get_db_session),
) -> AuthContext:
    auth = AuthContext(DatabaseStorage(db, client_id))
    await auth.initialize()
    return auth


def get_backend_client() -> BackendClient:
    return BackendClient()
