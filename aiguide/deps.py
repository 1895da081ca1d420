import httpx
from fastapi import Depends, Request

from .services import SessionService
from .storage import SessionStore
from .upstream import UpstreamChatClient


async def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Shared AsyncClient for upstream calls, created in the app lifespan.

    Streaming responses outlive the endpoint function, so the client must
    not be scoped to a single dependency call.
    """
    return request.app.state.http_client


async def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


async def get_chat_client(
    client: httpx.AsyncClient = Depends(get_http_client),
) -> UpstreamChatClient:
    return UpstreamChatClient(client)


async def get_session_service(
    store: SessionStore = Depends(get_session_store),
    chat_client: UpstreamChatClient = Depends(get_chat_client),
) -> SessionService:
    return SessionService(store, chat_client)
