"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from arthive_chat.application.dto.principal import Principal
from arthive_chat.application.ports.auth import TokenVerifier
from arthive_chat.application.ports.directory import DirectoryService
from arthive_chat.application.ports.feed import NotificationFeed
from arthive_chat.config import settings
from arthive_chat.infrastructure.auth.hs256_verifier import HS256Verifier

_bearer_scheme = HTTPBearer()


def get_directory(conn: HTTPConnection) -> DirectoryService:
    return conn.app.state.directory


def get_feed(conn: HTTPConnection) -> NotificationFeed:
    return conn.app.state.feed


DirectoryDep = Annotated[DirectoryService, Depends(get_directory)]
FeedDep = Annotated[NotificationFeed, Depends(get_feed)]


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(
            settings.JWT_SECRET,
            settings.JWT_ALGORITHM,
            settings.JWT_AUDIENCE,
        )
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
