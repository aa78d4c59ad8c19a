from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from arthive_chat.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


async def _check_postgres() -> str:
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))
    return "ok"


async def _check_feed(request: Request) -> str:
    await request.app.state.redis.ping()
    return "ok"


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Directory database and notification feed must both answer."""
    checks: dict[str, str] = {}
    for name, check in (("directory", _check_postgres()), ("feed", _check_feed(request))):
        try:
            checks[name] = await check
        except Exception as exc:  # noqa: BLE001
            checks[name] = f"error: {exc}"

    ready = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "unavailable", "checks": checks},
    )
