"""Entrypoint: python -m arthive_chat"""
from __future__ import annotations

import uvicorn

from arthive_chat.config import settings


def main() -> None:
    uvicorn.run(
        "arthive_chat.app:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="debug" if settings.DEBUG else "info",
    )


if __name__ == "__main__":
    main()
