from __future__ import annotations

import jwt

from arthive_chat.application.dto.principal import Principal


class HS256Verifier:
    """Verify access tokens issued by the backend with a shared HS256 secret."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: str | None = None,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._audience = audience

    async def verify(self, token: str) -> Principal:
        payload = jwt.decode(
            token,
            self._secret,
            algorithms=[self._algorithm],
            audience=self._audience,
            options={"verify_aud": self._audience is not None, "require": ["sub"]},
        )
        return Principal(
            user_id=str(payload["sub"]),
            role=payload.get("role", "authenticated"),
        )
