from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Signed-in user extracted from the backend's access token."""

    user_id: str
    role: str = "authenticated"
