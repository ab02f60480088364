"""Request helpers shared by the integration flows."""

import uuid

from config.settings import settings
from src.fm_gateway.auth.jwt_handler import create_access_token


def unique_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def bearer(user_id: str) -> dict[str, str]:
    """Tokens are minted locally; identity is owned by an upstream service."""
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def collaborator() -> dict[str, str]:
    return {"X-Collaborator-Token": settings.COLLABORATOR_TOKEN}
