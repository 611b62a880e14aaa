import hmac
import logging

from fastapi import Depends, Header

from app.config import settings
from app.db import get_db
from app.errors import Forbidden
from app.services.nda_state_machine import Actor, ActorRole

logger = logging.getLogger(__name__)


def _admin_keys() -> list[str]:
    return [k.strip() for k in settings.admin_api_keys.split(",") if k.strip()]


def get_actor(x_api_key: str | None = Header(default=None)) -> Actor:
    """Resolve the caller's capability. Only a configured key grants admin."""
    if x_api_key:
        for key in _admin_keys():
            if hmac.compare_digest(x_api_key.encode(), key.encode()):
                return Actor(ActorRole.admin, subject=f"api-key:{x_api_key[:4]}")
        logger.warning("Unrecognised API key %s...", x_api_key[:4])
    return Actor(ActorRole.investor)


def require_role(role: str):
    wanted = ActorRole(role)

    def _require(actor: Actor = Depends(get_actor)) -> Actor:
        if actor.role != wanted:
            raise Forbidden(
                f"{wanted.value} capability required",
                details={"role": actor.role.value},
            )
        return actor

    return _require


__all__ = ["get_actor", "get_db", "require_role"]
