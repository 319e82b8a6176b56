import logging
import secrets

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from fortune_wheel.config import settings
from fortune_wheel.core.exceptions import UnauthorizedError
from fortune_wheel.db.session import get_db
from fortune_wheel.services.schedule_registry import ScheduleRegistry

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = ["get_db", "get_registry", "require_admin", "check_admin_password"]


def check_admin_password(candidate: str | None) -> bool:
    if not candidate:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), settings.ADMIN_PASSWORD.encode("utf-8"))


async def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    x_admin_password: str | None = Header(None),
) -> None:
    """Shared-secret check: ``Authorization: Bearer <secret>`` or ``X-Admin-Password``."""
    candidate = credentials.credentials if credentials else x_admin_password
    if not check_admin_password(candidate):
        logger.warning("Rejected admin request %s %s", request.method, request.url.path)
        raise UnauthorizedError()


def get_registry(request: Request) -> ScheduleRegistry:
    return request.app.state.registry
