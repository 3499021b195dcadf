"""
ToolHire Backend: Shared Route Dependencies
=============================================

`require_admin` guards the admin and maintenance routers. Callers send
the operations token in `X-Admin-Token`; an unset token disables the
admin surface entirely rather than leaving it open.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header

from toolhire.config import settings
from toolhire.exceptions import AuthorizationError

logger = logging.getLogger(__name__)


async def require_admin(
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> None:
    expected = settings.admin_api_token
    if not expected:
        logger.warning("Admin request rejected: ADMIN_API_TOKEN is not configured")
        raise AuthorizationError(message="Admin access is not configured")
    if not x_admin_token or not secrets.compare_digest(x_admin_token, expected):
        raise AuthorizationError(message="A valid X-Admin-Token header is required")
