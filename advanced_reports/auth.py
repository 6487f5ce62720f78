"""
Caller Identity

Resolves the warehouse user the request is made on behalf of. Sign-in and
session handling happen upstream; the session layer forwards the caller's
warehouse user ID in a trusted header which this module reads.

Author: Waqqas Hanafi
Copyright: © 2025 Calaveras County Health and Human Services Agency
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from fastapi import Request

from .config import config
from .errors import Unauthorized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller of a report request"""
    warehouse_user_id: str
    username: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and API responses"""
        return {
            'warehouse_user_id': self.warehouse_user_id,
            'username': self.username
        }


async def get_current_caller(request: Request) -> Optional[CallerIdentity]:
    """Get the caller identity without requiring one"""
    user_id = request.headers.get(config.identity.user_id_header, '').strip()
    if not user_id:
        return None
    username = request.headers.get(config.identity.username_header) or None
    return CallerIdentity(warehouse_user_id=user_id, username=username)


async def require_caller(request: Request) -> CallerIdentity:
    """
    FastAPI dependency requiring a caller identity

    Usage:
        @router.get("/{report}")
        def get_report(caller: CallerIdentity = Depends(require_caller)):
            return {"user": caller.warehouse_user_id}
    """
    caller = await get_current_caller(request)
    if caller is None:
        client_ip = request.client.host if request.client else 'unknown'
        logger.debug(f"No caller identity on {request.method} {request.url.path} from {client_ip}")
        raise Unauthorized('Not authenticated.')
    return caller
