"""Global FastAPI dependencies.

Authentication happens upstream (API gateway / SSO proxy). The engine only
needs to know who is acting, which the gateway passes in ``X-Actor-ID``;
that id ends up on every audit record the request writes.
"""

from typing import Generator, Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from audit.service import client_details
from database import get_db
from retention.service import RetentionService


def get_actor_id(x_actor_id: Optional[str] = Header(None, alias="X-Actor-ID")) -> Optional[str]:
    """Actor id forwarded by the gateway (None for anonymous callers).

    Example:
        @router.post("/policies")
        def create_policy(actor_id: Optional[str] = Depends(get_actor_id)):
            ...
    """
    if x_actor_id is None:
        return None
    return x_actor_id.strip() or None


def get_client_details(request: Request) -> dict:
    """Client IP and User-Agent for audit records."""
    return client_details(request)


def get_retention_service(db: Session = Depends(get_db)) -> Generator[RetentionService, None, None]:
    """RetentionService bound to the request's database session."""
    yield RetentionService(db)
