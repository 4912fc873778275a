"""FastAPI dependencies: acting user and notification dispatcher."""
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from chatdesk.database import get_db
from chatdesk.services.authorization import ActorContext
from chatdesk.services.errors import NotAuthenticated
from chatdesk.services.notifications import WhatsAppNotifier
from chatdesk.services.records import get_user


def get_actor(
    request: Request,
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
) -> ActorContext:
    """Resolve the X-User-Id header into an ActorContext."""
    if not x_user_id:
        raise NotAuthenticated("Authentication required.")

    user = get_user(db, x_user_id)
    if user is None:
        raise NotAuthenticated("User not found or inactive.")

    return ActorContext(
        user=user,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent")
    )


def get_notifier(request: Request) -> WhatsAppNotifier:
    """Notifier bound to the application's shared WhatsApp client."""
    return WhatsAppNotifier(getattr(request.app.state, "whatsapp_client", None))
