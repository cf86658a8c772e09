from sqlalchemy import Column, String

from app.core.types import UTCDateTime, utcnow
from app.core.logging_config import get_user_id


def current_actor():
    """Id of the authenticated user for the current request, if any"""
    return get_user_id() or None


class AuditMixin:
    """created/updated timestamps and actor ids shared by every table"""

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    created_by = Column(String(36), default=current_actor, nullable=True)
    updated_by = Column(String(36), default=current_actor, onupdate=current_actor, nullable=True)
