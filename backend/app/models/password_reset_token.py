from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.types import GUID, UTCDateTime, generate_uuid, utcnow
from app.models.audit import AuditMixin


class PasswordResetToken(AuditMixin, Base):
    __tablename__ = "password_reset_tokens"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    token = Column(String(100), unique=True, index=True, nullable=False)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expiry_date = Column(UTCDateTime, nullable=False)

    user = relationship("User", lazy="selectin")

    @property
    def is_expired(self) -> bool:
        return utcnow() > self.expiry_date

    def __repr__(self):
        return f"<PasswordResetToken user={self.user_id}>"
