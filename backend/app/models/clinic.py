from sqlalchemy import Column, String, Enum as SQLEnum
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.audit import AuditMixin


class Country(str, enum.Enum):
    """Countries where clinics can operate (UK and EU member states)"""
    UNITED_KINGDOM = "UNITED_KINGDOM"
    AUSTRIA = "AUSTRIA"
    BELGIUM = "BELGIUM"
    BULGARIA = "BULGARIA"
    CROATIA = "CROATIA"
    CYPRUS = "CYPRUS"
    CZECH_REPUBLIC = "CZECH_REPUBLIC"
    DENMARK = "DENMARK"
    ESTONIA = "ESTONIA"
    FINLAND = "FINLAND"
    FRANCE = "FRANCE"
    GERMANY = "GERMANY"
    GREECE = "GREECE"
    HUNGARY = "HUNGARY"
    IRELAND = "IRELAND"
    ITALY = "ITALY"
    LATVIA = "LATVIA"
    LITHUANIA = "LITHUANIA"
    LUXEMBOURG = "LUXEMBOURG"
    MALTA = "MALTA"
    NETHERLANDS = "NETHERLANDS"
    POLAND = "POLAND"
    PORTUGAL = "PORTUGAL"
    ROMANIA = "ROMANIA"
    SLOVAKIA = "SLOVAKIA"
    SLOVENIA = "SLOVENIA"
    SPAIN = "SPAIN"
    SWEDEN = "SWEDEN"


class Clinic(AuditMixin, Base):
    """Veterinary clinic. Holds the clinic signing key pair paths."""
    __tablename__ = "clinics"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    country = Column(SQLEnum(Country, name="country"), nullable=False)
    phone = Column(String(20), nullable=False)

    # Relative storage paths, see KeyStorageService
    public_key = Column(String(500), nullable=True)
    private_key = Column(String(500), nullable=True)

    def __repr__(self):
        return f"<Clinic {self.name}>"
