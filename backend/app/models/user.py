from sqlalchemy import Column, String, Boolean, Enum as SQLEnum, ForeignKey, Table
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid
from app.models.audit import AuditMixin


class RoleEnum(str, enum.Enum):
    """Roles a user can hold"""
    OWNER = "OWNER"
    VET = "VET"
    ADMIN = "ADMIN"
    SUPERUSER = "SUPERUSER"


class UserType(str, enum.Enum):
    """Discriminator for the users table"""
    USER = "USER"
    OWNER = "OWNER"
    CLINIC_STAFF = "CLINIC_STAFF"
    VET = "VET"


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", GUID, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", GUID, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", GUID, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", GUID, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(AuditMixin, Base):
    """Fine grained authority, e.g. PET_CREATE_OWN"""
    __tablename__ = "permissions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(100), unique=True, nullable=False)

    def __repr__(self):
        return f"<Permission {self.name}>"


class Role(AuditMixin, Base):
    __tablename__ = "roles"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    role_enum = Column(SQLEnum(RoleEnum, name="role_enum"), unique=True, nullable=False)

    permissions = relationship("Permission", secondary=role_permissions, lazy="selectin")

    @property
    def authority(self) -> str:
        return f"ROLE_{self.role_enum.value}"

    def __repr__(self):
        return f"<Role {self.role_enum.value}>"


class User(AuditMixin, Base):
    """
    Base account. Owners, clinic staff and vets share the users table
    (single-table inheritance on ``user_type``).
    """
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(String(500), nullable=True)
    user_type = Column(SQLEnum(UserType, name="user_type"), nullable=False)

    # Account flags
    is_enabled = Column(Boolean, default=True, nullable=False)
    is_account_non_expired = Column(Boolean, default=True, nullable=False)
    is_account_non_locked = Column(Boolean, default=True, nullable=False)
    is_credentials_non_expired = Column(Boolean, default=True, nullable=False)

    # Owner fields
    phone = Column(String(20), nullable=True)

    # Clinic staff fields
    name = Column(String(100), nullable=True)
    surname = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=True)
    clinic_id = Column(GUID, ForeignKey("clinics.id"), nullable=True, index=True)

    # Vet fields
    license_number = Column(String(50), unique=True, nullable=True)
    vet_public_key = Column(String(500), unique=True, nullable=True)
    vet_private_key = Column(String(500), unique=True, nullable=True)

    roles = relationship("Role", secondary=user_roles, lazy="selectin")
    clinic = relationship("Clinic", lazy="selectin")

    __mapper_args__ = {
        "polymorphic_on": user_type,
        "polymorphic_identity": UserType.USER,
    }

    @property
    def role_names(self) -> set:
        return {role.role_enum for role in self.roles}

    def has_role(self, role: RoleEnum) -> bool:
        return role in self.role_names

    @property
    def authorities(self) -> list:
        """ROLE_* names followed by the permission names granted by those roles"""
        names = [role.authority for role in self.roles]
        for role in self.roles:
            for permission in role.permissions:
                if permission.name not in names:
                    names.append(permission.name)
        return names

    @property
    def is_login_allowed(self) -> bool:
        return (
            self.is_enabled
            and self.is_account_non_expired
            and self.is_account_non_locked
            and self.is_credentials_non_expired
        )

    def __repr__(self):
        return f"<User {self.username}>"


class Owner(User):
    """Pet owner"""
    __mapper_args__ = {"polymorphic_identity": UserType.OWNER}


class ClinicStaff(User):
    """Clinic employee (administrator or vet)"""
    __mapper_args__ = {"polymorphic_identity": UserType.CLINIC_STAFF}

    @property
    def is_login_allowed(self) -> bool:
        return super().is_login_allowed and bool(self.is_active)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.name, self.surname) if part)


class Vet(ClinicStaff):
    """Licensed vet; holds a signing key pair"""
    __mapper_args__ = {"polymorphic_identity": UserType.VET}
