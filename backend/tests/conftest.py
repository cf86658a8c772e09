"""
PetConnect - Test Configuration and Fixtures
"""
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Set testing environment before the app reads its settings
_TMP = Path(tempfile.mkdtemp(prefix="petconnect-tests-"))
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_TMP / 'test.db'}"

os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = TEST_DATABASE_URL
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['EMAIL_NOTIFICATIONS_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_FILE'] = ''
os.environ['STORAGE_MODE'] = 'local'
os.environ['IMAGES_PATH'] = str(_TMP / 'images')
os.environ['PUBLIC_KEYS_PATH'] = str(_TMP / 'keys' / 'public')
os.environ['PRIVATE_KEYS_PATH'] = str(_TMP / 'keys' / 'private')

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.db.seed_data import seed_reference_data
from app.models.clinic import Clinic, Country
from app.models.pet import Pet, Breed, Specie, Gender, PetStatus, GENERIC_BREED_NAME
from app.models.user import Owner, ClinicStaff, Vet, Role, RoleEnum, User
from app.services.key_storage_service import key_storage_service
from app.services.notification_service import notification_service
from app.utils.entity_finder import entity_finder

fake = Faker()

TEST_PASSWORD = 'testpassword123'
CLINIC_KEY_PASSWORD = 'clinic-key-pass'
VET_KEY_PASSWORD = 'vet-key-pass'

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)


# ==================== Keys ====================

def _key_pair(password: str) -> dict:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return {
        'private_key': private_key,
        'public_pem': private_key.public_key().public_bytes(
            serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
        ),
        'private_pem': private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.BestAvailableEncryption(password.encode('utf-8')),
        ),
        'password': password,
    }


def _write(base: Path, relative_path: str, content: bytes) -> str:
    target = base / relative_path
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
    return relative_path


@pytest.fixture(scope='session')
def clinic_keys() -> dict:
    return _key_pair(CLINIC_KEY_PASSWORD)


@pytest.fixture(scope='session')
def vet_keys() -> dict:
    return _key_pair(VET_KEY_PASSWORD)


@pytest.fixture(scope='session')
def other_keys() -> dict:
    """A second vet key pair, for uploads"""
    return _key_pair(VET_KEY_PASSWORD)


# ==================== Database ====================

@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema with roles, permissions and breeds for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        await seed_reference_data(session)
        await session.commit()
        yield session
        await notification_service.drain()
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def get_role(db: AsyncSession, role_enum: RoleEnum) -> Role:
    return (await db.execute(select(Role).where(Role.role_enum == role_enum))).scalar_one()


async def get_generic_breed(db: AsyncSession, specie: Specie = Specie.DOG) -> Breed:
    result = await db.execute(select(Breed).where(Breed.name == GENERIC_BREED_NAME, Breed.specie == specie))
    return result.scalar_one()


async def save(db: AsyncSession, entity):
    db.add(entity)
    await db.commit()
    return await entity_finder.reload(db, entity)


def auth_headers_for(user: User) -> dict:
    token = create_access_token(subject=user.id, authorities=user.authorities)
    return {'Authorization': f'Bearer {token}'}


# ==================== Users and clinics ====================

async def make_owner(db: AsyncSession) -> Owner:
    return await save(db, Owner(
        username=fake.unique.user_name()[:40],
        email=fake.unique.email(),
        password_hash=get_password_hash(TEST_PASSWORD),
        phone=fake.numerify('6########'),
        avatar='images/avatars/users/owner.png',
        is_enabled=True,
        roles=[await get_role(db, RoleEnum.OWNER)],
        clinic=None,
    ))


async def make_clinic(db: AsyncSession, keys: dict, **overrides) -> Clinic:
    clinic = Clinic(
        name=overrides.get('name', f"{fake.last_name()} Veterinary Clinic"),
        address=fake.street_address(),
        city=overrides.get('city', fake.city()),
        country=overrides.get('country', Country.SPAIN),
        phone=fake.numerify('9########'),
    )
    clinic = await save(db, clinic)
    clinic.public_key = _write(key_storage_service.public_base, f"clinics/clinic_{clinic.id}_pub.pem", keys['public_pem'])
    clinic.private_key = _write(key_storage_service.private_base, f"clinics/clinic_{clinic.id}_priv.pem", keys['private_pem'])
    await db.commit()
    return clinic


async def make_admin(db: AsyncSession, clinic: Clinic) -> ClinicStaff:
    return await save(db, ClinicStaff(
        username=fake.unique.user_name()[:40],
        email=fake.unique.email(),
        password_hash=get_password_hash(TEST_PASSWORD),
        name=fake.first_name(),
        surname=fake.last_name(),
        is_active=True,
        is_enabled=True,
        roles=[await get_role(db, RoleEnum.ADMIN)],
        clinic=clinic,
    ))


async def make_vet(db: AsyncSession, clinic: Clinic, keys: dict) -> Vet:
    username = fake.unique.user_name()[:40]
    return await save(db, Vet(
        username=username,
        email=fake.unique.email(),
        password_hash=get_password_hash(TEST_PASSWORD),
        name=fake.first_name(),
        surname=fake.last_name(),
        is_active=True,
        is_enabled=True,
        license_number=fake.unique.bothify('LIC-#####'),
        vet_public_key=_write(key_storage_service.public_base, f"public_keys/vets/vet_{username}_pub.pem", keys['public_pem']),
        vet_private_key=_write(key_storage_service.private_base, f"private_encrypted_keys/vets/vet_{username}_priv.pem", keys['private_pem']),
        roles=[await get_role(db, RoleEnum.VET)],
        clinic=clinic,
    ))


async def make_pet(db: AsyncSession, owner: Owner, status: PetStatus = PetStatus.PENDING,
                   vets=None, pending_clinic: Clinic = None) -> Pet:
    breed = await get_generic_breed(db)
    return await save(db, Pet(
        name=fake.first_name(),
        color='Brown',
        gender=Gender.MALE,
        birth_date=date(2020, 5, 17),
        microchip=None,
        image='images/avatars/pets/dog.png',
        status=status,
        owner=owner,
        breed=breed,
        pending_activation_clinic=pending_clinic,
        pending_certificate_clinic=None,
        associated_vets=list(vets or []),
    ))


@pytest.fixture
async def owner(db_session: AsyncSession) -> Owner:
    return await make_owner(db_session)


@pytest.fixture
async def other_owner(db_session: AsyncSession) -> Owner:
    return await make_owner(db_session)


@pytest.fixture
async def clinic(db_session: AsyncSession, clinic_keys: dict) -> Clinic:
    return await make_clinic(db_session, clinic_keys)


@pytest.fixture
async def other_clinic(db_session: AsyncSession, clinic_keys: dict) -> Clinic:
    return await make_clinic(db_session, clinic_keys, country=Country.FRANCE)


@pytest.fixture
async def admin(db_session: AsyncSession, clinic: Clinic) -> ClinicStaff:
    return await make_admin(db_session, clinic)


@pytest.fixture
async def vet(db_session: AsyncSession, clinic: Clinic, vet_keys: dict) -> Vet:
    return await make_vet(db_session, clinic, vet_keys)


@pytest.fixture
async def pending_pet(db_session: AsyncSession, owner: Owner) -> Pet:
    return await make_pet(db_session, owner)


@pytest.fixture
async def active_pet(db_session: AsyncSession, owner: Owner, vet: Vet) -> Pet:
    return await make_pet(db_session, owner, status=PetStatus.ACTIVE, vets=[vet])


@pytest.fixture
def owner_headers(owner: Owner) -> dict:
    return auth_headers_for(owner)


@pytest.fixture
def admin_headers(admin: ClinicStaff) -> dict:
    return auth_headers_for(admin)


@pytest.fixture
def vet_headers(vet: Vet) -> dict:
    return auth_headers_for(vet)


@pytest.fixture
async def other_admin(db_session: AsyncSession, other_clinic: Clinic) -> ClinicStaff:
    """Administrator of a different clinic"""
    return await make_admin(db_session, other_clinic)


@pytest.fixture
async def other_vet(db_session: AsyncSession, other_clinic: Clinic, vet_keys: dict) -> Vet:
    return await make_vet(db_session, other_clinic, vet_keys)


@pytest.fixture
def pet_factory(db_session: AsyncSession, owner: Owner):
    """Create pets for the default owner unless owner= is given"""
    async def _make(**kwargs) -> Pet:
        return await make_pet(db_session, kwargs.pop('owner', owner), **kwargs)
    return _make


@pytest.fixture
def headers_for():
    return auth_headers_for
