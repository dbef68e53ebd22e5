"""
Car World CRM - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from faker import Faker

TEST_DIR = tempfile.mkdtemp(prefix="carworld-tests-")

# Set testing environment before the app reads its settings
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///./test.db'
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['DEBUG'] = 'true'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['WHATSAPP_API_KEY'] = ''
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''
os.environ['DAILY_REPORT_RECIPIENT'] = ''
os.environ['INVOICE_PDF_DIR'] = os.path.join(TEST_DIR, 'invoices')
os.environ['LOG_FILE'] = os.path.join(TEST_DIR, 'logs', 'app.log')

from carworld.main import app
from carworld.core.database import Base, get_db
from carworld.core.security import get_password_hash, create_access_token
from carworld.models.customer import Customer
from carworld.models.product import Product, ProductStatus
from carworld.models.user import User, UserRole

fake = Faker('en_IN')

TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test.db'
TEST_PASSWORD = 'testpassword123'


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


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


def _mobile() -> str:
    return f"9{fake.msisdn()[-9:]}"


async def make_user(db: AsyncSession, role: UserRole, password: str = TEST_PASSWORD) -> User:
    user = User(
        name=fake.name(),
        email=fake.unique.email(),
        mobile_number=_mobile(),
        hashed_password=get_password_hash(password),
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token_data = {
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    }
    token = create_access_token(token_data)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.ADMIN)


@pytest.fixture
async def sales_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.SALES_EXECUTIVE)


@pytest.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.SERVICE_STAFF)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Generate authentication headers for admin user"""
    return headers_for(admin_user)


@pytest.fixture
def sales_auth_headers(sales_user: User) -> dict:
    return headers_for(sales_user)


@pytest.fixture
def staff_auth_headers(staff_user: User) -> dict:
    return headers_for(staff_user)


@pytest.fixture
async def customer(db_session: AsyncSession) -> Customer:
    """A verified customer"""
    row = Customer(
        reference_code='CUST00001',
        full_name=fake.name(),
        mobile_number=_mobile(),
        email=fake.unique.email(),
        address=fake.street_address(),
        city='Pune',
        taluka='Haveli',
        district='Pune',
        state='Maharashtra',
        pin_code='411001',
        is_verified=True,
    )
    db_session.add(row)
    await db_session.commit()
    await db_session.refresh(row)
    return row


@pytest.fixture
async def product(db_session: AsyncSession) -> Product:
    row = Product(
        name='Seat Cover Premium',
        brand='Autoform',
        category='Interior',
        mrp=2800.0,
        selling_price=2500.0,
        stock_qty=10,
        min_stock_level=3,
        status=ProductStatus.IN_STOCK,
    )
    db_session.add(row)
    await db_session.commit()
    await db_session.refresh(row)
    return row


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Create extra users: await user_factory(UserRole.MANAGER)"""
    async def factory(role: UserRole, password: str = TEST_PASSWORD) -> User:
        return await make_user(db_session, role, password)
    return factory


@pytest.fixture
def token_headers():
    """Build bearer headers for any user"""
    return headers_for
