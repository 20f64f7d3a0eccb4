import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fuel_ledger.config import Settings
from fuel_ledger.database import create_engine, create_session_factory, init_db
from fuel_ledger.main import create_app
from fuel_ledger.models.user import User, UserRole
from fuel_ledger.utils.auth import hash_password

TEST_PASSWORD = "s3cret-pass"


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        JWT_SECRET="test-secret",
        APP_TIMEZONE="Asia/Makassar",
        SEED_DEFAULT_DATA=False,
    )


@pytest_asyncio.fixture
async def engine(settings):
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def _user_factory(session):
    async def create(
        username: str,
        role: UserRole = UserRole.ADMIN,
        password: str = TEST_PASSWORD,
        is_active: bool = True,
    ) -> User:
        user = User(
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user

    return create


@pytest.fixture
def make_user(session):
    return _user_factory(session)


@pytest_asyncio.fixture
async def admin(make_user):
    return await make_user("admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def operator(make_user):
    return await make_user("operator", UserRole.OPERASIONAL)


@pytest_asyncio.fixture
async def app(settings):
    app = create_app(settings)
    await init_db(app.state.engine)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def app_session(app):
    async with app.state.session_factory() as session:
        yield session


@pytest.fixture
def make_app_user(app_session):
    return _user_factory(app_session)


@pytest.fixture
def login(client):
    async def do_login(username: str, password: str = TEST_PASSWORD) -> dict:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": f"{username}@example.com", "password": password},
        )
        assert response.status_code == 200, response.text
        return response.json()["data"]

    return do_login


@pytest.fixture
def auth_header():
    def build(session_data: dict) -> dict:
        return {"Authorization": f"Bearer {session_data['access_token']}"}

    return build
