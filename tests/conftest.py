"""
Test infrastructure for the Blog API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- Foreign keys are switched on for every SQLite connection so
  ``ON DELETE CASCADE`` behaves as it does on Postgres.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- The cache is a fresh in-memory CacheManager per test, injected through the
  get_cache dependency, so listing/stats memoization and invalidation are
  exercised for real without Redis.
- Image variants are written under pytest's tmp_path via the
  get_image_store dependency.
"""
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from blog.cache import CacheManager
from blog.database import Base, build_engine, get_db
from blog.dependencies import get_cache, get_image_store
from blog.main import app
from blog.models import User
from blog.services.image_service import ImageStore

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# build_engine attaches the query counter and switches on SQLite foreign keys.
engine_test = build_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class FakeClock:
    """Monotonic clock the tests can move forward by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> CacheManager:
    """Fresh in-memory cache, also served to the app through get_cache."""
    manager = CacheManager.in_memory(clock=clock)
    app.dependency_overrides[get_cache] = lambda: manager
    yield manager
    app.dependency_overrides.pop(get_cache, None)


@pytest.fixture
def image_store(tmp_path) -> ImageStore:
    store = ImageStore(tmp_path / "public")
    app.dependency_overrides[get_image_store] = lambda: store
    yield store
    app.dependency_overrides.pop(get_image_store, None)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(cache: CacheManager, image_store: ImageStore) -> AsyncClient:
    """Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def author(db_session: AsyncSession) -> User:
    user = User(name="Ada Author", email="ada@example.com")
    db_session.add(user)
    await db_session.commit()
    return user
