"""
Pytest configuration and fixtures.
"""
import base64
from decimal import Decimal
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from services.payme_service.amounts import AmountConverter
from services.payme_service.app import create_app
from services.payme_service.dispatcher import ProtocolDispatcher
from services.payme_service.ledger import TransactionLedger
from services.payme_service.merchant import MerchantAuthenticator
from services.payme_service.models import Order
from services.payme_service.statement import StatementExporter
from shared.config import Settings
from shared.database import Database

MERCHANT_ID = "65b78f9f3c319dec9d89218f"
SECRET_KEY = "n1qqWene%o6TTaor#test"


def sqlite_dsn(path) -> str:
    """Async URL of a file-backed SQLite database."""
    return f"sqlite+aiosqlite:///{path}"


def basic_auth(login: str, password: str) -> str:
    """Build a Basic Authorization header value."""
    token = base64.b64encode(f"{login}:{password}".encode()).decode()
    return f"Basic {token}"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings."""
    return Settings(
        service_name="payme-service-test",
        database_dsn=sqlite_dsn(tmp_path / "app.db"),
        payme_merchant_id=MERCHANT_ID,
        payme_secret_key=SECRET_KEY,
        log_level="DEBUG",
    )


@pytest.fixture
def merchant_auth() -> str:
    """Valid Authorization header for the test merchant."""
    return basic_auth(MERCHANT_ID, SECRET_KEY)


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, Any]:
    """File-backed database with all tables created."""
    db = Database(sqlite_dsn(tmp_path / "ledger.db"))
    await db.create_tables()
    yield db
    await db.drop_tables()
    await db.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def amounts() -> AmountConverter:
    return AmountConverter(100)


@pytest.fixture
def ledger(database: Database, amounts: AmountConverter, clock: FakeClock) -> TransactionLedger:
    return TransactionLedger(database.session_factory, amounts, clock=clock)


@pytest.fixture
def statements(database: Database, amounts: AmountConverter) -> StatementExporter:
    return StatementExporter(database.session_factory, amounts)


@pytest.fixture
def dispatcher(ledger: TransactionLedger, statements: StatementExporter) -> ProtocolDispatcher:
    return ProtocolDispatcher(
        authenticator=MerchantAuthenticator(MERCHANT_ID, SECRET_KEY),
        ledger=ledger,
        statements=statements,
    )


async def _insert_order(session_factory, **fields) -> int:
    fields.setdefault("amount", Decimal("50000.00"))
    async with session_factory() as session:
        async with session.begin():
            order = Order(**fields)
            session.add(order)
        return order.id


@pytest.fixture
def make_order(database: Database) -> Callable[..., Awaitable[int]]:
    """Insert an order and return its id."""

    async def factory(**fields) -> int:
        return await _insert_order(database.session_factory, **fields)

    return factory


@pytest.fixture
def load_order(database: Database) -> Callable[[int], Awaitable[Order]]:
    """Read an order back in a fresh session."""

    async def loader(order_id: int) -> Order:
        async with database.session_factory() as session:
            return await session.get(Order, order_id)

    return loader


@pytest_asyncio.fixture
async def app(test_settings: Settings) -> AsyncGenerator[FastAPI, Any]:
    """Application with its lifespan running."""
    application = create_app(test_settings)
    async with application.router.lifespan_context(application):
        yield application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def app_order(app: FastAPI) -> Callable[..., Awaitable[int]]:
    """Insert an order into the running application's database."""

    async def factory(**fields) -> int:
        return await _insert_order(app.state.database.session_factory, **fields)

    return factory
