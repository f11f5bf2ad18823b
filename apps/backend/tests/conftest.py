from collections.abc import AsyncGenerator
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from stock_tracker.config import Settings
from stock_tracker.database import Database
from stock_tracker.main import create_app
from stock_tracker.models.stock import HistoricalPrice, Stock, STATUS_DELISTED


@pytest.fixture()
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await database.init_models()
    yield database
    await database.dispose()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        app_env="testing",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        price_sync_enabled=False,
    )


@pytest.fixture()
async def app(settings, database) -> FastAPI:
    return create_app(settings=settings, database=database)


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
async def session(database):
    async with database.session() as session:
        yield session


@pytest.fixture()
async def stocks(database):
    """
    測試用股票主檔與行情

    2330 有兩日收盤價、AAPL 只有一日、0050 沒有任何行情、9999 已下市。
    """
    today = date.today()
    async with database.session() as session:
        session.add_all([
            Stock(stock_id="2330", company_name="台積電", market_type="上市", currency="TWD"),
            Stock(stock_id="2317", company_name="鴻海", market_type="上市", currency="TWD"),
            Stock(stock_id="0050", company_name="元大台灣50", market_type="上市", currency="TWD"),
            Stock(stock_id="AAPL", company_name="Apple Inc.", market_type="NASDAQ", currency="USD"),
            Stock(
                stock_id="9999", company_name="下市公司", market_type="上櫃",
                security_status=STATUS_DELISTED, currency="TWD",
            ),
        ])
        session.add_all([
            HistoricalPrice(
                stock_id="2330", date=today - timedelta(days=1),
                close_price=Decimal("600"), volume=1000,
            ),
            HistoricalPrice(
                stock_id="2330", date=today,
                close_price=Decimal("660"), volume=2000,
            ),
            HistoricalPrice(
                stock_id="2317", date=today,
                close_price=Decimal("100"), volume=50000,
            ),
            HistoricalPrice(
                stock_id="AAPL", date=today,
                close_price=Decimal("190.5"), volume=300,
            ),
            HistoricalPrice(
                stock_id="9999", date=today,
                close_price=Decimal("10"), volume=10_000_000,
            ),
        ])
        await session.commit()


async def register_and_login(client: AsyncClient, email: str, username: str) -> dict:
    password = "secret123"
    res = await client.post("/api/auth/register", json={
        "email": email, "username": username, "password": password,
    })
    assert res.status_code == 200, res.text
    res = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    token = res.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def auth_headers(client) -> dict:
    return await register_and_login(client, "alice@stocktracker.io", "alice")


@pytest.fixture()
async def other_headers(client) -> dict:
    return await register_and_login(client, "bob@stocktracker.io", "bob")


@pytest.fixture()
async def portfolio_id(client, auth_headers) -> str:
    res = await client.post(
        "/api/portfolio/", json={"name": "長期投資"}, headers=auth_headers
    )
    assert res.status_code == 201, res.text
    return res.json()["data"]["id"]
