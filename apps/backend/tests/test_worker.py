from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from stock_tracker.config import Settings
from stock_tracker.ledger import TransactionType
from stock_tracker.models.portfolio import Portfolio
from stock_tracker.models.stock import HistoricalPrice
from stock_tracker.models.transaction import Transaction
from stock_tracker.models.user import User
from stock_tracker.models.watchlist import WatchlistItem
from stock_tracker.price.base import DailyBar, PriceNotFoundError, PriceProvider, ProviderError
from stock_tracker.price.manager import PriceManager
from stock_tracker.price.store import PriceStore
from stock_tracker import worker

pytestmark = pytest.mark.usefixtures("stocks")

BAR_DATE = date.today() + timedelta(days=1)


class StubProvider(PriceProvider):
    def __init__(self):
        self.requested: list[str] = []

    async def get_daily_bars(self, symbol):
        self.requested.append(symbol)
        return [DailyBar(
            stock_id=f"{symbol}.TW", date=BAR_DATE,
            open_price=Decimal("1"), high=Decimal("2"), low=Decimal("1"),
            close=Decimal("1.5"), volume=10,
        )]


class FailingProvider(PriceProvider):
    async def get_daily_bars(self, symbol):
        raise ProviderError("Yahoo Finance 錯誤: timeout")


@pytest.fixture()
async def tracked(database):
    """alice 持有 2317、關注 2330 與已下市的 9999、關注 AAPL"""
    async with database.session() as session:
        user = User(email="alice@stocktracker.io", username="alice", hashed_password="x")
        portfolio = Portfolio(user=user, name="長期投資")
        session.add_all([user, portfolio])
        await session.flush()
        session.add_all([
            Transaction(
                portfolio_id=portfolio.id, stock_id="2317", tx_type=TransactionType.BUY,
                quantity=1, price_per_share=Decimal("100"), currency="TWD",
            ),
            WatchlistItem(user_id=user.id, stock_id="2330"),
            WatchlistItem(user_id=user.id, stock_id="9999"),
            WatchlistItem(user_id=user.id, stock_id="AAPL"),
        ])
        await session.commit()


@pytest.mark.usefixtures("tracked")
async def test_sync_saves_bars_and_skips_failures(database):
    tw = StubProvider()
    manager = PriceManager(providers={"TWD": tw, "USD": FailingProvider()})

    synced = await worker.sync_daily_prices(database, manager)

    assert synced == {"2317": 1, "2330": 1}
    assert sorted(tw.requested) == ["2317", "2330"]

    async with database.session() as session:
        rows = (await session.execute(
            select(HistoricalPrice).where(HistoricalPrice.date == BAR_DATE)
        )).scalars().all()
    assert sorted(r.stock_id for r in rows) == ["2317", "2330"]


async def test_sync_with_nothing_tracked(database):
    synced = await worker.sync_daily_prices(
        database, PriceManager(providers={"TWD": StubProvider()})
    )
    assert synced == {}


@pytest.mark.usefixtures("tracked")
async def test_unknown_currency_is_skipped(database):
    synced = await worker.sync_daily_prices(database, PriceManager(providers={}))
    assert synced == {}


def test_price_manager_unknown_currency():
    with pytest.raises(PriceNotFoundError):
        PriceManager(providers={}).provider_for("JPY")


async def test_setup_and_stop_worker(database):
    settings = Settings(price_sync_hour=15, price_sync_minute=5)
    scheduler = worker.setup_worker(database, settings)
    try:
        job = scheduler.get_job("sync_daily_prices_job")
        assert job is not None
        assert "hour='15'" in str(job.trigger)
        assert "minute='5'" in str(job.trigger)
    finally:
        await worker.stop_worker()
    assert not scheduler.running
    assert worker.scheduler is None


async def test_worker_can_restart_after_stop(database):
    settings = Settings()
    worker.setup_worker(database, settings)
    await worker.stop_worker()

    scheduler = worker.setup_worker(database, settings)
    try:
        assert scheduler.running
    finally:
        await worker.stop_worker()
    assert not scheduler.running


@pytest.mark.usefixtures("tracked")
async def test_storage_failure_skips_only_that_stock(database, monkeypatch):
    original_save = PriceStore.save_bars

    async def flaky_save(self, bars):
        if bars and bars[0].stock_id == "2317":
            raise OperationalError("INSERT INTO historical_prices", {}, Exception("disk I/O error"))
        return await original_save(self, bars)

    monkeypatch.setattr(PriceStore, "save_bars", flaky_save)
    manager = PriceManager(providers={"TWD": StubProvider(), "USD": FailingProvider()})

    synced = await worker.sync_daily_prices(database, manager)

    assert synced == {"2330": 1}
    async with database.session() as session:
        rows = (await session.execute(
            select(HistoricalPrice).where(HistoricalPrice.date == BAR_DATE)
        )).scalars().all()
    assert [r.stock_id for r in rows] == ["2330"]
