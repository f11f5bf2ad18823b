from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from stock_tracker.models.stock import HistoricalPrice
from stock_tracker.price.base import DailyBar, Quote
from stock_tracker.price.store import PriceStore

pytestmark = pytest.mark.usefixtures("stocks")


async def test_get_quotes_latest_and_previous(session):
    quotes = await PriceStore(session).get_quotes(["2330", "AAPL", "0050"])

    assert set(quotes) == {"2330", "AAPL"}
    assert quotes["2330"].current_price == Decimal("660")
    assert quotes["2330"].previous_price == Decimal("600")
    assert quotes["2330"].price_date == date.today()
    assert quotes["AAPL"].previous_price is None


async def test_get_current_prices(session):
    prices = await PriceStore(session).get_current_prices(["2330", "0050"])
    assert prices == {"2330": Decimal("660")}
    assert await PriceStore(session).get_current_prices([]) == {}


async def test_save_bars_upserts_by_date(session):
    store = PriceStore(session)
    today = date.today()

    written = await store.save_bars([
        DailyBar(stock_id="2330", date=today, open_price=Decimal("650"),
                 high=Decimal("670"), low=Decimal("645"), close=Decimal("665"),
                 volume=3000, trading_value=Decimal("1995000")),
        DailyBar(stock_id="2330", date=today + timedelta(days=1), open_price=None,
                 high=None, low=None, close=Decimal("670")),
    ])
    await session.commit()
    assert written == 2

    rows = (await session.execute(
        select(HistoricalPrice)
        .where(HistoricalPrice.stock_id == "2330")
        .order_by(HistoricalPrice.date)
    )).scalars().all()
    assert len(rows) == 3
    assert rows[1].close_price == Decimal("665")
    assert rows[1].volume == 3000

    quote = await store.get_quote("2330")
    assert quote.current_price == Decimal("670")
    assert quote.previous_price == Decimal("665")


async def test_top_traded_skips_stale_bars(session):
    session.add(HistoricalPrice(
        stock_id="0050", date=date.today() - timedelta(days=45),
        close_price=Decimal("150"), volume=10_000_000,
    ))
    await session.commit()

    top = await PriceStore(session).get_top_traded(limit=2)
    assert [stock.stock_id for stock, _ in top] == ["2317", "2330"]


class TestQuote:
    def test_change(self):
        quote = Quote("2330", Decimal("90"), Decimal("100"))
        assert quote.change == Decimal("-10")
        assert quote.change_percent == Decimal("-10")
        assert quote.is_up is False

    def test_no_previous(self):
        quote = Quote("2330", Decimal("90"))
        assert quote.change is None
        assert quote.change_percent is None
        assert quote.is_up is False

    def test_previous_zero(self):
        quote = Quote("2330", Decimal("90"), Decimal("0"))
        assert quote.change == Decimal("90")
        assert quote.change_percent is None


async def test_get_history_since(session):
    store = PriceStore(session)
    full = await store.get_history("2330")
    assert [close for _, close in full] == [Decimal("600"), Decimal("660")]

    recent = await store.get_history("2330", since=date.today())
    assert recent == [(date.today(), Decimal("660"))]
    assert await store.get_history("0050") == []
