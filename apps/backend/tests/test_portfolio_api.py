from decimal import Decimal

import pytest
from sqlalchemy import select, func

from stock_tracker.models.transaction import Transaction

pytestmark = pytest.mark.usefixtures("stocks")


def dec(value) -> Decimal:
    return Decimal(str(value))


async def record(client, headers, portfolio_id, tx_type, stock_id, quantity, price):
    res = await client.post("/api/transactions/", json={
        "portfolio_id": portfolio_id,
        "stock_id": stock_id,
        "tx_type": tx_type,
        "quantity": quantity,
        "price_per_share": str(price),
    }, headers=headers)
    assert res.status_code == 201, res.text


async def test_create_and_list_portfolio(client, auth_headers):
    res = await client.post(
        "/api/portfolio/", json={"name": "  短線操作 ", "description": "當沖"},
        headers=auth_headers,
    )
    assert res.status_code == 201
    assert res.json()["data"]["name"] == "短線操作"

    res = await client.get("/api/portfolio/", headers=auth_headers)
    portfolios = res.json()["data"]["portfolios"]
    assert [p["name"] for p in portfolios] == ["短線操作"]
    assert dec(portfolios[0]["total_value"]) == 0
    assert res.json()["data"]["summary"] is None


async def test_duplicate_name_is_409(client, auth_headers, other_headers, portfolio_id):
    res = await client.post("/api/portfolio/", json={"name": "長期投資"}, headers=auth_headers)
    assert res.status_code == 409

    # 不同用戶可以使用相同名稱
    res = await client.post("/api/portfolio/", json={"name": "長期投資"}, headers=other_headers)
    assert res.status_code == 201


async def test_blank_name_is_422(client, auth_headers):
    res = await client.post("/api/portfolio/", json={"name": "   "}, headers=auth_headers)
    assert res.status_code == 422


async def test_update_portfolio(client, auth_headers, portfolio_id):
    await client.post("/api/portfolio/", json={"name": "退休金"}, headers=auth_headers)

    res = await client.put(
        f"/api/portfolio/{portfolio_id}", json={"name": "退休金"}, headers=auth_headers
    )
    assert res.status_code == 409

    res = await client.put(
        f"/api/portfolio/{portfolio_id}",
        json={"name": "核心持股", "description": "長抱"},
        headers=auth_headers,
    )
    assert res.status_code == 200
    assert res.json()["data"]["name"] == "核心持股"
    assert res.json()["data"]["description"] == "長抱"


async def test_other_users_portfolio_is_404(client, other_headers, portfolio_id):
    for method in ("get", "delete"):
        res = await getattr(client, method)(
            f"/api/portfolio/{portfolio_id}", headers=other_headers
        )
        assert res.status_code == 404
    res = await client.put(
        f"/api/portfolio/{portfolio_id}", json={"name": "x"}, headers=other_headers
    )
    assert res.status_code == 404


async def test_detail_reports_holdings_and_summary(client, auth_headers, portfolio_id):
    # 2330 最新收盤 660，0050 無報價，2317 已出清
    await record(client, auth_headers, portfolio_id, "BUY", "2330", 10, 500)
    await record(client, auth_headers, portfolio_id, "BUY", "2330", 10, 520)
    await record(client, auth_headers, portfolio_id, "SELL", "2330", 5, 600)
    await record(client, auth_headers, portfolio_id, "BUY", "0050", 100, 150)
    await record(client, auth_headers, portfolio_id, "BUY", "2317", 10, 90)
    await record(client, auth_headers, portfolio_id, "SELL", "2317", 10, 110)

    res = await client.get(f"/api/portfolio/{portfolio_id}", headers=auth_headers)
    assert res.status_code == 200
    data = res.json()["data"]

    holdings = {h["stock_id"]: h for h in data["holdings"]}
    assert set(holdings) == {"2330", "0050"}

    tsmc = holdings["2330"]
    assert tsmc["quantity"] == 15
    assert dec(tsmc["avg_cost"]) == Decimal("510.00")
    assert dec(tsmc["total_cost"]) == Decimal("7650.00")
    assert dec(tsmc["current_price"]) == Decimal("660")
    assert dec(tsmc["market_value"]) == Decimal("9900.00")
    assert dec(tsmc["unrealized_pnl"]) == Decimal("2250.00")
    assert tsmc["has_price"] is True

    etf = holdings["0050"]
    assert etf["has_price"] is False
    assert etf["market_value"] is None
    assert etf["unrealized_pnl"] is None

    summary = data["summary"]
    assert dec(summary["total_market_value"]) == Decimal("9900.00")
    assert dec(summary["total_cost_basis"]) == Decimal("7650.00")
    assert dec(summary["unrealized_pnl"]) == Decimal("2250.00")
    assert dec(summary["unrealized_pnl_pct"]) == Decimal("29.41")
    # 2330: 5 * (600 - 510) = 450；2317: 10 * (110 - 90) = 200
    assert dec(summary["realized_pnl"]) == Decimal("650.00")
    assert summary["open_positions"] == 2
    assert summary["unpriced_positions"] == 1

    assert len(data["transactions"]) == 6


async def test_closed_position_is_still_queryable(client, auth_headers, portfolio_id):
    await record(client, auth_headers, portfolio_id, "BUY", "2317", 10, 90)
    await record(client, auth_headers, portfolio_id, "SELL", "2317", 10, 110)

    res = await client.get(
        f"/api/portfolio/{portfolio_id}/positions/2317", headers=auth_headers
    )
    assert res.status_code == 200
    position = res.json()["data"]
    assert position["quantity"] == 0
    assert dec(position["total_cost"]) == 0
    assert position["avg_cost"] is None
    assert dec(position["realized_pnl"]) == Decimal("200.00")
    assert dec(position["market_value"]) == 0

    res = await client.get(
        f"/api/portfolio/{portfolio_id}/positions/AAPL", headers=auth_headers
    )
    assert res.status_code == 404


async def test_list_with_summary(client, auth_headers, portfolio_id):
    await record(client, auth_headers, portfolio_id, "BUY", "2330", 10, 600)

    res = await client.post("/api/portfolio/", json={"name": "美股"}, headers=auth_headers)
    us_id = res.json()["data"]["id"]
    await record(client, auth_headers, us_id, "BUY", "2317", 100, 110)

    res = await client.get("/api/portfolio/?summary=true", headers=auth_headers)
    data = res.json()["data"]

    by_name = {p["name"]: p for p in data["portfolios"]}
    assert dec(by_name["長期投資"]["total_value"]) == Decimal("6600.00")
    assert dec(by_name["長期投資"]["today_pnl"]) == Decimal("600.00")
    assert dec(by_name["長期投資"]["today_pnl_pct"]) == Decimal("10.00")
    assert by_name["長期投資"]["is_pnl_up"] is True
    assert by_name["美股"]["is_pnl_up"] is False
    assert by_name["美股"]["currency"] == "TWD"

    overview = data["summary"]
    assert overview["portfolio_count"] == 2
    assert dec(overview["total_portfolio_value"]) == Decimal("16600.00")
    assert dec(overview["total_cost_basis"]) == Decimal("17000.00")
    assert dec(overview["total_today_pnl"]) == Decimal("-400.00")
    assert dec(overview["total_today_pnl_pct"]) == Decimal("-2.35")
    assert overview["is_total_pnl_up"] is False


async def test_delete_removes_transactions(client, auth_headers, portfolio_id, session):
    await record(client, auth_headers, portfolio_id, "BUY", "2330", 1, 600)

    res = await client.delete(f"/api/portfolio/{portfolio_id}", headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["data"] is True

    res = await client.get(f"/api/portfolio/{portfolio_id}", headers=auth_headers)
    assert res.status_code == 404

    remaining = await session.scalar(
        select(func.count()).select_from(Transaction)
        .where(Transaction.portfolio_id == portfolio_id)
    )
    assert remaining == 0


async def test_build_positions_includes_closed(client, auth_headers, portfolio_id, session):
    from stock_tracker.services.portfolio_service import PortfolioService

    await record(client, auth_headers, portfolio_id, "BUY", "2330", 2, 600)
    await record(client, auth_headers, portfolio_id, "BUY", "2317", 10, 90)
    await record(client, auth_headers, portfolio_id, "SELL", "2317", 10, 110)

    positions = await PortfolioService(session).build_positions(portfolio_id)
    assert set(positions) == {"2330", "2317"}
    assert positions["2330"].market_value == Decimal("1320")
    assert positions["2317"].quantity_held == 0
    assert positions["2317"].realized_pnl == Decimal("200")
