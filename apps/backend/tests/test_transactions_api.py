import asyncio
import gc
from decimal import Decimal

import pytest

from stock_tracker.services import transaction_service

pytestmark = pytest.mark.usefixtures("stocks")


async def post_tx(client, headers, portfolio_id, tx_type, quantity, price,
                  stock_id="2330", executed_at=None, commission="0"):
    payload = {
        "portfolio_id": portfolio_id,
        "stock_id": stock_id,
        "tx_type": tx_type,
        "quantity": quantity,
        "price_per_share": str(price),
        "commission": commission,
    }
    if executed_at:
        payload["executed_at"] = executed_at
    return await client.post("/api/transactions/", json=payload, headers=headers)


async def test_buy_records_transaction_with_stock_currency(client, auth_headers, portfolio_id):
    res = await post_tx(client, auth_headers, portfolio_id, "BUY", 10, "550.5", stock_id="aapl")
    assert res.status_code == 201, res.text
    data = res.json()["data"]
    assert data["stock_id"] == "AAPL"
    assert data["currency"] == "USD"
    assert data["stock_name"] == "Apple Inc."
    assert Decimal(str(data["total_value"])) == Decimal("5505")
    assert res.json()["message"] == "交易已新增"


async def test_sell_more_than_held_is_rejected(client, auth_headers, portfolio_id):
    await post_tx(client, auth_headers, portfolio_id, "BUY", 10, 500)

    res = await post_tx(client, auth_headers, portfolio_id, "SELL", 11, 600)
    assert res.status_code == 400
    assert "10" in res.json()["detail"]
    assert "11" in res.json()["detail"]

    res = await client.get(f"/api/transactions/{portfolio_id}", headers=auth_headers)
    assert res.json()["data"]["total"] == 1


async def test_sell_without_holdings_is_rejected(client, auth_headers, portfolio_id):
    res = await post_tx(client, auth_headers, portfolio_id, "SELL", 1, 600)
    assert res.status_code == 400


async def test_sell_within_holdings_succeeds(client, auth_headers, portfolio_id):
    await post_tx(client, auth_headers, portfolio_id, "BUY", 10, 500)
    res = await post_tx(client, auth_headers, portfolio_id, "SELL", 10, 600)
    assert res.status_code == 201, res.text


async def test_backdated_sell_checks_holdings_at_that_time(client, auth_headers, portfolio_id):
    await post_tx(client, auth_headers, portfolio_id, "BUY", 10, 500,
                  executed_at="2024-03-01T09:00:00Z")

    # 買入之前的賣出
    res = await post_tx(client, auth_headers, portfolio_id, "SELL", 5, 500,
                        executed_at="2024-02-01T09:00:00Z")
    assert res.status_code == 400


async def test_backdated_sell_that_breaks_later_sell_is_rejected(client, auth_headers, portfolio_id):
    await post_tx(client, auth_headers, portfolio_id, "BUY", 10, 500,
                  executed_at="2024-01-01T09:00:00Z")
    res = await post_tx(client, auth_headers, portfolio_id, "SELL", 10, 550,
                        executed_at="2024-03-01T09:00:00Z")
    assert res.status_code == 201

    res = await post_tx(client, auth_headers, portfolio_id, "SELL", 5, 520,
                        executed_at="2024-02-01T09:00:00Z")
    assert res.status_code == 409

    res = await client.get(f"/api/transactions/{portfolio_id}", headers=auth_headers)
    assert res.json()["data"]["total"] == 2


async def test_concurrent_sells_cannot_oversell(client, auth_headers, portfolio_id):
    await post_tx(client, auth_headers, portfolio_id, "BUY", 10, 500)

    results = await asyncio.gather(
        post_tx(client, auth_headers, portfolio_id, "SELL", 6, 600),
        post_tx(client, auth_headers, portfolio_id, "SELL", 6, 600),
    )
    codes = sorted(r.status_code for r in results)
    assert codes == [201, 400]

    res = await client.get(
        f"/api/portfolio/{portfolio_id}/positions/2330", headers=auth_headers
    )
    assert res.json()["data"]["quantity"] == 4


async def test_unknown_stock_is_404(client, auth_headers, portfolio_id):
    res = await post_tx(client, auth_headers, portfolio_id, "BUY", 1, 10, stock_id="NOPE")
    assert res.status_code == 404


async def test_invalid_payload_is_422(client, auth_headers, portfolio_id):
    res = await post_tx(client, auth_headers, portfolio_id, "BUY", 0, 10)
    assert res.status_code == 422
    res = await post_tx(client, auth_headers, portfolio_id, "HOLD", 1, 10)
    assert res.status_code == 422


async def test_other_users_portfolio_is_404(client, auth_headers, other_headers, portfolio_id):
    res = await post_tx(client, other_headers, portfolio_id, "BUY", 1, 10)
    assert res.status_code == 404
    assert res.json()["detail"] == "投資組合不存在"

    res = await client.get(f"/api/transactions/{portfolio_id}", headers=other_headers)
    assert res.status_code == 404


async def test_requires_authentication(client, portfolio_id):
    res = await post_tx(client, {}, portfolio_id, "BUY", 1, 10)
    assert res.status_code == 401


async def test_list_is_paginated_newest_first(client, auth_headers, portfolio_id):
    for day in range(1, 6):
        await post_tx(client, auth_headers, portfolio_id, "BUY", day, 100,
                      executed_at=f"2024-01-0{day}T09:00:00Z")

    res = await client.get(
        f"/api/transactions/{portfolio_id}?page=1&page_size=2", headers=auth_headers
    )
    data = res.json()["data"]
    assert data["total"] == 5
    assert data["total_pages"] == 3
    assert data["has_next_page"] is True
    assert [item["quantity"] for item in data["items"]] == [5, 4]

    res = await client.get(
        f"/api/transactions/{portfolio_id}?page=3&page_size=2", headers=auth_headers
    )
    data = res.json()["data"]
    assert [item["quantity"] for item in data["items"]] == [1]
    assert data["has_next_page"] is False
    assert data["has_prev_page"] is True


async def test_ledger_locks_are_released_after_use(client, auth_headers, portfolio_id):
    await post_tx(client, auth_headers, portfolio_id, "BUY", 10, 500)
    await asyncio.gather(
        post_tx(client, auth_headers, portfolio_id, "SELL", 6, 600),
        post_tx(client, auth_headers, portfolio_id, "SELL", 6, 600),
    )

    gc.collect()
    assert (portfolio_id, "2330") not in transaction_service._ledger_locks
