"""
EliteSpeed Webhook 处理器测试
"""
from decimal import Decimal

import pytest

from pod_core.models import OrderStatus
from pod_core.utils.errors import WebhookRejectedError
from plugins.pod.carriers.elitespeed.webhooks import EliteSpeedWebhookHandler

from conftest import get_user_balance, load_order, make_draft, set_order_state, tshirt_line


@pytest.fixture
async def tracked_order(db_manager, seed, orders_service):
    order = await orders_service.create_from_product(
        seed.seller.id, make_draft([tshirt_line(seed.tshirt.id)], total_price="249.00")
    )
    await set_order_state(db_manager, order.id, status=OrderStatus.SHIPPED.value, tracking_number="ES-4001")
    return order


async def test_delivered_webhook_credits_once(db_manager, seed, tracked_order):
    handler = EliteSpeedWebhookHandler(db_manager)
    balance_before, _ = await get_user_balance(db_manager, seed.seller.id)

    first = await handler.handle({"code_shippment": "ES-4001", "statut": "Livré"})
    second = await handler.handle({"code_shippment": "ES-4001", "statut": "Livré"})

    assert first == {
        "success": True,
        "message": "Order status updated",
        "order_number": tracked_order.order_number,
        "status": "PAID",
        "changed": True,
    }
    assert second["changed"] is False
    balance_after, _ = await get_user_balance(db_manager, seed.seller.id)
    assert balance_after == balance_before + Decimal("249.00")


async def test_event_list_payload(db_manager, seed, tracked_order):
    handler = EliteSpeedWebhookHandler(db_manager)

    result = await handler.handle({"code": "ES-4001", "data": [{"status": "Ramassé"}, {"status": "Expédié"}]})

    assert result["status"] == "DELIVERING"
    order = await load_order(db_manager, tracked_order.id)
    assert order.shipping_status == "Ramassé"


async def test_token_is_checked_when_configured(db_manager, seed, tracked_order):
    handler = EliteSpeedWebhookHandler(db_manager, webhook_token="hook-secret")

    with pytest.raises(WebhookRejectedError) as exc_info:
        await handler.handle({"code_shippment": "ES-4001", "statut": "Livré"}, header_token="wrong")
    assert exc_info.value.status == 401
    assert exc_info.value.code == "WEBHOOK_UNAUTHORIZED"
    assert (await load_order(db_manager, tracked_order.id)).status == "SHIPPED"

    # 令牌也可以放在请求体中
    result = await handler.handle({"code_shippment": "ES-4001", "statut": "Expédié", "token": "hook-secret"})
    assert result["success"] is True


async def test_token_not_required_when_unset(db_manager, seed, tracked_order):
    handler = EliteSpeedWebhookHandler(db_manager, webhook_token="")

    result = await handler.handle({"code_shippment": "ES-4001", "statut": "Expédié"}, header_token="anything")

    assert result["success"] is True


@pytest.mark.parametrize(
    "payload",
    [
        {"statut": "Livré"},
        {"code_shippment": "ES-4001"},
        {"code_shippment": "ES-4001", "data": []},
        {},
        ["not", "a", "dict"],
    ],
)
async def test_malformed_payload(db_manager, seed, payload):
    handler = EliteSpeedWebhookHandler(db_manager)

    with pytest.raises(WebhookRejectedError) as exc_info:
        await handler.handle(payload)

    assert exc_info.value.status == 400
    assert exc_info.value.code == "WEBHOOK_MALFORMED"


async def test_unknown_tracking_number(db_manager, seed):
    handler = EliteSpeedWebhookHandler(db_manager)

    with pytest.raises(WebhookRejectedError) as exc_info:
        await handler.handle({"code_shippment": "ES-NOPE", "statut": "Livré"})

    assert exc_info.value.status == 404


async def test_tracking_number_shared_by_two_orders(db_manager, seed, orders_service, tracked_order):
    other = await orders_service.create_from_product(seed.seller.id, make_draft([tshirt_line(seed.tshirt.id)]))
    await set_order_state(db_manager, other.id, tracking_number="ES-4001")
    handler = EliteSpeedWebhookHandler(db_manager)

    with pytest.raises(WebhookRejectedError) as exc_info:
        await handler.handle({"code_shippment": "ES-4001", "statut": "Livré"})

    assert exc_info.value.status == 409
    assert (await load_order(db_manager, tracked_order.id)).status == "SHIPPED"
