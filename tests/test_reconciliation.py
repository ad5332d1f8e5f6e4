"""
承运商状态对账测试
"""
import pytest

from pod_core.models import OrderStatus
from plugins.pod.carriers.elitespeed.services import OrderReconciliationService

from conftest import FakeGateway, load_order, make_draft, set_order_state, tshirt_line


@pytest.fixture
async def batch(db_manager, seed, orders_service):
    """
    五个订单：
    - SHIPPED   ES-1 承运商返回 Livré
    - PRINTED   ES-2 承运商查询失败
    - DELIVERING ES-3 承运商状态未变化
    - RETURNED  ES-4 承运商返回 Livré（仅 force 时处理）
    - PENDING   无运单号
    """
    states = [
        {"status": OrderStatus.SHIPPED.value, "tracking_number": "ES-1"},
        {"status": OrderStatus.PRINTED.value, "tracking_number": "ES-2"},
        {"status": OrderStatus.DELIVERING.value, "tracking_number": "ES-3", "shipping_status": "Ramassé"},
        {"status": OrderStatus.RETURNED.value, "tracking_number": "ES-4"},
        {"status": OrderStatus.PENDING.value},
    ]
    orders = []
    for values in states:
        order = await orders_service.create_from_product(seed.seller.id, make_draft([tshirt_line(seed.tshirt.id)]))
        await set_order_state(db_manager, order.id, **values)
        orders.append(order)
    return orders


@pytest.fixture
def carrier() -> FakeGateway:
    return FakeGateway(statuses={
        "ES-1": "Livré",
        "ES-2": RuntimeError("carrier down"),
        "ES-3": "Ramassé",
        "ES-4": "Livré",
    })


async def test_sync_open_orders(db_manager, batch, carrier):
    service = OrderReconciliationService(carrier, db_manager=db_manager)

    summary = await service.sync_statuses()

    assert summary["total"] == 3
    assert summary["updated"] == 1
    assert summary["unchanged"] == 1
    assert summary["failed"] == 1
    assert summary["failures"] == [{
        "order_id": batch[1].id,
        "order_number": batch[1].order_number,
        "tracking_number": "ES-2",
        "error": "carrier down",
    }]
    assert carrier.tracked == ["ES-1", "ES-2", "ES-3"]

    assert (await load_order(db_manager, batch[0].id)).status == "PAID"
    assert (await load_order(db_manager, batch[1].id)).status == "PRINTED"
    assert (await load_order(db_manager, batch[3].id)).status == "RETURNED"


async def test_force_includes_returned_orders(db_manager, batch, carrier):
    await set_order_state(db_manager, batch[0].id, status=OrderStatus.PAID.value)
    service = OrderReconciliationService(carrier, db_manager=db_manager)

    summary = await service.sync_statuses(force=True)

    # 已签收的订单始终排除
    assert carrier.tracked == ["ES-2", "ES-3", "ES-4"]
    assert summary["total"] == 3
    assert summary["updated"] == 1
    assert (await load_order(db_manager, batch[3].id)).status == "PAID"


async def test_limit(db_manager, batch, carrier):
    service = OrderReconciliationService(carrier, db_manager=db_manager)

    summary = await service.sync_statuses(limit=1)

    assert summary["total"] == 1
    assert carrier.tracked == ["ES-1"]


async def test_status_without_raw_value_counts_as_unchanged(db_manager, batch):
    service = OrderReconciliationService(FakeGateway(statuses={}), db_manager=db_manager)

    summary = await service.sync_statuses()

    assert summary["unchanged"] == 3
    assert summary["failed"] == 0


async def test_empty_batch(db_manager, seed, carrier):
    service = OrderReconciliationService(carrier, db_manager=db_manager)

    summary = await service.sync_statuses()

    assert summary == {"updated": 0, "unchanged": 0, "failed": 0, "total": 0, "failures": []}


async def test_sync_stats(db_manager, batch):
    service = OrderReconciliationService(FakeGateway(), db_manager=db_manager)

    stats = await service.sync_stats()

    assert stats["with_tracking"] == 4
    assert stats["pending_sync"] == 3
    assert stats["by_status"] == {
        "PENDING": 1,
        "PRINTED": 1,
        "SHIPPED": 1,
        "DELIVERING": 1,
        "PAID": 0,
        "RETURNED": 1,
    }
