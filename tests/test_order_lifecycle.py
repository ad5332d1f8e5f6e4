"""
订单状态机测试
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from pod_core.models import BalanceTransaction, OrderStatus, OrderStatusHistory, TransactionType
from pod_core.services.order_lifecycle import OrderLifecycle, normalize_status
from pod_core.utils.errors import NotFoundError, ValidationError
from plugins.pod.carriers.elitespeed.status_mapping import classify_status

from conftest import get_user_balance, load_order, make_draft, set_order_state, tshirt_line


@pytest.fixture
async def shipped_order(db_manager, seed, orders_service):
    """已发货订单：成本 100.00，代收 249.00"""
    order = await orders_service.create_from_product(
        seed.seller.id,
        make_draft([tshirt_line(seed.tshirt.id)], total_price="249.00")
    )
    await set_order_state(
        db_manager, order.id,
        status=OrderStatus.SHIPPED.value,
        tracking_number="ES-2001",
    )
    return order


async def apply_carrier(db_manager, order_id, raw_status, source="webhook"):
    async with db_manager.get_transaction() as session:
        return await OrderLifecycle.apply_carrier_status(session, order_id, raw_status, classify_status, source)


async def delivery_credits(db_manager, order_id) -> int:
    async with db_manager.get_session() as session:
        return await session.scalar(
            select(func.count(BalanceTransaction.id)).where(
                BalanceTransaction.order_id == order_id,
                BalanceTransaction.transaction_type == TransactionType.DELIVERY_CREDIT.value,
            )
        )


def test_normalize_status():
    assert normalize_status(" shipped ") == "SHIPPED"
    assert normalize_status("PAID") == "PAID"

    with pytest.raises(ValidationError) as exc_info:
        normalize_status("Livré")
    assert exc_info.value.code == "INVALID_STATUS"


@pytest.mark.parametrize(
    "old_status, new_status, accepted",
    [
        ("SHIPPED", "PAID", True),
        ("DELIVERING", "RETURNED", True),
        ("PAID", "RETURNED", False),
        ("PAID", "SHIPPED", False),
        ("RETURNED", "SHIPPED", False),
        ("RETURNED", "PAID", True),
    ],
)
def test_carrier_terminal_guard(old_status, new_status, accepted):
    assert OrderLifecycle.guard_carrier_transition(old_status, new_status) is accepted


async def test_delivered_credits_seller_once(db_manager, seed, shipped_order):
    balance_before, _ = await get_user_balance(db_manager, seed.seller.id)

    first = await apply_carrier(db_manager, shipped_order.id, "Livré")

    assert first.old_status == "SHIPPED"
    assert first.new_status == "PAID"
    assert first.changed is True
    assert first.credited is True
    balance_after, _ = await get_user_balance(db_manager, seed.seller.id)
    assert balance_after == balance_before + Decimal("249.00")

    # 承运商重复推送同一状态
    second = await apply_carrier(db_manager, shipped_order.id, "Livré")

    assert second.changed is False
    assert second.credited is False
    assert (await get_user_balance(db_manager, seed.seller.id))[0] == balance_after
    assert await delivery_credits(db_manager, shipped_order.id) == 1

    order = await load_order(db_manager, shipped_order.id)
    assert order.status == "PAID"
    assert order.shipping_status == "Livré"
    assert order.delivery_credited_at is not None


async def test_return_disables_reshipping(db_manager, seed, shipped_order):
    await set_order_state(
        db_manager, shipped_order.id,
        status=OrderStatus.DELIVERING.value,
        allow_reshipping=True,
    )

    result = await apply_carrier(db_manager, shipped_order.id, "Retour Client")

    assert result.new_status == "RETURNED"
    order = await load_order(db_manager, shipped_order.id)
    assert order.status == "RETURNED"
    assert order.allow_reshipping is False


async def test_unrecognized_status_keeps_canonical_status(db_manager, seed, shipped_order):
    result = await apply_carrier(db_manager, shipped_order.id, "Statut inconnu XYZ")

    assert result.changed is False
    assert result.raw_changed is True
    order = await load_order(db_manager, shipped_order.id)
    assert order.status == "SHIPPED"
    assert order.shipping_status == "Statut inconnu XYZ"


async def test_paid_order_ignores_late_carrier_updates(db_manager, seed, shipped_order):
    await apply_carrier(db_manager, shipped_order.id, "Livré")
    balance, _ = await get_user_balance(db_manager, seed.seller.id)

    result = await apply_carrier(db_manager, shipped_order.id, "En cours de livraison", source="sync")

    assert result.changed is False
    order = await load_order(db_manager, shipped_order.id)
    assert order.status == "PAID"
    # 原始状态照常记录
    assert order.shipping_status == "En cours de livraison"
    assert (await get_user_balance(db_manager, seed.seller.id))[0] == balance


async def test_returned_order_accepts_only_paid_from_carrier(db_manager, seed, shipped_order):
    await set_order_state(db_manager, shipped_order.id, status=OrderStatus.RETURNED.value)

    ignored = await apply_carrier(db_manager, shipped_order.id, "Expédié")
    assert ignored.new_status == "RETURNED"

    delivered = await apply_carrier(db_manager, shipped_order.id, "Livré")
    assert delivered.new_status == "PAID"
    assert delivered.credited is True


async def test_manual_round_trip_never_credits_twice(db_manager, seed, shipped_order):
    balance_before, _ = await get_user_balance(db_manager, seed.seller.id)

    for status in ("PAID", "RETURNED", "PAID"):
        async with db_manager.get_transaction() as session:
            await OrderLifecycle.apply_status(
                session, shipped_order.id, status, "manual", updated_by=seed.admin.id
            )

    balance_after, _ = await get_user_balance(db_manager, seed.seller.id)
    assert balance_after == balance_before + Decimal("249.00")
    assert await delivery_credits(db_manager, shipped_order.id) == 1


async def test_status_history_records_changes(db_manager, seed, shipped_order):
    await apply_carrier(db_manager, shipped_order.id, "Ramassé")
    await apply_carrier(db_manager, shipped_order.id, "Ramassé")

    async with db_manager.get_session() as session:
        rows = (await session.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == shipped_order.id)
            .order_by(OrderStatusHistory.id)
        )).scalars().all()

    # 下单一条 + 第一次推送一条；重复推送没有任何变化，不记录
    assert [row.source for row in rows] == ["create", "webhook"]
    assert rows[1].old_status == "SHIPPED"
    assert rows[1].new_status == "DELIVERING"
    assert rows[1].raw_status == "Ramassé"


async def test_apply_status_unknown_order(db_manager, seed):
    with pytest.raises(NotFoundError):
        async with db_manager.get_transaction() as session:
            await OrderLifecycle.apply_status(session, 999999, "PAID", "manual")
