"""
订单定价测试
"""
from decimal import Decimal

import pytest

from pod_core.models import Product, SellerProductPrice, SystemSetting, Template
from pod_core.services.pricing import (
    LineItemRequest, PricingResolver, money, normalize_city, template_view_surcharge
)
from pod_core.services.settings_provider import DatabaseSettingsProvider, StaticSettingsProvider
from pod_core.utils.errors import ValidationError

from conftest import tshirt_line


def test_money_rounds_half_up():
    assert money("10.005") == Decimal("10.01")
    assert money(Decimal("3")) == Decimal("3.00")


def test_normalize_city():
    assert normalize_city("  CasaBlanca ") == "casablanca"
    assert normalize_city(None) == ""


def test_template_surcharge_counts_only_views_with_content():
    product = Product(
        name="T-Shirt",
        base_price=Decimal("75.00"),
        views=[
            {"key": "front", "price": "15.00"},
            {"key": "back", "price": "20.00"},
            {"key": "sleeve", "price": "5.00"},
        ],
    )
    template = Template(design_config={
        "view_states": {
            "front": {"objects": [{"type": "text", "text": "Hello"}]},
            "back": '{"objects": [{"type": "image"}]}',
            "sleeve": {"objects": []},
            "pocket": {"objects": [{"type": "text"}]},
        }
    })

    # pocket 未配置价格，按 0 计算
    assert template_view_surcharge(template, product) == Decimal("35.00")


def test_template_surcharge_ignores_invalid_view_state():
    product = Product(name="T-Shirt", base_price=Decimal("75.00"), views=[{"key": "front", "price": "15.00"}])
    template = Template(design_config={"view_states": {"front": "not json"}})

    assert template_view_surcharge(template, product) == Decimal("0.00")


async def test_product_order_in_hub_city(db_session, seed, settings_provider):
    resolver = PricingResolver(settings_provider)

    snapshot = await resolver.resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id, quantity=2)],
        include_packaging=True,
        destination_city=" casablanca ",
        customer_total=Decimal("299"),
    )

    assert snapshot.items_cost == Decimal("150.00")
    assert snapshot.packaging_fee == Decimal("5.00")
    assert snapshot.shipping_fee == Decimal("20.00")
    assert snapshot.total_cost == Decimal("175.00")
    assert snapshot.customer_total == Decimal("299.00")
    assert snapshot.total_quantity == 2
    assert snapshot.lines[0].product_name == "T-Shirt"


async def test_other_city_shipping_without_packaging(db_session, seed, settings_provider):
    resolver = PricingResolver(settings_provider)

    snapshot = await resolver.resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id)],
        include_packaging=False,
        destination_city="Marrakech",
        customer_total=Decimal("199.00"),
    )

    assert snapshot.packaging_fee == Decimal("0.00")
    assert snapshot.shipping_fee == Decimal("40.00")
    assert snapshot.total_cost == Decimal("115.00")


async def test_seller_price_override(db_manager, db_session, seed, settings_provider):
    async with db_manager.get_transaction() as session:
        session.add(SellerProductPrice(user_id=seed.seller.id, product_id=seed.tshirt.id, price=Decimal("60.00")))

    snapshot = await PricingResolver(settings_provider).resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id, quantity=3)],
        include_packaging=False,
        destination_city="Casablanca",
        customer_total=Decimal("300.00"),
    )

    assert snapshot.lines[0].unit_cost == Decimal("60.00")
    assert snapshot.items_cost == Decimal("180.00")


async def test_override_is_per_seller(db_manager, db_session, seed, settings_provider):
    async with db_manager.get_transaction() as session:
        session.add(SellerProductPrice(user_id=seed.other_seller.id, product_id=seed.tshirt.id, price=Decimal("50.00")))

    snapshot = await PricingResolver(settings_provider).resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id)],
        include_packaging=False,
        destination_city="Casablanca",
        customer_total=Decimal("150.00"),
    )

    assert snapshot.lines[0].unit_cost == Decimal("75.00")


async def test_template_line_adds_view_surcharge(db_session, seed, settings_provider):
    snapshot = await PricingResolver(settings_provider).resolve(
        db_session, seed.seller.id,
        [LineItemRequest(template_id=seed.template.id, color="Black", size="L", quantity=2)],
        include_packaging=False,
        destination_city="Casablanca",
        customer_total=Decimal("400.00"),
    )

    line = snapshot.lines[0]
    assert line.product_id == seed.tshirt.id
    assert line.template_id == seed.template.id
    # 75.00 + 正面 15.00，背面没有设计内容
    assert line.unit_cost == Decimal("90.00")
    assert line.line_cost == Decimal("180.00")


async def test_template_colors_restrict_choice(db_session, seed, settings_provider):
    with pytest.raises(ValidationError) as exc_info:
        await PricingResolver(settings_provider).resolve(
            db_session, seed.seller.id,
            [LineItemRequest(template_id=seed.template.id, color="White", size="M", quantity=1)],
            include_packaging=False,
            destination_city="Casablanca",
            customer_total=Decimal("100.00"),
        )

    assert exc_info.value.code == "INVALID_COLOR"
    assert exc_info.value.extra["item_index"] == 0


async def test_template_must_be_approved(db_session, seed, settings_provider):
    with pytest.raises(ValidationError) as exc_info:
        await PricingResolver(settings_provider).resolve(
            db_session, seed.seller.id,
            [LineItemRequest(template_id=seed.pending_template.id, color="Black", size="M", quantity=1)],
            include_packaging=False,
            destination_city="Casablanca",
            customer_total=Decimal("100.00"),
        )

    assert exc_info.value.code == "TEMPLATE_NOT_APPROVED"


async def test_template_of_another_seller_is_rejected(db_session, seed, settings_provider):
    with pytest.raises(ValidationError) as exc_info:
        await PricingResolver(settings_provider).resolve(
            db_session, seed.other_seller.id,
            [LineItemRequest(template_id=seed.template.id, color="Black", size="M", quantity=1)],
            include_packaging=False,
            destination_city="Casablanca",
            customer_total=Decimal("100.00"),
        )

    assert exc_info.value.code == "TEMPLATE_NOT_OWNED"


@pytest.mark.parametrize(
    "item_kwargs, code",
    [
        ({"color": "Red"}, "INVALID_COLOR"),
        ({"size": "XXL"}, "INVALID_SIZE"),
        ({"quantity": 0}, "INVALID_QUANTITY"),
    ],
)
async def test_invalid_line_items(db_session, seed, settings_provider, item_kwargs, code):
    quantity = item_kwargs.pop("quantity", 1)
    items = [tshirt_line(seed.tshirt.id), tshirt_line(seed.tshirt.id, quantity=quantity, **item_kwargs)]

    with pytest.raises(ValidationError) as exc_info:
        await PricingResolver(settings_provider).resolve(
            db_session, seed.seller.id, items,
            include_packaging=False,
            destination_city="Casablanca",
            customer_total=Decimal("100.00"),
        )

    assert exc_info.value.code == code
    assert exc_info.value.extra["item_index"] == 1


async def test_unknown_product(db_session, seed, settings_provider):
    with pytest.raises(ValidationError) as exc_info:
        await PricingResolver(settings_provider).resolve(
            db_session, seed.seller.id,
            [tshirt_line(999999)],
            include_packaging=False,
            destination_city="Casablanca",
            customer_total=Decimal("100.00"),
        )

    assert exc_info.value.code == "PRODUCT_NOT_FOUND"


async def test_empty_order_is_rejected(db_session, seed, settings_provider):
    with pytest.raises(ValidationError) as exc_info:
        await PricingResolver(settings_provider).resolve(
            db_session, seed.seller.id, [],
            include_packaging=False,
            destination_city="Casablanca",
            customer_total=Decimal("100.00"),
        )

    assert exc_info.value.code == "EMPTY_ORDER"


async def test_reorder_line_is_free(db_session, seed, settings_provider):
    snapshot = await PricingResolver(settings_provider).resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id, quantity=2, reorder_from_order_id=42)],
        include_packaging=True,
        destination_city="Casablanca",
        customer_total=Decimal("250.00"),
    )

    assert snapshot.lines[0].unit_cost == Decimal("0.00")
    assert snapshot.items_cost == Decimal("0.00")
    # 运费和包装仍然收取
    assert snapshot.total_cost == Decimal("25.00")


async def test_database_settings_override_defaults(db_manager, db_session, seed):
    async with db_manager.get_transaction() as session:
        session.add(SystemSetting(setting_key="shipping_casablanca", setting_value="25.00"))
        session.add(SystemSetting(setting_key="packaging_price", setting_value="not-a-number"))

    snapshot = await PricingResolver(DatabaseSettingsProvider(db_session)).resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id)],
        include_packaging=True,
        destination_city="Casablanca",
        customer_total=Decimal("150.00"),
    )

    assert snapshot.shipping_fee == Decimal("25.00")
    # 非法值回落到配置默认值
    assert snapshot.packaging_fee == Decimal("5.00")


@pytest.mark.parametrize("raw", ["NaN", "sNaN", "Infinity", "-inf"])
async def test_non_finite_setting_falls_back_to_default(raw):
    provider = StaticSettingsProvider({"packaging_price": raw})

    assert await provider.get_decimal("packaging_price", Decimal("5.00")) == Decimal("5.00")


async def test_non_finite_database_setting_is_not_priced(db_manager, db_session, seed):
    async with db_manager.get_transaction() as session:
        session.add(SystemSetting(setting_key="shipping_other", setting_value="NaN"))

    snapshot = await PricingResolver(DatabaseSettingsProvider(db_session)).resolve(
        db_session, seed.seller.id,
        [tshirt_line(seed.tshirt.id)],
        include_packaging=False,
        destination_city="Rabat",
        customer_total=Decimal("150.00"),
    )

    assert snapshot.shipping_fee == Decimal("40.00")
    assert snapshot.total_cost == Decimal("115.00")
