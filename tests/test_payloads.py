"""
EliteSpeed 建单载荷测试
"""
from decimal import Decimal

import pytest

from pod_core.models import Order, OrderItem
from plugins.pod.carriers.elitespeed.payloads import (
    build_description, build_parcel_payload, normalize_phone
)


def make_order(**overrides) -> Order:
    values = dict(
        order_number="POD-202610-00042",
        recipient_name="Salma Benali",
        recipient_phone="+212 6 12-34-56-78",
        address_street="45 Avenue Hassan II",
        address_city="Rabat",
        address_postal_code=None,
        quantity=3,
        total_amount=Decimal("349"),
        notes="Call before delivery",
        items=[
            OrderItem(product_name="T-Shirt", color="Black", size="L", quantity=2),
            OrderItem(product_name="Hoodie", color="Grey", size="M", quantity=1),
        ],
    )
    values.update(overrides)
    return Order(**values)


@pytest.mark.parametrize(
    "phone, expected",
    [
        ("+212612345678", "0612345678"),
        ("00212612345678", "0612345678"),
        ("212612345678", "0612345678"),
        ("+212 6 12-34-56-78", "0612345678"),
        ("(06) 12.34.56.78", "0612345678"),
        ("0612345678", "0612345678"),
        (None, ""),
    ],
)
def test_normalize_phone(phone, expected):
    assert normalize_phone(phone) == expected


def test_build_description():
    order = make_order()

    assert build_description(order.items) == "2x T-Shirt (L Black), 1x Hoodie (M Grey)"


def test_build_description_is_truncated():
    items = [
        OrderItem(product_name=f"Oversized Premium Tee {i}", color="Black", size="XL", quantity=1)
        for i in range(20)
    ]

    description = build_description(items, max_length=80)

    assert len(description) <= 80
    assert description.endswith("...")


def test_build_parcel_payload():
    payload = build_parcel_payload(make_order())

    assert payload == {
        "fullname": "Salma Benali",
        "phone": "0612345678",
        "city": "Rabat",
        "address": "45 Avenue Hassan II",
        "price": "349.00",
        "product": "2x T-Shirt (L Black), 1x Hoodie (M Grey)",
        "qty": 3,
        "note": "Call before delivery",
        "code": "POD-202610-00042",
    }


def test_payload_note_and_postal_code():
    payload = build_parcel_payload(make_order(address_postal_code="10000"), note="Leave at reception")

    assert payload["address"] == "45 Avenue Hassan II, 10000"
    assert payload["note"] == "Leave at reception"


def test_payload_without_notes():
    payload = build_parcel_payload(make_order(notes=None))

    assert payload["note"] == ""
