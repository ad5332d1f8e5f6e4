"""
EliteSpeed 建单载荷
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from pod_core.models.orders import Order, OrderItem
from pod_core.utils.phone import normalize_phone


def describe_item(item: OrderItem) -> str:
    return f"{item.quantity}x {item.product_name} ({item.size} {item.color})"


def build_description(items: Iterable[OrderItem], max_length: int = 255) -> str:
    """行项目摘要：2x T-Shirt (L Black), 1x Hoodie (M White)，超长截断"""
    description = ", ".join(describe_item(item) for item in items)
    if len(description) > max_length:
        description = description[:max_length - 3].rstrip() + "..."
    return description


def _format_price(value: Decimal) -> str:
    return str(Decimal(value).quantize(Decimal("0.01")))


def build_parcel_payload(
    order: Order,
    note: Optional[str] = None,
    description_max_length: int = 255,
) -> Dict[str, Any]:
    """
    构建建单载荷

    price 为代收货款（客户支付金额），code 为订单号，
    承运商按 code 去重，重复提交不会生成两个包裹。
    """
    address = order.address_street
    if order.address_postal_code:
        address = f"{address}, {order.address_postal_code}"

    return {
        "fullname": order.recipient_name,
        "phone": normalize_phone(order.recipient_phone),
        "city": order.address_city,
        "address": address,
        "price": _format_price(order.total_amount),
        "product": build_description(order.items, description_max_length),
        "qty": order.quantity,
        "note": note or order.notes or "",
        "code": order.order_number,
    }
