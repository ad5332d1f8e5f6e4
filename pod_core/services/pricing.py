"""
订单定价
根据卖家专属价/基础价、模板印刷面加价、包装费和城市运费计算生产成本快照
"""
import json
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.config import get_settings
from pod_core.models.catalog import Product, SellerProductPrice, Template
from pod_core.utils.errors import ValidationError
from pod_core.utils.logger import get_logger
from .settings_provider import (
    SettingsProvider, PACKAGING_PRICE, SHIPPING_HUB, SHIPPING_OTHER
)

logger = get_logger(__name__)

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """金额统一保留两位小数"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_city(city: Optional[str]) -> str:
    return (city or "").strip().casefold()


@dataclass
class LineItemRequest:
    """下单行项目（商品下单时 template_id 为空）"""
    color: str
    size: str
    quantity: int
    product_id: Optional[int] = None
    template_id: Optional[int] = None
    reorder_from_order_id: Optional[int] = None


@dataclass
class PricedLine:
    """已定价的行项目"""
    index: int
    product_id: int
    product_name: str
    color: str
    size: str
    quantity: int
    unit_cost: Decimal
    line_cost: Decimal
    template_id: Optional[int] = None
    reorder_from_order_id: Optional[int] = None


@dataclass
class PricingSnapshot:
    """下单时冻结的价格快照"""
    lines: List[PricedLine] = field(default_factory=list)
    items_cost: Decimal = Decimal("0.00")
    packaging_fee: Decimal = Decimal("0.00")
    shipping_fee: Decimal = Decimal("0.00")
    customer_total: Decimal = Decimal("0.00")

    @property
    def total_cost(self) -> Decimal:
        """从卖家余额扣除的生产成本合计"""
        return money(self.items_cost + self.packaging_fee + self.shipping_fee)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


def _view_has_content(state: Any) -> bool:
    """印刷面是否放置了设计元素"""
    if isinstance(state, str):
        try:
            state = json.loads(state)
        except ValueError:
            return False
    if not isinstance(state, dict):
        return False
    return bool(state.get("objects"))


def template_view_surcharge(template: Template, product: Product) -> Decimal:
    """
    模板单件加价：每个有设计内容的印刷面加一次该面的价格

    加价按印刷面计算，与所选颜色无关。
    """
    view_states: Dict[str, Any] = (template.design_config or {}).get("view_states") or {}
    surcharge = Decimal("0")
    for view_key, state in view_states.items():
        if _view_has_content(state):
            surcharge += product.view_price(view_key)
    return money(surcharge)


class PricingResolver:
    """订单定价器"""

    def __init__(self, settings_provider: SettingsProvider, hub_city: Optional[str] = None):
        self.settings_provider = settings_provider
        self.hub_city = normalize_city(hub_city or get_settings().hub_city)

    async def resolve(
        self,
        db: AsyncSession,
        seller_id: int,
        items: List[LineItemRequest],
        include_packaging: bool,
        destination_city: str,
        customer_total: Decimal,
    ) -> PricingSnapshot:
        """
        计算订单价格快照

        Args:
            db: 数据库会话
            seller_id: 卖家ID
            items: 行项目（每项引用商品或模板）
            include_packaging: 是否需要包装
            destination_city: 收货城市
            customer_total: 面向客户的代收金额

        Returns:
            PricingSnapshot

        Raises:
            ValidationError: 商品/模板不存在、颜色尺码不合法、模板不可用
        """
        if not items:
            raise ValidationError(code="EMPTY_ORDER", detail="Order must contain at least one item")

        customer_total = money(customer_total)
        if customer_total < 0:
            raise ValidationError(code="INVALID_TOTAL_PRICE", detail="Total price must not be negative")

        templates = await self._load_templates(db, [i.template_id for i in items if i.template_id])
        product_ids = {i.product_id for i in items if i.product_id}
        product_ids.update(t.product_id for t in templates.values())
        products = await self._load_products(db, product_ids)
        overrides = await self._load_overrides(db, seller_id, product_ids)

        snapshot = PricingSnapshot(customer_total=customer_total)
        for index, item in enumerate(items):
            line = self._price_line(index, item, seller_id, products, templates, overrides)
            snapshot.lines.append(line)

        snapshot.items_cost = money(sum((line.line_cost for line in snapshot.lines), Decimal("0")))

        if include_packaging:
            snapshot.packaging_fee = money(await self.settings_provider.get_decimal(PACKAGING_PRICE))

        if normalize_city(destination_city) == self.hub_city:
            snapshot.shipping_fee = money(await self.settings_provider.get_decimal(SHIPPING_HUB))
        else:
            snapshot.shipping_fee = money(await self.settings_provider.get_decimal(SHIPPING_OTHER))

        logger.info(
            "Order priced",
            seller_id=seller_id,
            items=len(snapshot.lines),
            items_cost=str(snapshot.items_cost),
            packaging_fee=str(snapshot.packaging_fee),
            shipping_fee=str(snapshot.shipping_fee),
            total_cost=str(snapshot.total_cost),
        )
        return snapshot

    def _price_line(
        self,
        index: int,
        item: LineItemRequest,
        seller_id: int,
        products: Dict[int, Product],
        templates: Dict[int, Template],
        overrides: Dict[int, Decimal],
    ) -> PricedLine:
        if item.quantity is None or item.quantity < 1:
            raise ValidationError(
                code="INVALID_QUANTITY",
                detail=f"Item {index}: quantity must be at least 1",
                item_index=index
            )

        template: Optional[Template] = None
        if item.template_id:
            template = templates.get(item.template_id)
            if template is None:
                raise ValidationError(
                    code="TEMPLATE_NOT_FOUND",
                    detail=f"Item {index}: template {item.template_id} not found",
                    item_index=index
                )
            if template.user_id != seller_id:
                raise ValidationError(
                    code="TEMPLATE_NOT_OWNED",
                    detail=f"Item {index}: template {item.template_id} does not belong to you",
                    item_index=index
                )
            if not template.is_approved:
                raise ValidationError(
                    code="TEMPLATE_NOT_APPROVED",
                    detail=f"Item {index}: template {item.template_id} is not approved",
                    item_index=index
                )
            product_id = template.product_id
        elif item.product_id:
            product_id = item.product_id
        else:
            raise ValidationError(
                code="MISSING_PRODUCT",
                detail=f"Item {index}: product_id or template_id is required",
                item_index=index
            )

        product = products.get(product_id)
        if product is None:
            raise ValidationError(
                code="PRODUCT_NOT_FOUND",
                detail=f"Item {index}: product {product_id} not found",
                item_index=index
            )

        allowed_colors = (template.colors if template and template.colors else product.available_colors) or []
        allowed_sizes = (template.sizes if template and template.sizes else product.available_sizes) or []
        if item.color not in allowed_colors:
            raise ValidationError(
                code="INVALID_COLOR",
                detail=f"Item {index}: color '{item.color}' is not available",
                item_index=index
            )
        if item.size not in allowed_sizes:
            raise ValidationError(
                code="INVALID_SIZE",
                detail=f"Item {index}: size '{item.size}' is not available",
                item_index=index
            )

        if item.reorder_from_order_id:
            # 重下单复用原订单的生产，不再计费
            unit_cost = Decimal("0.00")
        else:
            if not product.is_active or not product.in_stock:
                raise ValidationError(
                    code="PRODUCT_UNAVAILABLE",
                    detail=f"Item {index}: product {product_id} is not available",
                    item_index=index
                )
            unit_cost = overrides.get(product_id, product.base_price)
            if template is not None:
                unit_cost = unit_cost + template_view_surcharge(template, product)
            unit_cost = money(unit_cost)

        return PricedLine(
            index=index,
            product_id=product_id,
            product_name=product.name,
            color=item.color,
            size=item.size,
            quantity=item.quantity,
            unit_cost=unit_cost,
            line_cost=money(unit_cost * item.quantity),
            template_id=template.id if template else None,
            reorder_from_order_id=item.reorder_from_order_id,
        )

    async def _load_products(self, db: AsyncSession, product_ids: Iterable[int]) -> Dict[int, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    async def _load_templates(self, db: AsyncSession, template_ids: Iterable[int]) -> Dict[int, Template]:
        ids = list(set(template_ids))
        if not ids:
            return {}
        result = await db.execute(select(Template).where(Template.id.in_(ids)))
        return {t.id: t for t in result.scalars().all()}

    async def _load_overrides(self, db: AsyncSession, seller_id: int, product_ids: Iterable[int]) -> Dict[int, Decimal]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(SellerProductPrice.product_id, SellerProductPrice.price).where(
                SellerProductPrice.user_id == seller_id,
                SellerProductPrice.product_id.in_(ids)
            )
        )
        return {product_id: price for product_id, price in result.all()}
