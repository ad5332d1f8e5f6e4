"""
订单服务
下单（定价 + 扣款 + 落库在同一事务）、状态修改、发货、追踪、重发开关
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.models import Customer, Order, OrderItem, OrderStatus, OrderStatusHistory, User
from pod_core.utils.phone import normalize_phone
from pod_core.utils.errors import (
    AccountNotActivatedError, ConflictError, ForbiddenError, NotFoundError,
    PodFlowException, ReorderConflictError, ValidationError
)
from .balance_ledger import BalanceLedger, utcnow
from .base import BaseService
from .carrier import CarrierGateway
from .order_lifecycle import OrderLifecycle, TransitionResult, normalize_status
from .order_numbers import next_order_number
from .pricing import LineItemRequest, PricingResolver, PricingSnapshot
from .settings_provider import DatabaseSettingsProvider, SettingsProvider

# 订单号唯一约束冲突时整体重试的次数
ORDER_CREATE_RETRIES = 3


@dataclass
class OrderDraft:
    """下单请求"""
    customer_name: str
    customer_phone: str
    address_street: str
    address_city: str
    items: List[LineItemRequest]
    total_price: Decimal
    customer_email: Optional[str] = None
    address_postal_code: Optional[str] = None
    address_country: str = "Morocco"
    include_packaging: bool = False
    notes: Optional[str] = None


@dataclass
class CarrierRefresh:
    """一次承运商状态拉取的结果"""
    order_id: int
    tracking: Any = None
    transition: Optional[TransitionResult] = None
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.transition and self.transition.changed)


class OrdersService(BaseService):
    """订单服务"""

    def __init__(
        self,
        db_manager=None,
        settings_provider: Optional[SettingsProvider] = None,
    ):
        super().__init__(db_manager)
        self._settings_provider = settings_provider

    def settings_for(self, session: AsyncSession) -> SettingsProvider:
        return self._settings_provider or DatabaseSettingsProvider(session)

    # ============ 下单 ============

    async def create_from_product(self, seller_id: int, draft: OrderDraft) -> Order:
        """按目录商品下单"""
        for index, item in enumerate(draft.items):
            if item.template_id or not item.product_id:
                raise ValidationError(
                    code="MISSING_PRODUCT",
                    detail=f"Item {index}: product_id is required for product orders",
                    item_index=index
                )
        return await self._create(seller_id, draft)

    async def create_from_template(self, seller_id: int, draft: OrderDraft) -> Order:
        """按卖家模板下单"""
        for index, item in enumerate(draft.items):
            if not item.template_id:
                raise ValidationError(
                    code="MISSING_TEMPLATE",
                    detail=f"Item {index}: template_id is required for template orders",
                    item_index=index
                )
        return await self._create(seller_id, draft)

    async def _create(self, seller_id: int, draft: OrderDraft) -> Order:
        order = await self.execute_with_transaction(
            self._create_order_tx,
            seller_id,
            draft,
            conflict_retries=ORDER_CREATE_RETRIES
        )
        self.logger.info(
            "Order created",
            order_id=order.id,
            order_number=order.order_number,
            seller_id=seller_id,
            cost=str(order.unit_price),
            total_amount=str(order.total_amount),
        )
        return order

    async def _create_order_tx(self, session: AsyncSession, seller_id: int, draft: OrderDraft) -> Order:
        """
        事务中的下单逻辑

        任何一步失败整体回滚：不会出现有订单无扣款或有扣款无订单。
        """
        seller = await session.get(User, seller_id)
        if seller is None or not seller.is_active:
            raise ForbiddenError(code="SELLER_INACTIVE", detail="Seller account is not available")
        if not seller.is_verified:
            raise AccountNotActivatedError()

        # 1. 重下单来源校验（在任何修改之前）
        sources = await self._validate_reorder_sources(session, seller_id, draft.items)

        # 2. 定价
        resolver = PricingResolver(self.settings_for(session))
        snapshot = await resolver.resolve(
            session,
            seller_id,
            draft.items,
            draft.include_packaging,
            draft.address_city,
            draft.total_price,
        )

        # 3. 客户去重（按卖家 + 电话）
        customer = await self._upsert_customer(session, seller_id, draft)

        # 4. 订单落库
        order = self._build_order(seller_id, customer, draft, snapshot)
        order.order_number = await next_order_number(session)
        if len(sources) == 1:
            order.reordered_from_id = next(iter(sources))
        session.add(order)
        await session.flush()

        # 5. 扣款（余额不足时抛出，整个事务回滚）
        await BalanceLedger.reserve(
            session, seller_id, snapshot.total_cost,
            order_id=order.id,
            notes=f"Production of order {order.order_number}"
        )

        # 6. 客户统计、重下单标记、积分
        customer.record_order(order.total_amount, utcnow())
        for source in sources.values():
            source.is_reordered = True

        await BalanceLedger.award_order_points(session, seller, order.id, self.settings_for(session))

        session.add(OrderStatusHistory(
            order_id=order.id,
            old_status=None,
            new_status=order.status,
            source="create",
            notes="Order created",
            updated_by=seller_id,
        ))
        await session.flush()
        return order

    async def _validate_reorder_sources(
        self,
        session: AsyncSession,
        seller_id: int,
        items: List[LineItemRequest],
    ) -> Dict[int, Order]:
        """校验重下单来源：必须属于当前卖家且未被重下单过，同一请求内不可重复引用"""
        referenced: Dict[int, int] = {}
        for index, item in enumerate(items):
            source_id = item.reorder_from_order_id
            if not source_id:
                continue
            if source_id in referenced:
                raise ReorderConflictError(
                    f"Item {index}: order {source_id} is referenced more than once",
                    item_index=index,
                    source_order_id=source_id
                )
            referenced[source_id] = index

        if not referenced:
            return {}

        result = await session.execute(
            select(Order).where(Order.id.in_(list(referenced))).with_for_update()
        )
        sources = {order.id: order for order in result.scalars().all()}

        for source_id, index in referenced.items():
            source = sources.get(source_id)
            if source is None or source.user_id != seller_id:
                raise ReorderConflictError(
                    f"Item {index}: order {source_id} not found",
                    item_index=index,
                    source_order_id=source_id
                )
            if source.is_reordered:
                raise ReorderConflictError(
                    f"Item {index}: order {source.order_number} has already been reordered",
                    item_index=index,
                    source_order_id=source_id
                )
        return sources

    async def _upsert_customer(self, session: AsyncSession, seller_id: int, draft: OrderDraft) -> Customer:
        phone = normalize_phone(draft.customer_phone)
        result = await session.execute(
            select(Customer).where(Customer.user_id == seller_id, Customer.phone == phone)
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            customer = Customer(
                user_id=seller_id,
                name=draft.customer_name,
                email=draft.customer_email,
                phone=phone,
                total_orders=0,
                total_spent=Decimal("0.00"),
            )
            session.add(customer)
        else:
            customer.name = draft.customer_name
            if draft.customer_email:
                customer.email = draft.customer_email
        await session.flush()
        return customer

    def _build_order(
        self,
        seller_id: int,
        customer: Customer,
        draft: OrderDraft,
        snapshot: PricingSnapshot,
    ) -> Order:
        first = snapshot.lines[0]
        template_ids = {line.template_id for line in snapshot.lines if line.template_id}
        product_ids = {line.product_id for line in snapshot.lines}
        return Order(
            user_id=seller_id,
            customer_id=customer.id,
            product_id=first.product_id if len(product_ids) == 1 else None,
            template_id=next(iter(template_ids)) if len(template_ids) == 1 else None,
            status=OrderStatus.PENDING.value,
            recipient_name=draft.customer_name,
            recipient_phone=draft.customer_phone.strip(),
            recipient_email=draft.customer_email,
            address_street=draft.address_street,
            address_city=draft.address_city.strip(),
            address_postal_code=draft.address_postal_code,
            address_country=draft.address_country,
            quantity=snapshot.total_quantity,
            unit_price=snapshot.total_cost,
            items_cost=snapshot.items_cost,
            packaging_fee=snapshot.packaging_fee,
            shipping_fee=snapshot.shipping_fee,
            include_packaging=draft.include_packaging,
            selling_price=snapshot.customer_total,
            total_amount=snapshot.customer_total,
            allow_reshipping=True,
            is_reordered=False,
            notes=draft.notes,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    template_id=line.template_id,
                    product_name=line.product_name,
                    color=line.color,
                    size=line.size,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    line_cost=line.line_cost,
                    reorder_from_order_id=line.reorder_from_order_id,
                )
                for line in snapshot.lines
            ],
        )

    # ============ 状态 ============

    async def get_order(self, order_id: int, actor: User) -> Order:
        """读取订单（非管理员只能看自己的）"""
        async def _get(session: AsyncSession) -> Order:
            order = await session.get(Order, order_id)
            self._check_visible(order, order_id, actor)
            return order
        return await self.execute_with_session(_get)

    def _check_visible(self, order: Optional[Order], order_id: int, actor: User) -> None:
        if order is None or (not actor.can_manage_orders and order.user_id != actor.id):
            raise NotFoundError(code="ORDER_NOT_FOUND", resource=f"Order {order_id}")

    @staticmethod
    def _require_privileged(actor: User) -> None:
        if not actor.can_manage_orders:
            raise ForbiddenError(code="MANAGE_ORDERS_REQUIRED", detail="Order management permission required")

    async def update_status(
        self,
        order_id: int,
        actor: User,
        status: str,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        """
        手动修改状态（管理员/员工）

        不经过承运商关键词分类，直接设置规范状态，
        但退货副作用和签收回款规则同样生效。
        """
        self._require_privileged(actor)
        new_status = normalize_status(status)
        return await self.execute_with_transaction(
            OrderLifecycle.apply_status,
            order_id,
            new_status,
            "manual",
            updated_by=actor.id,
            notes=notes,
        )

    async def toggle_reshipping(self, order_id: int, actor: User) -> bool:
        """切换重发开关，返回新值；已退货订单不允许开启"""
        self._require_privileged(actor)

        async def _toggle(session: AsyncSession) -> bool:
            order = await OrderLifecycle.lock_order(session, order_id)
            if order.status == OrderStatus.RETURNED.value:
                order.allow_reshipping = False
                raise ConflictError(
                    code="RESHIPPING_NOT_ALLOWED",
                    detail="Returned orders cannot be reshipped; create a reorder instead"
                )
            order.allow_reshipping = not order.allow_reshipping
            await session.flush()
            self.logger.info(
                "Order reshipping toggled",
                order_id=order.id,
                order_number=order.order_number,
                allow_reshipping=order.allow_reshipping,
                actor_id=actor.id,
            )
            return order.allow_reshipping

        return await self.execute_with_transaction(_toggle)

    # ============ 承运商 ============

    async def ship(
        self,
        order_id: int,
        actor: User,
        gateway: CarrierGateway,
        note: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        提交承运商发货

        1. 会话内校验发货条件（不跨网络调用持有事务）
        2. 调用承运商建单，失败抛出 ShippingFailureError，订单不变
        3. 新事务内写入运单号，状态置为 PRINTED
        """
        order = await self.get_order(order_id, actor)

        if not actor.can_manage_orders:
            if order.tracking_number:
                raise ConflictError(
                    code="ORDER_ALREADY_SHIPPED",
                    detail=f"Order {order.order_number} already has tracking number {order.tracking_number}"
                )
            if not order.allow_reshipping:
                raise ForbiddenError(
                    code="RESHIPPING_NOT_ALLOWED",
                    detail=f"Order {order.order_number} is not allowed to be shipped"
                )

        parcel = await gateway.create_parcel(order, note)

        async def _persist(session: AsyncSession) -> TransitionResult:
            locked = await OrderLifecycle.lock_order(session, order_id)
            if locked.tracking_number and locked.tracking_number != order.tracking_number:
                self.logger.warning(
                    "Order tracking number changed while shipping",
                    order_id=order_id,
                    previous=locked.tracking_number,
                    new=parcel.tracking_code,
                )
            locked.tracking_number = parcel.tracking_code
            locked.shipped_at = utcnow()
            locked.allow_reshipping = False
            # apply_status 会以 populate_existing 重新加锁读取，先落库运单字段
            await session.flush()
            return await OrderLifecycle.apply_status(
                session, order_id, OrderStatus.PRINTED.value, "ship",
                updated_by=actor.id,
                notes=note,
            )

        transition = await self.execute_with_transaction(_persist)
        self.logger.info(
            "Order shipped",
            order_id=order_id,
            order_number=transition.order.order_number,
            carrier=gateway.name,
            tracking_number=parcel.tracking_code,
            actor_id=actor.id,
        )
        return {
            "order": transition.order,
            "tracking_number": parcel.tracking_code,
            "carrier_response": parcel.response,
        }

    async def refresh_from_carrier(
        self,
        order_id: int,
        tracking_number: str,
        gateway: CarrierGateway,
        source: str,
    ) -> CarrierRefresh:
        """
        拉取承运商状态并应用（追踪与对账共用）

        承运商调用失败只记录日志并返回错误，不抛出。
        """
        refresh = CarrierRefresh(order_id=order_id)
        try:
            tracking = await gateway.track_parcel(tracking_number)
        except PodFlowException as e:
            refresh.error = e.detail or e.title
        except Exception as e:
            self.logger.error(
                "Carrier tracking call failed",
                order_id=order_id,
                tracking_number=tracking_number,
                carrier=gateway.name,
                exc_info=True,
            )
            refresh.error = str(e) or type(e).__name__
        else:
            refresh.tracking = tracking.response
            if tracking.raw_status:
                refresh.transition = await self.execute_with_transaction(
                    OrderLifecycle.apply_carrier_status,
                    order_id,
                    tracking.raw_status,
                    gateway.classify_status,
                    source,
                )
            else:
                self.logger.warning(
                    "Carrier tracking response without status",
                    order_id=order_id,
                    tracking_number=tracking_number,
                    carrier=gateway.name,
                )
        return refresh

    async def track(self, order_id: int, actor: User, gateway: CarrierGateway) -> Dict[str, Any]:
        """查询承运商轨迹，并同步订单状态"""
        order = await self.get_order(order_id, actor)
        if not order.tracking_number:
            raise ValidationError(
                code="NO_TRACKING_NUMBER",
                detail=f"Order {order.order_number} has not been shipped yet"
            )

        refresh = await self.refresh_from_carrier(order.id, order.tracking_number, gateway, "track")
        current = refresh.transition.order if refresh.transition else order
        return {
            "order": current,
            "tracking": refresh.tracking,
            "synced": refresh.transition is not None,
            "changed": refresh.changed,
            "error": refresh.error,
        }

    # ============ 统计 ============

    async def order_stats(self, seller_id: int) -> Dict[str, Any]:
        """卖家订单统计"""
        async def _stats(session: AsyncSession) -> Dict[str, Any]:
            paid = Order.status == OrderStatus.PAID.value
            result = await session.execute(
                select(
                    func.count(Order.id),
                    func.sum(case((Order.status == OrderStatus.PENDING.value, 1), else_=0)),
                    func.sum(case((paid, 1), else_=0)),
                    func.sum(case((paid, Order.total_amount), else_=0)),
                ).where(Order.user_id == seller_id)
            )
            total, pending, paid_count, revenue = result.one()
            return {
                "total_orders": total or 0,
                "pending_orders": int(pending or 0),
                "paid_orders": int(paid_count or 0),
                "paid_revenue": Decimal(str(revenue or 0)).quantize(Decimal("0.01")),
            }
        return await self.execute_with_session(_stats)


