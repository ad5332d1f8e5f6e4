"""
Pytest 配置和 fixtures
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional, Union

import pytest
import pytest_asyncio
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

import pod_core.database as database
from pod_core.config import get_settings
from pod_core.database import DatabaseManager
from pod_core.models import Order, Product, Template, User
from pod_core.services.carrier import ParcelCreated, ParcelTracking
from pod_core.services.orders import OrderDraft, OrdersService
from pod_core.services.pricing import LineItemRequest
from pod_core.services.settings_provider import StaticSettingsProvider
from plugins.pod.carriers.elitespeed.status_mapping import classify_status


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """每个测试使用干净的配置（不读取本地 .env）"""
    monkeypatch.setenv("POD__LOG_FORMAT", "text")
    monkeypatch.setenv("POD__HUB_CITY", "casablanca")
    monkeypatch.delenv("POD__ELITESPEED_WEBHOOK_TOKEN", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_manager(tmp_path, monkeypatch) -> AsyncGenerator[DatabaseManager, None]:
    """sqlite 测试数据库，替换全局数据库管理器"""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'podflow_test.db'}")
    await manager.create_tables()
    monkeypatch.setattr(database, "_db_manager", manager)

    yield manager

    await manager.drop_tables()
    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager) -> AsyncGenerator[AsyncSession, None]:
    """数据库会话 fixture"""
    async with db_manager.get_session() as session:
        yield session
        await session.rollback()


@dataclass
class Seed:
    """测试基础数据"""
    admin: User
    employee: User
    seller: User
    other_seller: User
    referrer: User
    unverified: User
    tshirt: Product
    hoodie: Product
    template: Template
    pending_template: Template


@pytest_asyncio.fixture
async def seed(db_manager) -> Seed:
    """
    管理员、员工、卖家与商品目录

    T-Shirt 基础价 75.00（正面 +15.00，背面 +20.00），
    卖家余额 500.00，由 referrer 推荐。
    """
    async with db_manager.get_transaction() as session:
        admin = User(email="admin@podflow.test", name="Admin", role="admin", is_verified=True)
        employee = User(
            email="staff@podflow.test", name="Staff", role="employee",
            permissions=["manage_orders"], is_verified=True
        )
        referrer = User(email="referrer@podflow.test", name="Referrer", is_verified=True, referral_code="REF-001")
        session.add_all([admin, employee, referrer])
        await session.flush()

        seller = User(
            email="seller@podflow.test", name="Seller", is_verified=True,
            balance=Decimal("500.00"), points=0, referred_by_id=referrer.id
        )
        other_seller = User(
            email="other@podflow.test", name="Other Seller", is_verified=True,
            balance=Decimal("500.00")
        )
        unverified = User(email="new@podflow.test", name="New Seller", is_verified=False)
        session.add_all([seller, other_seller, unverified])

        tshirt = Product(
            name="T-Shirt",
            base_price=Decimal("75.00"),
            available_colors=["Black", "White"],
            available_sizes=["S", "M", "L"],
            views=[
                {"key": "front", "name": "Front", "price": "15.00"},
                {"key": "back", "name": "Back", "price": "20.00"},
            ],
        )
        hoodie = Product(
            name="Hoodie",
            base_price=Decimal("120.00"),
            available_colors=["Grey"],
            available_sizes=["M", "L"],
            views=[{"key": "front", "name": "Front", "price": "25.00"}],
        )
        session.add_all([tshirt, hoodie])
        await session.flush()

        template = Template(
            user_id=seller.id,
            product_id=tshirt.id,
            name="Sunset logo",
            status="approved",
            colors=["Black"],
            sizes=["M", "L"],
            design_config={
                "view_states": {
                    "front": {"objects": [{"type": "image", "src": "sunset.png"}]},
                    "back": {"objects": []},
                }
            },
        )
        pending_template = Template(
            user_id=seller.id,
            product_id=tshirt.id,
            name="Draft",
            status="pending",
            design_config={},
        )
        session.add_all([template, pending_template])
        await session.flush()

    return Seed(
        admin=admin,
        employee=employee,
        seller=seller,
        other_seller=other_seller,
        referrer=referrer,
        unverified=unverified,
        tshirt=tshirt,
        hoodie=hoodie,
        template=template,
        pending_template=pending_template,
    )


@pytest.fixture
def settings_provider() -> StaticSettingsProvider:
    """包装 5.00，卡萨布兰卡运费 20.00，其他城市 40.00"""
    return StaticSettingsProvider({
        "packaging_price": Decimal("5.00"),
        "shipping_casablanca": Decimal("20.00"),
        "shipping_other": Decimal("40.00"),
        "points_per_order": 10,
        "referral_points_referrer": 100,
    })


@pytest.fixture
def orders_service(db_manager, settings_provider) -> OrdersService:
    return OrdersService(db_manager, settings_provider=settings_provider)


def make_draft(
    items: List[LineItemRequest],
    city: str = "Casablanca",
    total_price: Union[str, Decimal] = "249.00",
    include_packaging: bool = True,
    phone: str = "0612345678",
    **kwargs
) -> OrderDraft:
    return OrderDraft(
        customer_name=kwargs.pop("customer_name", "Yassine El Amrani"),
        customer_phone=phone,
        address_street=kwargs.pop("address_street", "12 Rue Ibn Batouta"),
        address_city=city,
        items=items,
        total_price=Decimal(str(total_price)),
        include_packaging=include_packaging,
        **kwargs
    )


def tshirt_line(product_id: int, quantity: int = 1, **kwargs) -> LineItemRequest:
    return LineItemRequest(
        product_id=product_id,
        color=kwargs.pop("color", "Black"),
        size=kwargs.pop("size", "M"),
        quantity=quantity,
        **kwargs
    )


async def get_user_balance(db_manager: DatabaseManager, user_id: int) -> tuple:
    async with db_manager.get_session() as session:
        result = await session.execute(select(User.balance, User.points).where(User.id == user_id))
        return tuple(result.one())


async def set_user_balance(db_manager: DatabaseManager, user_id: int, balance: Decimal, points: int = 0) -> None:
    async with db_manager.get_transaction() as session:
        await session.execute(
            update(User).where(User.id == user_id).values(balance=balance, points=points)
        )


async def set_order_state(db_manager: DatabaseManager, order_id: int, **values) -> None:
    """直接改写订单字段（模拟承运商流程中的某个阶段）"""
    async with db_manager.get_transaction() as session:
        await session.execute(update(Order).where(Order.id == order_id).values(**values))


async def load_order(db_manager: DatabaseManager, order_id: int) -> Order:
    async with db_manager.get_session() as session:
        return await session.get(Order, order_id)


class FakeGateway:
    """
    内存承运商网关

    statuses: 运单号 → 原始状态文本，或要抛出的异常
    """

    name = "fake"

    def __init__(
        self,
        statuses: Optional[Dict[str, Union[str, Exception, None]]] = None,
        tracking_code: str = "ES-1000",
        create_error: Optional[Exception] = None,
    ):
        self.statuses = statuses or {}
        self.tracking_code = tracking_code
        self.create_error = create_error
        self.created: List[str] = []
        self.tracked: List[str] = []

    async def create_parcel(self, order: Order, note: Optional[str] = None) -> ParcelCreated:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(order.order_number)
        return ParcelCreated(
            tracking_code=self.tracking_code,
            response={"success": True, "code_shippment": self.tracking_code},
        )

    async def track_parcel(self, tracking_code: str) -> ParcelTracking:
        self.tracked.append(tracking_code)
        outcome = self.statuses.get(tracking_code)
        if isinstance(outcome, Exception):
            raise outcome
        return ParcelTracking(raw_status=outcome, response={"statut": outcome})

    def classify_status(self, raw_status: str, current_status: str) -> str:
        return classify_status(raw_status, current_status)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()
