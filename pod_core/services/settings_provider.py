"""
平台设置读取
定价与积分逻辑通过 SettingsProvider 取值，测试中可注入固定值
"""
import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional, Protocol, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.config import get_settings
from pod_core.models.settings import SystemSetting

logger = logging.getLogger(__name__)

# 设置键
PACKAGING_PRICE = "packaging_price"
SHIPPING_HUB = "shipping_casablanca"
SHIPPING_OTHER = "shipping_other"
POINTS_PER_ORDER = "points_per_order"
REFERRAL_POINTS_REFERRER = "referral_points_referrer"


def default_settings() -> Dict[str, Union[Decimal, int]]:
    """设置表缺失时的兜底默认值"""
    settings = get_settings()
    return {
        PACKAGING_PRICE: settings.default_packaging_price,
        SHIPPING_HUB: settings.default_shipping_hub,
        SHIPPING_OTHER: settings.default_shipping_other,
        POINTS_PER_ORDER: settings.default_points_per_order,
        REFERRAL_POINTS_REFERRER: settings.default_referral_points_referrer,
    }


class SettingsProvider(Protocol):
    """平台设置提供者接口"""

    async def get_decimal(self, key: str, default: Optional[Decimal] = None) -> Decimal:
        ...

    async def get_int(self, key: str, default: Optional[int] = None) -> int:
        ...


def _to_decimal(key: str, raw, default: Decimal) -> Decimal:
    try:
        value = Decimal(str(raw).strip())
        if not value.is_finite():
            raise InvalidOperation(f"non-finite amount: {raw!r}")
        return value.quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        logger.warning(f"设置值无法解析为金额，使用默认值: key={key}, value={raw!r}, default={default}")
        return default


def _to_int(key: str, raw, default: int) -> int:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        logger.warning(f"设置值无法解析为整数，使用默认值: key={key}, value={raw!r}, default={default}")
        return default


class DatabaseSettingsProvider:
    """从 system_settings 表读取设置，缺失或非法时回落到默认值"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._cache: Dict[str, Optional[str]] = {}

    async def _get_raw(self, key: str) -> Optional[str]:
        if key not in self._cache:
            result = await self.db.execute(
                select(SystemSetting.setting_value).where(SystemSetting.setting_key == key)
            )
            self._cache[key] = result.scalar_one_or_none()
        return self._cache[key]

    async def get_decimal(self, key: str, default: Optional[Decimal] = None) -> Decimal:
        if default is None:
            default = Decimal(str(default_settings().get(key, "0")))
        raw = await self._get_raw(key)
        if raw is None or str(raw).strip() == "":
            return default
        return _to_decimal(key, raw, default)

    async def get_int(self, key: str, default: Optional[int] = None) -> int:
        if default is None:
            default = int(default_settings().get(key, 0))
        raw = await self._get_raw(key)
        if raw is None or str(raw).strip() == "":
            return default
        return _to_int(key, raw, default)


class StaticSettingsProvider:
    """固定值设置提供者（测试与离线报价使用）"""

    def __init__(self, values: Optional[Dict[str, Union[Decimal, int, str]]] = None):
        self.values = dict(default_settings())
        self.values.update(values or {})

    async def get_decimal(self, key: str, default: Optional[Decimal] = None) -> Decimal:
        fallback = default if default is not None else Decimal("0")
        if key not in self.values:
            return fallback
        return _to_decimal(key, self.values[key], fallback)

    async def get_int(self, key: str, default: Optional[int] = None) -> int:
        fallback = default if default is not None else 0
        if key not in self.values:
            return fallback
        return _to_int(key, self.values[key], fallback)
