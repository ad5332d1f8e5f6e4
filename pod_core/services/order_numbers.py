"""
订单号生成
格式 POD-YYYYMM-00001，每个自然月一条序列记录，
通过 INSERT ... ON CONFLICT DO UPDATE ... RETURNING 单条语句原子递增
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.models.orders import OrderSequence

ORDER_NUMBER_PREFIX = "POD"


def format_order_number(period: str, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{period}-{sequence:05d}"


async def next_order_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """获取当月下一个订单号"""
    now = now or datetime.now(timezone.utc)
    period = now.strftime("%Y%m")

    insert = sqlite_insert if db.bind.dialect.name == "sqlite" else pg_insert
    stmt = insert(OrderSequence).values(period=period, last_value=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=["period"],
        set_={"last_value": OrderSequence.last_value + 1}
    ).returning(OrderSequence.last_value)

    result = await db.execute(stmt)
    return format_order_number(period, result.scalar_one())
