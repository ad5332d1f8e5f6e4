"""
平台设置数据模型
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


class SystemSetting(Base):
    """平台可变设置（包装费、运费、积分规则等）"""
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    setting_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    setting_value: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
