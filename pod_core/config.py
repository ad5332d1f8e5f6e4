"""
PodFlow Configuration Management
遵循约束：环境变量前缀 POD__
"""
from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, validator
from functools import lru_cache


class Settings(BaseSettings):
    """全局配置类"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="POD__",
        case_sensitive=False
    )

    # Database
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="podflow")
    db_user: str = Field(default="podflow")
    db_password: str = Field(default="")
    db_pool_size: int = Field(default=20)
    db_max_overflow: int = Field(default=40)
    # 完整连接串（设置后覆盖上面的分项配置，测试环境使用 sqlite+aiosqlite）
    db_url: Optional[str] = Field(default=None)

    # API Settings
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_prefix: str = Field(default="/api/pod/v1")
    api_title: str = Field(default="PodFlow API")
    api_version: str = Field(default="1.0.0")
    api_debug: bool = Field(default=False)

    # Celery
    celery_broker_url: str = Field(default="redis://localhost:6379/0")
    celery_result_backend: str = Field(default="redis://localhost:6379/1")
    celery_task_default_queue: str = Field(default="pod_default")
    celery_task_serializer: str = Field(default="json")
    celery_result_serializer: str = Field(default="json")
    celery_accept_content: list[str] = Field(default=["json"])
    celery_timezone: str = Field(default="UTC")
    order_sync_cron_minutes: str = Field(default="*/30")

    # Monitoring
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")  # json or text

    # EliteSpeed 承运商
    elitespeed_base_url: str = Field(default="https://Elitelivraison.com/api")
    elitespeed_api_token: str = Field(default="")
    elitespeed_webhook_token: Optional[str] = Field(default=None)
    elitespeed_timeout_seconds: float = Field(default=30.0)
    elitespeed_description_max_length: int = Field(default=255)

    # 对账
    order_sync_batch_limit: int = Field(default=200)

    # 定价与积分的兜底默认值（system_settings 表缺失时使用）
    hub_city: str = Field(default="casablanca")
    default_packaging_price: Decimal = Field(default=Decimal("5.00"))
    default_shipping_hub: Decimal = Field(default=Decimal("20.00"))
    default_shipping_other: Decimal = Field(default=Decimal("40.00"))
    default_points_per_order: int = Field(default=10)
    default_referral_points_referrer: int = Field(default=100)

    # 充值/提现限额
    min_deposit_amount: Decimal = Field(default=Decimal("100.00"))
    max_deposit_amount: Decimal = Field(default=Decimal("10000.00"))
    min_withdrawal_amount: Decimal = Field(default=Decimal("100.00"))
    max_withdrawal_amount: Decimal = Field(default=Decimal("20000.00"))

    @validator("api_prefix")
    def validate_api_prefix(cls, v):
        """确保 API 前缀符合规范"""
        if not v.startswith("/api/pod/"):
            raise ValueError("API prefix must start with /api/pod/")
        return v

    @property
    def database_url(self) -> str:
        """构建数据库连接字符串"""
        if self.db_url:
            return self.db_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def sync_database_url(self) -> str:
        """构建同步数据库连接字符串（用于 Alembic）"""
        if self.db_url:
            return self.db_url.replace("+asyncpg", "").replace("+aiosqlite", "")
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例"""
    return Settings()
