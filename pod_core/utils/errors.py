"""
PodFlow 错误处理系统
遵循 RFC7807 Problem Details 标准
"""
from decimal import Decimal
from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class ProblemDetail(BaseModel):
    """RFC7807 Problem Details 模型"""
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "type": "about:blank",
                "title": "Validation Failed",
                "status": 422,
                "detail": "Insufficient balance: required 120.00, available 80.00",
                "code": "INSUFFICIENT_BALANCE",
                "required": "120.00",
                "balance": "80.00",
            }
        },
    )

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[str] = None  # 业务错误码


class PodFlowException(Exception):
    """PodFlow 基础异常类"""

    def __init__(
        self,
        status: int,
        code: str,
        title: str,
        detail: Optional[str] = None,
        **kwargs
    ):
        self.status = status
        self.code = code
        self.title = title
        self.detail = detail
        self.extra = kwargs
        super().__init__(detail or title)

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """转换为 Problem Details 格式"""
        extra = {
            key: str(value) if isinstance(value, Decimal) else value
            for key, value in self.extra.items()
            if value is not None
        }
        return ProblemDetail(
            type="about:blank",
            title=self.title,
            status=self.status,
            detail=self.detail,
            instance=instance,
            code=self.code,
            **extra
        )

    def to_response(self, request: Optional[Request] = None) -> JSONResponse:
        """转换为 JSON 响应"""
        instance = str(request.url) if request else None
        problem = self.to_problem_detail(instance)

        return JSONResponse(
            status_code=self.status,
            content={
                "ok": False,
                "error": problem.model_dump(exclude_none=True)
            }
        )


# 预定义错误类
class BadRequestError(PodFlowException):
    """400 错误请求"""
    def __init__(self, code: str, detail: str, **kwargs):
        super().__init__(
            status=400,
            code=code,
            title="Bad Request",
            detail=detail,
            **kwargs
        )


class UnauthorizedError(PodFlowException):
    """401 未授权"""
    def __init__(self, code: str = "UNAUTHORIZED", detail: str = "Authentication required"):
        super().__init__(
            status=401,
            code=code,
            title="Unauthorized",
            detail=detail
        )


class ForbiddenError(PodFlowException):
    """403 禁止访问"""
    def __init__(self, code: str = "FORBIDDEN", detail: str = "Access denied"):
        super().__init__(
            status=403,
            code=code,
            title="Forbidden",
            detail=detail
        )


class NotFoundError(PodFlowException):
    """404 未找到"""
    def __init__(self, code: str, resource: str):
        super().__init__(
            status=404,
            code=code,
            title="Not Found",
            detail=f"{resource} not found"
        )


class ConflictError(PodFlowException):
    """409 冲突"""
    def __init__(self, code: str, detail: str, **kwargs):
        super().__init__(
            status=409,
            code=code,
            title="Conflict",
            detail=detail,
            **kwargs
        )


class ValidationError(PodFlowException):
    """422 验证失败"""
    def __init__(self, code: str, detail: str, item_index: Optional[int] = None, **kwargs):
        super().__init__(
            status=422,
            code=code,
            title="Validation Failed",
            detail=detail,
            item_index=item_index,
            **kwargs
        )


class InternalServerError(PodFlowException):
    """500 内部错误"""
    def __init__(self, code: str = "INTERNAL_ERROR", detail: str = "An internal error occurred"):
        super().__init__(
            status=500,
            code=code,
            title="Internal Server Error",
            detail=detail
        )


class ServiceUnavailableError(PodFlowException):
    """503 服务不可用"""
    def __init__(self, code: str = "SERVICE_UNAVAILABLE", detail: str = "Service temporarily unavailable"):
        super().__init__(
            status=503,
            code=code,
            title="Service Unavailable",
            detail=detail
        )


# ============ 业务错误 ============

class AccountNotActivatedError(ForbiddenError):
    """403 卖家账户未激活（尚未完成首笔充值审核）"""
    def __init__(self):
        super().__init__(
            code="ACCOUNT_NOT_ACTIVATED",
            detail="Your account is not activated yet. Please make an initial deposit to start placing orders."
        )


class InsufficientBalanceError(ValidationError):
    """422 余额不足"""
    def __init__(self, required: Decimal, balance: Decimal):
        self.required = required
        self.balance = balance
        super().__init__(
            code="INSUFFICIENT_BALANCE",
            detail=f"Insufficient balance: required {required}, available {balance}",
            required=required,
            balance=balance
        )


class ReorderConflictError(ConflictError):
    """409 重下单来源冲突（已被使用或不属于当前卖家）"""
    def __init__(self, detail: str, item_index: Optional[int] = None, source_order_id: Optional[int] = None):
        super().__init__(
            code="REORDER_CONFLICT",
            detail=detail,
            item_index=item_index,
            source_order_id=source_order_id
        )


class ShippingFailureError(PodFlowException):
    """502 承运商建单失败"""
    def __init__(self, detail: str, carrier_payload: Any = None):
        self.carrier_payload = carrier_payload
        super().__init__(
            status=502,
            code="SHIPPING_FAILED",
            title="Shipping Failed",
            detail=detail,
            carrier_payload=carrier_payload
        )


class WebhookRejectedError(PodFlowException):
    """Webhook 拒绝（400 格式错误 / 401 令牌错误 / 404 运单不存在）"""
    def __init__(self, status: int, code: str, detail: str):
        super().__init__(
            status=status,
            code=code,
            title="Webhook Rejected",
            detail=detail
        )


class InvalidPointsAmountError(BadRequestError):
    """400 积分数量不合法"""
    def __init__(self, unit: int):
        super().__init__(
            code="INVALID_POINTS_AMOUNT",
            detail=f"Points must be a multiple of {unit}"
        )


class InsufficientPointsError(BadRequestError):
    """400 积分不足"""
    def __init__(self, required: int, points: int):
        super().__init__(
            code="INSUFFICIENT_POINTS",
            detail="Insufficient points balance",
            required=required,
            points=points
        )
