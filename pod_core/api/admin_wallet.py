"""
余额 API - 管理员接口
充值/提现审核
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.database import get_async_session
from pod_core.models.users import User
from pod_core.services.balance_ledger import BalanceLedger
from pod_core.utils.errors import ForbiddenError
from .auth import get_current_user
from .models import ApiResponse, DepositResponse, ReviewRequest, WithdrawalResponse

router = APIRouter(prefix="/admin", tags=["Admin Wallet"])


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise ForbiddenError(code="ADMIN_REQUIRED", detail="Administrator role required")
    return current_user


@router.put("/deposits/{deposit_id}", response_model=ApiResponse[DepositResponse])
async def review_deposit(
    deposit_id: int,
    body: ReviewRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_admin)
):
    """
    审核充值（仅管理员）

    - 通过：入账并激活卖家账户
    - 只能审核 PENDING 状态，重复审核返回 409
    """
    deposit = await BalanceLedger.review_deposit(db, deposit_id, body.approve, current_user.id, body.notes)
    await db.commit()
    return ApiResponse.success(DepositResponse.model_validate(deposit))


@router.put("/withdrawals/{withdrawal_id}", response_model=ApiResponse[WithdrawalResponse])
async def review_withdrawal(
    withdrawal_id: int,
    body: ReviewRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(require_admin)
):
    """审核提现（仅管理员），拒绝时退回金额"""
    withdrawal = await BalanceLedger.review_withdrawal(db, withdrawal_id, body.approve, current_user.id, body.notes)
    await db.commit()
    return ApiResponse.success(WithdrawalResponse.model_validate(withdrawal))
