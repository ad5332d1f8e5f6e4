"""
余额 API - 卖家接口
积分兑换、充值申请、提现申请/撤回
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.database import get_async_session
from pod_core.models.users import User
from pod_core.services.balance_ledger import BalanceLedger
from .auth import get_current_user
from .models import (
    ApiResponse, DepositRequest, DepositResponse, ExchangePointsRequest,
    ExchangePointsResponse, WithdrawalRequest, WithdrawalResponse
)

router = APIRouter(tags=["Wallet"])


@router.post("/points/exchange", response_model=ApiResponse[ExchangePointsResponse])
async def exchange_points(
    body: ExchangePointsRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """
    积分兑换余额

    - 1000 积分兑换 100，必须是 1000 的整数倍
    - 积分不足返回 400 INSUFFICIENT_POINTS
    """
    result = await BalanceLedger.exchange_points(db, current_user.id, body.points)
    await db.commit()
    return ApiResponse.success(ExchangePointsResponse(**result))


@router.post("/deposits", response_model=ApiResponse[DepositResponse], status_code=201)
async def create_deposit(
    body: DepositRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """提交充值申请，审核通过后入账"""
    deposit = await BalanceLedger.request_deposit(db, current_user.id, body.amount, body.reference)
    await db.commit()
    return ApiResponse.success(DepositResponse.model_validate(deposit))


@router.post("/withdrawals", response_model=ApiResponse[WithdrawalResponse], status_code=201)
async def create_withdrawal(
    body: WithdrawalRequest,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """提交提现申请，金额立即从余额扣除"""
    withdrawal = await BalanceLedger.request_withdrawal(db, current_user.id, body.amount, body.bank_details)
    await db.commit()
    return ApiResponse.success(WithdrawalResponse.model_validate(withdrawal))


@router.post("/withdrawals/{withdrawal_id}/cancel", response_model=ApiResponse[WithdrawalResponse])
async def cancel_withdrawal(
    withdrawal_id: int,
    db: AsyncSession = Depends(get_async_session),
    current_user: User = Depends(get_current_user)
):
    """撤回待处理的提现，金额退回余额"""
    withdrawal = await BalanceLedger.cancel_withdrawal(db, withdrawal_id, current_user.id)
    await db.commit()
    return ApiResponse.success(WithdrawalResponse.model_validate(withdrawal))
