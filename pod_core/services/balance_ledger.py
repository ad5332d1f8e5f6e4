"""
余额账本服务
卖家余额/积分的所有变动都经过这里：原子增减 + 流水记录
调用方负责事务边界，这里只 flush 不 commit
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.config import get_settings
from pod_core.models.ledger import BalanceTransaction, Deposit, TransactionType, Withdrawal
from pod_core.models.orders import Order
from pod_core.models.users import User
from pod_core.utils.errors import (
    ConflictError, InsufficientBalanceError, InsufficientPointsError,
    InvalidPointsAmountError, NotFoundError, ValidationError
)
from .pricing import money
from .settings_provider import SettingsProvider, POINTS_PER_ORDER, REFERRAL_POINTS_REFERRER

logger = logging.getLogger(__name__)

# 积分兑换：每 1000 积分兑换 100 余额
POINTS_EXCHANGE_UNIT = 1000
POINTS_EXCHANGE_VALUE = Decimal("100.00")

# 提现手续费：2%，最低 10，最高 200
WITHDRAWAL_FEE_RATE = Decimal("0.02")
WITHDRAWAL_FEE_MIN = Decimal("10.00")
WITHDRAWAL_FEE_MAX = Decimal("200.00")


def utcnow():
    """返回UTC时区的当前时间"""
    return datetime.now(timezone.utc)


def calculate_withdrawal_fee(amount: Decimal) -> Decimal:
    """计算提现手续费"""
    fee = money(Decimal(amount) * WITHDRAWAL_FEE_RATE)
    return min(max(fee, WITHDRAWAL_FEE_MIN), WITHDRAWAL_FEE_MAX)


class BalanceLedger:
    """
    余额账本

    功能：
    1. 下单扣款（余额充足校验 + 条件更新，一条语句完成）
    2. 签收回款 / 充值入账 / 提现退款
    3. 下单积分与首单推荐奖励
    4. 积分兑换余额
    5. 充值、提现申请与审核
    """

    @staticmethod
    async def _journal(
        db: AsyncSession,
        user_id: int,
        transaction_type: TransactionType,
        balance_after: Decimal,
        points_after: int,
        amount: Decimal = Decimal("0.00"),
        points: int = 0,
        order_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> BalanceTransaction:
        entry = BalanceTransaction(
            user_id=user_id,
            transaction_type=transaction_type.value,
            amount=amount,
            points=points,
            balance_after=balance_after,
            points_after=points_after,
            order_id=order_id,
            notes=notes,
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def get_balance(db: AsyncSession, user_id: int) -> tuple[Decimal, int]:
        """读取当前余额与积分"""
        result = await db.execute(
            select(User.balance, User.points).where(User.id == user_id)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(code="USER_NOT_FOUND", resource=f"User {user_id}")
        return row.balance, row.points

    @staticmethod
    async def reserve(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        transaction_type: TransactionType = TransactionType.ORDER_DEBIT,
        order_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Decimal:
        """
        扣减余额（原子操作）

        余额校验与扣减在同一条条件 UPDATE 中完成，
        余额不足时不产生任何修改。

        Returns:
            扣减后的余额

        Raises:
            InsufficientBalanceError: 余额不足
        """
        amount = money(amount)
        if amount < 0:
            raise ValidationError(code="INVALID_AMOUNT", detail="Amount must not be negative")

        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .returning(User.balance, User.points)
        )
        row = result.one_or_none()
        if row is None:
            balance, _ = await BalanceLedger.get_balance(db, user_id)
            logger.warning(f"余额不足: user_id={user_id}, required={amount}, balance={balance}")
            raise InsufficientBalanceError(required=amount, balance=balance)

        await BalanceLedger._journal(
            db, user_id, transaction_type,
            balance_after=row.balance,
            points_after=row.points,
            amount=-amount,
            order_id=order_id,
            notes=notes,
        )
        logger.info(f"扣款成功: user_id={user_id}, amount={amount}, balance={row.balance}, type={transaction_type.value}")
        return row.balance

    @staticmethod
    async def credit(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        transaction_type: TransactionType,
        order_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Decimal:
        """增加余额（原子操作），返回增加后的余额"""
        amount = money(amount)
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + amount)
            .returning(User.balance, User.points)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(code="USER_NOT_FOUND", resource=f"User {user_id}")

        await BalanceLedger._journal(
            db, user_id, transaction_type,
            balance_after=row.balance,
            points_after=row.points,
            amount=amount,
            order_id=order_id,
            notes=notes,
        )
        logger.info(f"入账成功: user_id={user_id}, amount={amount}, balance={row.balance}, type={transaction_type.value}")
        return row.balance

    @staticmethod
    async def add_points(
        db: AsyncSession,
        user_id: int,
        points: int,
        transaction_type: TransactionType = TransactionType.POINTS_AWARD,
        order_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        """增加积分（原子操作），返回增加后的积分"""
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + points)
            .returning(User.balance, User.points)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(code="USER_NOT_FOUND", resource=f"User {user_id}")

        await BalanceLedger._journal(
            db, user_id, transaction_type,
            balance_after=row.balance,
            points_after=row.points,
            points=points,
            order_id=order_id,
            notes=notes,
        )
        return row.points

    @staticmethod
    async def award_order_points(
        db: AsyncSession,
        seller: User,
        order_id: int,
        settings_provider: SettingsProvider,
    ) -> Dict[str, Any]:
        """
        下单积分奖励

        - 卖家每单获得 points_per_order 积分
        - 卖家由他人推荐且这是其第一笔订单时，推荐人获得一次性奖励
          （订单已写入后统计卖家订单数，恰好为 1 才发放）
        """
        awarded = {"seller_points": 0, "referrer_id": None, "referrer_points": 0}

        points_per_order = await settings_provider.get_int(POINTS_PER_ORDER)
        if points_per_order > 0:
            await BalanceLedger.add_points(
                db, seller.id, points_per_order,
                order_id=order_id,
                notes="Order points"
            )
            awarded["seller_points"] = points_per_order

        if seller.referred_by_id:
            order_count = await db.scalar(
                select(func.count(Order.id)).where(Order.user_id == seller.id)
            )
            referral_points = await settings_provider.get_int(REFERRAL_POINTS_REFERRER)
            if order_count == 1 and referral_points > 0:
                await BalanceLedger.add_points(
                    db, seller.referred_by_id, referral_points,
                    transaction_type=TransactionType.REFERRAL_BONUS,
                    order_id=order_id,
                    notes=f"Referral bonus for first order of user {seller.id}"
                )
                awarded["referrer_id"] = seller.referred_by_id
                awarded["referrer_points"] = referral_points
                logger.info(f"推荐奖励发放: referrer={seller.referred_by_id}, referred={seller.id}, points={referral_points}")

        return awarded

    @staticmethod
    async def exchange_points(db: AsyncSession, user_id: int, points: int) -> Dict[str, Any]:
        """
        积分兑换余额（1000 积分 = 100）

        积分扣减与余额增加在同一条条件 UPDATE 中完成。

        Raises:
            InvalidPointsAmountError: 积分不是 1000 的正整数倍
            InsufficientPointsError: 积分不足
        """
        if points <= 0 or points % POINTS_EXCHANGE_UNIT != 0:
            raise InvalidPointsAmountError(POINTS_EXCHANGE_UNIT)

        amount = money(POINTS_EXCHANGE_VALUE * (points // POINTS_EXCHANGE_UNIT))

        result = await db.execute(
            update(User)
            .where(User.id == user_id, User.points >= points)
            .values(points=User.points - points, balance=User.balance + amount)
            .returning(User.balance, User.points)
        )
        row = result.one_or_none()
        if row is None:
            _, current_points = await BalanceLedger.get_balance(db, user_id)
            raise InsufficientPointsError(required=points, points=current_points)

        await BalanceLedger._journal(
            db, user_id, TransactionType.POINTS_EXCHANGE,
            balance_after=row.balance,
            points_after=row.points,
            amount=amount,
            points=-points,
            notes=f"Exchanged {points} points",
        )
        logger.info(f"积分兑换成功: user_id={user_id}, points={points}, amount={amount}")
        return {
            "points_exchanged": points,
            "amount_credited": amount,
            "balance": row.balance,
            "points": row.points,
        }

    # ============ 充值 ============

    @staticmethod
    async def request_deposit(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        reference: Optional[str] = None,
    ) -> Deposit:
        """提交充值申请（审核通过后才入账）"""
        settings = get_settings()
        amount = money(amount)
        if amount < settings.min_deposit_amount or amount > settings.max_deposit_amount:
            raise ValidationError(
                code="INVALID_DEPOSIT_AMOUNT",
                detail=f"Deposit amount must be between {settings.min_deposit_amount} and {settings.max_deposit_amount}"
            )

        deposit = Deposit(user_id=user_id, amount=amount, status="PENDING", reference=reference)
        db.add(deposit)
        await db.flush()
        logger.info(f"充值申请创建: deposit_id={deposit.id}, user_id={user_id}, amount={amount}")
        return deposit

    @staticmethod
    async def review_deposit(
        db: AsyncSession,
        deposit_id: int,
        approve: bool,
        reviewer_id: int,
        notes: Optional[str] = None,
    ) -> Deposit:
        """
        审核充值：通过则入账并激活卖家账户，拒绝则仅更新状态

        只有 PENDING 状态可以审核，保证只入账一次。
        """
        result = await db.execute(
            select(Deposit).where(Deposit.id == deposit_id).with_for_update()
        )
        deposit = result.scalar_one_or_none()
        if deposit is None:
            raise NotFoundError(code="DEPOSIT_NOT_FOUND", resource=f"Deposit {deposit_id}")
        if deposit.status != "PENDING":
            raise ConflictError(
                code="DEPOSIT_ALREADY_REVIEWED",
                detail=f"Deposit {deposit_id} is already {deposit.status}"
            )

        deposit.status = "VALIDATED" if approve else "REJECTED"
        deposit.reviewed_by = reviewer_id
        deposit.reviewed_at = utcnow()
        deposit.admin_notes = notes

        if approve:
            await BalanceLedger.credit(
                db, deposit.user_id, deposit.amount,
                TransactionType.DEPOSIT,
                notes=f"Deposit #{deposit.id}"
            )
            await db.execute(
                update(User).where(User.id == deposit.user_id).values(is_verified=True)
            )

        await db.flush()
        logger.info(f"充值审核完成: deposit_id={deposit_id}, status={deposit.status}, reviewer={reviewer_id}")
        return deposit

    # ============ 提现 ============

    @staticmethod
    async def request_withdrawal(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        bank_details: Optional[str] = None,
    ) -> Withdrawal:
        """
        提交提现申请：立即从余额扣除申请金额

        同一卖家同时只能有一笔待处理的提现。
        """
        settings = get_settings()
        amount = money(amount)
        if amount < settings.min_withdrawal_amount or amount > settings.max_withdrawal_amount:
            raise ValidationError(
                code="INVALID_WITHDRAWAL_AMOUNT",
                detail=f"Withdrawal amount must be between {settings.min_withdrawal_amount} and {settings.max_withdrawal_amount}"
            )

        pending = await db.scalar(
            select(func.count(Withdrawal.id)).where(
                Withdrawal.user_id == user_id,
                Withdrawal.status == "PENDING"
            )
        )
        if pending:
            raise ConflictError(
                code="WITHDRAWAL_PENDING",
                detail="You already have a pending withdrawal request"
            )

        fee = calculate_withdrawal_fee(amount)
        withdrawal = Withdrawal(
            user_id=user_id,
            amount=amount,
            fee=fee,
            net_amount=money(amount - fee),
            status="PENDING",
            bank_details=bank_details,
        )
        db.add(withdrawal)
        await db.flush()

        await BalanceLedger.reserve(
            db, user_id, amount,
            transaction_type=TransactionType.WITHDRAWAL,
            notes=f"Withdrawal #{withdrawal.id}"
        )
        logger.info(f"提现申请创建: withdrawal_id={withdrawal.id}, user_id={user_id}, amount={amount}, fee={fee}")
        return withdrawal

    @staticmethod
    async def _close_withdrawal(
        db: AsyncSession,
        withdrawal_id: int,
        new_status: str,
        actor_id: int,
        owner_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Withdrawal:
        result = await db.execute(
            select(Withdrawal).where(Withdrawal.id == withdrawal_id).with_for_update()
        )
        withdrawal = result.scalar_one_or_none()
        if withdrawal is None or (owner_id is not None and withdrawal.user_id != owner_id):
            raise NotFoundError(code="WITHDRAWAL_NOT_FOUND", resource=f"Withdrawal {withdrawal_id}")
        if withdrawal.status != "PENDING":
            raise ConflictError(
                code="WITHDRAWAL_ALREADY_CLOSED",
                detail=f"Withdrawal {withdrawal_id} is already {withdrawal.status}"
            )

        withdrawal.status = new_status
        withdrawal.reviewed_by = actor_id
        withdrawal.reviewed_at = utcnow()
        if notes:
            withdrawal.admin_notes = notes

        if new_status in ("REJECTED", "CANCELLED"):
            await BalanceLedger.credit(
                db, withdrawal.user_id, withdrawal.amount,
                TransactionType.WITHDRAWAL_REFUND,
                notes=f"Withdrawal #{withdrawal.id} {new_status.lower()}"
            )

        await db.flush()
        logger.info(f"提现状态变更: withdrawal_id={withdrawal_id}, status={new_status}, actor={actor_id}")
        return withdrawal

    @staticmethod
    async def review_withdrawal(
        db: AsyncSession,
        withdrawal_id: int,
        approve: bool,
        reviewer_id: int,
        notes: Optional[str] = None,
    ) -> Withdrawal:
        """审核提现：通过标记为已处理，拒绝则退回金额"""
        return await BalanceLedger._close_withdrawal(
            db, withdrawal_id,
            "PROCESSED" if approve else "REJECTED",
            reviewer_id,
            notes=notes,
        )

    @staticmethod
    async def cancel_withdrawal(db: AsyncSession, withdrawal_id: int, user_id: int) -> Withdrawal:
        """卖家撤回待处理的提现，退回金额"""
        return await BalanceLedger._close_withdrawal(
            db, withdrawal_id, "CANCELLED", user_id, owner_id=user_id
        )
