"""
当前用户依赖
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pod_core.database import get_async_session
from pod_core.models.users import User
from pod_core.utils.errors import ForbiddenError, UnauthorizedError


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_async_session)
) -> User:
    """加载 request.state.user_id 对应的用户，不存在或已停用时返回 401"""
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise UnauthorizedError(
            code="MISSING_CREDENTIALS",
            detail="Missing authentication credentials"
        )

    user = await session.get(User, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError(
            code="INVALID_USER",
            detail="User not found or inactive"
        )
    return user


async def require_order_manager(current_user: User = Depends(get_current_user)) -> User:
    """管理员或持有 manage_orders 权限的员工"""
    if not current_user.can_manage_orders:
        raise ForbiddenError(
            code="MANAGE_ORDERS_REQUIRED",
            detail="Order management permission required"
        )
    return current_user
