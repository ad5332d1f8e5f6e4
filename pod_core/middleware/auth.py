"""
身份中间件

认证由上游网关完成，网关校验会话后通过 X-User-Id 头转发用户ID。
这里只把用户ID写入 request.state，路由层的 get_current_user 负责加载用户。
"""
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from pod_core.utils.logger import get_logger

USER_ID_HEADER = "x-user-id"


class AuthMiddleware(BaseHTTPMiddleware):
    """身份中间件"""

    # 无需身份的路径前缀（承运商回调自带令牌校验）
    PUBLIC_PREFIXES = (
        "/healthz",
        "/docs",
        "/redoc",
        "/openapi.json",
    )
    PUBLIC_SUFFIXES = (
        "/webhooks/elitespeed",
    )

    def __init__(self, app, logger=None):
        super().__init__(app)
        self.logger = logger or get_logger("middleware.auth")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user_id = None
        if self._is_public_path(request.url.path):
            return await call_next(request)

        raw_user_id = request.headers.get(USER_ID_HEADER)
        if raw_user_id:
            try:
                request.state.user_id = int(raw_user_id)
            except ValueError:
                self.logger.warning("Invalid user id header", path=request.url.path)

        return await call_next(request)

    def _is_public_path(self, path: str) -> bool:
        return path.startswith(self.PUBLIC_PREFIXES) or path.endswith(self.PUBLIC_SUFFIXES)
