"""
基础服务类
"""
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from pod_core.utils.logger import get_logger
from pod_core.utils.errors import PodFlowException, ConflictError, InternalServerError
from pod_core.database import DatabaseManager, get_db_manager


class BaseService:
    """基础服务类"""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_db_manager()
        self.logger = get_logger(self.__class__.__name__)

    async def execute_with_transaction(
        self,
        operation,
        *args,
        conflict_retries: int = 0,
        **kwargs
    ) -> Any:
        """
        在事务中执行操作

        operation 内抛出异常时整个事务回滚；
        唯一约束冲突时可按 conflict_retries 重新执行整个事务。
        """
        attempt = 0
        while True:
            try:
                async with self.db_manager.get_transaction() as session:
                    return await operation(session, *args, **kwargs)
            except PodFlowException:
                raise
            except IntegrityError as e:
                if attempt < conflict_retries:
                    attempt += 1
                    self.logger.warning(
                        "Transaction hit unique constraint, retrying",
                        attempt=attempt,
                        max_retries=conflict_retries,
                        err=str(e.orig) if e.orig else str(e),
                    )
                    continue
                self.logger.error("Transaction conflict after retries", exc_info=True)
                raise ConflictError(
                    code="CONCURRENT_UPDATE",
                    detail="The operation conflicted with a concurrent update, please retry"
                )
            except Exception as e:
                self.logger.error("Transaction operation failed", exc_info=True)
                raise InternalServerError(
                    code="TRANSACTION_FAILED",
                    detail=f"Database transaction failed: {str(e)}"
                )

    async def execute_with_session(
        self,
        operation,
        *args,
        **kwargs
    ) -> Any:
        """使用数据库会话执行只读操作"""
        try:
            async with self.db_manager.get_session() as session:
                return await operation(session, *args, **kwargs)
        except PodFlowException:
            raise
        except Exception as e:
            self.logger.error("Session operation failed", exc_info=True)
            raise InternalServerError(
                code="SESSION_OPERATION_FAILED",
                detail=f"Database operation failed: {str(e)}"
            )
