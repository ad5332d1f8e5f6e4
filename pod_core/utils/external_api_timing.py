"""
外部 API 计时工具

记录承运商等外部 API 调用的耗时，日志输出到 logs/external_api_timing.log
"""

import logging
import os
from typing import Optional

# 延迟初始化的 logger
_external_api_logger: Optional[logging.Logger] = None


def get_external_api_logger() -> logging.Logger:
    """获取外部 API 计时日志器（延迟初始化）"""
    global _external_api_logger
    if _external_api_logger is None:
        _external_api_logger = logging.getLogger("external_api_timing")
        _external_api_logger.setLevel(logging.INFO)

        if not _external_api_logger.handlers:
            project_root = os.path.dirname(os.path.dirname(os.path.dirname(
                os.path.abspath(__file__)
            )))
            log_dir = os.path.join(project_root, "logs")
            os.makedirs(log_dir, exist_ok=True)

            handler = logging.FileHandler(
                os.path.join(log_dir, "external_api_timing.log"),
                encoding="utf-8"
            )
            handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            _external_api_logger.addHandler(handler)
            _external_api_logger.propagate = False
    return _external_api_logger


def log_external_api_timing(
    service: str,
    method: str,
    endpoint: str,
    elapsed_ms: float,
    extra_info: Optional[str] = None
) -> None:
    """
    记录外部 API 调用计时

    Args:
        service: 服务名称（如 EliteSpeed）
        method: HTTP 方法（GET, POST 等）
        endpoint: API 端点
        elapsed_ms: 耗时（毫秒）
        extra_info: 额外信息（如 order_number, error 等）
    """
    logger = get_external_api_logger()
    msg = f"{service} | {method} {endpoint} | {elapsed_ms:.1f}ms"
    if extra_info:
        msg += f" | {extra_info}"
    logger.info(msg)
