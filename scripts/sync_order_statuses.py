"""
承运商订单状态同步脚本

功能：
- 查询所有有运单号且未到终态的订单
- 逐单调用 EliteSpeed 轨迹接口并更新状态
- 单个订单失败不影响其他订单，结束时输出汇总

使用方式：
python scripts/sync_order_statuses.py
python scripts/sync_order_statuses.py --limit 50   # 仅处理前 50 个订单
python scripts/sync_order_statuses.py --force      # 包含已退回的订单
"""
import argparse
import asyncio
import sys
from pathlib import Path

# 添加项目根目录到路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pod_core.config import get_settings
from pod_core.utils.logger import setup_logging
from plugins.pod.carriers.elitespeed.tasks.sync_task import run_status_sync


def print_summary(summary: dict) -> None:
    print()
    print("=" * 40)
    print(f"{'Status':<12}{'Count':>8}")
    print("-" * 40)
    for key in ("updated", "unchanged", "failed", "total"):
        print(f"{key.capitalize():<12}{summary[key]:>8}")
    print("=" * 40)

    for failure in summary["failures"]:
        print(f"  ✗ {failure['order_number']} ({failure['tracking_number']}): {failure['error']}")


async def main(limit: int = None, force: bool = False) -> int:
    print("🔄 Starting order status synchronization...")
    summary = await run_status_sync(limit=limit, force=force)

    if summary["total"] == 0:
        print("✅ No orders to sync.")
        return 0

    print_summary(summary)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="EliteSpeed 订单状态同步工具")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="本次最多处理的订单数（默认 POD__ORDER_SYNC_BATCH_LIMIT）"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="包含已退回的订单（已签收的订单始终跳过）"
    )
    args = parser.parse_args()

    settings = get_settings()
    setup_logging(log_level=settings.log_level, log_format="text")

    sys.exit(asyncio.run(main(limit=args.limit, force=args.force)))
