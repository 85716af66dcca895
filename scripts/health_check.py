#!/usr/bin/env python3
"""健康检查脚本。

检查 Redis 连接和各任务族队列的积压情况，可作为运维脚本或监控探针使用。

使用方式：
    # 完整健康检查
    python scripts/health_check.py

    # 只检查特定组件
    python scripts/health_check.py --component redis
    python scripts/health_check.py --component queues

    # 查看死信任务
    python scripts/health_check.py --failed notifications

    # JSON 输出 / 严格退出码（用于 CI/CD）
    python scripts/health_check.py --json --strict
"""

import argparse
import asyncio
import json
import sys
from datetime import UTC, datetime
from pathlib import Path

# 添加项目根目录到 Python 路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


async def check_redis() -> dict:
    """检查 Redis 连接。"""
    from src.core.infrastructure.redis.client import RedisClient

    redis_client = RedisClient()
    try:
        result = await redis_client.health_check()
    finally:
        await redis_client.close()

    info = result.to_dict()
    info["status"] = "healthy" if result.connected else "unhealthy"
    return info


async def check_queues() -> dict:
    """检查各任务族的队列状态。"""
    from src.core.config import settings
    from src.core.domain.exceptions import JobQueueUnavailableError
    from src.core.domain.queues import JobFamilies
    from src.core.infrastructure.jobs.redis_queue import RedisJobQueue

    queues = {}
    total_backlog = 0
    total_failed = 0
    for family in JobFamilies.all_families():
        try:
            stats = await RedisJobQueue(family).stats()
        except JobQueueUnavailableError as e:
            queues[family] = {"error": str(e)}
            continue
        queues[family] = stats.to_dict()
        total_backlog += stats.pending + stats.delayed
        total_failed += stats.failed

    status = "healthy"
    if total_failed or total_backlog > settings.JOB_QUEUE_DEPTH_WARNING // 10:
        status = "warning"
    if total_backlog > settings.JOB_QUEUE_DEPTH_WARNING or any(
        "error" in q for q in queues.values()
    ):
        status = "unhealthy"

    return {
        "status": status,
        "total_backlog": total_backlog,
        "total_failed": total_failed,
        "queues": queues,
    }


async def list_failed(family: str, limit: int) -> dict:
    """列出某个任务族的死信任务。"""
    from src.core.infrastructure.jobs.redis_queue import RedisJobQueue

    jobs = await RedisJobQueue(family).failed_jobs(limit)
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "family": family,
        "failed": [
            {
                "id": job.id,
                "name": job.name,
                "attempt": job.attempt,
                "failed_at": job.failed_at.isoformat() if job.failed_at else None,
                "last_error": job.last_error,
            }
            for job in jobs
        ],
    }


CHECKERS = {
    "redis": check_redis,
    "queues": check_queues,
}


async def run_checks(components: list[str]) -> dict:
    results = await asyncio.gather(
        *(CHECKERS[name]() for name in components), return_exceptions=True
    )
    report = {
        "timestamp": datetime.now(UTC).isoformat(),
        "overall_status": "healthy",
        "components": {},
    }
    for name, result in zip(components, results, strict=True):
        if isinstance(result, Exception):
            result = {"status": "error", "error": str(result)}
        report["components"][name] = result

    statuses = [c.get("status", "unknown") for c in report["components"].values()]
    if any(s in ("unhealthy", "error") for s in statuses):
        report["overall_status"] = "unhealthy"
    elif "warning" in statuses:
        report["overall_status"] = "degraded"
    return report


def print_result(result: dict, json_output: bool = False):
    """打印检查结果。"""
    if json_output:
        print(json.dumps(result, indent=2))
        return

    print(f"\n{'=' * 60}")
    print(f"Health Check Report - {result.get('timestamp', 'N/A')}")
    print(f"{'=' * 60}")

    if "failed" in result:
        print(f"\nFailed jobs in {result['family']}: {len(result['failed'])}")
        for job in result["failed"]:
            print(f"  {job['id']} {job['name']} attempt={job['attempt']} error={job['last_error']}")
    else:
        print(f"\nOverall Status: {result['overall_status'].upper()}")
        print(f"\n{'-' * 40}")
        for component, info in result["components"].items():
            comp_status = info.get("status", "unknown")
            print(f"{component}: {comp_status}")
            if comp_status != "healthy":
                for key, value in info.items():
                    if key != "status":
                        print(f"    {key}: {value}")

    print(f"\n{'=' * 60}\n")


def main():
    """主函数。"""
    parser = argparse.ArgumentParser(description="系统健康检查脚本")
    parser.add_argument(
        "--component",
        "-c",
        type=str,
        choices=sorted(CHECKERS),
        help="只检查特定组件",
    )
    parser.add_argument(
        "--failed",
        type=str,
        metavar="FAMILY",
        help="列出指定任务族的死信任务",
    )
    parser.add_argument("--limit", type=int, default=20, help="死信任务数量上限")
    parser.add_argument("--json", action="store_true", help="输出 JSON 格式")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="严格模式：任何非 healthy 状态都返回非零退出码",
    )

    args = parser.parse_args()

    if args.failed:
        print_result(asyncio.run(list_failed(args.failed, args.limit)), args.json)
        sys.exit(0)

    components = [args.component] if args.component else list(CHECKERS)
    result = asyncio.run(run_checks(components))
    print_result(result, args.json)

    if args.strict and result["overall_status"] != "healthy":
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
