"""Redis Key 命名规范。

Redis 用于：
- Magic link: 一次性登录令牌（带 TTL）
- Idempotency: 请求幂等键占位
- Jobs: 按任务族拆分的队列
"""


class RedisKeys:
    """Redis Key 命名空间管理。"""

    # Magic link
    # magic-link:{token_id}
    MAGIC_LINK_PREFIX = "magic-link"

    # 幂等键
    # idempotency:{scope}:{key}
    IDEMPOTENCY_PREFIX = "idempotency"

    # 任务队列
    # jobs:{family}:{pending|active|delayed|failed|completed}
    JOBS_PREFIX = "jobs"

    @classmethod
    def magic_link(cls, token_id: str) -> str:
        """生成 magic link key。"""
        return f"{cls.MAGIC_LINK_PREFIX}:{token_id}"

    @classmethod
    def idempotency(cls, scope: str, key: str) -> str:
        """生成幂等键。

        Args:
            scope: 业务范围（如 magic-link）
            key: 客户端提供的幂等键

        Returns:
            格式化的 Redis key
        """
        return f"{cls.IDEMPOTENCY_PREFIX}:{scope}:{key.lower()}"

    @classmethod
    def job_queue(cls, family: str, state: str) -> str:
        """生成任务队列 key。

        Args:
            family: 任务族名称（如 notifications）
            state: 队列状态（pending/active/delayed/failed/completed）

        Returns:
            格式化的 Redis key
        """
        return f"{cls.JOBS_PREFIX}:{family}:{state}"
