"""重试退避策略

选择筛选项失败（选项过期、页面未稳定）时按指数退避重试：
delay = base_delay * (backoff_factor ^ attempt) + jitter
"""

from __future__ import annotations

from ..common.config import config
from ..common.utils.delay import get_random_delay


class BackoffPolicy:
    """有界重试 + 指数退避"""

    def __init__(
        self,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        backoff_factor: float | None = None,
        jitter: float | None = None,
    ):
        """初始化

        Args:
            max_attempts: 最大尝试次数（含首次），默认从配置读取
            base_delay: 基础延迟时间（秒），默认从配置读取
            backoff_factor: 退避因子，默认从配置读取
            jitter: 随机波动范围（秒），默认从配置读取
        """
        self.max_attempts = max(1, max_attempts or config.traversal.select_max_attempts)
        self.base_delay = config.traversal.retry_base_delay if base_delay is None else base_delay
        self.backoff_factor = backoff_factor or config.traversal.backoff_factor
        self.jitter = config.traversal.settle_jitter if jitter is None else jitter

    def get_delay(self, attempt: int) -> float:
        """第 attempt 次失败之后的等待时间（attempt 从 0 开始）"""
        return get_random_delay(self.base_delay * (self.backoff_factor ** attempt), self.jitter)

    def should_retry(self, attempt: int) -> bool:
        """第 attempt 次尝试失败后是否还能重试"""
        return attempt + 1 < self.max_attempts
