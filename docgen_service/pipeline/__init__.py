"""
流水线模块 - 消息接收、请求协调与结果发布

子模块：
- stages: 处理阶段与消息处置定义
- stats: 进程级统计
- publisher: 结果发布（带重试）
- coordinator: 单请求处理与处置决策
- worker: 拉取循环、准入控制、优雅关停
"""

from .coordinator import RequestCoordinator
from .publisher import ResultPublisher
from .stages import Disposition, StageEnum
from .stats import ServiceStats, StatsSnapshot
from .worker import IntakeWorker

__all__ = [
    "Disposition",
    "StageEnum",
    "ServiceStats",
    "StatsSnapshot",
    "ResultPublisher",
    "RequestCoordinator",
    "IntakeWorker",
]
