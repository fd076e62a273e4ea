"""
流水线阶段定义

职责：
1. 定义单个请求经过的处理阶段（用于日志与错误定位）
2. 定义消息处置结果（ACK / NACK）
"""

from __future__ import annotations

from enum import Enum


class StageEnum(str, Enum):
    """请求处理阶段枚举"""
    DESERIALIZE = "DESERIALIZE"
    BUILD_MODEL = "BUILD_MODEL"
    RENDER = "RENDER"
    EXPORT = "EXPORT"
    PUBLISH = "PUBLISH"


class Disposition(str, Enum):
    """消息处置"""
    ACK = "ack"    # 已处理完毕（成功或永久失败），不再重投
    NACK = "nack"  # 瞬时失败，交由传输层重投
