"""
传输模块 - 消息订阅与发布
"""

from .pubsub import PubSubTransport

__all__ = ["PubSubTransport"]
