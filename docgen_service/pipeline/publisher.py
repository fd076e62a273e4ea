"""
结果发布器 - 序列化响应信封并发布到响应主题

职责：
1. ResponseEnvelope -> JSON（文档内容 base64）
2. 发布到 pubsub.response_topic，附带 request_id/status 属性
3. 瞬时失败指数退避重试，耗尽后抛出 PublishError

测试要点：
- test_publish_payload: 载荷与属性
- test_publish_retry_then_success: 重试后成功
- test_publish_exhausted: 重试耗尽
"""

from __future__ import annotations

import asyncio
import json
import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..interfaces import IMessageTransport, PublishError, TransportError
from ..models import ResponseEnvelope

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (TransportError, OSError, asyncio.TimeoutError)


class ResultPublisher:
    """结果发布器"""

    def __init__(
        self,
        transport: IMessageTransport,
        topic: str,
        max_attempts: int = 5,
        backoff_ms: int = 200,
        max_backoff_ms: int = 5000,
    ):
        self.transport = transport
        self.topic = topic
        self.max_attempts = max(1, max_attempts)
        self.backoff_ms = backoff_ms
        self.max_backoff_ms = max_backoff_ms

    @staticmethod
    def serialize(response: ResponseEnvelope) -> bytes:
        return json.dumps(response.to_wire(), ensure_ascii=False).encode("utf-8")

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_ms / 1000,
                max=self.max_backoff_ms / 1000,
            ),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def publish(self, response: ResponseEnvelope) -> str:
        """发布响应，返回传输层 message_id"""
        payload = self.serialize(response)
        attributes = {
            "request_id": response.request_id,
            "status": response.status.value,
        }

        try:
            async for attempt in self._retrying():
                with attempt:
                    message_id = await self.transport.publish(self.topic, payload, attributes)
        except RETRYABLE_ERRORS as e:
            raise PublishError(
                f"响应发布失败（已尝试 {self.max_attempts} 次）: {e}"
            ) from e
        except Exception as e:
            raise PublishError(f"响应发布失败: {e}") from e

        logger.info(
            f"[{response.request_id}] 响应已发布: status={response.status.value}, "
            f"message_id={message_id}, {len(payload)} 字节"
        )
        return message_id
