"""
Pub/Sub 传输层 - Google Cloud Pub/Sub 实现 IMessageTransport

职责：
1. streaming pull 订阅请求消息（客户端线程回调），桥接到 asyncio 队列
2. ack/nack 由流水线在处理完成后调用
3. 发布响应消息，等待服务端返回 message_id

依赖：
- google-cloud-pubsub

约束：
- FlowControl.max_messages 与准入并发一致，未处理的消息留在服务端
- 关闭时对已拉取但未分发的消息 nack
"""

from __future__ import annotations

import asyncio
import logging

from google.api_core.exceptions import GoogleAPIError
from google.cloud import pubsub_v1

from ..interfaces import IMessageTransport, InboundMessage, TransportError

logger = logging.getLogger(__name__)


class PubSubTransport(IMessageTransport):
    """Pub/Sub 传输实现"""

    def __init__(
        self,
        project_id: str,
        subscription: str,
        max_messages: int = 10,
        subscriber: pubsub_v1.SubscriberClient | None = None,
        publisher: pubsub_v1.PublisherClient | None = None,
    ):
        if not project_id:
            raise ValueError("pubsub.project_id 未配置")
        self.project_id = project_id
        self.subscription = subscription
        self.max_messages = max_messages
        self.subscriber = subscriber or pubsub_v1.SubscriberClient()
        self.publisher = publisher or pubsub_v1.PublisherClient()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._streaming = None

    @property
    def subscription_path(self) -> str:
        if self.subscription.startswith("projects/"):
            return self.subscription
        return self.subscriber.subscription_path(self.project_id, self.subscription)

    def topic_path(self, topic: str) -> str:
        if topic.startswith("projects/"):
            return topic
        return self.publisher.topic_path(self.project_id, topic)

    def _start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        flow_control = pubsub_v1.types.FlowControl(max_messages=self.max_messages)
        self._streaming = self.subscriber.subscribe(
            self.subscription_path,
            callback=self._on_message,
            flow_control=flow_control,
        )
        logger.info(f"已订阅: {self.subscription_path} (max_messages={self.max_messages})")

    def _on_message(self, message) -> None:
        # 订阅客户端线程中调用
        self._loop.call_soon_threadsafe(self._queue.put_nowait, message)

    async def receive(self, timeout: float | None = None) -> InboundMessage | None:
        if self._streaming is None:
            self._start()

        if self._streaming.done():
            error = self._streaming.exception()
            self._streaming = None
            raise TransportError(f"订阅拉取中断: {error}")

        try:
            message = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

        return InboundMessage(
            message_id=message.message_id,
            data=message.data,
            attributes=dict(message.attributes),
            handle=message,
        )

    async def ack(self, message: InboundMessage) -> None:
        message.handle.ack()

    async def nack(self, message: InboundMessage) -> None:
        message.handle.nack()

    async def publish(
        self,
        topic: str,
        payload: bytes,
        attributes: dict[str, str] | None = None,
    ) -> str:
        try:
            future = self.publisher.publish(self.topic_path(topic), payload, **(attributes or {}))
            return await asyncio.wrap_future(future)
        except GoogleAPIError as e:
            raise TransportError(f"发布到 {topic} 失败: {e}") from e

    async def close(self) -> None:
        if self._streaming is not None:
            self._streaming.cancel()
            self._streaming = None
        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait().nack()
        await asyncio.to_thread(self.subscriber.close)
        await asyncio.to_thread(self.publisher.stop)
        logger.info("Pub/Sub 连接已关闭")
