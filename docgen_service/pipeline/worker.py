"""
接收工作器 - 消息拉取循环、准入并发控制、优雅关停

职责：
1. 先取得准入许可再拉取消息（许可不足时阻塞，形成背压）
2. 每条消息一个 asyncio 任务，任务结束时释放许可
3. 按 RequestCoordinator 的处置结果 ack/nack
4. 关停：立即停止准入；宽限期内等待进行中的请求；
   超时后终止转换子进程并取消剩余任务（均 NACK）；最后关闭传输层

测试要点：
- test_concurrency_bound: 同时处理的请求数不超过上限
- test_receive_error_backoff: 拉取失败后退避继续
- test_graceful_shutdown: 宽限期内完成的请求正常 ACK
- test_shutdown_timeout_nack: 宽限期超时的请求 NACK
"""

from __future__ import annotations

import asyncio
import logging

from ..interfaces import IDocumentConverter, IMessageTransport, InboundMessage, TransportError
from .coordinator import RequestCoordinator
from .stages import Disposition
from .stats import ServiceStats

logger = logging.getLogger(__name__)

# 终止子进程后，等待相关请求完成 NACK 的时间
TERMINATE_SETTLE_SEC = 5.0


class IntakeWorker:
    """接收工作器"""

    def __init__(
        self,
        transport: IMessageTransport,
        coordinator: RequestCoordinator,
        converter: IDocumentConverter | None = None,
        max_concurrent: int = 10,
        receive_timeout: float = 1.0,
        receive_backoff: float = 5.0,
        grace_period: float = 30.0,
        stats: ServiceStats | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent 必须 >= 1")
        self.transport = transport
        self.coordinator = coordinator
        self.converter = converter
        self.max_concurrent = max_concurrent
        self.receive_timeout = receive_timeout
        self.receive_backoff = receive_backoff
        self.grace_period = grace_period
        self.stats = stats or coordinator.stats

        self._admission = asyncio.Semaphore(max_concurrent)
        self._shutdown = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()

    @property
    def shutting_down(self) -> bool:
        return self._shutdown.is_set()

    def request_shutdown(self) -> None:
        """停止准入新消息（可重复调用）"""
        if not self._shutdown.is_set():
            logger.info("收到关停请求，停止接收新消息")
            self._shutdown.set()

    async def run(self) -> None:
        """主循环，直到 request_shutdown 后所有任务结束"""
        logger.info(f"工作器启动: max_concurrent={self.max_concurrent}")
        try:
            while not self._shutdown.is_set():
                if not await self._acquire_permit():
                    break
                await self._receive_one()
        finally:
            await self._drain()
            await self.transport.close()
            logger.info(f"工作器已停止: {self.stats.snapshot().to_dict()}")

    async def _acquire_permit(self) -> bool:
        """等待准入许可；关停时返回 False"""
        acquire = asyncio.ensure_future(self._admission.acquire())
        stop = asyncio.ensure_future(self._shutdown.wait())
        try:
            await asyncio.wait({acquire, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            if not acquire.done():
                acquire.cancel()
            await asyncio.gather(acquire, stop, return_exceptions=True)

        acquired = not acquire.cancelled() and acquire.exception() is None
        if acquired and self._shutdown.is_set():
            self._admission.release()
            return False
        return acquired

    async def _receive_one(self) -> None:
        """持有一个许可拉取一条消息，并派生处理任务"""
        try:
            message = await self.transport.receive(timeout=self.receive_timeout)
        except TransportError as e:
            self._admission.release()
            logger.error(f"拉取消息失败，{self.receive_backoff}s 后重试: {e}")
            await self._sleep_unless_shutdown(self.receive_backoff)
            return
        except BaseException:
            self._admission.release()
            raise

        if message is None:
            self._admission.release()
            return

        if self._shutdown.is_set():
            # 关停期间到达的消息不再处理
            self._admission.release()
            await self._settle(message, Disposition.NACK)
            return

        self.stats.request_started()
        task = asyncio.create_task(self._process(message), name=f"request-{message.message_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process(self, message: InboundMessage) -> None:
        try:
            try:
                disposition = await self.coordinator.handle(message)
            except asyncio.CancelledError:
                await self._settle(message, Disposition.NACK)
                raise
            except Exception:
                logger.exception(f"消息处理异常: {message.message_id}")
                disposition = Disposition.NACK
            await self._settle(message, disposition)
        finally:
            self.stats.request_finished()
            self._admission.release()

    async def _settle(self, message: InboundMessage, disposition: Disposition) -> None:
        try:
            if disposition == Disposition.ACK:
                await self.transport.ack(message)
            else:
                await self.transport.nack(message)
        except TransportError as e:
            # 未确认的消息由传输层在确认期限后重投
            logger.error(f"消息{disposition.value}失败: {message.message_id}: {e}")

    async def _sleep_unless_shutdown(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return

    async def _drain(self) -> None:
        """宽限期内等待进行中的任务；超时后终止并取消"""
        pending = set(self._tasks)
        if not pending:
            return

        logger.info(f"等待 {len(pending)} 个进行中的请求（宽限期 {self.grace_period}s）")
        _, pending = await asyncio.wait(pending, timeout=self.grace_period)
        if not pending:
            return

        logger.warning(f"宽限期已过，仍有 {len(pending)} 个请求未完成")
        if self.converter is not None:
            await self.converter.terminate_all()
            _, pending = await asyncio.wait(pending, timeout=TERMINATE_SETTLE_SEC)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
