"""
请求协调器 - 单条消息的完整处理与处置决策

职责：
1. 反序列化请求信封（失败即永久错误）
2. 构建文档模型 -> 渲染 canonical 文本 -> 按格式并发导出
3. 按错误类型分类：发布错误响应并 ACK，或 NACK 交由重投
4. 成功时发布成功响应，发布确认后才 ACK

处置规则：
- ValidationError / RenderError            -> 错误响应 + ACK
- ExportError（重试耗尽后）                 -> 错误响应 + ACK
- ResourceUnavailableError / MemoryError   -> NACK（不发布响应）
- PublishError                             -> NACK
- 其它未预期异常                            -> 错误响应 + ACK（记录堆栈）
- CancelledError（强制关停）               -> NACK 后继续抛出

测试要点：
- test_success_markdown: 成功路径
- test_unknown_spec_type: 未知规范类型
- test_missing_field_reports_path: 缺失字段报告路径
- test_pdf_failure_retried_then_error: 导出重试耗尽
- test_resource_unavailable_nack: 资源不足 NACK
- test_memory_error_nack: 任意阶段内存不足 NACK
- test_publish_failure_nack: 发布失败 NACK
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError as PydanticValidationError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..doc_gen import DocumentModelBuilder
from ..export import FormatExporter
from ..interfaces import (
    DocGenError,
    ExportError,
    InboundMessage,
    PublishError,
    ResourceUnavailableError,
    ValidationError,
)
from ..models import (
    DocumentFormat,
    DocumentModel,
    OutputDocument,
    RequestEnvelope,
    ResponseEnvelope,
    ResponseStatus,
)
from ..render import CanonicalRenderer
from .publisher import ResultPublisher
from .stages import Disposition, StageEnum
from .stats import ServiceStats

logger = logging.getLogger(__name__)

UNKNOWN_REQUEST_ID = "unknown"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _loc_path(loc: tuple[Any, ...]) -> str:
    """pydantic 错误位置 -> 点分路径（列表下标写作 [i]）"""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path or "$"


def recover_request_id(raw: Any) -> str:
    if isinstance(raw, dict):
        value = raw.get("request_id")
        if isinstance(value, str) and value.strip():
            return value
    return UNKNOWN_REQUEST_ID


def decode_json(data: bytes) -> Any:
    try:
        return json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("$", f"JSON 解析失败: {e}") from e


def validate_envelope(raw: Any) -> RequestEnvelope:
    """校验请求信封，失败统一抛出 ValidationError"""
    if not isinstance(raw, dict):
        raise ValidationError("$", "请求应为 JSON 对象")

    try:
        return RequestEnvelope.model_validate(raw)
    except PydanticValidationError as e:
        first = e.errors()[0]
        raise ValidationError(_loc_path(tuple(first["loc"])), first["msg"]) from e


class RequestCoordinator:
    """请求协调器"""

    def __init__(
        self,
        builder: DocumentModelBuilder,
        renderer: CanonicalRenderer,
        exporter: FormatExporter,
        publisher: ResultPublisher,
        stats: ServiceStats | None = None,
        export_max_retries: int = 2,
        export_backoff_ms: int = 500,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.builder = builder
        self.renderer = renderer
        self.exporter = exporter
        self.publisher = publisher
        self.stats = stats or ServiceStats()
        self.export_max_retries = max(0, export_max_retries)
        self.export_backoff_ms = export_backoff_ms
        self.clock = clock

    async def handle(self, message: InboundMessage) -> Disposition:
        """处理一条消息，返回处置结果（由调用方 ack/nack）"""
        received_at = self.clock()
        request_id = UNKNOWN_REQUEST_ID
        stage = StageEnum.DESERIALIZE

        try:
            raw = decode_json(message.data)
            request_id = recover_request_id(raw)
            envelope = validate_envelope(raw)
            request_id = envelope.request_id
            logger.info(
                f"[{request_id}] 收到请求: type={envelope.specification_type.value}, "
                f"formats={[f.value for f in envelope.output_formats]}"
            )

            stage = StageEnum.BUILD_MODEL
            model = self.builder.build(
                envelope.specification_type,
                envelope.data,
                envelope.metadata,
                received_at,
            )

            stage = StageEnum.RENDER
            text = self.renderer.render(envelope.specification_type, model)

            stage = StageEnum.EXPORT
            documents = await self._export_all(request_id, text, envelope.output_formats, model)

        except asyncio.CancelledError:
            logger.warning(f"[{request_id}] 处理被取消（{stage.value}），消息将重投")
            self.stats.record_nack()
            raise
        except (ResourceUnavailableError, MemoryError) as e:
            logger.warning(f"[{request_id}] 资源暂不可用（{stage.value}），消息将重投: {e}")
            self.stats.record_nack()
            return Disposition.NACK
        except DocGenError as e:
            logger.error(f"[{request_id}] 请求失败（{stage.value}）: {e}")
            return await self._respond(ResponseEnvelope.failure(request_id, str(e), self.clock()))
        except Exception as e:
            logger.exception(f"[{request_id}] 未预期异常（{stage.value}）")
            return await self._respond(
                ResponseEnvelope.failure(request_id, f"内部错误: {e}", self.clock())
            )

        logger.info(f"[{request_id}] 导出完成: {len(documents)} 个文档")
        return await self._respond(ResponseEnvelope.success(request_id, documents, self.clock()))

    async def _respond(self, response: ResponseEnvelope) -> Disposition:
        """发布响应；确认后 ACK，失败 NACK"""
        try:
            await self.publisher.publish(response)
        except PublishError as e:
            logger.error(f"[{response.request_id}] {StageEnum.PUBLISH.value} 失败，消息将重投: {e}")
            self.stats.record_nack()
            return Disposition.NACK

        if response.status == ResponseStatus.SUCCESS:
            self.stats.record_success()
        else:
            self.stats.record_failure()
        return Disposition.ACK

    async def _export_all(
        self,
        request_id: str,
        text: str,
        formats: list[DocumentFormat],
        model: DocumentModel,
    ) -> list[OutputDocument]:
        """并发导出全部格式；任一失败则整体失败（不返回部分结果）"""
        results = await asyncio.gather(
            *(self._export_with_retry(request_id, text, fmt, model) for fmt in formats),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        # 瞬时资源错误优先：整条消息重投
        for error in errors:
            if isinstance(error, (ResourceUnavailableError, MemoryError)):
                raise error
        if errors:
            raise errors[0]
        return list(results)

    async def _export_with_retry(
        self,
        request_id: str,
        text: str,
        fmt: DocumentFormat,
        model: DocumentModel,
    ) -> OutputDocument:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.export_max_retries + 1),
            wait=wait_exponential(multiplier=self.export_backoff_ms / 1000),
            retry=retry_if_exception_type(ExportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    document = await self.exporter.export(text, fmt, model.metadata)
        except ExportError as e:
            raise ExportError(
                f"{fmt.value} 导出失败（已尝试 {self.export_max_retries + 1} 次）: {e}",
                kind=e.kind,
                format=fmt.value,
            ) from e

        logger.debug(f"[{request_id}] {fmt.value} 导出完成: {document.filename} ({document.size_bytes} 字节)")
        return document
