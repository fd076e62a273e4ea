"""
pytest 配置与公共 fixtures / 测试替身

使用方式：
    def test_something(make_message, fake_transport, make_coordinator):
        coordinator = make_coordinator(fake_transport)
        disposition = asyncio.run(coordinator.handle(make_message({...})))
"""

from __future__ import annotations

import asyncio
import copy
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from docgen_service.config import RuntimeConfig
from docgen_service.config.runtime_config import DEFAULT_TEMPLATES_DIR
from docgen_service.doc_gen import DocumentModelBuilder
from docgen_service.export import FormatExporter
from docgen_service.interfaces import (
    ExportError,
    ExportErrorKind,
    IDocumentConverter,
    IMessageTransport,
    InboundMessage,
    ITemplateEngine,
    ResourceUnavailableError,
    TransportError,
)
from docgen_service.models import DocumentMetadata
from docgen_service.pipeline import RequestCoordinator, ResultPublisher, ServiceStats
from docgen_service.render import CanonicalRenderer, JinjaTemplateEngine

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

RESPONSE_TOPIC = "document-generation-results"


# ============================================================================
# 测试数据
# ============================================================================

_REQ = [
    {
        "id": "REQ-001",
        "description": "The system shall authenticate users.",
        "priority": "must",
    },
    {
        "id": "REQ-002",
        "description": "The system shall log all access attempts.",
        "priority": "should",
    },
]

MINIMAL_DATA: dict[str, dict[str, Any]] = {
    "ieee830_srs": {
        "introduction": {"purpose": "Define the payment API.", "scope": "Payments only."},
        "requirements": _REQ,
    },
    "ieee830_drd": {
        "introduction": {"purpose": "Describe exchanged data."},
        "data_items": [{"id": "DI-1", "name": "Invoice", "type": "record"}],
    },
    "milstd498_srs": {
        "scope": {"identification": "CSCI-PAY v1", "system_overview": "Payment CSCI."},
        "requirements": _REQ,
    },
    "iso29148_stakeholder_requirements": {
        "introduction": {"purpose": "Capture stakeholder needs."},
        "stakeholders": [{"name": "Operator"}, {"name": "Auditor"}],
    },
    "iso29148_system_requirements": {
        "introduction": {"purpose": "System level needs.", "scope": "Whole system."},
        "requirements": _REQ,
    },
    "iso29148_software_requirements": {
        "introduction": {
            "purpose": "This SRS specifies the payment gateway software.",
            "scope": "Card payments.",
        },
        "requirements": _REQ,
    },
    "iso29148_concept_of_operations": {
        "introduction": {"purpose": "Describe operations."},
        "operational_scenarios": [{"name": "Checkout", "description": "User pays."}],
    },
    "security_scan_report": {
        "scan": {"target": "api.example.com", "tool": "ZAP"},
        "findings": [
            {"title": "Missing HSTS", "severity": "medium"},
            {"title": "SQL injection", "severity": "critical"},
        ],
    },
    "compliance_audit_report": {
        "audit": {"standard": "ISO 27001", "scope": "Production"},
        "controls": [
            {"id": "A.5.1", "status": "compliant"},
            {"id": "A.9.2", "status": "non_compliant", "finding": "Stale accounts"},
        ],
    },
    "test_execution_report": {
        "test_run": {"name": "Nightly"},
        "test_cases": [
            {"id": "TC-1", "status": "passed"},
            {"id": "TC-2", "status": "failed", "failure_reason": "Timeout"},
            {"id": "TC-3", "status": "passed"},
            {"id": "TC-4", "status": "passed"},
        ],
    },
}

METADATA: dict[str, Any] = {
    "title": "Payment Gateway SRS",
    "project_name": "Payments",
    "version": "1.2",
    "author": "Jane Analyst",
    "organization": "Example Corp",
}


# ============================================================================
# 测试替身
# ============================================================================

class FakeTransport(IMessageTransport):
    """内存传输：记录 ack/nack/publish"""

    def __init__(self, publish_failures: int = 0, receive_failures: int = 0):
        self.queue: asyncio.Queue | None = None
        self._pending: list[InboundMessage] = []
        self.acked: list[str] = []
        self.nacked: list[str] = []
        self.published: list[tuple[str, bytes, dict[str, str]]] = []
        self.publish_failures = publish_failures
        self.receive_failures = receive_failures
        self.publish_calls = 0
        self.receive_calls = 0
        self.closed = False

    def put(self, message: InboundMessage) -> None:
        if self.queue is None:
            self._pending.append(message)
        else:
            self.queue.put_nowait(message)

    async def receive(self, timeout: float | None = None) -> InboundMessage | None:
        if self.queue is None:
            self.queue = asyncio.Queue()
            for message in self._pending:
                self.queue.put_nowait(message)
            self._pending.clear()
        self.receive_calls += 1
        if self.receive_failures > 0:
            self.receive_failures -= 1
            raise TransportError("拉取失败（模拟）")
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    async def ack(self, message: InboundMessage) -> None:
        self.acked.append(message.message_id)

    async def nack(self, message: InboundMessage) -> None:
        self.nacked.append(message.message_id)

    async def publish(
        self,
        topic: str,
        payload: bytes,
        attributes: dict[str, str] | None = None,
    ) -> str:
        self.publish_calls += 1
        if self.publish_failures > 0:
            self.publish_failures -= 1
            raise TransportError("发布失败（模拟）")
        self.published.append((topic, payload, dict(attributes or {})))
        return f"pub-{len(self.published)}"

    async def close(self) -> None:
        self.closed = True

    def responses(self) -> list[dict[str, Any]]:
        return [json.loads(payload) for _, payload, _ in self.published]


class FakeConverter(IDocumentConverter):
    """
    转换器替身

    mode: "ok" | "fail" | "timeout" | "resource" | "memory"
    delay: 每次转换耗时（秒）；terminate_all 会打断等待并抛出 ResourceUnavailableError
    """

    def __init__(self, mode: str = "ok", delay: float = 0.0, fail_times: int | None = None):
        self.mode = mode
        self.delay = delay
        self.fail_times = fail_times
        self.calls = 0
        self.active = 0
        self.peak_active = 0
        self.variables: list[dict[str, str] | None] = []
        self.terminated = 0
        self._stop: asyncio.Event | None = None

    async def convert(
        self,
        text: str,
        target_format: str,
        timeout: float,
        variables: dict[str, str] | None = None,
    ) -> bytes:
        if self._stop is None:
            self._stop = asyncio.Event()
        self.calls += 1
        self.variables.append(variables)
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=self.delay)
                except asyncio.TimeoutError:
                    pass
                else:
                    raise ResourceUnavailableError("转换进程被关停终止")
        finally:
            self.active -= 1

        failing = self.fail_times is None or self.calls <= self.fail_times
        if self.mode == "fail" and failing:
            raise ExportError("pandoc exit=43", kind=ExportErrorKind.PROCESS_FAILURE)
        if self.mode == "timeout" and failing:
            raise ExportError("pandoc超时", kind=ExportErrorKind.TIMEOUT)
        if self.mode == "resource":
            raise ResourceUnavailableError("内存不足（模拟）")
        if self.mode == "memory":
            raise MemoryError()
        return b"%PDF-1.7 fake " + text[:16].encode("utf-8")

    async def terminate_all(self) -> int:
        count = self.active
        self.terminated += count
        if self._stop is not None:
            self._stop.set()
        return count


class RecordingTemplateEngine(ITemplateEngine):
    """记录调用的模板引擎（委托真实 Jinja2 引擎）"""

    def __init__(self, inner: ITemplateEngine):
        self.inner = inner
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def render(self, template_id: str, context: dict[str, Any]) -> str:
        self.calls.append((template_id, context))
        return self.inner.render(template_id, context)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """运行期配置（默认值）"""
    return RuntimeConfig()


@pytest.fixture(scope="session")
def template_engine() -> JinjaTemplateEngine:
    return JinjaTemplateEngine(DEFAULT_TEMPLATES_DIR)


@pytest.fixture
def recording_engine(template_engine: JinjaTemplateEngine) -> RecordingTemplateEngine:
    return RecordingTemplateEngine(template_engine)


@pytest.fixture
def metadata() -> DocumentMetadata:
    return DocumentMetadata(**METADATA)


@pytest.fixture
def minimal_data() -> Callable[[str], dict[str, Any]]:
    """按规范类型取最小合法数据（深拷贝）"""
    return lambda spec_type: copy.deepcopy(MINIMAL_DATA[spec_type])


@pytest.fixture
def make_request() -> Callable[..., dict[str, Any]]:
    """构造请求信封字典"""

    def _make(
        spec_type: str = "iso29148_software_requirements",
        formats: list[str] | None = None,
        data: dict[str, Any] | None = None,
        request_id: str | None = None,
        **metadata: Any,
    ) -> dict[str, Any]:
        return {
            "request_id": request_id or f"req-{uuid.uuid4().hex[:8]}",
            "specification_type": spec_type,
            "output_formats": formats or ["Markdown"],
            "data": copy.deepcopy(MINIMAL_DATA.get(spec_type, {})) if data is None else data,
            "metadata": {**METADATA, **metadata},
        }

    return _make


@pytest.fixture
def make_message() -> Callable[..., InboundMessage]:
    """构造入站消息（dict 自动序列化为 JSON）"""

    def _make(payload: dict[str, Any] | bytes, message_id: str | None = None) -> InboundMessage:
        data = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        return InboundMessage(message_id=message_id or uuid.uuid4().hex, data=data)

    return _make


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def make_coordinator(template_engine: JinjaTemplateEngine) -> Callable[..., RequestCoordinator]:
    """组装协调器（无退避、固定时钟）"""

    def _make(
        transport: IMessageTransport,
        converter: IDocumentConverter | None = None,
        engine: ITemplateEngine | None = None,
        export_max_retries: int = 2,
        publish_max_attempts: int = 3,
        pdf_concurrency_limit: int = 2,
        stats: ServiceStats | None = None,
    ) -> RequestCoordinator:
        exporter = FormatExporter(
            converter or FakeConverter(),
            pdf_concurrency_limit=pdf_concurrency_limit,
            pdf_timeout=5.0,
        )
        publisher = ResultPublisher(
            transport,
            topic=RESPONSE_TOPIC,
            max_attempts=publish_max_attempts,
            backoff_ms=0,
            max_backoff_ms=0,
        )
        return RequestCoordinator(
            DocumentModelBuilder(),
            CanonicalRenderer(engine or template_engine),
            exporter,
            publisher,
            stats=stats or ServiceStats(),
            export_max_retries=export_max_retries,
            export_backoff_ms=0,
            clock=lambda: FIXED_NOW,
        )

    return _make


@pytest.fixture
def make_converter() -> type[FakeConverter]:
    return FakeConverter


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    return FakeTransport
