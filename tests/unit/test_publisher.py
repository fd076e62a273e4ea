"""
结果发布单元测试

每个模块完成后必须运行：pytest tests/unit/test_publisher.py -v
"""

import asyncio
import base64
import json
from datetime import datetime, timezone

import pytest

from docgen_service.interfaces import PublishError
from docgen_service.models import DocumentFormat, OutputDocument, ResponseEnvelope
from docgen_service.pipeline import ResultPublisher

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _publisher(transport, attempts: int = 3) -> ResultPublisher:
    return ResultPublisher(transport, "results", max_attempts=attempts, backoff_ms=0, max_backoff_ms=0)


def _success() -> ResponseEnvelope:
    doc = OutputDocument(
        format=DocumentFormat.PDF,
        content=b"%PDF-1.7",
        filename="doc_v1.0.pdf",
        mime_type="application/pdf",
        size_bytes=8,
    )
    return ResponseEnvelope.success("req-9", [doc], NOW)


class TestResultPublisher:
    """结果发布器测试"""

    def test_publish_payload(self, fake_transport):
        """测试载荷与属性"""
        message_id = asyncio.run(_publisher(fake_transport).publish(_success()))
        assert message_id == "pub-1"

        topic, payload, attributes = fake_transport.published[0]
        assert topic == "results"
        assert attributes == {"request_id": "req-9", "status": "success"}
        body = json.loads(payload)
        assert body["request_id"] == "req-9"
        assert base64.b64decode(body["documents"][0]["content_base64"]) == b"%PDF-1.7"

    def test_publish_retry_then_success(self, make_transport):
        """测试重试后成功"""
        transport = make_transport(publish_failures=2)
        asyncio.run(_publisher(transport, attempts=3).publish(_success()))
        assert transport.publish_calls == 3
        assert len(transport.published) == 1

    def test_publish_exhausted(self, make_transport):
        """测试重试耗尽"""
        transport = make_transport(publish_failures=5)
        with pytest.raises(PublishError):
            asyncio.run(_publisher(transport, attempts=3).publish(_success()))
        assert transport.publish_calls == 3
        assert transport.published == []

    def test_error_response_attributes(self, fake_transport):
        """测试错误响应属性"""
        response = ResponseEnvelope.failure("req-1", "boom", NOW)
        asyncio.run(_publisher(fake_transport).publish(response))
        _, payload, attributes = fake_transport.published[0]
        assert attributes["status"] == "error"
        assert json.loads(payload)["error"] == "boom"
