"""
数据模型单元测试

每个模块完成后必须运行：pytest tests/unit/test_models.py -v
"""

import base64
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from docgen_service.models import (
    DocumentFormat,
    DocumentMetadata,
    DocumentModel,
    OutputDocument,
    RequestEnvelope,
    ResponseEnvelope,
    ResponseStatus,
    SpecificationType,
)


class TestDocumentFormat:
    """输出格式测试"""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("PDF", DocumentFormat.PDF),
            ("pdf", DocumentFormat.PDF),
            ("Markdown", DocumentFormat.MARKDOWN),
            ("md", DocumentFormat.MARKDOWN),
            ("html", DocumentFormat.HTML),
        ],
    )
    def test_parse(self, raw, expected):
        """测试大小写不敏感解析"""
        assert DocumentFormat.parse(raw) is expected

    def test_parse_unknown(self):
        """测试不支持的格式"""
        with pytest.raises(ValueError):
            DocumentFormat.parse("docx")

    def test_extension_and_mime(self):
        """测试扩展名与 MIME"""
        assert DocumentFormat.PDF.extension == "pdf"
        assert DocumentFormat.MARKDOWN.mime_type == "text/markdown"
        assert DocumentFormat.HTML.mime_type == "text/html"


class TestRequestEnvelope:
    """请求信封测试"""

    def test_minimal(self, make_request):
        """测试最小合法请求"""
        envelope = RequestEnvelope.model_validate(make_request(request_id="r-1"))
        assert envelope.request_id == "r-1"
        assert envelope.specification_type == SpecificationType.ISO29148_SOFTWARE_REQUIREMENTS
        assert envelope.output_formats == [DocumentFormat.MARKDOWN]

    def test_formats_deduplicated(self, make_request):
        """测试格式去重且保留首次出现顺序"""
        raw = make_request(formats=["pdf", "Markdown", "PDF", "md", "HTML"])
        envelope = RequestEnvelope.model_validate(raw)
        assert envelope.output_formats == [
            DocumentFormat.PDF,
            DocumentFormat.MARKDOWN,
            DocumentFormat.HTML,
        ]

    def test_empty_formats_rejected(self, make_request):
        """测试空格式列表"""
        raw = make_request()
        raw["output_formats"] = []
        with pytest.raises(ValidationError):
            RequestEnvelope.model_validate(raw)

    def test_unknown_spec_type(self, make_request):
        """测试未知规范类型"""
        with pytest.raises(ValidationError) as exc_info:
            RequestEnvelope.model_validate(make_request(spec_type="unknown_type"))
        assert "unknown_type" in str(exc_info.value)

    def test_missing_request_id(self, make_request):
        """测试缺少 request_id"""
        raw = make_request()
        del raw["request_id"]
        with pytest.raises(ValidationError):
            RequestEnvelope.model_validate(raw)

    def test_extra_fields_ignored(self, make_request):
        """测试未知字段被忽略"""
        raw = make_request()
        raw["priority"] = "high"
        envelope = RequestEnvelope.model_validate(raw)
        assert not hasattr(envelope, "priority")


class TestDocumentMetadata:
    """元数据测试"""

    def test_defaults(self):
        """测试默认值"""
        meta = DocumentMetadata()
        assert meta.version == "1.0"
        assert meta.title is None
        assert meta.generated_date is None

    def test_numeric_version(self):
        """测试数字版本号转为字符串"""
        assert DocumentMetadata(version=2).version == "2"

    def test_naive_date_is_utc(self):
        """测试无时区日期补 UTC"""
        meta = DocumentMetadata(generated_date=datetime(2024, 1, 2, 3, 4))
        assert meta.generated_date.tzinfo == timezone.utc


class TestDocumentModel:
    """文档模型测试"""

    def test_context_is_fresh_copy(self, metadata):
        """测试上下文为独立副本"""
        model = DocumentModel(
            specification_type=SpecificationType.IEEE830_SRS,
            template_id="ieee830_srs",
            metadata=metadata,
            data={"introduction": {"purpose": "p"}},
        )
        context = model.to_context()
        context["introduction"]["purpose"] = "changed"
        assert model.data["introduction"]["purpose"] == "p"
        assert model.to_context()["spec"] == {"type": "ieee830_srs", "template_id": "ieee830_srs"}

    def test_frozen(self, metadata):
        """测试不可变"""
        model = DocumentModel(
            specification_type=SpecificationType.IEEE830_SRS,
            template_id="ieee830_srs",
            metadata=metadata,
        )
        with pytest.raises(ValidationError):
            model.template_id = "other"


class TestResponseEnvelope:
    """响应信封测试"""

    NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_success_wire(self):
        """测试成功响应结构"""
        doc = OutputDocument(
            format=DocumentFormat.MARKDOWN,
            content=b"# Title\n",
            filename="title_v1.0.md",
            mime_type="text/markdown",
            size_bytes=8,
        )
        wire = ResponseEnvelope.success("r-1", [doc], self.NOW).to_wire()
        assert wire["status"] == "success"
        assert wire["error"] is None
        assert wire["generated_at"] == "2024-05-01T12:00:00+00:00"
        assert wire["documents"][0]["format"] == "Markdown"
        assert base64.b64decode(wire["documents"][0]["content_base64"]) == b"# Title\n"

    def test_failure_wire(self):
        """测试错误响应结构"""
        response = ResponseEnvelope.failure("r-2", "data.scope: 缺少必填字段", self.NOW)
        wire = response.to_wire()
        assert response.status == ResponseStatus.ERROR
        assert wire["documents"] == []
        assert wire["error"] == "data.scope: 缺少必填字段"

    def test_failure_error_never_empty(self):
        """测试错误信息不为空"""
        assert ResponseEnvelope.failure("r-3", "", self.NOW).error
