"""
请求信封模型 - 入站消息的结构定义

对应请求 JSON：
    {
      "request_id": "...",
      "specification_type": "iso29148_software_requirements",
      "output_formats": ["Markdown", "PDF"],
      "data": {...},
      "metadata": {"title": "...", ...}
    }

未知的额外字段一律忽略。
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class DocumentFormat(str, Enum):
    """输出格式枚举"""
    PDF = "PDF"
    MARKDOWN = "Markdown"
    HTML = "HTML"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @classmethod
    def parse(cls, value: Any) -> DocumentFormat:
        """按名称解析（大小写不敏感，支持 md 别名）"""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key in _ALIASES:
            return _ALIASES[key]
        raise ValueError(f"不支持的输出格式: {value!r}")


_EXTENSIONS = {
    DocumentFormat.PDF: "pdf",
    DocumentFormat.MARKDOWN: "md",
    DocumentFormat.HTML: "html",
}

_MIME_TYPES = {
    DocumentFormat.PDF: "application/pdf",
    DocumentFormat.MARKDOWN: "text/markdown",
    DocumentFormat.HTML: "text/html",
}

_ALIASES = {
    "pdf": DocumentFormat.PDF,
    "markdown": DocumentFormat.MARKDOWN,
    "md": DocumentFormat.MARKDOWN,
    "html": DocumentFormat.HTML,
}


class SpecificationType(str, Enum):
    """规范类型（封闭枚举）"""
    # IEEE 830（旧版）
    IEEE830_DRD = "ieee830_drd"
    IEEE830_SRS = "ieee830_srs"

    # MIL-STD-498（旧版）
    MILSTD498_SRS = "milstd498_srs"

    # ISO/IEC/IEEE 29148:2018
    ISO29148_STAKEHOLDER_REQUIREMENTS = "iso29148_stakeholder_requirements"
    ISO29148_SYSTEM_REQUIREMENTS = "iso29148_system_requirements"
    ISO29148_SOFTWARE_REQUIREMENTS = "iso29148_software_requirements"
    ISO29148_CONCEPT_OF_OPERATIONS = "iso29148_concept_of_operations"

    # 报告类
    SECURITY_SCAN_REPORT = "security_scan_report"
    COMPLIANCE_AUDIT_REPORT = "compliance_audit_report"
    TEST_EXECUTION_REPORT = "test_execution_report"


class DocumentMetadata(BaseModel):
    """文档元数据"""

    title: str | None = None
    project_name: str = ""
    version: str = "1.0"
    author: str = ""
    organization: str = ""
    classification: str | None = None
    distribution_statement: str | None = None
    # 缺省时由处理时刻回填（见 DocumentModelBuilder）
    generated_date: datetime | None = None

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, v: Any) -> Any:
        # 允许 "version": 2 这类数字写法
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("generated_date")
    @classmethod
    def _ensure_tz(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class RequestEnvelope(BaseModel):
    """请求信封"""

    request_id: str = Field(..., min_length=1)
    specification_type: SpecificationType
    output_formats: list[DocumentFormat] = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)

    model_config = {"extra": "ignore"}

    @field_validator("specification_type", mode="before")
    @classmethod
    def _known_spec_type(cls, v: Any) -> Any:
        known = {t.value for t in SpecificationType}
        if isinstance(v, SpecificationType) or v in known:
            return v
        raise ValueError(f"未知的规范类型: {v!r}")

    @field_validator("output_formats", mode="before")
    @classmethod
    def _dedupe_formats(cls, v: Any) -> Any:
        """解析并去重（保留首次出现的顺序）"""
        if not isinstance(v, list):
            return v
        result: list[DocumentFormat] = []
        for item in v:
            fmt = DocumentFormat.parse(item)
            if fmt not in result:
                result.append(fmt)
        return result
