"""
输出模型 - 导出文档与响应信封
"""

from __future__ import annotations

import base64
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .envelope import DocumentFormat


class ResponseStatus(str, Enum):
    """响应状态"""
    SUCCESS = "success"
    ERROR = "error"


class OutputDocument(BaseModel):
    """单个导出文档"""

    format: DocumentFormat
    content: bytes
    filename: str
    mime_type: str
    size_bytes: int

    def to_wire(self) -> dict[str, Any]:
        """出站 JSON 结构（内容 base64 编码）"""
        return {
            "format": self.format.value,
            "content_base64": base64.b64encode(self.content).decode("ascii"),
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
        }


class ResponseEnvelope(BaseModel):
    """响应信封"""

    request_id: str
    status: ResponseStatus
    documents: list[OutputDocument] = Field(default_factory=list)
    error: str | None = None
    generated_at: datetime

    @classmethod
    def success(
        cls, request_id: str, documents: list[OutputDocument], generated_at: datetime
    ) -> ResponseEnvelope:
        return cls(
            request_id=request_id,
            status=ResponseStatus.SUCCESS,
            documents=documents,
            generated_at=generated_at,
        )

    @classmethod
    def failure(cls, request_id: str, error: str, generated_at: datetime) -> ResponseEnvelope:
        return cls(
            request_id=request_id,
            status=ResponseStatus.ERROR,
            documents=[],
            error=error or "未知错误",
            generated_at=generated_at,
        )

    def to_wire(self) -> dict[str, Any]:
        """出站 JSON 结构"""
        return {
            "request_id": self.request_id,
            "status": self.status.value,
            "documents": [doc.to_wire() for doc in self.documents],
            "error": self.error,
            "generated_at": self.generated_at.isoformat(),
        }
