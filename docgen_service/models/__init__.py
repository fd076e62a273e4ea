"""
数据模型层 - 定义系统核心数据结构

所有模块通过这些模型交互，实现解耦：
- RequestEnvelope: 入站请求信封
- DocumentModel: 校验后的文档模型（渲染输入）
- OutputDocument: 单个导出文档
- ResponseEnvelope: 出站响应信封
"""

from .document import DerivedFields, DocumentModel
from .envelope import DocumentFormat, DocumentMetadata, RequestEnvelope, SpecificationType
from .output import OutputDocument, ResponseEnvelope, ResponseStatus

__all__ = [
    "RequestEnvelope",
    "DocumentMetadata",
    "DocumentFormat",
    "SpecificationType",
    "DocumentModel",
    "DerivedFields",
    "OutputDocument",
    "ResponseEnvelope",
    "ResponseStatus",
]
