"""
文档模型 - 模板渲染的唯一输入

由 DocumentModelBuilder 在校验通过后构建，构建后不可变；
每个请求独享一份，不跨请求共享。
"""

from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel, Field

from .envelope import DocumentMetadata, SpecificationType


class DerivedFields(BaseModel):
    """派生字段（由 DerivationEngine 计算）"""

    model_config = {"frozen": True}

    # 日期
    generated_date_text: str = ""
    generated_date_iso: str = ""

    # 标题
    document_title: str = ""

    # 需求类统计
    requirement_count: int = 0
    requirements_by_priority: dict[str, int] = Field(default_factory=dict)
    stakeholder_count: int = 0

    # 报告类统计
    finding_count: int = 0
    findings_by_severity: dict[str, int] = Field(default_factory=dict)
    control_count: int = 0
    controls_by_status: dict[str, int] = Field(default_factory=dict)
    test_case_count: int = 0
    test_cases_by_status: dict[str, int] = Field(default_factory=dict)
    pass_rate: str | None = None


class DocumentModel(BaseModel):
    """文档模型（格式无关的结构化树）"""

    model_config = {"frozen": True}

    specification_type: SpecificationType
    template_id: str
    metadata: DocumentMetadata
    data: dict[str, Any] = Field(default_factory=dict)
    derived: DerivedFields = Field(default_factory=DerivedFields)

    def to_context(self) -> dict[str, Any]:
        """构建模板上下文（每次返回独立副本）"""
        data = copy.deepcopy(self.data)
        context: dict[str, Any] = dict(data)
        context.update(
            {
                "spec": {
                    "type": self.specification_type.value,
                    "template_id": self.template_id,
                },
                "metadata": self.metadata.model_dump(mode="json"),
                "data": data,
                "derived": self.derived.model_dump(mode="json"),
            }
        )
        return context
