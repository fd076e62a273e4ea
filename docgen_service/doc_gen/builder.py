"""
文档模型构建器 - 校验请求数据并构建 DocumentModel

职责：
1. 按规范类型查找变体，校验 data（fail-fast，报告点分路径）
2. 校验元数据必填项
3. 回填 generated_date（缺省取处理时刻），计算派生字段
4. 深拷贝数据，产出不可变的 DocumentModel

测试要点：
- test_build_minimal_srs: 最小合法数据
- test_missing_field_path: 缺失字段报告路径
- test_generated_date_default: 时间戳回填
- test_model_isolated_from_input: 构建后与输入数据隔离
"""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Any

from ..interfaces import ValidationError
from ..models import DocumentMetadata, DocumentModel, SpecificationType
from .derivation import DerivationEngine
from .registry import METADATA_RULES, get_variant
from .rules import validate_fields


class DocumentModelBuilder:
    """文档模型构建器"""

    def __init__(self, derivation: DerivationEngine | None = None):
        self.derivation = derivation or DerivationEngine()

    def build(
        self,
        spec_type: SpecificationType | str,
        data: dict[str, Any],
        metadata: DocumentMetadata,
        received_at: datetime,
    ) -> DocumentModel:
        """构建文档模型"""
        variant = get_variant(spec_type)

        if not isinstance(data, dict):
            raise ValidationError("data", "应为对象")

        validate_fields(data, variant.rules, prefix="data.")
        validate_fields(metadata.model_dump(), METADATA_RULES, prefix="metadata.")

        if metadata.generated_date is None:
            metadata = metadata.model_copy(update={"generated_date": received_at})

        data = copy.deepcopy(data)
        derived = self.derivation.compute(data, metadata, default_title=variant.default_title)

        return DocumentModel(
            specification_type=variant.spec_type,
            template_id=variant.template_id,
            metadata=metadata,
            data=data,
            derived=derived,
        )
