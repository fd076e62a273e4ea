"""
规范文本渲染器 - DocumentModel -> canonical Markdown

canonical Markdown 是其它格式的唯一来源。渲染为纯函数：
时间戳只取自模型（metadata.generated_date / derived），不读时钟。
"""

from __future__ import annotations

import logging

from ..doc_gen import get_variant
from ..interfaces import ITemplateEngine, RenderError
from ..models import DocumentModel, SpecificationType

logger = logging.getLogger(__name__)


class CanonicalRenderer:
    """规范文本渲染器"""

    def __init__(self, engine: ITemplateEngine):
        self.engine = engine

    def render(self, spec_type: SpecificationType | str, model: DocumentModel) -> str:
        """渲染 canonical Markdown"""
        variant = get_variant(spec_type)
        if variant.spec_type != model.specification_type:
            raise RenderError(
                f"文档模型类型不一致: {model.specification_type.value} != {variant.spec_type.value}"
            )

        text = self.engine.render(variant.template_id, model.to_context())
        logger.debug(f"canonical文本已生成: {variant.template_id} ({len(text)} 字符)")
        return text
