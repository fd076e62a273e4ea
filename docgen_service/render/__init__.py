"""
渲染模块 - 模板引擎与 canonical Markdown 渲染
"""

from .canonical import CanonicalRenderer
from .template_engine import JinjaTemplateEngine

__all__ = [
    "CanonicalRenderer",
    "JinjaTemplateEngine",
]
