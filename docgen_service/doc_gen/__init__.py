"""
文档生成模块 - 规范类型分发与文档模型构建

子模块：
- rules: 字段规则与校验
- registry: 规范类型 -> 变体（规则/模板）注册表
- derivation: 派生字段计算
- builder: 文档模型构建
"""

from .builder import DocumentModelBuilder
from .derivation import DerivationEngine
from .registry import REGISTRY, GeneratorVariant, get_variant, register
from .rules import FieldKind, FieldRule, validate_fields

__all__ = [
    "DocumentModelBuilder",
    "DerivationEngine",
    "GeneratorVariant",
    "REGISTRY",
    "get_variant",
    "register",
    "FieldKind",
    "FieldRule",
    "validate_fields",
]
