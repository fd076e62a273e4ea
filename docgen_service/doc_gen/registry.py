"""
生成器注册表 - 规范类型 -> (校验规则, 模板标识)

职责：
1. 每个规范类型对应一个 GeneratorVariant（规则 + 模板 + 默认标题）
2. 进程启动时一次性注册，之后只读
3. 新增规范类型 = 新增一个 variant 并 register，不改动已有分发代码

测试要点：
- test_every_spec_type_registered: 枚举全部注册
- test_register_duplicate: 重复注册报错
- test_unknown_variant: 未注册类型报 ValidationError
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from ..interfaces import ValidationError
from ..models import SpecificationType
from .rules import FieldKind, FieldRule

_REQ_ITEM = ("id", "description")


@dataclass(frozen=True)
class GeneratorVariant:
    """规范类型变体"""
    spec_type: SpecificationType
    template_id: str
    default_title: str
    rules: tuple[FieldRule, ...]


# 元数据必填项（所有变体共用，在数据规则之后检查）
METADATA_RULES: tuple[FieldRule, ...] = (
    FieldRule("project_name"),
    FieldRule("author"),
    FieldRule("organization"),
)


_VARIANTS: dict[SpecificationType, GeneratorVariant] = {}
REGISTRY = MappingProxyType(_VARIANTS)


def register(variant: GeneratorVariant) -> GeneratorVariant:
    """注册变体（同一类型只能注册一次）"""
    if variant.spec_type in _VARIANTS:
        raise ValueError(f"规范类型已注册: {variant.spec_type.value}")
    _VARIANTS[variant.spec_type] = variant
    return variant


def get_variant(spec_type: SpecificationType | str) -> GeneratorVariant:
    """按规范类型查找变体"""
    try:
        key = SpecificationType(spec_type)
    except ValueError:
        raise ValidationError("specification_type", f"未知的规范类型: {spec_type!r}") from None
    variant = _VARIANTS.get(key)
    if variant is None:
        raise ValidationError("specification_type", f"规范类型未注册生成器: {key.value}")
    return variant


# ============================================================================
# 需求规格类
# ============================================================================

register(GeneratorVariant(
    spec_type=SpecificationType.IEEE830_SRS,
    template_id="ieee830_srs",
    default_title="Software Requirements Specification",
    rules=(
        FieldRule("introduction.purpose"),
        FieldRule("introduction.scope"),
        FieldRule("requirements", FieldKind.SEQUENCE, min_items=1, item_fields=_REQ_ITEM),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.IEEE830_DRD,
    template_id="ieee830_drd",
    default_title="Data Requirements Description",
    rules=(
        FieldRule("introduction.purpose"),
        FieldRule("data_items", FieldKind.SEQUENCE, min_items=1, item_fields=("id", "name")),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.MILSTD498_SRS,
    template_id="milstd498_srs",
    default_title="Software Requirements Specification (MIL-STD-498)",
    rules=(
        FieldRule("scope.identification"),
        FieldRule("scope.system_overview"),
        FieldRule("requirements", FieldKind.SEQUENCE, min_items=1, item_fields=_REQ_ITEM),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.ISO29148_STAKEHOLDER_REQUIREMENTS,
    template_id="iso29148_stakrs",
    default_title="Stakeholder Requirements Specification",
    rules=(
        FieldRule("introduction.purpose"),
        FieldRule("stakeholders", FieldKind.SEQUENCE, min_items=1, item_fields=("name",)),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.ISO29148_SYSTEM_REQUIREMENTS,
    template_id="iso29148_syrs",
    default_title="System Requirements Specification",
    rules=(
        FieldRule("introduction.purpose"),
        FieldRule("introduction.scope"),
        FieldRule("requirements", FieldKind.SEQUENCE, min_items=1, item_fields=_REQ_ITEM),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.ISO29148_SOFTWARE_REQUIREMENTS,
    template_id="iso29148_srs",
    default_title="Software Requirements Specification",
    rules=(
        FieldRule("introduction.purpose"),
        FieldRule("introduction.scope"),
        FieldRule("requirements", FieldKind.SEQUENCE, min_items=1, item_fields=_REQ_ITEM),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.ISO29148_CONCEPT_OF_OPERATIONS,
    template_id="iso29148_conops",
    default_title="Concept of Operations",
    rules=(
        FieldRule("introduction.purpose"),
        FieldRule(
            "operational_scenarios",
            FieldKind.SEQUENCE,
            min_items=1,
            item_fields=("name", "description"),
        ),
    ),
))

# ============================================================================
# 报告类
# ============================================================================

register(GeneratorVariant(
    spec_type=SpecificationType.SECURITY_SCAN_REPORT,
    template_id="security_report",
    default_title="Security Scan Report",
    rules=(
        FieldRule("scan.target"),
        FieldRule("scan.tool"),
        # 允许零发现
        FieldRule("findings", FieldKind.SEQUENCE, min_items=0, item_fields=("title", "severity")),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.COMPLIANCE_AUDIT_REPORT,
    template_id="compliance_audit",
    default_title="Compliance Audit Report",
    rules=(
        FieldRule("audit.standard"),
        FieldRule("audit.scope"),
        FieldRule("controls", FieldKind.SEQUENCE, min_items=1, item_fields=("id", "status")),
    ),
))

register(GeneratorVariant(
    spec_type=SpecificationType.TEST_EXECUTION_REPORT,
    template_id="test_execution",
    default_title="Test Execution Report",
    rules=(
        FieldRule("test_run.name"),
        FieldRule("test_cases", FieldKind.SEQUENCE, min_items=1, item_fields=("id", "status")),
    ),
))
