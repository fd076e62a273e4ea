"""
字段规则 - 规范类型的数据结构校验

规则按声明顺序逐条检查，遇到第一个缺失字段或类型不符即失败，
报告点分路径（列表元素带下标，如 requirements[0].id）。

示例：
    rules = (
        FieldRule("introduction.purpose"),
        FieldRule("requirements", FieldKind.SEQUENCE, min_items=1,
                  item_fields=("id", "description")),
    )
    validate_fields(data, rules)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..interfaces import ValidationError

_MISSING = object()


class FieldKind(str, Enum):
    """字段形态"""
    TEXT = "text"          # 非空字符串
    MAPPING = "mapping"    # JSON 对象
    SEQUENCE = "sequence"  # JSON 数组


@dataclass(frozen=True)
class FieldRule:
    """单条字段规则"""
    path: str
    kind: FieldKind = FieldKind.TEXT
    min_items: int = 0
    # 列表元素（对象）必须包含的非空文本字段
    item_fields: tuple[str, ...] = ()


def lookup(data: Any, path: str) -> Any:
    """按点分路径取值，不存在返回 _MISSING"""
    node = data
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _is_text(value: Any) -> bool:
    # 数字形式的编号（如 "id": 1）也视为文本
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(value.strip())


def check_rule(data: dict[str, Any], rule: FieldRule, prefix: str = "") -> None:
    """检查单条规则，失败抛出 ValidationError"""
    full_path = f"{prefix}{rule.path}"
    value = lookup(data, rule.path)

    if value is _MISSING or value is None:
        raise ValidationError(full_path, "缺少必填字段")

    if rule.kind == FieldKind.TEXT:
        if not _is_text(value):
            raise ValidationError(full_path, "应为非空字符串")
        return

    if rule.kind == FieldKind.MAPPING:
        if not isinstance(value, dict):
            raise ValidationError(full_path, "应为对象")
        return

    if not isinstance(value, list):
        raise ValidationError(full_path, "应为数组")
    if len(value) < rule.min_items:
        raise ValidationError(full_path, f"至少需要 {rule.min_items} 项，实际 {len(value)} 项")

    for i, item in enumerate(value):
        item_path = f"{full_path}[{i}]"
        if not isinstance(item, dict):
            raise ValidationError(item_path, "应为对象")
        for name in rule.item_fields:
            check_rule(item, FieldRule(name), prefix=f"{item_path}.")


def validate_fields(data: dict[str, Any], rules: tuple[FieldRule, ...], prefix: str = "") -> None:
    """按顺序校验全部规则（fail-fast）"""
    for rule in rules:
        check_rule(data, rule, prefix=prefix)
