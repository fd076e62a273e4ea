"""
模板引擎 - Jinja2 实现 ITemplateEngine

职责：
1. 从模板目录加载 <template_id>.md.j2
2. StrictUndefined：模板引用不存在的字段即报错（不静默输出空串）
3. 提供 Markdown 相关过滤器

测试要点：
- test_render_missing_field: 缺失字段报 RenderError 并给出字段名
- test_render_missing_template: 模板不存在
- test_md_cell_filter: 表格单元格转义
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
    UndefinedError,
)

from ..interfaces import ITemplateEngine, RenderError

TEMPLATE_SUFFIX = ".md.j2"

_UNDEFINED_PATTERNS = (
    re.compile(r"has no attribute '([^']+)'"),
    re.compile(r"'([^']+)' is undefined"),
)


def yaml_str(value: Any) -> str:
    """输出为 YAML 安全的双引号字符串（JSON 字符串即合法 YAML）"""
    if value is None:
        return '""'
    return json.dumps(str(value), ensure_ascii=False)


def md_cell(value: Any) -> str:
    """Markdown 表格单元格：转义竖线，换行折叠为空格"""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value)
    text = str(value).replace("|", "\\|")
    return " ".join(text.split())


def bullet_list(value: Any, indent: int = 0) -> str:
    """列表/字符串渲染为 Markdown 无序列表"""
    if value is None or value == "":
        return ""
    items = value if isinstance(value, (list, tuple)) else [value]
    pad = " " * indent
    return "\n".join(f"{pad}- {item}" for item in items)


def _missing_field(message: str) -> str | None:
    for pattern in _UNDEFINED_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


class JinjaTemplateEngine(ITemplateEngine):
    """Jinja2 模板引擎"""

    def __init__(self, templates_path: str | Path):
        self.templates_path = Path(templates_path)
        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_path)),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["yaml_str"] = yaml_str
        self.env.filters["md_cell"] = md_cell
        self.env.filters["bullet_list"] = bullet_list

    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """渲染模板"""
        try:
            template = self.env.get_template(f"{template_id}{TEMPLATE_SUFFIX}")
        except TemplateNotFound as e:
            raise RenderError(f"模板不存在: {template_id}") from e
        except TemplateError as e:
            raise RenderError(f"模板解析失败 {template_id}: {e}") from e

        try:
            return template.render(context)
        except UndefinedError as e:
            field = _missing_field(str(e))
            raise RenderError(
                f"模板 {template_id} 引用了不存在的字段: {field or e}", field=field
            ) from e
        except (TemplateError, TypeError) as e:
            raise RenderError(f"模板渲染失败 {template_id}: {e}") from e
