"""
HTML 导出 - canonical Markdown -> 独立 HTML5 文档

职责：
1. Python-Markdown 转换正文（表格、代码块、目录、元数据）
2. 套用内嵌样式的 HTML5 外壳（标题、密级横幅、目录）

纯 Python 实现，不依赖外部工具链；CPU 密集，调用方应放入线程执行。

测试要点：
- test_html_standalone: 输出完整 HTML 文档
- test_html_title_from_front_matter: 标题取自 front matter
- test_html_classification_banner: 密级横幅
"""

from __future__ import annotations

import json

import markdown
from jinja2 import Environment

from ..models import DocumentMetadata

MARKDOWN_EXTENSIONS = ["meta", "tables", "fenced_code", "toc", "sane_lists"]

STYLESHEET = """
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif;
       max-width: 960px; margin: 2rem auto; padding: 0 1.5rem;
       color: #24292f; line-height: 1.6; }
h1, h2, h3, h4 { border-bottom: 1px solid #d0d7de; padding-bottom: .3em; }
table { border-collapse: collapse; margin: 1rem 0; width: 100%; }
th, td { border: 1px solid #d0d7de; padding: 6px 13px; text-align: left; }
th { background: #f6f8fa; }
code, pre { background: #f6f8fa; border-radius: 6px; }
pre { padding: 1rem; overflow: auto; }
blockquote { color: #57606a; border-left: .25em solid #d0d7de; margin: 0; padding: 0 1em; }
nav.toc { background: #f6f8fa; border: 1px solid #d0d7de; padding: .5rem 1.5rem; margin-bottom: 2rem; }
.classification { text-align: center; font-weight: bold; letter-spacing: .1em;
                  background: #cf222e; color: #fff; padding: .3rem; }
""".strip()

_PAGE = Environment(autoescape=True).from_string(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title }}</title>
{% if author %}
<meta name="author" content="{{ author }}">
{% endif %}
<style>
{{ stylesheet | safe }}
</style>
</head>
<body>
{% if classification %}
<div class="classification">{{ classification | upper }}</div>
{% endif %}
{% if toc %}
<nav class="toc">
{{ toc | safe }}
</nav>
{% endif %}
<main>
{{ body | safe }}
</main>
{% if classification %}
<div class="classification">{{ classification | upper }}</div>
{% endif %}
</body>
</html>
""",
)


def _meta_value(meta: dict[str, list[str]], key: str) -> str | None:
    """读取 front matter 值（front matter 中字符串为 JSON 双引号形式）"""
    values = meta.get(key)
    if not values:
        return None
    raw = " ".join(values).strip()
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        try:
            return str(json.loads(raw))
        except ValueError:
            return raw[1:-1]
    return raw or None


def render_html(text: str, metadata: DocumentMetadata) -> bytes:
    """Markdown 转为独立 HTML5 文档（UTF-8 字节）"""
    md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, output_format="html")
    body = md.convert(text)
    meta = getattr(md, "Meta", {}) or {}

    title = _meta_value(meta, "title") or metadata.title or "Document"
    page = _PAGE.render(
        title=title,
        author=_meta_value(meta, "author") or metadata.author,
        classification=metadata.classification,
        stylesheet=STYLESHEET,
        toc=md.toc if getattr(md, "toc_tokens", None) else "",
        body=body,
    )
    return page.encode("utf-8")
