"""
输出文件命名

规则：
- 文件名 = slug(标题) + "_v" + 版本 + "." + 扩展名
- slug：小写，非字母数字连续段折叠为 "-"，去掉首尾 "-"；为空时取 "document"
- 版本：仅保留 [A-Za-z0-9._-]，其余折叠为 "-"；为空时取 "0"
"""

from __future__ import annotations

import re

from ..models import DocumentFormat

DEFAULT_STEM = "document"
DEFAULT_VERSION = "0"

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_VERSION_RE = re.compile(r"[^A-Za-z0-9._-]+")


def slugify(title: str | None) -> str:
    slug = _SLUG_RE.sub("-", (title or "").lower()).strip("-")
    return slug or DEFAULT_STEM


def clean_version(version: str | None) -> str:
    cleaned = _VERSION_RE.sub("-", (version or "").strip()).strip("-")
    return cleaned or DEFAULT_VERSION


def build_filename(title: str | None, version: str | None, fmt: DocumentFormat) -> str:
    """生成输出文件名，如 payment-gateway-srs_v1.2.pdf"""
    return f"{slugify(title)}_v{clean_version(version)}.{fmt.extension}"
