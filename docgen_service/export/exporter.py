"""
格式导出器 - canonical Markdown -> 各目标格式的 OutputDocument

职责：
1. Markdown：直接输出 UTF-8 文本
2. HTML：Python-Markdown 转换（线程中执行）
3. PDF：委托外部转换器，受独立的 PDF 并发信号量限制
4. 统一文件名、MIME 类型、字节大小

约束：
- 每次调用只处理一种格式，调用之间不共享可变状态
- 单次调用只尝试一次；重试由 RequestCoordinator 负责

测试要点：
- test_export_markdown_passthrough: Markdown 原样输出
- test_export_html: HTML 输出
- test_export_pdf_uses_converter: PDF 委托转换器
- test_pdf_concurrency_limit: PDF 并发上限
"""

from __future__ import annotations

import asyncio
import logging
import re

from ..interfaces import IDocumentConverter
from ..models import DocumentFormat, DocumentMetadata, OutputDocument
from .html import render_html
from .naming import build_filename

logger = logging.getLogger(__name__)

_LATEX_SPECIALS = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_LATEX_RE = re.compile(r"[\\&%$#_{}~^]")


def latex_escape(text: str) -> str:
    """转义 LaTeX 特殊字符（用于 pandoc 变量中的纯文本）"""
    return _LATEX_RE.sub(lambda m: _LATEX_SPECIALS[m.group(0)], text)


class FormatExporter:
    """多格式导出器"""

    def __init__(
        self,
        converter: IDocumentConverter,
        pdf_concurrency_limit: int = 2,
        pdf_timeout: float = 120.0,
    ):
        if pdf_concurrency_limit < 1:
            raise ValueError("pdf_concurrency_limit 必须 >= 1")
        self.converter = converter
        self.pdf_timeout = pdf_timeout
        self.pdf_concurrency_limit = pdf_concurrency_limit
        self._pdf_slots = asyncio.Semaphore(pdf_concurrency_limit)

    async def export(
        self,
        text: str,
        fmt: DocumentFormat,
        metadata: DocumentMetadata,
        title: str | None = None,
    ) -> OutputDocument:
        """导出单一格式"""
        if fmt == DocumentFormat.MARKDOWN:
            content = text.encode("utf-8")
        elif fmt == DocumentFormat.HTML:
            content = await asyncio.to_thread(render_html, text, metadata)
        elif fmt == DocumentFormat.PDF:
            content = await self._export_pdf(text, metadata)
        else:
            raise ValueError(f"不支持的输出格式: {fmt}")

        return OutputDocument(
            format=fmt,
            content=content,
            filename=build_filename(title or metadata.title, metadata.version, fmt),
            mime_type=fmt.mime_type,
            size_bytes=len(content),
        )

    async def _export_pdf(self, text: str, metadata: DocumentMetadata) -> bytes:
        variables: dict[str, str] = {}
        if metadata.classification:
            mark = latex_escape(metadata.classification.upper())
            variables["header-includes"] = f"\\markboth{{{mark}}}{{{mark}}}"

        async with self._pdf_slots:
            logger.debug("PDF转换开始")
            return await self.converter.convert(
                text,
                DocumentFormat.PDF.extension,
                self.pdf_timeout,
                variables=variables or None,
            )
