"""
导出模块 - canonical Markdown 到 Markdown/HTML/PDF
"""

from .exporter import FormatExporter
from .html import render_html
from .naming import build_filename
from .pdf_engine import PandocConverter

__all__ = [
    "FormatExporter",
    "PandocConverter",
    "build_filename",
    "render_html",
]
