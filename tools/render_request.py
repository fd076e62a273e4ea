"""
本地渲染请求 JSON（不经过 Pub/Sub），用于调试模板与导出。

用法：
    python tools/render_request.py request.json --out-dir out/
    python tools/render_request.py request.json --formats Markdown HTML
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from docgen_service.app import configure_logging
from docgen_service.config import get_config
from docgen_service.doc_gen import DocumentModelBuilder
from docgen_service.export import FormatExporter, PandocConverter
from docgen_service.interfaces import DocGenError
from docgen_service.models import DocumentFormat, RequestEnvelope
from docgen_service.render import CanonicalRenderer, JinjaTemplateEngine


async def _render(envelope: RequestEnvelope, out_dir: Path) -> list[Path]:
    config = get_config()
    model = DocumentModelBuilder().build(
        envelope.specification_type,
        envelope.data,
        envelope.metadata,
        datetime.now(timezone.utc),
    )
    text = CanonicalRenderer(JinjaTemplateEngine(config.templates_path)).render(
        envelope.specification_type, model
    )
    exporter = FormatExporter(
        PandocConverter(config.pdf.pandoc_path, config.pdf.pdf_engine),
        pdf_concurrency_limit=config.pdf_concurrency_limit,
        pdf_timeout=config.pdf_timeout,
    )

    written = []
    out_dir.mkdir(parents=True, exist_ok=True)
    for fmt in envelope.output_formats:
        doc = await exporter.export(text, fmt, model.metadata)
        target = out_dir / doc.filename
        target.write_bytes(doc.content)
        written.append(target)
    return written


def main() -> int:
    ap = argparse.ArgumentParser(description="Render a document generation request locally.")
    ap.add_argument("request", help="请求 JSON 文件")
    ap.add_argument("--out-dir", default="out", help="输出目录（默认：out）")
    ap.add_argument("--formats", nargs="*", default=None, help="覆盖请求中的 output_formats")
    args = ap.parse_args()

    configure_logging(get_config())

    raw = json.loads(Path(args.request).read_text(encoding="utf-8"))
    if args.formats:
        raw["output_formats"] = [DocumentFormat.parse(f).value for f in args.formats]
    envelope = RequestEnvelope.model_validate(raw)

    try:
        written = asyncio.run(_render(envelope, Path(args.out_dir)))
    except DocGenError as e:
        logging.getLogger(__name__).error(f"渲染失败: {e}")
        return 1

    for path in written:
        print(path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
