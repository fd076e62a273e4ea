"""
PDF 转换引擎 - 调用 pandoc 将 canonical Markdown 转为 PDF

职责：
1. 在临时目录中以子进程方式调用 pandoc（xelatex 引擎）
2. 处理超时、非零退出、缺少可执行文件
3. 记录存活子进程，关停时可强制终止

依赖：
- pandoc 与 xelatex 可执行文件（路径由运行期配置指定）

错误映射：
- 超时                      -> ExportError(kind=TIMEOUT)
- 非零退出/找不到程序/空输出 -> ExportError(kind=PROCESS_FAILURE)
- 内存/进程数等资源耗尽      -> ResourceUnavailableError
- 被 terminate_all 终止      -> ResourceUnavailableError

测试要点：
- test_pandoc_command: 命令行参数
- test_pandoc_timeout: 超时处理
- test_pandoc_missing_binary: 可执行文件不存在
- test_terminate_all: 关停时终止子进程
"""

from __future__ import annotations

import asyncio
import errno
import logging
import tempfile
from pathlib import Path

from ..interfaces import (
    ExportError,
    ExportErrorKind,
    IDocumentConverter,
    ResourceUnavailableError,
)

logger = logging.getLogger(__name__)

# 启动子进程时视为瞬时资源不足的错误码
_RESOURCE_ERRNOS = {errno.EMFILE, errno.ENFILE, errno.ENOMEM, errno.EAGAIN}

PDF_OPTIONS = [
    "--from=markdown+yaml_metadata_block+hard_line_breaks",
    "--to=pdf",
    "--toc",
    "--toc-depth=3",
    "--number-sections",
    "-V", "geometry:margin=1in",
    "-V", "fontsize=11pt",
    "-V", "documentclass=article",
]


class PandocConverter(IDocumentConverter):
    """pandoc 转换器实现"""

    def __init__(self, pandoc_path: str = "pandoc", pdf_engine: str = "xelatex"):
        self.pandoc_path = pandoc_path
        self.pdf_engine = pdf_engine
        self._processes: set[asyncio.subprocess.Process] = set()
        self._terminated = False

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        target_format: str,
        variables: dict[str, str] | None = None,
    ) -> list[str]:
        """组装 pandoc 命令行"""
        if target_format.lower() != "pdf":
            raise ExportError(
                f"pandoc转换器不支持的目标格式: {target_format}",
                format=target_format,
            )
        cmd = [
            self.pandoc_path,
            str(input_path),
            "-o", str(output_path),
            *PDF_OPTIONS,
            f"--pdf-engine={self.pdf_engine}",
        ]
        for key, value in (variables or {}).items():
            cmd.extend(["-V", f"{key}={value}"])
        return cmd

    async def convert(
        self,
        text: str,
        target_format: str,
        timeout: float,
        variables: dict[str, str] | None = None,
    ) -> bytes:
        """执行一次转换"""
        if self._terminated:
            raise ResourceUnavailableError("转换器已关停")

        with tempfile.TemporaryDirectory(prefix="docgen_") as tmp:
            work_dir = Path(tmp)
            input_path = work_dir / "document.md"
            output_path = work_dir / f"document.{target_format.lower()}"
            input_path.write_text(text, encoding="utf-8")

            cmd = self.build_command(input_path, output_path, target_format, variables)
            proc = await self._spawn(cmd, work_dir, target_format)

            self._processes.add(proc)
            try:
                try:
                    _, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
                except asyncio.TimeoutError as e:
                    await self._kill(proc)
                    raise ExportError(
                        f"pandoc转换超时({timeout}s)",
                        kind=ExportErrorKind.TIMEOUT,
                        format=target_format,
                    ) from e
                except asyncio.CancelledError:
                    await self._kill(proc)
                    raise
            finally:
                self._processes.discard(proc)

            if self._terminated:
                raise ResourceUnavailableError("转换进程被关停终止")

            if proc.returncode != 0:
                detail = stderr.decode("utf-8", errors="replace").strip()
                raise ExportError(
                    f"pandoc转换失败(exit={proc.returncode}): {detail[-2000:]}",
                    kind=ExportErrorKind.PROCESS_FAILURE,
                    format=target_format,
                )

            if not output_path.exists() or output_path.stat().st_size == 0:
                raise ExportError(
                    f"pandoc未生成输出文件: {output_path.name}",
                    kind=ExportErrorKind.PROCESS_FAILURE,
                    format=target_format,
                )
            return output_path.read_bytes()

    async def _spawn(
        self, cmd: list[str], work_dir: Path, target_format: str
    ) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(work_dir),
            )
        except FileNotFoundError as e:
            raise ExportError(
                f"pandoc可执行文件不存在: {self.pandoc_path}",
                kind=ExportErrorKind.PROCESS_FAILURE,
                format=target_format,
            ) from e
        except MemoryError as e:
            raise ResourceUnavailableError("启动pandoc时内存不足") from e
        except OSError as e:
            if e.errno in _RESOURCE_ERRNOS:
                raise ResourceUnavailableError(f"启动pandoc时资源不足: {e}") from e
            raise ExportError(
                f"启动pandoc失败: {e}",
                kind=ExportErrorKind.PROCESS_FAILURE,
                format=target_format,
            ) from e

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()

    async def terminate_all(self) -> int:
        """强制终止所有存活的 pandoc 进程"""
        self._terminated = True
        live = [proc for proc in self._processes if proc.returncode is None]
        for proc in live:
            try:
                proc.kill()
            except ProcessLookupError:
                continue
        if live:
            logger.warning(f"关停：已终止 {len(live)} 个pandoc进程")
        return len(live)
