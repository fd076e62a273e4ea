"""
服务入口：python -m docgen_service
"""

from __future__ import annotations

import asyncio
import logging
import signal

from .app import build_worker, configure_logging
from .config import get_config

logger = logging.getLogger("docgen_service")


async def serve() -> None:
    config = get_config()
    worker = build_worker(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, worker.request_shutdown)
        except NotImplementedError:
            # Windows 事件循环不支持
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(worker.request_shutdown))

    await worker.run()


def main() -> None:
    configure_logging(get_config())
    logger.info("文档生成服务启动")
    asyncio.run(serve())


if __name__ == "__main__":
    main()
