"""
服务装配 - 日志配置与组件组装

组件依赖关系：
    PubSubTransport ─┬─> ResultPublisher ─┐
                     │                    ├─> RequestCoordinator ─> IntakeWorker
    PandocConverter ─┴─> FormatExporter ──┘
    JinjaTemplateEngine -> CanonicalRenderer
"""

from __future__ import annotations

import logging

from .config import RuntimeConfig
from .doc_gen import DocumentModelBuilder
from .export import FormatExporter, PandocConverter
from .interfaces import IDocumentConverter, IMessageTransport
from .pipeline import IntakeWorker, RequestCoordinator, ResultPublisher, ServiceStats
from .render import CanonicalRenderer, JinjaTemplateEngine

logger = logging.getLogger(__name__)


def configure_logging(config: RuntimeConfig) -> None:
    logging.basicConfig(
        level=config.service.log_level.upper(),
        format=config.service.log_format,
    )


def build_worker(
    config: RuntimeConfig,
    transport: IMessageTransport | None = None,
    converter: IDocumentConverter | None = None,
) -> IntakeWorker:
    """按配置组装工作器；transport/converter 可注入替身"""
    if transport is None:
        from .transport import PubSubTransport

        transport = PubSubTransport(
            project_id=config.pubsub.project_id,
            subscription=config.pubsub.request_subscription,
            max_messages=config.max_concurrent_messages,
        )
    if converter is None:
        converter = PandocConverter(
            pandoc_path=config.pdf.pandoc_path,
            pdf_engine=config.pdf.pdf_engine,
        )

    stats = ServiceStats()
    renderer = CanonicalRenderer(JinjaTemplateEngine(config.templates_path))
    exporter = FormatExporter(
        converter,
        pdf_concurrency_limit=config.pdf_concurrency_limit,
        pdf_timeout=config.pdf_timeout,
    )
    publisher = ResultPublisher(
        transport,
        topic=config.pubsub.response_topic,
        max_attempts=config.retries.publish_max_attempts,
        backoff_ms=config.retries.publish_backoff_ms,
        max_backoff_ms=config.retries.publish_max_backoff_ms,
    )
    coordinator = RequestCoordinator(
        DocumentModelBuilder(),
        renderer,
        exporter,
        publisher,
        stats=stats,
        export_max_retries=config.retries.export_max_retries,
        export_backoff_ms=config.retries.export_backoff_ms,
    )

    logger.info(
        f"服务组装完成: {config.service.name}, "
        f"subscription={config.pubsub.request_subscription}, "
        f"topic={config.pubsub.response_topic}, "
        f"max_concurrent={config.max_concurrent_messages}, "
        f"pdf_concurrency={config.pdf_concurrency_limit}"
    )
    return IntakeWorker(
        transport,
        coordinator,
        converter=converter,
        max_concurrent=config.max_concurrent_messages,
        receive_timeout=config.pubsub.receive_timeout_sec,
        receive_backoff=config.pubsub.receive_backoff_sec,
        grace_period=config.shutdown.grace_period_sec,
        stats=stats,
    )
