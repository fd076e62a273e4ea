"""
模块接口契约 - 定义各外部能力的抽象接口与异常体系

设计原则：
1. 流水线只依赖接口，不直接依赖 Pub/Sub、Jinja2、pandoc 等具体实现
2. 每个接口定义清晰的输入输出类型
3. 便于单元测试和 fake 替换（见 tests/conftest.py）

使用方式：
    from docgen_service.interfaces import IDocumentConverter

    class MyConverter(IDocumentConverter):
        async def convert(self, text, target_format, timeout, variables=None) -> bytes:
            ...
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ============================================================================
# 消息传输接口
# ============================================================================

@dataclass
class InboundMessage:
    """从订阅拉取到的一条原始消息"""

    message_id: str
    data: bytes
    attributes: dict[str, str] = field(default_factory=dict)
    # 传输层私有句柄（如 Pub/Sub 的 Message 对象），流水线不读取
    handle: Any = None


class IMessageTransport(ABC):
    """消息传输接口 - receive/ack/nack/publish"""

    @abstractmethod
    async def receive(self, timeout: float | None = None) -> InboundMessage | None:
        """
        拉取一条消息

        Args:
            timeout: 最长等待秒数，None 表示一直等待

        Returns:
            消息；超时返回 None

        Raises:
            TransportError: 订阅拉取失败
        """
        ...

    @abstractmethod
    async def ack(self, message: InboundMessage) -> None:
        """确认消息（不再重投）"""
        ...

    @abstractmethod
    async def nack(self, message: InboundMessage) -> None:
        """拒绝消息（交由传输层重投）"""
        ...

    @abstractmethod
    async def publish(
        self,
        topic: str,
        payload: bytes,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """
        发布消息

        Returns:
            传输层返回的 message_id（确认已受理）

        Raises:
            TransportError: 发布失败
        """
        ...

    async def close(self) -> None:
        """释放连接（默认无操作）"""
        return None


# ============================================================================
# 模板与转换接口
# ============================================================================

class ITemplateEngine(ABC):
    """模板替换引擎接口"""

    @abstractmethod
    def render(self, template_id: str, context: dict[str, Any]) -> str:
        """
        渲染模板

        Args:
            template_id: 模板标识（不含扩展名）
            context: 模板上下文

        Returns:
            渲染后的文本

        Raises:
            RenderError: 模板不存在或引用了上下文中不存在的字段
        """
        ...


class IDocumentConverter(ABC):
    """外部文档转换工具链接口（canonical Markdown -> 二进制格式）"""

    @abstractmethod
    async def convert(
        self,
        text: str,
        target_format: str,
        timeout: float,
        variables: dict[str, str] | None = None,
    ) -> bytes:
        """
        转换文档

        Args:
            text: canonical Markdown 文本
            target_format: 目标格式（如 "pdf"）
            timeout: 单次调用超时秒数
            variables: 额外模板变量（如页眉密级）

        Returns:
            转换结果字节

        Raises:
            ExportError: kind=TIMEOUT 超时；kind=PROCESS_FAILURE 进程失败
            ResourceUnavailableError: 资源不足或被关停终止
        """
        ...

    async def terminate_all(self) -> int:
        """强制终止所有进行中的转换，返回终止数量（默认无操作）"""
        return 0


# ============================================================================
# 异常定义
# ============================================================================

class DocGenError(Exception):
    """基础异常"""

    #: 是否属于请求内容导致的永久失败
    permanent: bool = True


class ValidationError(DocGenError):
    """请求信封或数据结构校验失败（永久）"""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class RenderError(DocGenError):
    """模板与文档模型不匹配（永久）"""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class ExportErrorKind(str, Enum):
    """导出失败类型"""
    TIMEOUT = "Timeout"
    PROCESS_FAILURE = "ProcessFailure"


class ExportError(DocGenError):
    """导出失败（可重试，超过次数后转为永久）"""

    def __init__(
        self,
        message: str,
        kind: ExportErrorKind = ExportErrorKind.PROCESS_FAILURE,
        format: str | None = None,
    ):
        self.kind = kind
        self.format = format
        super().__init__(message)


class ResourceUnavailableError(DocGenError):
    """瞬时资源不足（内存/进程/关停终止），消息应 nack 重投"""

    permanent = False


class PublishError(DocGenError):
    """结果发布失败（重试耗尽后导致 nack）"""

    permanent = False


class TransportError(DocGenError):
    """传输层错误（拉取/确认），只影响进程级健康状态"""

    permanent = False
