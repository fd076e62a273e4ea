"""
运行期配置 - 读取 config/runtime.yaml

职责：
- 加载并发/超时/重试/路径等运行参数
- 提供环境变量覆盖机制（DOCGEN_ 前缀，嵌套分隔符 __）
- 类型安全的配置访问
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

# 随包分发的模板目录
DEFAULT_TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


class ServiceConfig(BaseModel):
    """服务配置"""

    name: str = "document-generation-service"
    log_level: str = "INFO"
    log_format: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class PubSubConfig(BaseModel):
    """Pub/Sub 配置"""

    project_id: str = "mcxtest"
    request_subscription: str = "document-generation-requests-sub"
    response_topic: str = "document-generation-results"
    max_concurrent_messages: int = Field(10, ge=1)
    receive_timeout_sec: float = 1.0
    receive_backoff_sec: float = 5.0


class TemplateConfig(BaseModel):
    """模板配置"""

    path: Path = DEFAULT_TEMPLATES_DIR


class PDFConfig(BaseModel):
    """PDF 转换配置"""

    concurrency_limit: int = Field(2, ge=1)
    timeout_sec: float = Field(120.0, gt=0)
    pandoc_path: str = "pandoc"
    pdf_engine: str = "xelatex"


class RetryConfig(BaseModel):
    """重试配置"""

    export_max_retries: int = Field(2, ge=0)
    export_backoff_ms: int = 500
    publish_max_attempts: int = Field(5, ge=1)
    publish_backoff_ms: int = 200
    publish_max_backoff_ms: int = 5000


class ShutdownConfig(BaseModel):
    """关停配置"""

    grace_period_sec: float = 30.0


class RuntimeConfig(BaseSettings):
    """运行期配置（支持环境变量覆盖）"""

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    pubsub: PubSubConfig = Field(default_factory=PubSubConfig)
    templates: TemplateConfig = Field(default_factory=TemplateConfig)
    pdf: PDFConfig = Field(default_factory=PDFConfig)
    retries: RetryConfig = Field(default_factory=RetryConfig)
    shutdown: ShutdownConfig = Field(default_factory=ShutdownConfig)

    model_config = {
        "env_prefix": "DOCGEN_",
        "env_nested_delimiter": "__",
        "arbitrary_types_allowed": True,
    }

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> RuntimeConfig:
        """从YAML文件加载配置"""
        path = Path(yaml_path)
        if not path.exists():
            return cls()

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        runtime_opts = data.get("runtime_options", {})

        config = cls(
            service=ServiceConfig(**cls._extract(runtime_opts, "service")),
            pubsub=PubSubConfig(**cls._extract(runtime_opts, "pubsub")),
            templates=TemplateConfig(**cls._extract(runtime_opts, "templates")),
            pdf=PDFConfig(**cls._extract(runtime_opts, "pdf")),
            retries=RetryConfig(**cls._extract(runtime_opts, "retries")),
            shutdown=ShutdownConfig(**cls._extract(runtime_opts, "shutdown")),
        )

        config._resolve_paths(base_dir=path.parent)
        return config

    @staticmethod
    def _extract(data: dict[str, Any], key: str) -> dict[str, Any]:
        """提取并展平配置"""
        section = data.get(key) or {}
        result = {}
        for k, v in section.items():
            if isinstance(v, dict) and "default" in v:
                result[k] = v["default"]
            elif not isinstance(v, dict):
                result[k] = v
        return result

    def _resolve_paths(self, base_dir: Path) -> None:
        """解析相对模板路径为绝对路径（基于配置文件所在目录）"""
        templates_path = Path(self.templates.path)
        if not templates_path.is_absolute():
            self.templates.path = (base_dir / templates_path).resolve()

    # === 流水线使用的静态选项 ===

    @property
    def max_concurrent_messages(self) -> int:
        return self.pubsub.max_concurrent_messages

    @property
    def templates_path(self) -> Path:
        return Path(self.templates.path)

    @property
    def pdf_concurrency_limit(self) -> int:
        return self.pdf.concurrency_limit

    @property
    def pdf_timeout(self) -> float:
        return self.pdf.timeout_sec


# 全局配置实例
_config: RuntimeConfig | None = None

DEFAULT_CONFIG_PATH = Path("config/runtime.yaml")


def _default_path() -> Path:
    return Path(os.environ.get("DOCGEN_CONFIG_PATH") or DEFAULT_CONFIG_PATH)


def get_config() -> RuntimeConfig:
    """获取全局配置（惰性加载）"""
    global _config
    if _config is None:
        _config = RuntimeConfig.from_yaml(_default_path())
    return _config


def reload_config(yaml_path: str | Path | None = None) -> RuntimeConfig:
    """重新加载配置"""
    global _config
    path = yaml_path or _default_path()
    _config = RuntimeConfig.from_yaml(path)
    return _config
