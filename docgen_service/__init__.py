"""
文档生成服务 - 核心模块

模块结构：
- config/     运行期配置加载
- models/     请求/文档/响应数据模型
- doc_gen/    规范类型注册表、字段校验与文档模型构建
- render/     模板引擎与 canonical Markdown 渲染
- export/     Markdown/HTML/PDF 导出
- pipeline/   请求协调、结果发布、接收工作器
- transport/  Pub/Sub 传输
"""

__version__ = "0.1.0"
